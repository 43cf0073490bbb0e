"""
Book model for the Library Circulation server.

Books are a tagged union over two variants:

- PHYSICAL books own a finite number of copies, tracked by ``CopyCounters``.
- DIGITAL books (e-books, audio books) are always available and carry no counters.

Only the inventory ledger reads the variant tag; everything else asks the
book for its capability through ``has_finite_copies``.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookVariant(str, Enum):
    """Variant tag of a catalog item."""

    PHYSICAL = "physical"
    DIGITAL = "digital"


class BookCategory(str, Enum):
    """Subject categories of the catalog."""

    FICTION = "fiction"
    NON_FICTION = "non_fiction"
    SCIENCE = "science"
    TECHNOLOGY = "technology"
    HISTORY = "history"
    BIOGRAPHY = "biography"
    SELF_HELP = "self_help"
    CHILDREN = "children"
    POETRY = "poetry"
    DRAMA = "drama"


class CopyCounters(BaseModel):
    """
    Copy counters of a physical book.

    Issued copies are not stored: they are the open issue records that
    reference the book, so ``available + reserved`` can never exceed ``total``.
    """

    total: int = Field(..., description="Copies owned by the library", ge=0)
    available: int = Field(..., description="Copies on the shelf", ge=0)
    reserved: int = Field(default=0, description="Copies held for reservations", ge=0)

    @model_validator(mode="after")
    def validate_counts(self) -> "CopyCounters":
        if self.available + self.reserved > self.total:
            raise ValueError("Available and reserved copies cannot exceed total copies")
        return self

    @property
    def on_shelf_or_held(self) -> int:
        return self.available + self.reserved

    model_config = ConfigDict(frozen=True)


class Book(BaseModel):
    """
    Represents a catalog item that can circulate.

    Created by catalog administration; the copy counters are only changed by
    the circulation engine through the inventory ledger.
    """

    id: int = Field(
        ...,
        description="Unique numeric identifier for the book",
        ge=1,
        examples=[501, 7],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["The Great Gatsby"],
    )

    author: str = Field(
        ...,
        description="Author name",
        min_length=1,
        max_length=200,
        examples=["F. Scott Fitzgerald"],
    )

    publisher: str | None = Field(
        None,
        description="Publisher name",
        max_length=200,
    )

    publication_year: int | None = Field(
        None,
        description="Year the book was published",
        ge=1450,
        le=datetime.now().year + 1,
    )

    category: BookCategory = Field(
        default=BookCategory.FICTION,
        description="Subject category",
    )

    variant: BookVariant = Field(
        default=BookVariant.PHYSICAL,
        description="Physical copy or digital item",
    )

    copies: CopyCounters | None = Field(
        None,
        description="Copy counters; required for physical books, absent for digital ones",
    )

    @model_validator(mode="after")
    def validate_variant_payload(self) -> "Book":
        """Physical books carry counters, digital books never do."""
        if self.variant == BookVariant.PHYSICAL and self.copies is None:
            raise ValueError("Physical books must carry copy counters")
        if self.variant == BookVariant.DIGITAL and self.copies is not None:
            raise ValueError("Digital books do not have copy counters")
        return self

    @property
    def has_finite_copies(self) -> bool:
        return self.variant == BookVariant.PHYSICAL

    @property
    def is_available(self) -> bool:
        """Whether a copy can be issued right now without a reservation."""
        if self.copies is None:
            return True
        return self.copies.available > 0

    @classmethod
    def physical(cls, id: int, title: str, author: str, total_copies: int, **kwargs) -> "Book":
        """Build a physical book with every copy on the shelf."""
        return cls(
            id=id,
            title=title,
            author=author,
            variant=BookVariant.PHYSICAL,
            copies=CopyCounters(total=total_copies, available=total_copies),
            **kwargs,
        )

    @classmethod
    def digital(cls, id: int, title: str, author: str, **kwargs) -> "Book":
        return cls(id=id, title=title, author=author, variant=BookVariant.DIGITAL, **kwargs)

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        validate_default=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "id": 501,
                "title": "The Great Gatsby",
                "author": "F. Scott Fitzgerald",
                "publisher": "Scribner",
                "publication_year": 1925,
                "category": "fiction",
                "variant": "physical",
                "copies": {"total": 3, "available": 2, "reserved": 1},
            }
        },
    )

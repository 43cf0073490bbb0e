"""
Circulation models for the Library Circulation server.

- IssueRecord: a loan of one book to one member. It is Open while
  ``return_date`` is unset and Closed once the book comes back.
- Reservation: a member's place in the FIFO queue of one book. A member
  holds at most one reservation per book.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IssueRecord(BaseModel):
    """
    Represents a book issued to a member.

    Created on Issue, extended on Renew (``due_date``) and closed on Return
    (``return_date`` and ``fine_amount``).
    """

    id: int = Field(
        ...,
        description="Unique identifier for the issue record",
        ge=1,
    )

    member_id: int = Field(..., description="Member the book is issued to", ge=1)

    book_id: int = Field(..., description="Issued book", ge=1)

    issue_date: datetime = Field(
        default_factory=datetime.now,
        description="When the book was issued",
    )

    due_date: datetime = Field(
        ...,
        description="When the book is due back",
    )

    return_date: datetime | None = Field(
        None,
        description="When the book was returned; unset while the issue is open",
    )

    fine_amount: float = Field(
        default=0.0,
        description="Fine accrued on this issue",
        ge=0.0,
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "IssueRecord":
        """Validate date relationships."""
        if self.due_date < self.issue_date:
            raise ValueError("Due date cannot be before issue date")

        if self.return_date and self.return_date < self.issue_date:
            raise ValueError("Return date cannot be before issue date")

        return self

    @property
    def is_open(self) -> bool:
        return self.return_date is None

    def is_overdue(self, now: datetime) -> bool:
        """Open and past its due date."""
        return self.is_open and self.due_date < now

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "member_id": 1001,
                "book_id": 501,
                "issue_date": "2024-03-01T10:30:00",
                "due_date": "2024-03-06T10:30:00",
                "return_date": None,
                "fine_amount": 0.0,
            }
        },
    )


class Reservation(BaseModel):
    """
    Represents a member's reservation of a book.

    ``sequence`` fixes the FIFO position across restarts. ``holds_copy`` is
    set once a physical copy has been set aside for this reservation; a
    reservation placed while every copy was out waits in the queue without one.
    """

    member_id: int = Field(..., description="Reserving member", ge=1)

    book_id: int = Field(..., description="Reserved book", ge=1)

    sequence: int = Field(
        ...,
        description="Insertion order of the reservation",
        ge=1,
    )

    reserved_at: datetime = Field(
        default_factory=datetime.now,
        description="When the reservation was made",
    )

    holds_copy: bool = Field(
        default=False,
        description="Whether a physical copy is set aside for this reservation",
    )

    @property
    def key(self) -> tuple[int, int]:
        return (self.member_id, self.book_id)

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "member_id": 1001,
                "book_id": 501,
                "sequence": 3,
                "reserved_at": "2024-03-01T10:30:00",
                "holds_copy": True,
            }
        },
    )

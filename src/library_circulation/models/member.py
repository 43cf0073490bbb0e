"""
Member model for the Library Circulation server.

A member borrows, renews and reserves books. The shared borrowing state
(current loans, accrued fines, renewals, status) lives on one record; the
member category is a tag that selects the policy row and fine strategy, so
no per-category subclasses exist.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class MemberCategory(str, Enum):
    """Member categories known to the policy table."""

    STUDENT = "student"
    FACULTY = "faculty"
    REGULAR = "regular"


class MemberStatus(str, Enum):
    """Enumeration of possible member statuses."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class Member(BaseModel):
    """
    Represents a registered library member.

    Every circulation operation mutates the counters below; they are only
    written by the circulation engine through the member eligibility rules.
    """

    id: int = Field(
        ...,
        description="Unique numeric identifier for the member",
        ge=1,
        examples=[1001, 42],
    )

    name: str = Field(
        ...,
        description="Full name of the member",
        min_length=1,
        max_length=200,
        examples=["Asha Verma", "John Smith"],
    )

    email: EmailStr | None = Field(
        None,
        description="Contact email address",
        examples=["asha.verma@example.com"],
    )

    phone: str | None = Field(
        None,
        description="Contact phone number",
        pattern=r"^\+?[\d\s\-\(\)]+$",
    )

    category: MemberCategory = Field(
        default=MemberCategory.REGULAR,
        description="Member category selecting the circulation policy",
    )

    current_borrowed_books: int = Field(
        default=0,
        description="Number of books currently on loan to the member",
        ge=0,
    )

    total_fine_amount: float = Field(
        default=0.0,
        description="Unpaid fines accrued by the member",
        ge=0.0,
    )

    renewal_count: int = Field(
        default=0,
        description="Number of renewals the member has used",
        ge=0,
    )

    status: MemberStatus = Field(
        default=MemberStatus.ACTIVE,
        description="Current membership status",
    )

    membership_date: datetime = Field(
        default_factory=datetime.now,
        description="When the member registered",
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        validate_default=True,
        str_strip_whitespace=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "id": 1001,
                "name": "Asha Verma",
                "email": "asha.verma@example.com",
                "category": "student",
                "current_borrowed_books": 1,
                "total_fine_amount": 0.0,
                "renewal_count": 0,
                "status": "active",
            }
        },
    )

"""
SQLAlchemy schema for the Library Circulation server.

One table per snapshot collection. The tables mirror the Pydantic models in
``library_circulation.models``; they are rewritten as a whole on every
committed transaction, so they carry no timestamps or audit columns.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from ..models.book import BookCategory, BookVariant
from ..models.member import MemberCategory, MemberStatus

# Base class for all SQLAlchemy models
Base = declarative_base()


class Book(Base):
    """
    Books table - the catalog and its copy counters.

    Counter columns are NULL for digital books.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(String(500), nullable=False)
    author = Column(String(200), nullable=False, index=True)
    publisher = Column(String(200), nullable=True)
    publication_year = Column(Integer, nullable=True)
    category = Column(Enum(BookCategory), nullable=False, default=BookCategory.FICTION)
    variant = Column(Enum(BookVariant), nullable=False, default=BookVariant.PHYSICAL)
    total_copies = Column(Integer, nullable=True)
    available_copies = Column(Integer, nullable=True)
    reserved_copies = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_book_title", "title"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint("reserved_copies >= 0", name="check_reserved_copies_non_negative"),
        CheckConstraint(
            "available_copies + reserved_copies <= total_copies",
            name="check_shelved_not_exceed_total",
        ),
    )


class Member(Base):
    """Members table - borrowers and their circulation counters."""

    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    category = Column(Enum(MemberCategory), nullable=False, default=MemberCategory.REGULAR)
    current_borrowed_books = Column(Integer, nullable=False, default=0)
    total_fine_amount = Column(Float, nullable=False, default=0.0)
    renewal_count = Column(Integer, nullable=False, default=0)
    status = Column(Enum(MemberStatus), nullable=False, default=MemberStatus.ACTIVE)
    membership_date = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("current_borrowed_books >= 0", name="check_borrowed_non_negative"),
        CheckConstraint("total_fine_amount >= 0", name="check_fine_non_negative"),
        CheckConstraint("renewal_count >= 0", name="check_renewals_non_negative"),
    )


class IssueRecord(Base):
    """Issues table - loans, open while ``return_date`` is NULL."""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=False)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    issue_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=True)
    fine_amount = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("idx_issue_member", "member_id"),
        Index("idx_issue_book", "book_id"),
        Index("idx_issue_open", "return_date"),
        CheckConstraint("fine_amount >= 0", name="check_issue_fine_non_negative"),
        CheckConstraint("due_date >= issue_date", name="check_due_after_issue"),
    )


class Reservation(Base):
    """Reservations table - one row per (member, book), ordered by ``sequence``."""

    __tablename__ = "reservations"

    member_id = Column(Integer, ForeignKey("members.id"), primary_key=True)
    book_id = Column(Integer, ForeignKey("books.id"), primary_key=True)
    sequence = Column(Integer, nullable=False)
    reserved_at = Column(DateTime, nullable=False)
    holds_copy = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("sequence", name="uq_reservation_sequence"),
        Index("idx_reservation_book", "book_id", "sequence"),
    )

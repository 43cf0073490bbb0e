"""
Read-only reporting queries over a library snapshot.

These functions only count and filter; formatting is left to the caller
(the MCP resources in ``library_circulation.resources``).
"""

from collections import Counter
from datetime import datetime

from pydantic import BaseModel, Field

from ..database.snapshot_store import LibrarySnapshot
from ..models import Book, IssueRecord, Member


class BookCirculationCounts(BaseModel):
    """Issue and reservation counts of one book."""

    book_id: int
    title: str
    issue_count: int = Field(..., description="Issues ever recorded for the book")
    open_issue_count: int = Field(..., description="Copies currently on loan")
    reservation_count: int = Field(..., description="Reservations currently queued")
    reserved_copies: int = Field(..., description="Copies held for reservations")


class MonthlyBorrowCount(BaseModel):
    month: str = Field(..., description="Year and month, formatted YYYY-MM")
    issue_count: int


def overdue_issues(snapshot: LibrarySnapshot, now: datetime) -> list[IssueRecord]:
    """Open issues whose due date has passed, most overdue first."""
    overdue = [issue for issue in snapshot.issues if issue.is_overdue(now)]
    return sorted(overdue, key=lambda issue: issue.due_date)


def members_with_overdue_books(snapshot: LibrarySnapshot, now: datetime) -> list[Member]:
    overdue_ids = {issue.member_id for issue in overdue_issues(snapshot, now)}
    return [member for member in snapshot.members if member.id in overdue_ids]


def total_fines_collected(snapshot: LibrarySnapshot) -> float:
    """Sum of the fines recorded on every issue."""
    return round(sum(issue.fine_amount for issue in snapshot.issues), 2)


def book_circulation_counts(snapshot: LibrarySnapshot) -> list[BookCirculationCounts]:
    issued = Counter(issue.book_id for issue in snapshot.issues)
    open_issued = Counter(issue.book_id for issue in snapshot.issues if issue.is_open)
    reserved = Counter(reservation.book_id for reservation in snapshot.reservations)

    return [
        BookCirculationCounts(
            book_id=book.id,
            title=book.title,
            issue_count=issued[book.id],
            open_issue_count=open_issued[book.id],
            reservation_count=reserved[book.id],
            reserved_copies=book.copies.reserved if book.copies else 0,
        )
        for book in snapshot.books
    ]


def popular_books(snapshot: LibrarySnapshot, limit: int = 5) -> list[BookCirculationCounts]:
    """Most issued books; ties keep catalog order."""
    counts = [entry for entry in book_circulation_counts(snapshot) if entry.issue_count > 0]
    counts.sort(key=lambda entry: entry.issue_count, reverse=True)
    return counts[:limit]


def monthly_borrow_counts(snapshot: LibrarySnapshot) -> list[MonthlyBorrowCount]:
    months = Counter(issue.issue_date.strftime("%Y-%m") for issue in snapshot.issues)
    return [MonthlyBorrowCount(month=month, issue_count=count) for month, count in sorted(months.items())]


def recommendations_for(snapshot: LibrarySnapshot, member_id: int, author_limit: int = 10) -> list[Book]:
    """
    Books by the authors a member borrows most.

    Takes the member's top ``author_limit`` authors by issue count and
    returns every catalog book by those authors that the member does not
    currently have on loan, favourite authors first.
    """
    books_by_id = {book.id: book for book in snapshot.books}
    member_issues = [issue for issue in snapshot.issues if issue.member_id == member_id]

    author_counts = Counter(
        books_by_id[issue.book_id].author for issue in member_issues if issue.book_id in books_by_id
    )
    if not author_counts:
        return []

    rank = {author: index for index, (author, _) in enumerate(author_counts.most_common(author_limit))}
    on_loan = {issue.book_id for issue in member_issues if issue.is_open}

    picks = [book for book in snapshot.books if book.author in rank and book.id not in on_loan]
    return sorted(picks, key=lambda book: rank[book.author])

"""
Library Circulation Models.

Pydantic models for the entities the circulation engine coordinates:

- Book: physical or digital catalog item (copy counters for physical ones)
- Member: borrower with category, fines and status
- IssueRecord: a loan, open until the book is returned
- Reservation: a member's place in a book's FIFO queue
"""

from .book import Book, BookCategory, BookVariant, CopyCounters
from .circulation import IssueRecord, Reservation
from .member import Member, MemberCategory, MemberStatus

__all__ = [
    "Book",
    "BookCategory",
    "BookVariant",
    "CopyCounters",
    "IssueRecord",
    "Member",
    "MemberCategory",
    "MemberStatus",
    "Reservation",
]

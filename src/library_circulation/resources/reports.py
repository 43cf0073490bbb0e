"""Report Resources - Circulation Queries

Read-only views over the engine's committed state.

Resources:
- library://reports/overdue - Open issues past their due date
- library://reports/overdue-members - Members holding overdue books
- library://reports/fines - Total fines recorded on issues
- library://reports/books - Per-book issue and reservation counts
- library://reports/popular/{limit} - Most issued books
- library://reports/monthly - Issues per month
- library://members/{member_id}/history - A member's issue records
- library://members/{member_id}/recommendations - Books by favourite authors
- library://books/{book_id}/reservations - A book's reservation queue
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..circulation import reports
from ..circulation.engine import get_engine

logger = logging.getLogger(__name__)


def _parse_id(value: str, name: str) -> int:
    try:
        parsed = int(value)
    except ValueError as e:
        raise ResourceError(f"{name} must be an integer, got {value!r}") from e
    if parsed < 1:
        raise ResourceError(f"{name} must be positive")
    return parsed


async def get_overdue_issues_handler() -> dict[str, Any]:
    try:
        engine = get_engine()
        now = engine.clock()
        overdue = reports.overdue_issues(engine.snapshot(), now)
        return {
            "as_of": now.isoformat(),
            "total": len(overdue),
            "issues": [issue.model_dump(mode="json") for issue in overdue],
        }
    except Exception as e:
        logger.exception("Error in reports/overdue resource")
        raise ResourceError(f"Failed to list overdue issues: {e!s}") from e


async def get_overdue_members_handler() -> dict[str, Any]:
    try:
        engine = get_engine()
        now = engine.clock()
        members = reports.members_with_overdue_books(engine.snapshot(), now)
        return {
            "as_of": now.isoformat(),
            "total": len(members),
            "members": [member.model_dump(mode="json") for member in members],
        }
    except Exception as e:
        logger.exception("Error in reports/overdue-members resource")
        raise ResourceError(f"Failed to list members with overdue books: {e!s}") from e


async def get_total_fines_handler() -> dict[str, Any]:
    try:
        snapshot = get_engine().snapshot()
        return {
            "total_fines": reports.total_fines_collected(snapshot),
            "outstanding_fines": round(sum(m.total_fine_amount for m in snapshot.members), 2),
        }
    except Exception as e:
        logger.exception("Error in reports/fines resource")
        raise ResourceError(f"Failed to total fines: {e!s}") from e


async def get_book_counts_handler() -> dict[str, Any]:
    try:
        counts = reports.book_circulation_counts(get_engine().snapshot())
        return {"books": [entry.model_dump() for entry in counts]}
    except Exception as e:
        logger.exception("Error in reports/books resource")
        raise ResourceError(f"Failed to count book circulation: {e!s}") from e


async def get_popular_books_handler(limit: str) -> dict[str, Any]:
    """Returns the most issued books.

    Client requests library://reports/popular/{limit}; limit is 1-50.
    """
    limit_int = _parse_id(limit, "limit")
    if limit_int > 50:
        raise ResourceError("limit must be between 1 and 50")
    try:
        popular = reports.popular_books(get_engine().snapshot(), limit_int)
        return {
            "total_results": len(popular),
            "books": [
                {"rank": rank, **entry.model_dump()}
                for rank, entry in enumerate(popular, start=1)
            ],
        }
    except Exception as e:
        logger.exception("Error in reports/popular resource")
        raise ResourceError(f"Failed to calculate popular books: {e!s}") from e


async def get_monthly_counts_handler() -> dict[str, Any]:
    try:
        months = reports.monthly_borrow_counts(get_engine().snapshot())
        return {"months": [entry.model_dump() for entry in months]}
    except Exception as e:
        logger.exception("Error in reports/monthly resource")
        raise ResourceError(f"Failed to count monthly issues: {e!s}") from e


async def get_member_history_handler(member_id: str) -> dict[str, Any]:
    member_id_int = _parse_id(member_id, "member_id")
    engine = get_engine()
    if engine.get_member(member_id_int) is None:
        raise ResourceError(f"Member {member_id_int} not found")
    try:
        history = engine.member_history(member_id_int)
        return {
            "member_id": member_id_int,
            "open": [issue.model_dump(mode="json") for issue in history if issue.is_open],
            "closed": [issue.model_dump(mode="json") for issue in history if not issue.is_open],
        }
    except Exception as e:
        logger.exception("Error in members/history resource")
        raise ResourceError(f"Failed to load member history: {e!s}") from e


async def get_recommendations_handler(member_id: str) -> dict[str, Any]:
    """Books by the authors a member borrows most.

    Client requests library://members/{member_id}/recommendations.
    """
    member_id_int = _parse_id(member_id, "member_id")
    engine = get_engine()
    if engine.get_member(member_id_int) is None:
        raise ResourceError(f"Member {member_id_int} not found")
    try:
        books = reports.recommendations_for(engine.snapshot(), member_id_int)
        return {
            "member_id": member_id_int,
            "total_results": len(books),
            "books": [book.model_dump(mode="json") for book in books],
        }
    except Exception as e:
        logger.exception("Error in members/recommendations resource")
        raise ResourceError(f"Failed to build recommendations: {e!s}") from e


async def get_reservation_queue_handler(book_id: str) -> dict[str, Any]:
    book_id_int = _parse_id(book_id, "book_id")
    engine = get_engine()
    if engine.get_book(book_id_int) is None:
        raise ResourceError(f"Book {book_id_int} not found")
    try:
        queue = engine.reservation_queue(book_id_int)
        return {
            "book_id": book_id_int,
            "queue": [
                {"position": position, **reservation.model_dump(mode="json")}
                for position, reservation in enumerate(queue, start=1)
            ],
        }
    except Exception as e:
        logger.exception("Error in books/reservations resource")
        raise ResourceError(f"Failed to load reservation queue: {e!s}") from e


report_resources: list[dict[str, Any]] = [
    {
        "uri": "library://reports/overdue",
        "name": "Overdue Issues",
        "description": "Open issue records whose due date has passed, most overdue first.",
        "mime_type": "application/json",
        "handler": get_overdue_issues_handler,
    },
    {
        "uri": "library://reports/overdue-members",
        "name": "Members With Overdue Books",
        "description": "Members currently holding at least one overdue book.",
        "mime_type": "application/json",
        "handler": get_overdue_members_handler,
    },
    {
        "uri": "library://reports/fines",
        "name": "Fine Totals",
        "description": "Sum of fines recorded on all issues and of members' unpaid balances.",
        "mime_type": "application/json",
        "handler": get_total_fines_handler,
    },
    {
        "uri": "library://reports/books",
        "name": "Book Circulation Counts",
        "description": "Per-book counts of issues, open issues, queued reservations and held copies.",
        "mime_type": "application/json",
        "handler": get_book_counts_handler,
    },
    {
        "uri_template": "library://reports/popular/{limit}",
        "name": "Popular Books",
        "description": (
            "The most issued books. URI format: library://reports/popular/{limit} "
            "where limit is 1-50."
        ),
        "mime_type": "application/json",
        "handler": get_popular_books_handler,
    },
    {
        "uri": "library://reports/monthly",
        "name": "Monthly Borrowing",
        "description": "Number of issues recorded per calendar month.",
        "mime_type": "application/json",
        "handler": get_monthly_counts_handler,
    },
    {
        "uri_template": "library://members/{member_id}/history",
        "name": "Member History",
        "description": "Open and closed issue records of a member.",
        "mime_type": "application/json",
        "handler": get_member_history_handler,
    },
    {
        "uri_template": "library://members/{member_id}/recommendations",
        "name": "Member Recommendations",
        "description": "Books by the ten authors the member has borrowed most.",
        "mime_type": "application/json",
        "handler": get_recommendations_handler,
    },
    {
        "uri_template": "library://books/{book_id}/reservations",
        "name": "Reservation Queue",
        "description": "A book's reservations in first-come order.",
        "mime_type": "application/json",
        "handler": get_reservation_queue_handler,
    },
]

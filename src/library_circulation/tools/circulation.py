"""
Circulation tools for the Library Circulation MCP server.

Each tool is a thin caller of one ``CirculationEngine`` operation:

1. issue_book: lend a book to a member
2. return_book: close the loan and charge any overdue fine
3. renew_book: extend the due date by one loan period
4. reserve_book: join the book's FIFO reservation queue
5. cancel_reservation: leave the queue, releasing any held copy
6. pay_fine: record a payment against a member's fines

ERROR RESULTS:
Handlers never raise. Refusals come back as ``isError`` results naming the
failure kind so the client can react (e.g. reserve after NoCopyAvailable);
a failed snapshot write is reported as a fatal error for that operation.
"""

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..circulation.engine import CirculationEngine, get_engine
from ..circulation.errors import CirculationError, PersistenceError
from ..models import IssueRecord, Member, Reservation

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT SCHEMAS
# =============================================================================


class MemberBookInput(BaseModel):
    """Input schema shared by the tools that act on a (member, book) pair."""

    member_id: int = Field(
        ...,
        description="Numeric identifier of the library member",
        ge=1,
        examples=[1001, 42],
    )

    book_id: int = Field(
        ...,
        description="Numeric identifier of the book",
        ge=1,
        examples=[501, 7],
    )


class IssueBookInput(MemberBookInput):
    """Input schema for the issue_book tool."""


class ReturnBookInput(MemberBookInput):
    """Input schema for the return_book tool."""


class RenewBookInput(MemberBookInput):
    """Input schema for the renew_book tool."""


class ReserveBookInput(MemberBookInput):
    """Input schema for the reserve_book tool."""


class CancelReservationInput(MemberBookInput):
    """Input schema for the cancel_reservation tool."""


class PayFineInput(BaseModel):
    """Input schema for the pay_fine tool."""

    member_id: int = Field(
        ...,
        description="Numeric identifier of the library member",
        ge=1,
        examples=[1001],
    )

    amount: float = Field(
        ...,
        description="Amount paid; must not exceed the member's outstanding fine",
        gt=0,
        examples=[4.0, 12.5],
    )


# =============================================================================
# RESPONSE HELPERS
# =============================================================================


def _error(text: str, **data: Any) -> dict[str, Any]:
    result: dict[str, Any] = {
        "isError": True,
        "content": [{"type": "text", "text": text}],
    }
    if data:
        result["data"] = data
    return result


def _success(text: str, **data: Any) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": text}],
        "data": data,
    }


def _issue_data(issue: IssueRecord) -> dict[str, Any]:
    return {
        "id": issue.id,
        "member_id": issue.member_id,
        "book_id": issue.book_id,
        "issue_date": issue.issue_date.isoformat(),
        "due_date": issue.due_date.isoformat(),
        "return_date": issue.return_date.isoformat() if issue.return_date else None,
        "fine_amount": issue.fine_amount,
    }


def _member_data(member: Member) -> dict[str, Any]:
    return {
        "id": member.id,
        "category": member.category.value,
        "status": member.status.value,
        "current_borrowed_books": member.current_borrowed_books,
        "total_fine_amount": member.total_fine_amount,
        "renewal_count": member.renewal_count,
    }


def _reservation_data(reservation: Reservation) -> dict[str, Any]:
    return {
        "member_id": reservation.member_id,
        "book_id": reservation.book_id,
        "reserved_at": reservation.reserved_at.isoformat(),
        "holds_copy": reservation.holds_copy,
    }


async def _run(
    tool_name: str,
    schema: type[BaseModel],
    arguments: dict[str, Any],
    operation: Callable[[CirculationEngine, Any], dict[str, Any]],
) -> dict[str, Any]:
    """
    Validate arguments, run one engine operation and map its failures.

    Args:
        tool_name: Name used in log lines and error text
        schema: Pydantic input schema of the tool
        arguments: Raw arguments from the tools/call request
        operation: Callable performing the engine call and building the result
    """
    try:
        params = schema.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid %s parameters: %s", tool_name, e)
        return _error(f"Invalid parameters for {tool_name}: {e}")

    try:
        return operation(get_engine(), params)

    except CirculationError as e:
        # Refusals are expected outcomes, not server errors
        logger.info("%s refused: %s", tool_name, e.kind.value)
        return _error(f"{e.kind.value}: {e.message}", failure=e.to_dict())

    except PersistenceError as e:
        logger.exception("%s could not be persisted", tool_name)
        return _error(f"Fatal: {tool_name} was not saved and has been rolled back: {e!s}", fatal=True)

    except Exception as e:
        logger.exception("Unexpected error in %s tool", tool_name)
        return _error(f"An unexpected error occurred: {e!s}")


# =============================================================================
# HANDLERS
# =============================================================================


async def issue_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Issue a book; the member must be eligible and first in any reservation queue."""

    def operation(engine: CirculationEngine, params: IssueBookInput) -> dict[str, Any]:
        issue = engine.issue_book(params.member_id, params.book_id)
        message = (
            f"Issued book {issue.book_id} to member {issue.member_id}. "
            f"Due date: {issue.due_date.strftime('%B %d, %Y')}"
        )
        return _success(message, issue=_issue_data(issue))

    return await _run("issue_book", IssueBookInput, arguments, operation)


async def return_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a book and report the fine charged, if any."""

    def operation(engine: CirculationEngine, params: ReturnBookInput) -> dict[str, Any]:
        issue = engine.return_book(params.member_id, params.book_id)
        member = engine.get_member(params.member_id)
        message = f"Member {issue.member_id} returned book {issue.book_id}."
        if issue.fine_amount > 0:
            message += f" Late fine: ${issue.fine_amount:.2f}"
        return _success(message, issue=_issue_data(issue), member=_member_data(member))

    return await _run("return_book", ReturnBookInput, arguments, operation)


async def renew_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    def operation(engine: CirculationEngine, params: RenewBookInput) -> dict[str, Any]:
        issue = engine.renew_book(params.member_id, params.book_id)
        message = (
            f"Renewed book {issue.book_id} for member {issue.member_id}. "
            f"New due date: {issue.due_date.strftime('%B %d, %Y')}"
        )
        return _success(message, issue=_issue_data(issue))

    return await _run("renew_book", RenewBookInput, arguments, operation)


async def reserve_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Reserve a book and report the member's queue position."""

    def operation(engine: CirculationEngine, params: ReserveBookInput) -> dict[str, Any]:
        reservation = engine.reserve_book(params.member_id, params.book_id)
        position = engine.queue_position(params.member_id, params.book_id)
        if reservation.holds_copy:
            message = f"Reserved book {reservation.book_id} for member {reservation.member_id}; a copy is being held."
        else:
            message = (
                f"Reserved book {reservation.book_id} for member {reservation.member_id}. "
                f"Queue position: {position}"
            )
        return _success(message, reservation=_reservation_data(reservation), queue_position=position)

    return await _run("reserve_book", ReserveBookInput, arguments, operation)


async def cancel_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    def operation(engine: CirculationEngine, params: CancelReservationInput) -> dict[str, Any]:
        reservation = engine.cancel_reservation(params.member_id, params.book_id)
        message = f"Cancelled reservation of book {reservation.book_id} for member {reservation.member_id}."
        return _success(message, reservation=_reservation_data(reservation))

    return await _run("cancel_reservation", CancelReservationInput, arguments, operation)


async def pay_fine_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    def operation(engine: CirculationEngine, params: PayFineInput) -> dict[str, Any]:
        member = engine.pay_fine(params.member_id, params.amount)
        message = (
            f"Recorded payment of ${params.amount:.2f} for member {member.id}. "
            f"Outstanding fine: ${member.total_fine_amount:.2f}"
        )
        return _success(message, member=_member_data(member))

    return await _run("pay_fine", PayFineInput, arguments, operation)


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

issue_book = {
    "name": "issue_book",
    "description": (
        "Issue a book to a member. Checks the member's borrow eligibility (active, "
        "within borrow limit and maximum fine), FIFO reservation order and copy "
        "availability, then creates an open issue record due after the loan period."
    ),
    "inputSchema": IssueBookInput.model_json_schema(),
    "handler": issue_book_handler,
}

return_book = {
    "name": "return_book",
    "description": (
        "Return an issued book. Closes the open issue, charges the category's overdue "
        "fine after the grace period (suspending the member at the maximum fine) and "
        "holds the returned copy for the next waiting reservation."
    ),
    "inputSchema": ReturnBookInput.model_json_schema(),
    "handler": return_book_handler,
}

renew_book = {
    "name": "renew_book",
    "description": (
        "Renew an issued book by one loan period. Refused when the member has an "
        "outstanding fine, has used all renewals, or another member reserved the book first."
    ),
    "inputSchema": RenewBookInput.model_json_schema(),
    "handler": renew_book_handler,
}

reserve_book = {
    "name": "reserve_book",
    "description": (
        "Reserve a book. Holds a copy immediately when one is on the shelf, otherwise "
        "queues the member to receive the next returned copy in first-come order."
    ),
    "inputSchema": ReserveBookInput.model_json_schema(),
    "handler": reserve_book_handler,
}

cancel_reservation = {
    "name": "cancel_reservation",
    "description": (
        "Cancel a member's reservation. A held copy is passed to the next waiting "
        "reservation or returned to the shelf."
    ),
    "inputSchema": CancelReservationInput.model_json_schema(),
    "handler": cancel_reservation_handler,
}

pay_fine = {
    "name": "pay_fine",
    "description": (
        "Pay part or all of a member's outstanding fine. A suspended member is "
        "reactivated once the balance drops below the category's maximum fine."
    ),
    "inputSchema": PayFineInput.model_json_schema(),
    "handler": pay_fine_handler,
}

"""
Tests for the circulation tools.

Handlers never raise, so every test inspects the returned result:
1. Input validation
2. Success results and their data payload
3. Refusals reported with their failure kind
4. Fatal results when the snapshot cannot be written
"""

import pytest

from library_circulation.circulation.engine import CirculationEngine, set_engine
from library_circulation.database.snapshot_store import InMemorySnapshotStore, LibrarySnapshot
from library_circulation.models import Book, Member, MemberCategory
from library_circulation.tools import all_tools
from library_circulation.tools.circulation import (
    cancel_reservation_handler,
    issue_book_handler,
    pay_fine_handler,
    renew_book_handler,
    reserve_book_handler,
    return_book_handler,
)


def text_of(result: dict) -> str:
    return result["content"][0]["text"]


class TestIssueBookTool:
    async def test_issue_success(self, installed_engine):
        result = await issue_book_handler({"member_id": 1, "book_id": 10})

        assert "isError" not in result
        assert "Issued book 10 to member 1" in text_of(result)
        assert result["data"]["issue"]["member_id"] == 1
        assert result["data"]["issue"]["due_date"] == "2024-03-06T10:00:00"
        assert installed_engine.get_book(10).copies.available == 1

    async def test_no_copy_available(self, installed_engine):
        await issue_book_handler({"member_id": 1, "book_id": 11})

        result = await issue_book_handler({"member_id": 2, "book_id": 11})

        assert result["isError"] is True
        assert text_of(result).startswith("NoCopyAvailable:")
        assert result["data"]["failure"]["kind"] == "NoCopyAvailable"

    async def test_unknown_member(self, installed_engine):
        result = await issue_book_handler({"member_id": 99, "book_id": 10})

        assert result["isError"] is True
        assert result["data"]["failure"]["kind"] == "MemberNotFound"
        assert result["data"]["failure"]["group"] == "not_found"

    @pytest.mark.parametrize(
        "arguments",
        [
            {"member_id": 1},
            {"member_id": 0, "book_id": 10},
            {"member_id": "abc", "book_id": 10},
        ],
    )
    async def test_invalid_parameters(self, installed_engine, arguments):
        result = await issue_book_handler(arguments)

        assert result["isError"] is True
        assert "Invalid parameters for issue_book" in text_of(result)
        assert installed_engine.snapshot().issues == []


class TestReturnBookTool:
    async def test_return_with_fine(self, installed_engine, clock):
        await issue_book_handler({"member_id": 1, "book_id": 10})
        clock.advance(days=10)

        result = await return_book_handler({"member_id": 1, "book_id": 10})

        assert "isError" not in result
        assert "Late fine: $4.00" in text_of(result)
        assert result["data"]["issue"]["fine_amount"] == 4.0
        assert result["data"]["member"]["total_fine_amount"] == 4.0
        assert result["data"]["member"]["current_borrowed_books"] == 0

    async def test_return_on_time(self, installed_engine):
        await issue_book_handler({"member_id": 1, "book_id": 10})

        result = await return_book_handler({"member_id": 1, "book_id": 10})

        assert "Late fine" not in text_of(result)
        assert result["data"]["issue"]["return_date"] is not None

    async def test_not_currently_issued(self, installed_engine):
        result = await return_book_handler({"member_id": 1, "book_id": 10})

        assert result["data"]["failure"]["kind"] == "NotCurrentlyIssued"


class TestRenewBookTool:
    async def test_renew_extends_due_date(self, installed_engine):
        await issue_book_handler({"member_id": 2, "book_id": 10})

        result = await renew_book_handler({"member_id": 2, "book_id": 10})

        assert "isError" not in result
        assert "New due date" in text_of(result)
        assert result["data"]["issue"]["due_date"] > "2024-03-06T10:00:00"

    async def test_renew_refused_when_reserved_by_another(self, installed_engine):
        await issue_book_handler({"member_id": 1, "book_id": 11})
        await reserve_book_handler({"member_id": 2, "book_id": 11})

        result = await renew_book_handler({"member_id": 1, "book_id": 11})

        assert result["data"]["failure"]["kind"] == "ReservedByAnother"


class TestReserveBookTool:
    async def test_reserve_holds_free_copy(self, installed_engine):
        result = await reserve_book_handler({"member_id": 2, "book_id": 11})

        assert "a copy is being held" in text_of(result)
        assert result["data"]["reservation"]["holds_copy"] is True
        assert result["data"]["queue_position"] == 1

    async def test_reserve_queues_without_copy(self, installed_engine):
        await reserve_book_handler({"member_id": 2, "book_id": 11})

        result = await reserve_book_handler({"member_id": 3, "book_id": 11})

        assert "Queue position: 2" in text_of(result)
        assert result["data"]["queue_position"] == 2
        assert result["data"]["reservation"]["holds_copy"] is False

    async def test_duplicate_reservation(self, installed_engine):
        await reserve_book_handler({"member_id": 2, "book_id": 11})

        result = await reserve_book_handler({"member_id": 2, "book_id": 11})

        assert result["data"]["failure"]["kind"] == "DuplicateReservation"


class TestCancelReservationTool:
    async def test_cancel_releases_copy(self, installed_engine):
        await reserve_book_handler({"member_id": 2, "book_id": 11})

        result = await cancel_reservation_handler({"member_id": 2, "book_id": 11})

        assert "Cancelled reservation of book 11" in text_of(result)
        assert installed_engine.get_book(11).copies.available == 1
        assert installed_engine.reservation_queue(11) == []

    async def test_cancel_unknown_reservation(self, installed_engine):
        result = await cancel_reservation_handler({"member_id": 2, "book_id": 11})

        assert result["data"]["failure"]["kind"] == "ReservationNotFound"


class TestPayFineTool:
    async def test_partial_payment(self, installed_engine, clock):
        await issue_book_handler({"member_id": 1, "book_id": 10})
        clock.advance(days=10)
        await return_book_handler({"member_id": 1, "book_id": 10})

        result = await pay_fine_handler({"member_id": 1, "amount": 1.5})

        assert "Outstanding fine: $2.50" in text_of(result)
        assert result["data"]["member"]["total_fine_amount"] == 2.5

    async def test_overpayment_refused(self, installed_engine):
        result = await pay_fine_handler({"member_id": 1, "amount": 5.0})

        assert result["data"]["failure"]["kind"] == "InvalidPayment"

    async def test_non_positive_amount_is_invalid(self, installed_engine):
        result = await pay_fine_handler({"member_id": 1, "amount": 0})

        assert "Invalid parameters for pay_fine" in text_of(result)


class TestPersistenceFailure:
    class ReadOnlyStore(InMemorySnapshotStore):
        fail = False

        def save(self, snapshot: LibrarySnapshot) -> None:
            if self.fail:
                raise OSError("read-only file system")
            super().save(snapshot)

    async def test_failed_write_is_fatal(self, clock):
        store = self.ReadOnlyStore()
        engine = CirculationEngine(store, clock=clock)
        engine.register_member(Member(id=1, name="Asha Verma", category=MemberCategory.STUDENT))
        engine.add_book(Book.physical(id=10, title="Dune", author="Frank Herbert", total_copies=1))
        set_engine(engine)
        store.fail = True

        result = await issue_book_handler({"member_id": 1, "book_id": 10})

        assert result["isError"] is True
        assert result["data"]["fatal"] is True
        assert text_of(result).startswith("Fatal: issue_book was not saved")
        assert engine.get_book(10).copies.available == 1


def test_tool_registry():
    names = {tool["name"] for tool in all_tools}

    assert names == {
        "issue_book",
        "return_book",
        "renew_book",
        "reserve_book",
        "cancel_reservation",
        "pay_fine",
    }
    for tool in all_tools:
        assert tool["inputSchema"]["type"] == "object"
        assert callable(tool["handler"])

"""
Unit tests for LoanService business rules.

The service runs against a real in-memory SQLite database so each test
observes committed state exactly as a caller would.
"""

import uuid
from datetime import datetime, timezone

import pytest

from lending.core.exceptions import (
    BookNotFoundError,
    DuplicateActiveLoanError,
    LoanAlreadyReturnedError,
    LoanLimitExceededError,
    LoanNotFoundError,
    LoanOwnershipError,
    MemberNotFoundError,
    OutOfStockError,
    ValidationError,
)
from lending.db.base import Loan as LoanModel
from lending.domain.entities import LoanStatus
from lending.services.loan_service import LoanService

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def _loan_count(db_session, **filters) -> int:
    return db_session.query(LoanModel).filter_by(**filters).count()


# ------------------- BORROW -------------------
class TestBorrow:
    def test_borrow_creates_loan_and_decrements_stock(self, session_factory, members, books):
        service = LoanService(session_factory, clock=lambda: FIXED_NOW)
        member = members.create(name="Emily Watson", email="member1@library.com")
        book = books.create(stock=5, title="The Great Gatsby")

        loan = service.borrow(member.id, book.id)

        assert loan.status is LoanStatus.BORROWED
        assert loan.loan_date.replace(tzinfo=None) == FIXED_NOW.replace(tzinfo=None)
        assert loan.return_date is None
        assert loan.book.title == "The Great Gatsby"
        assert loan.member.email == "member1@library.com"
        assert books.stock_of(book.id) == 4

    def test_missing_book_is_not_found(self, loan_service, members, db_session):
        member = members.create()

        with pytest.raises(BookNotFoundError):
            loan_service.borrow(member.id, str(uuid.uuid4()))

        assert _loan_count(db_session) == 0

    def test_zero_stock_is_out_of_stock_and_creates_no_loan(
        self, loan_service, members, books, db_session
    ):
        member = members.create()
        book = books.create(stock=0)

        with pytest.raises(OutOfStockError):
            loan_service.borrow(member.id, book.id)

        assert books.stock_of(book.id) == 0
        assert _loan_count(db_session, book_id=book.id) == 0

    def test_fourth_active_loan_exceeds_limit(
        self, loan_service, members, books, db_session
    ):
        member = members.create()
        for _ in range(3):
            loan_service.borrow(member.id, books.create(stock=2).id)
        fourth = books.create(stock=2)

        with pytest.raises(LoanLimitExceededError) as exc_info:
            loan_service.borrow(member.id, fourth.id)

        assert exc_info.value.message == "You cannot borrow more than 3 books at a time"
        assert books.stock_of(fourth.id) == 2
        assert _loan_count(db_session, member_id=member.id) == 3

    def test_late_loans_count_towards_limit(
        self, loan_service, members, books, db_session
    ):
        member = members.create()
        loans = [loan_service.borrow(member.id, books.create().id) for _ in range(3)]
        db_session.query(LoanModel).filter_by(id=loans[0].id).update(
            {LoanModel.status: "LATE"}, synchronize_session=False
        )
        db_session.commit()

        with pytest.raises(LoanLimitExceededError):
            loan_service.borrow(member.id, books.create().id)

    def test_duplicate_active_loan_is_rejected_and_stock_restored(
        self, loan_service, members, books
    ):
        member = members.create()
        book = books.create(stock=5)
        loan_service.borrow(member.id, book.id)

        with pytest.raises(DuplicateActiveLoanError):
            loan_service.borrow(member.id, book.id)

        assert books.stock_of(book.id) == 4

    def test_not_found_precedes_every_other_gate(self, loan_service, members, books):
        member = members.create()
        for _ in range(3):
            loan_service.borrow(member.id, books.create().id)

        with pytest.raises(BookNotFoundError):
            loan_service.borrow(member.id, str(uuid.uuid4()))

    def test_out_of_stock_precedes_limit(self, loan_service, members, books):
        member = members.create()
        for _ in range(3):
            loan_service.borrow(member.id, books.create().id)
        empty = books.create(stock=0)

        with pytest.raises(OutOfStockError):
            loan_service.borrow(member.id, empty.id)

    def test_limit_precedes_duplicate(self, loan_service, members, books):
        member = members.create()
        held = books.create(stock=5)
        loan_service.borrow(member.id, held.id)
        loan_service.borrow(member.id, books.create().id)
        loan_service.borrow(member.id, books.create().id)

        with pytest.raises(LoanLimitExceededError):
            loan_service.borrow(member.id, held.id)

        assert books.stock_of(held.id) == 4

    def test_unknown_member_is_not_found_and_stock_restored(
        self, loan_service, books
    ):
        book = books.create(stock=1)

        with pytest.raises(MemberNotFoundError):
            loan_service.borrow(str(uuid.uuid4()), book.id)

        assert books.stock_of(book.id) == 1

    def test_configured_limit_is_honoured(self, session_factory, members, books):
        service = LoanService(session_factory, max_active_loans=1)
        member = members.create()
        service.borrow(member.id, books.create().id)

        with pytest.raises(LoanLimitExceededError) as exc_info:
            service.borrow(member.id, books.create().id)

        assert exc_info.value.limit == 1


# ------------------- RETURN -------------------
class TestReturn:
    def test_return_restores_stock_and_closes_loan(self, session_factory, members, books):
        service = LoanService(session_factory, clock=lambda: FIXED_NOW)
        member = members.create()
        book = books.create(stock=5)
        loan = service.borrow(member.id, book.id)

        returned = service.return_book(loan.id, member.id)

        assert returned.status is LoanStatus.RETURNED
        assert returned.return_date is not None
        assert returned.book.id == book.id
        assert books.stock_of(book.id) == 5

    def test_second_return_is_rejected_and_stock_incremented_once(
        self, loan_service, members, books
    ):
        member = members.create()
        book = books.create(stock=5)
        loan = loan_service.borrow(member.id, book.id)
        loan_service.return_book(loan.id, member.id)

        with pytest.raises(LoanAlreadyReturnedError):
            loan_service.return_book(loan.id, member.id)

        assert books.stock_of(book.id) == 5

    def test_returning_someone_elses_loan_is_forbidden(
        self, loan_service, members, books, db_session
    ):
        owner = members.create()
        intruder = members.create()
        book = books.create(stock=5)
        loan = loan_service.borrow(owner.id, book.id)

        with pytest.raises(LoanOwnershipError):
            loan_service.return_book(loan.id, intruder.id)

        assert db_session.get(LoanModel, loan.id).status == "BORROWED"
        assert books.stock_of(book.id) == 4

    def test_unknown_loan_is_not_found(self, loan_service, members):
        with pytest.raises(LoanNotFoundError):
            loan_service.return_book(str(uuid.uuid4()), members.create().id)

    def test_late_loan_can_be_returned(self, loan_service, members, books, db_session):
        member = members.create()
        book = books.create(stock=1)
        loan = loan_service.borrow(member.id, book.id)
        db_session.query(LoanModel).filter_by(id=loan.id).update(
            {LoanModel.status: "LATE"}, synchronize_session=False
        )
        db_session.commit()

        returned = loan_service.return_book(loan.id, member.id)

        assert returned.status is LoanStatus.RETURNED
        assert books.stock_of(book.id) == 1

    def test_member_can_borrow_again_after_return(self, loan_service, members, books):
        member = members.create()
        book = books.create(stock=1)
        first = loan_service.borrow(member.id, book.id)
        loan_service.return_book(first.id, member.id)

        second = loan_service.borrow(member.id, book.id)

        assert second.id != first.id
        assert books.stock_of(book.id) == 0


# ------------------- QUERIES -------------------
class TestQueries:
    def test_list_loans_filters_by_status_string(self, loan_service, members, books):
        member = members.create()
        kept = loan_service.borrow(member.id, books.create().id)
        gone = loan_service.borrow(member.id, books.create().id)
        loan_service.return_book(gone.id, member.id)

        page = loan_service.list_loans(page=1, limit=10, status="returned")

        assert [loan.id for loan in page.loans] == [gone.id]
        assert kept.id not in [loan.id for loan in page.loans]

    def test_list_member_loans_uses_default_limit(self, loan_service, members, books):
        member = members.create()
        loan_service.borrow(member.id, books.create().id)

        page = loan_service.list_member_loans(member.id)

        assert page.limit == 10
        assert page.page == 1
        assert page.total == 1

    @pytest.mark.parametrize(
        "page,limit,field",
        [(0, 10, "page"), ("abc", 10, "page"), (1, 0, "limit"), (1, 101, "limit")],
    )
    def test_invalid_pagination_is_validation_error(
        self, loan_service, page, limit, field
    ):
        with pytest.raises(ValidationError) as exc_info:
            loan_service.list_loans(page=page, limit=limit)

        assert exc_info.value.errors[0]["field"] == field

    def test_invalid_status_filter_is_validation_error(self, loan_service):
        with pytest.raises(ValidationError) as exc_info:
            loan_service.list_loans(status="LOST")

        assert exc_info.value.errors[0]["field"] == "status"

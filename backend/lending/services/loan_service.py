"""
Loan lifecycle engine.

Each borrow or return runs as one unit of work: the stock change on the
inventory ledger and the loan row change commit together or not at all.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Union

from sqlalchemy.exc import DBAPIError, IntegrityError

from lending.core import config
from lending.core.exceptions import (
    BookNotFoundError,
    DuplicateActiveLoanError,
    LedgerConsistencyError,
    LendingError,
    LoanAlreadyReturnedError,
    LoanLimitExceededError,
    LoanNotFoundError,
    LoanOwnershipError,
    MemberNotFoundError,
    OutOfStockError,
    TransientStoreError,
    ValidationError,
)
from lending.core.logging_config import log_performance
from lending.db.base import ACTIVE_LOAN_INDEX
from lending.db.session import transaction
from lending.domain.entities import Loan, LoanPage, LoanStatus, ReservationOutcome
from lending.repositories.book_ledger import BookLedger
from lending.repositories.loan_repo import LoanRepository
from lending.repositories.member_repo import MemberRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Postgres SQLSTATEs worth retrying: lock_not_available, serialization_failure,
# deadlock_detected, query_canceled (statement_timeout). Class 08 is connection loss.
_TRANSIENT_SQLSTATES = frozenset({"55P03", "40001", "40P01", "57014"})
_SQLITE_BUSY_MARKERS = ("database is locked", "database table is locked", "busy")


def _sqlstate(orig) -> Optional[str]:
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_transient_store_error(exc: DBAPIError) -> bool:
    """True for lock contention, timeouts and lost connections only."""
    if exc.connection_invalidated:
        return True
    code = _sqlstate(exc.orig)
    if code:
        return code in _TRANSIENT_SQLSTATES or code.startswith("08")
    message = str(exc.orig).lower()
    return any(marker in message for marker in _SQLITE_BUSY_MARKERS)


def is_active_loan_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the active-loan unique index."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == ACTIVE_LOAN_INDEX
    # SQLite names the indexed columns rather than the index
    message = str(exc.orig)
    return ACTIVE_LOAN_INDEX in message or "loans.member_id, loans.book_id" in message


class LoanService:
    """Validates and applies borrow and return operations.

    Args:
        session_factory: Callable returning a new SQLAlchemy session. Defaults
            to the application's configured sessionmaker.
        max_active_loans: Per-member cap on BORROWED or LATE loans. Read from
            MAX_ACTIVE_LOANS when omitted.
        clock: Returns the current UTC time for loan and return dates.
    """

    def __init__(
        self,
        session_factory=None,
        max_active_loans: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ledger_cls=BookLedger,
        loan_repo_cls=LoanRepository,
        member_repo_cls=MemberRepository,
    ):
        self.session_factory = session_factory
        if max_active_loans is None:
            max_active_loans = config.get_max_active_loans()
        self.max_active_loans = max_active_loans
        self.clock = clock or _utcnow
        self.ledger_cls = ledger_cls
        self.loan_repo_cls = loan_repo_cls
        self.member_repo_cls = member_repo_cls

    # ------------------- COMMANDS -------------------
    def borrow(self, member_id: str, book_id: str) -> Loan:
        """Lend one copy of ``book_id`` to ``member_id``.

        Gates are evaluated in order and the first failure wins: book exists,
        book in stock, member under the active-loan limit, no active loan for
        the same book. On any failure nothing is committed.
        """
        context = {"member_id": member_id, "book_id": book_id}
        start = time.perf_counter()

        with self._unit_of_work("borrow", context) as session:
            ledger = self.ledger_cls(session)
            loans = self.loan_repo_cls(session)
            members = self.member_repo_cls(session)

            # The reservation is the first statement so it takes the write
            # lock before any read the later gates depend on.
            outcome = ledger.try_reserve(book_id)
            if outcome is ReservationOutcome.NOT_FOUND:
                raise BookNotFoundError(book_id)
            if outcome is ReservationOutcome.OUT_OF_STOCK:
                raise OutOfStockError(book_id)

            if not members.lock(member_id):
                raise MemberNotFoundError(member_id)

            if loans.count_active_for_member(member_id) >= self.max_active_loans:
                raise LoanLimitExceededError(self.max_active_loans)

            if loans.find_active(member_id, book_id) is not None:
                raise DuplicateActiveLoanError()

            loan = loans.create(member_id, book_id, self.clock())

        logger.info(
            "Book borrowed",
            extra={"context": {**context, "loan_id": loan.id}},
        )
        log_performance(
            "LoanService.borrow", (time.perf_counter() - start) * 1000.0, **context
        )
        return loan

    def return_book(self, loan_id: str, member_id: str) -> Loan:
        """Close an active loan owned by ``member_id`` and restock its book."""
        context = {"member_id": member_id, "loan_id": loan_id}
        start = time.perf_counter()

        with self._unit_of_work("return", context) as session:
            ledger = self.ledger_cls(session)
            loans = self.loan_repo_cls(session)

            loan = loans.get_by_id(loan_id, for_update=True)
            if loan is None:
                raise LoanNotFoundError(loan_id)
            if loan.member_id != member_id:
                raise LoanOwnershipError()
            if not loan.is_active:
                raise LoanAlreadyReturnedError()

            # A concurrent return may have won since the read above
            if not loans.mark_returned(loan_id, self.clock()):
                raise LoanAlreadyReturnedError()
            ledger.release(loan.book_id)

            returned = loans.get_by_id(loan_id)

        logger.info(
            "Book returned",
            extra={"context": {**context, "book_id": loan.book_id}},
        )
        log_performance(
            "LoanService.return_book",
            (time.perf_counter() - start) * 1000.0,
            **context,
        )
        return returned

    # ------------------- QUERIES -------------------
    def list_loans(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        status: Union[LoanStatus, str, None] = None,
    ) -> LoanPage:
        """Every loan, newest first, optionally filtered by status."""
        page, limit = self._validate_page(page, limit)
        status_filter = self._validate_status(status)
        with self._unit_of_work("list_loans", {"page": page}) as session:
            return self.loan_repo_cls(session).list_loans(page, limit, status_filter)

    def list_member_loans(
        self, member_id: str, page: int = 1, limit: Optional[int] = None
    ) -> LoanPage:
        """The member's own loans, newest first."""
        page, limit = self._validate_page(page, limit)
        context = {"member_id": member_id, "page": page}
        with self._unit_of_work("list_member_loans", context) as session:
            return self.loan_repo_cls(session).list_member_loans(
                member_id, page, limit
            )

    # ------------------- HELPERS -------------------
    @contextmanager
    def _unit_of_work(self, operation: str, context: dict) -> Iterator:
        """Open a transaction and translate storage failures.

        Business errors pass through unchanged. Lock timeouts and lost
        connections become ``TransientStoreError``; a unique-index violation
        on the active-loan pair becomes ``DuplicateActiveLoanError``.
        """
        log_context = {"operation": operation, **context}
        try:
            with transaction(self.session_factory) as session:
                yield session
        except LedgerConsistencyError:
            raise
        except LendingError as exc:
            logger.info(
                f"{operation} rejected: {exc.message}",
                extra={"context": {**log_context, "kind": exc.kind}},
            )
            raise
        except IntegrityError as exc:
            if not is_active_loan_conflict(exc):
                raise
            logger.info(
                f"{operation} rejected by unique active-loan index",
                extra={"context": {**log_context, "kind": "DUPLICATE_ACTIVE"}},
            )
            raise DuplicateActiveLoanError() from exc
        except DBAPIError as exc:
            if not is_transient_store_error(exc):
                raise
            logger.warning(
                f"{operation} aborted by a transient storage failure",
                extra={
                    "context": {
                        **log_context,
                        "error": str(exc.orig),
                        "connection_invalidated": exc.connection_invalidated,
                    }
                },
            )
            raise TransientStoreError() from exc

    def _validate_page(self, page, limit):
        errors = []
        if limit is None:
            limit = config.get_default_page_limit()
        max_limit = config.get_max_page_limit()

        try:
            page = int(page)
            if page < 1:
                raise ValueError
        except (TypeError, ValueError):
            errors.append({"field": "page", "message": "page must be an integer >= 1"})

        try:
            limit = int(limit)
            if limit < 1 or limit > max_limit:
                raise ValueError
        except (TypeError, ValueError):
            errors.append(
                {
                    "field": "limit",
                    "message": f"limit must be an integer between 1 and {max_limit}",
                }
            )

        if errors:
            raise ValidationError("Invalid pagination parameters", errors)
        return page, limit

    def _validate_status(self, status) -> Optional[LoanStatus]:
        if status is None or status == "":
            return None
        if isinstance(status, LoanStatus):
            return status
        try:
            return LoanStatus(str(status).upper())
        except ValueError:
            allowed = ", ".join(s.value for s in LoanStatus)
            raise ValidationError(
                "Invalid status filter",
                [{"field": "status", "message": f"status must be one of {allowed}"}],
            )

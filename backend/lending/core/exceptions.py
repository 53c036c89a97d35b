"""
Custom exceptions for the lending application.

Business rule violations derive from ``LendingError`` and carry a stable
``kind`` so the HTTP layer can map each one to a distinct response without
parsing messages. Infrastructure failures are split into the retry-safe
``TransientStoreError`` and the fatal ``LedgerConsistencyError``.
"""

from typing import Dict, List, Optional


class LendingError(Exception):
    """Base class for every error raised by the lending core."""

    kind = "INTERNAL_ERROR"
    http_status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ------------------- NOT FOUND -------------------
class NotFoundError(LendingError):
    kind = "NOT_FOUND"
    http_status = 404
    default_message = "Resource not found"


class BookNotFoundError(NotFoundError):
    default_message = "Book not found"

    def __init__(self, book_id: Optional[str] = None):
        super().__init__()
        self.book_id = book_id


class LoanNotFoundError(NotFoundError):
    default_message = "Loan not found"

    def __init__(self, loan_id: Optional[str] = None):
        super().__init__()
        self.loan_id = loan_id


class MemberNotFoundError(NotFoundError):
    default_message = "Member not found"

    def __init__(self, member_id: Optional[str] = None):
        super().__init__()
        self.member_id = member_id


# ------------------- BORROW RULES -------------------
class OutOfStockError(LendingError):
    kind = "OUT_OF_STOCK"
    http_status = 409
    default_message = "Book is out of stock"

    def __init__(self, book_id: Optional[str] = None):
        super().__init__()
        self.book_id = book_id


class LoanLimitExceededError(LendingError):
    kind = "LIMIT_EXCEEDED"
    http_status = 409

    def __init__(self, limit: int):
        super().__init__(f"You cannot borrow more than {limit} books at a time")
        self.limit = limit


class DuplicateActiveLoanError(LendingError):
    kind = "DUPLICATE_ACTIVE"
    http_status = 409
    default_message = "You already have an active loan for this book"


# ------------------- RETURN RULES -------------------
class LoanOwnershipError(LendingError):
    kind = "FORBIDDEN"
    http_status = 403
    default_message = "You can only return your own loans"


class LoanAlreadyReturnedError(LendingError):
    kind = "ALREADY_RETURNED"
    http_status = 409
    default_message = "This loan has already been returned"


# ------------------- INPUT -------------------
class ValidationError(LendingError):
    """Raised when caller input fails validation before reaching the core."""

    kind = "VALIDATION_ERROR"
    http_status = 400
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []


# ------------------- INFRASTRUCTURE -------------------
class TransientStoreError(LendingError):
    """
    Lock timeout, serialization failure or lost connection.

    No business decision was made and nothing was committed, so the whole
    borrow/return call may be retried by the caller.
    """

    kind = "TRANSIENT"
    http_status = 503
    default_message = "Temporary storage failure, please retry"


class LedgerConsistencyError(LendingError):
    """
    Stock release targeted a book that no longer exists.

    Indicates a loan referencing a deleted book. Never mapped to a business
    error; it is logged at CRITICAL and surfaces as an internal error.
    """

    kind = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, book_id: str):
        super().__init__(f"Stock release failed: book {book_id} does not exist")
        self.book_id = book_id

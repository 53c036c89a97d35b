"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and status enums
- interfaces.py: Repository contracts
"""

from .entities import (
    ACTIVE_STATUSES,
    Book,
    BookSummary,
    Loan,
    LoanPage,
    LoanStatus,
    Member,
    MemberRole,
    MemberSummary,
    ReservationOutcome,
)
from .interfaces import (
    IInventoryLedger,
    ILoanReader,
    ILoanRepository,
    ILoanWriter,
    IMemberReader,
    IMemberRepository,
    IMemberWriter,
)

__all__ = [
    # Domain entities
    "ACTIVE_STATUSES",
    "Book",
    "BookSummary",
    "Loan",
    "LoanPage",
    "LoanStatus",
    "Member",
    "MemberRole",
    "MemberSummary",
    "ReservationOutcome",
    # Repository interfaces
    "IInventoryLedger",
    "ILoanRepository",
    "IMemberRepository",
    # Segregated interfaces
    "ILoanReader",
    "ILoanWriter",
    "IMemberReader",
    "IMemberWriter",
]

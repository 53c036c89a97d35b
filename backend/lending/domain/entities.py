"""
Domain entities - Pure business logic, no framework dependencies.

These dataclasses are what repositories return and services hand to the
HTTP layer; SQLAlchemy models never leave the repository package.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional


class LoanStatus(str, Enum):
    """Lifecycle states of a loan.

    LATE is a reclassification of BORROWED and is treated identically to it
    by every core operation.
    """

    BORROWED = "BORROWED"
    RETURNED = "RETURNED"
    LATE = "LATE"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES: FrozenSet[LoanStatus] = frozenset(
    {LoanStatus.BORROWED, LoanStatus.LATE}
)


class MemberRole(str, Enum):
    MEMBER = "MEMBER"
    LIBRARIAN = "LIBRARIAN"
    ADMIN = "ADMIN"


class ReservationOutcome(str, Enum):
    """Result of a stock reservation attempt on the inventory ledger."""

    RESERVED = "RESERVED"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    NOT_FOUND = "NOT_FOUND"


@dataclass
class Book:
    """Inventory unit. The lending core only ever mutates ``stock``."""

    title: str = ""
    author: str = ""
    isbn: str = ""
    published_year: Optional[int] = None
    stock: int = 0
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate business rules."""
        if self.stock < 0:
            raise ValueError("Stock cannot be negative")
        if not self.title:
            raise ValueError("Title is required")


@dataclass
class Member:
    """Domain entity representing an authenticated library member."""

    name: str = ""
    email: str = ""
    role: str = MemberRole.MEMBER.value
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Name is required")
        if self.email and "@" not in self.email:
            raise ValueError("Invalid email format")
        if self.role not in {r.value for r in MemberRole}:
            raise ValueError(f"Unknown role: {self.role}")


@dataclass
class BookSummary:
    id: str
    title: str
    author: str
    isbn: str


@dataclass
class MemberSummary:
    id: str
    name: str
    email: str


@dataclass
class Loan:
    """A single lending record.

    ``return_date`` is present exactly when the loan is RETURNED; a returned
    loan is an immutable historical record.
    """

    member_id: str
    book_id: str
    status: LoanStatus = LoanStatus.BORROWED
    loan_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    book: Optional[BookSummary] = None
    member: Optional[MemberSummary] = None

    def __post_init__(self):
        """Validate business rules."""
        self.status = LoanStatus(self.status)
        if not self.member_id or not self.book_id:
            raise ValueError("Loan requires member_id and book_id")
        if self.status is LoanStatus.RETURNED and self.return_date is None:
            raise ValueError("Returned loan must have a return date")
        if self.status is not LoanStatus.RETURNED and self.return_date is not None:
            raise ValueError("Only returned loans may have a return date")

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass
class LoanPage:
    """One page of a loan listing plus the total match count."""

    loans: List[Loan] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

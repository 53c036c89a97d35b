"""
Abstract interfaces for repositories following Interface Segregation Principle.

Each concrete repository is bound to one SQLAlchemy session, so every call
made through these contracts participates in the caller's unit of work.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .entities import Book, Loan, LoanPage, LoanStatus, Member, ReservationOutcome


class IInventoryLedger(ABC):
    """Owner of book stock counts."""

    @abstractmethod
    def try_reserve(self, book_id: str) -> ReservationOutcome:
        """Decrement stock by one if the book exists and has stock left."""
        pass

    @abstractmethod
    def release(self, book_id: str) -> None:
        """Increment stock by one; a missing book is a consistency violation."""
        pass

    @abstractmethod
    def get_by_id(self, book_id: str) -> Optional[Book]:
        """Get book by ID."""
        pass

    @abstractmethod
    def add(self, book: Book) -> Book:
        """Insert a catalog entry."""
        pass


class IMemberReader(ABC):
    """Interface for member read operations."""

    @abstractmethod
    def get_by_id(self, member_id: str) -> Optional[Member]:
        """Get member by ID."""
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Member]:
        """Get member by email."""
        pass

    @abstractmethod
    def lock(self, member_id: str) -> bool:
        """Lock the member row until the end of the unit of work."""
        pass


class IMemberWriter(ABC):
    @abstractmethod
    def add(self, member: Member) -> Member:
        """Create a new member."""
        pass


class IMemberRepository(IMemberReader, IMemberWriter):
    """Complete member repository interface."""

    pass


class ILoanReader(ABC):
    """Interface for loan read operations."""

    @abstractmethod
    def get_by_id(self, loan_id: str, for_update: bool = False) -> Optional[Loan]:
        """Get loan by ID, optionally locking its row."""
        pass

    @abstractmethod
    def count_active_for_member(self, member_id: str) -> int:
        """Count the member's BORROWED or LATE loans."""
        pass

    @abstractmethod
    def find_active(self, member_id: str, book_id: str) -> Optional[Loan]:
        """Find the member's active loan for a book, if any."""
        pass

    @abstractmethod
    def list_loans(
        self, page: int, limit: int, status: Optional[LoanStatus] = None
    ) -> LoanPage:
        """List loans newest first, optionally filtered by status."""
        pass

    @abstractmethod
    def list_member_loans(self, member_id: str, page: int, limit: int) -> LoanPage:
        """List one member's loans newest first."""
        pass


class ILoanWriter(ABC):
    """Interface for loan write operations."""

    @abstractmethod
    def create(self, member_id: str, book_id: str, loan_date: datetime) -> Loan:
        """Create a BORROWED loan."""
        pass

    @abstractmethod
    def mark_returned(self, loan_id: str, return_date: datetime) -> bool:
        """Move an active loan to RETURNED; False if it was not active."""
        pass


class ILoanRepository(ILoanReader, ILoanWriter):
    """Complete loan repository interface."""

    pass

# Repositories package initialization
# Concrete SQLAlchemy implementations of the domain interfaces

from .book_ledger import BookLedger
from .loan_repo import LoanRepository
from .member_repo import MemberRepository

__all__ = [
    "BookLedger",
    "LoanRepository",
    "MemberRepository",
]

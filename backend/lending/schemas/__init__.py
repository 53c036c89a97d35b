"""
Schemas package - Data Transfer Objects and validation.

This package contains DTOs that define the API contracts
of the loan endpoints.
"""

from .dtos import (
    BorrowRequest,
    LoanPageResponse,
    LoanResponse,
    PageQuery,
    ReturnRequest,
)

__all__ = [
    # Request DTOs
    "BorrowRequest",
    "ReturnRequest",
    "PageQuery",
    # Response DTOs
    "LoanResponse",
    "LoanPageResponse",
]

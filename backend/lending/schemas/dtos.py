"""
Data Transfer Objects (DTOs) and validation schemas.

Request DTOs validate the JSON bodies of the loan endpoints and raise
``ValidationError`` with per-field messages. Response DTOs render domain
entities in the camelCase shape the API returns.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lending.core.exceptions import ValidationError


_UUID_MESSAGES = {"bookId": "Invalid book ID", "loanId": "Invalid loan ID"}


def _require_uuid(payload: Any, field_name: str) -> str:
    if not isinstance(payload, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            [{"field": "body", "message": "Expected a JSON object"}],
        )
    value = payload.get(field_name)
    if value is None or value == "":
        raise ValidationError(
            "Validation failed",
            [{"field": field_name, "message": f"{field_name} is required"}],
        )
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(
            "Validation failed",
            [{"field": field_name, "message": _UUID_MESSAGES[field_name]}],
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@dataclass
class BorrowRequest:
    """DTO for borrow requests: ``{"bookId": "<uuid>"}``."""

    book_id: str

    @classmethod
    def from_json(cls, payload: Any) -> "BorrowRequest":
        return cls(book_id=_require_uuid(payload, "bookId"))


@dataclass
class ReturnRequest:
    """DTO for return requests: ``{"loanId": "<uuid>"}``."""

    loan_id: str

    @classmethod
    def from_json(cls, payload: Any) -> "ReturnRequest":
        return cls(loan_id=_require_uuid(payload, "loanId"))


@dataclass
class PageQuery:
    """Raw pagination query parameters; range checks happen in the service."""

    page: Any = 1
    limit: Any = None
    status: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> "PageQuery":
        return cls(
            page=args.get("page", 1),
            limit=args.get("limit"),
            status=args.get("status"),
        )


@dataclass
class LoanResponse:
    """DTO for loan API responses."""

    id: str
    userId: str
    bookId: str
    status: str
    loanDate: Optional[str]
    returnDate: Optional[str]
    createdAt: Optional[str]
    updatedAt: Optional[str]
    book: Optional[Dict[str, Any]]
    user: Optional[Dict[str, Any]]

    @classmethod
    def from_domain(cls, loan) -> "LoanResponse":
        """Create response from domain entity."""
        return cls(
            id=loan.id,
            userId=loan.member_id,
            bookId=loan.book_id,
            status=loan.status.value,
            loanDate=_iso(loan.loan_date),
            returnDate=_iso(loan.return_date),
            createdAt=_iso(loan.created_at),
            updatedAt=_iso(loan.updated_at),
            book=asdict(loan.book) if loan.book else None,
            user=asdict(loan.member) if loan.member else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoanPageResponse:
    """DTO for paginated loan listings."""

    loans: List[Dict[str, Any]]
    pagination: Dict[str, int]

    @classmethod
    def from_domain(cls, page) -> "LoanPageResponse":
        return cls(
            loans=[LoanResponse.from_domain(loan).to_dict() for loan in page.loans],
            pagination={
                "page": page.page,
                "limit": page.limit,
                "total": page.total,
                "totalPages": page.total_pages,
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""
Loan controller for handling HTTP requests.

This controller:
- Handles HTTP concerns only (parsing, status codes, envelopes)
- Delegates every rule to ``LoanService``
- Lets ``LendingError`` propagate to the app-level error handler
"""

from flask import Blueprint, current_app, request
from flask_login import current_user, login_required

from lending.core.api_utils import api_response
from lending.core.auth_decorators import require_roles
from lending.core.limiter_config import BORROW_RETURN_LIMIT, LISTING_LIMIT, limiter
from lending.schemas.dtos import (
    BorrowRequest,
    LoanPageResponse,
    LoanResponse,
    PageQuery,
    ReturnRequest,
)
from lending.services.loan_service import LoanService

loans_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


def _service() -> LoanService:
    return current_app.extensions["loan_service"]


@loans_bp.route("/borrow", methods=["POST"])
@limiter.limit(BORROW_RETURN_LIMIT)
@login_required
def borrow_book():
    """Borrow one copy of a book for the authenticated member."""
    payload = BorrowRequest.from_json(request.get_json(silent=True))
    loan = _service().borrow(current_user.id, payload.book_id)
    return api_response(
        True,
        "Book borrowed successfully",
        LoanResponse.from_domain(loan).to_dict(),
        201,
    )


@loans_bp.route("/return", methods=["POST"])
@limiter.limit(BORROW_RETURN_LIMIT)
@login_required
def return_book():
    """Return a loan owned by the authenticated member."""
    payload = ReturnRequest.from_json(request.get_json(silent=True))
    loan = _service().return_book(payload.loan_id, current_user.id)
    return api_response(
        True,
        "Book returned successfully",
        LoanResponse.from_domain(loan).to_dict(),
    )


@loans_bp.route("", methods=["GET"])
@limiter.limit(LISTING_LIMIT)
@login_required
@require_roles("ADMIN", "LIBRARIAN")
def list_loans():
    """List every loan, newest first. Staff only."""
    query = PageQuery.from_args(request.args)
    page = _service().list_loans(query.page, query.limit, query.status)
    return api_response(
        True,
        "Loans retrieved successfully",
        LoanPageResponse.from_domain(page).to_dict(),
    )


@loans_bp.route("/my", methods=["GET"])
@limiter.limit(LISTING_LIMIT)
@login_required
def my_loans():
    """List the authenticated member's loans, newest first."""
    query = PageQuery.from_args(request.args)
    page = _service().list_member_loans(current_user.id, query.page, query.limit)
    return api_response(
        True,
        "Your loans retrieved successfully",
        LoanPageResponse.from_domain(page).to_dict(),
    )

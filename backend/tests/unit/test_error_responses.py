"""
Unit tests for the error hierarchy and its HTTP rendering.

Every error kind must keep a distinct status/code pair so clients can tell
them apart without parsing messages.
"""

import pytest
from flask import Flask

from lending.core.api_utils import api_response, error_response
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
    NotFoundError,
    OutOfStockError,
    TransientStoreError,
    ValidationError,
)


@pytest.fixture
def flask_app():
    return Flask(__name__)


@pytest.mark.parametrize(
    "error,status,code,message",
    [
        (BookNotFoundError("b"), 404, "NOT_FOUND", "Book not found"),
        (LoanNotFoundError("l"), 404, "NOT_FOUND", "Loan not found"),
        (MemberNotFoundError("m"), 404, "NOT_FOUND", "Member not found"),
        (OutOfStockError("b"), 409, "OUT_OF_STOCK", "Book is out of stock"),
        (
            LoanLimitExceededError(3),
            409,
            "LIMIT_EXCEEDED",
            "You cannot borrow more than 3 books at a time",
        ),
        (
            DuplicateActiveLoanError(),
            409,
            "DUPLICATE_ACTIVE",
            "You already have an active loan for this book",
        ),
        (
            LoanOwnershipError(),
            403,
            "FORBIDDEN",
            "You can only return your own loans",
        ),
        (
            LoanAlreadyReturnedError(),
            409,
            "ALREADY_RETURNED",
            "This loan has already been returned",
        ),
        (TransientStoreError(), 503, "TRANSIENT", None),
        (LedgerConsistencyError("b"), 500, "INTERNAL_ERROR", None),
    ],
)
def test_error_response_maps_kind_to_status_and_code(
    flask_app, error, status, code, message
):
    with flask_app.test_request_context():
        response, status_code = error_response(error)
        body = response.get_json()

    assert status_code == status
    assert body["success"] is False
    assert body["code"] == code
    if message is not None:
        assert body["message"] == message


def test_business_kinds_are_pairwise_distinct():
    kinds = {
        (cls.kind, cls.http_status)
        for cls in (
            NotFoundError,
            OutOfStockError,
            LoanLimitExceededError,
            DuplicateActiveLoanError,
            LoanOwnershipError,
            LoanAlreadyReturnedError,
            ValidationError,
            TransientStoreError,
        )
    }
    assert len(kinds) == 8


def test_transient_error_sets_retry_after_header(flask_app):
    with flask_app.test_request_context():
        response, _ = error_response(TransientStoreError())
    assert response.headers["Retry-After"] == "1"


def test_validation_error_includes_field_errors(flask_app):
    error = ValidationError(
        "Validation failed", [{"field": "bookId", "message": "Invalid book ID"}]
    )
    with flask_app.test_request_context():
        response, status = error_response(error)
        body = response.get_json()

    assert status == 400
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"] == [{"field": "bookId", "message": "Invalid book ID"}]


def test_all_errors_share_lending_base():
    assert issubclass(BookNotFoundError, NotFoundError)
    assert issubclass(NotFoundError, LendingError)
    assert issubclass(TransientStoreError, LendingError)
    assert issubclass(LedgerConsistencyError, LendingError)


def test_api_response_omits_data_when_none(flask_app):
    with flask_app.test_request_context():
        response, status = api_response(True, "ok")
        body = response.get_json()
    assert status == 200
    assert body == {"success": True, "message": "ok"}

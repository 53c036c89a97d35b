import logging
from typing import Optional

from lending.core.exceptions import LedgerConsistencyError
from lending.db.base import Book as BookModel
from lending.domain.entities import Book, ReservationOutcome
from lending.domain.interfaces import IInventoryLedger

logger = logging.getLogger(__name__)


class BookLedger(IInventoryLedger):
    """Stock counter for books.

    Every stock change is a single conditional UPDATE so that two concurrent
    reservations can never both take the last copy, whatever the isolation
    level. The ledger never commits; the caller's unit of work does.
    """

    def __init__(self, db_session):
        self.db = db_session

    def try_reserve(self, book_id: str) -> ReservationOutcome:
        updated = (
            self.db.query(BookModel)
            .filter(BookModel.id == book_id, BookModel.stock > 0)
            .update(
                {BookModel.stock: BookModel.stock - 1}, synchronize_session=False
            )
        )
        if updated == 1:
            return ReservationOutcome.RESERVED

        exists = (
            self.db.query(BookModel.id).filter(BookModel.id == book_id).first()
            is not None
        )
        outcome = (
            ReservationOutcome.OUT_OF_STOCK if exists else ReservationOutcome.NOT_FOUND
        )
        logger.debug(
            "Stock reservation refused",
            extra={"context": {"book_id": book_id, "outcome": outcome.value}},
        )
        return outcome

    def release(self, book_id: str) -> None:
        updated = (
            self.db.query(BookModel)
            .filter(BookModel.id == book_id)
            .update(
                {BookModel.stock: BookModel.stock + 1}, synchronize_session=False
            )
        )
        if updated != 1:
            logger.critical(
                "Stock release targeted a missing book",
                extra={"context": {"book_id": book_id, "rows": updated}},
            )
            raise LedgerConsistencyError(book_id)

    def get_by_id(self, book_id: str) -> Optional[Book]:
        # Conditional updates bypass the identity map, so reload the row
        db_book = (
            self.db.query(BookModel)
            .populate_existing()
            .filter_by(id=book_id)
            .first()
        )
        return self._to_domain(db_book) if db_book else None

    def get_stock(self, book_id: str) -> Optional[int]:
        row = self.db.query(BookModel.stock).filter(BookModel.id == book_id).first()
        return row[0] if row else None

    def add(self, book: Book) -> Book:
        db_book = BookModel(
            title=book.title,
            author=book.author,
            isbn=book.isbn,
            published_year=book.published_year,
            stock=book.stock,
        )
        if book.id:
            db_book.id = book.id
        self.db.add(db_book)
        self.db.flush()
        return self._to_domain(db_book)

    def _to_domain(self, db_book: BookModel) -> Book:
        return Book(
            id=db_book.id,
            title=db_book.title,
            author=db_book.author,
            isbn=db_book.isbn,
            published_year=db_book.published_year,
            stock=db_book.stock,
            created_at=db_book.created_at,
            updated_at=db_book.updated_at,
        )

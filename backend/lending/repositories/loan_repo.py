from datetime import datetime
from typing import Optional

from sqlalchemy.orm import joinedload

from lending.db.base import Loan as LoanModel
from lending.domain.entities import (
    ACTIVE_STATUSES,
    BookSummary,
    Loan,
    LoanPage,
    LoanStatus,
    MemberSummary,
)
from lending.domain.interfaces import ILoanRepository

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class LoanRepository(ILoanRepository):
    """Loan persistence bound to one unit of work's session."""

    def __init__(self, db_session):
        self.db = db_session

    def get_by_id(self, loan_id: str, for_update: bool = False) -> Optional[Loan]:
        query = self.db.query(LoanModel).populate_existing().filter_by(id=loan_id)
        if for_update:
            query = query.with_for_update()
        db_loan = query.first()
        return self._to_domain(db_loan) if db_loan else None

    def count_active_for_member(self, member_id: str) -> int:
        return (
            self.db.query(LoanModel)
            .filter(
                LoanModel.member_id == member_id,
                LoanModel.status.in_(_ACTIVE_VALUES),
            )
            .count()
        )

    def find_active(self, member_id: str, book_id: str) -> Optional[Loan]:
        db_loan = (
            self.db.query(LoanModel)
            .filter(
                LoanModel.member_id == member_id,
                LoanModel.book_id == book_id,
                LoanModel.status.in_(_ACTIVE_VALUES),
            )
            .first()
        )
        return self._to_domain(db_loan, with_refs=False) if db_loan else None

    def create(self, member_id: str, book_id: str, loan_date: datetime) -> Loan:
        db_loan = LoanModel(
            member_id=member_id,
            book_id=book_id,
            status=LoanStatus.BORROWED.value,
            loan_date=loan_date,
            created_at=loan_date,
        )
        self.db.add(db_loan)
        self.db.flush()
        return self._to_domain(db_loan)

    def mark_returned(self, loan_id: str, return_date: datetime) -> bool:
        updated = (
            self.db.query(LoanModel)
            .filter(LoanModel.id == loan_id, LoanModel.status.in_(_ACTIVE_VALUES))
            .update(
                {
                    LoanModel.status: LoanStatus.RETURNED.value,
                    LoanModel.return_date: return_date,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    def list_loans(
        self, page: int, limit: int, status: Optional[LoanStatus] = None
    ) -> LoanPage:
        query = self.db.query(LoanModel)
        if status is not None:
            query = query.filter(LoanModel.status == LoanStatus(status).value)
        return self._paginate(query, page, limit)

    def list_member_loans(self, member_id: str, page: int, limit: int) -> LoanPage:
        query = self.db.query(LoanModel).filter(LoanModel.member_id == member_id)
        return self._paginate(query, page, limit)

    def _paginate(self, query, page: int, limit: int) -> LoanPage:
        total = query.count()
        rows = (
            query.options(joinedload(LoanModel.book), joinedload(LoanModel.member))
            .order_by(LoanModel.created_at.desc(), LoanModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return LoanPage(
            loans=[self._to_domain(row) for row in rows],
            page=page,
            limit=limit,
            total=total,
        )

    def _to_domain(self, db_loan: LoanModel, with_refs: bool = True) -> Loan:
        book = member = None
        if with_refs:
            if db_loan.book is not None:
                book = BookSummary(
                    id=db_loan.book.id,
                    title=db_loan.book.title,
                    author=db_loan.book.author,
                    isbn=db_loan.book.isbn,
                )
            if db_loan.member is not None:
                member = MemberSummary(
                    id=db_loan.member.id,
                    name=db_loan.member.name,
                    email=db_loan.member.email,
                )
        return Loan(
            id=db_loan.id,
            member_id=db_loan.member_id,
            book_id=db_loan.book_id,
            status=LoanStatus(db_loan.status),
            loan_date=db_loan.loan_date,
            return_date=db_loan.return_date,
            created_at=db_loan.created_at,
            updated_at=db_loan.updated_at,
            book=book,
            member=member,
        )

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Status values counted as "active" by the partial unique index below
ACTIVE_STATUS_SQL = "status IN ('BORROWED', 'LATE')"


class Member(Base):
    """Library member, resolved from the bearer token by Flask-Login"""

    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="MEMBER")
    active_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow
    )

    loans: Mapped[List["Loan"]] = relationship("Loan", back_populates="member")

    # Flask-Login required methods/properties
    @property
    def is_active(self) -> bool:
        return self.active_flag

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return str(self.id)

    def __repr__(self):
        return f"<Member(id={self.id}, email='{self.email}', role='{self.role}')>"


# ------------------- BOOKS (INVENTORY) -------------------
class Book(Base):
    """Catalog entry; ``stock`` is the number of copies available to lend"""

    __tablename__ = "books"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_books_stock_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    isbn: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    published_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow
    )

    loans: Mapped[List["Loan"]] = relationship("Loan", back_populates="book")

    def __repr__(self):
        return f"<Book(id={self.id}, title='{self.title}', stock={self.stock})>"


# ------------------- LOANS -------------------
ACTIVE_LOAN_INDEX = "uq_loans_active_member_book"


class Loan(Base):
    """Lending record. Created by borrow, mutated only by return, never deleted"""

    __tablename__ = "loans"
    __table_args__ = (
        # At most one active loan per (member, book)
        Index(
            ACTIVE_LOAN_INDEX,
            "member_id",
            "book_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
        Index("ix_loans_member_status", "member_id", "status"),
        Index("ix_loans_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    member_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("members.id"), nullable=False
    )
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="BORROWED")
    loan_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    return_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow
    )

    member: Mapped["Member"] = relationship("Member", back_populates="loans")
    book: Mapped["Book"] = relationship("Book", back_populates="loans")

    def __repr__(self):
        return f"<Loan(id={self.id}, member_id={self.member_id}, book_id={self.book_id}, status='{self.status}')>"

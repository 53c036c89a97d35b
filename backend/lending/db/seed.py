"""
Database seeding functions.

Loads a deterministic demo library: staff and member accounts, a catalog
with random stock and a history of loans created through ``LoanService`` so
every seeded loan respects the same limits as a real one. The RNG is seeded,
so two runs against empty databases produce the same catalog.

Seeding is idempotent: members and books are matched by email and ISBN and
loans are only generated when the database holds none.
"""

import logging
import random
from typing import Dict, List, Optional

from lending.core.exceptions import LendingError
from lending.db.base import Book as BookModel
from lending.db.base import Loan as LoanModel
from lending.db.base import Member as MemberModel
from lending.db.session import create_tables, get_sessionmaker, transaction
from lending.services.loan_service import LoanService

logger = logging.getLogger(__name__)

SEED = 42

MEMBERS = [
    ("System Administrator", "admin@library.com", "ADMIN"),
    ("Sarah Chen", "librarian1@library.com", "LIBRARIAN"),
    ("James Rodriguez", "librarian2@library.com", "LIBRARIAN"),
    ("Emily Watson", "member1@library.com", "MEMBER"),
    ("Michael Park", "member2@library.com", "MEMBER"),
    ("Aisha Rahman", "member3@library.com", "MEMBER"),
    ("David Kim", "member4@library.com", "MEMBER"),
    ("Olivia Martinez", "member5@library.com", "MEMBER"),
    ("Daniel Thompson", "member6@library.com", "MEMBER"),
    ("Sofia Andersson", "member7@library.com", "MEMBER"),
    ("Lucas Fernandes", "member8@library.com", "MEMBER"),
    ("Priya Sharma", "member9@library.com", "MEMBER"),
    ("Noah Williams", "member10@library.com", "MEMBER"),
]

BOOKS = [
    ("The Great Gatsby", "F. Scott Fitzgerald", "9780743273565", 1925),
    ("To Kill a Mockingbird", "Harper Lee", "9780061120084", 1960),
    ("1984", "George Orwell", "9780451524935", 1949),
    ("Pride and Prejudice", "Jane Austen", "9780142437247", 1813),
    ("The Hobbit", "J.R.R. Tolkien", "9780547928227", 1937),
    ("The Catcher in the Rye", "J.D. Salinger", "9780316769488", 1951),
    ("Lord of the Flies", "William Golding", "9780399501487", 1954),
    ("Brave New World", "Aldous Huxley", "9780060850524", 1932),
    ("The Alchemist", "Paulo Coelho", "9780062315007", 1988),
    ("One Hundred Years of Solitude", "Gabriel García Márquez", "9780060883287", 1967),
    ("The Road", "Cormac McCarthy", "9780307387899", 2006),
    ("Sapiens", "Yuval Noah Harari", "9780062316097", 2011),
    ("Educated", "Tara Westover", "9780399590504", 2018),
    ("Becoming", "Michelle Obama", "9781524763138", 2018),
    ("Atomic Habits", "James Clear", "9780735211292", 2018),
    ("Dune", "Frank Herbert", "9780441013593", 1965),
    ("The Name of the Wind", "Patrick Rothfuss", "9780756404741", 2007),
    ("Project Hail Mary", "Andy Weir", "9780593135204", 2021),
    ("The Midnight Library", "Matt Haig", "9780525559474", 2020),
    ("Where the Crawdads Sing", "Delia Owens", "9780735219113", 2018),
    ("The Silent Patient", "Alex Michaelides", "9781250301697", 2019),
    ("Circe", "Madeline Miller", "9780316556347", 2018),
    ("Normal People", "Sally Rooney", "9781984822178", 2018),
    ("The Goldfinch", "Donna Tartt", "9780316055437", 2013),
    ("The Underground Railroad", "Colson Whitehead", "9780385542364", 2016),
    ("A Man Called Ove", "Fredrik Backman", "9781476738024", 2012),
    ("The Book Thief", "Markus Zusak", "9780375842207", 2005),
    ("Life of Pi", "Yann Martel", "9780156027328", 2001),
    ("The Kite Runner", "Khaled Hosseini", "9781594631931", 2003),
    ("Gone Girl", "Gillian Flynn", "9780307588371", 2012),
]


def _seed_members(session) -> List[MemberModel]:
    members = []
    for name, email, role in MEMBERS:
        member = session.query(MemberModel).filter_by(email=email).first()
        if member is None:
            member = MemberModel(name=name, email=email, role=role, active_flag=True)
            session.add(member)
        members.append(member)
    session.flush()
    return members


def _seed_books(session, rng: random.Random) -> List[BookModel]:
    books = []
    for title, author, isbn, year in BOOKS:
        stock = rng.randint(1, 10)
        book = session.query(BookModel).filter_by(isbn=isbn).first()
        if book is None:
            book = BookModel(
                title=title, author=author, isbn=isbn, published_year=year, stock=stock
            )
            session.add(book)
        books.append(book)
    session.flush()
    return books


def _seed_loans(
    service: LoanService,
    rng: random.Random,
    member_ids: List[str],
    book_ids: List[str],
) -> Dict[str, int]:
    """Borrow through the service, then return a share of the loans."""
    counts = {"borrowed": 0, "returned": 0, "skipped": 0}
    target = rng.randint(20, 28)
    created = []

    for _ in range(target):
        member_id = rng.choice(member_ids)
        book_id = rng.choice(book_ids)
        try:
            loan = service.borrow(member_id, book_id)
        except LendingError as exc:
            counts["skipped"] += 1
            logger.debug(
                "Seed loan skipped",
                extra={"context": {"member_id": member_id, "kind": exc.kind}},
            )
            continue
        created.append(loan)
        counts["borrowed"] += 1

    returned_count = round(len(created) * 0.2)
    for loan in rng.sample(created, returned_count):
        service.return_book(loan.id, loan.member_id)
        counts["returned"] += 1

    return counts


def seed_demo_data(session_factory=None, seed: Optional[int] = SEED) -> Dict[str, int]:
    """Create the demo library. Returns counts of what was written.

    ``session_factory`` must be a ``sessionmaker``; its bound engine gets the
    tables created first.
    """
    factory = session_factory or get_sessionmaker()
    create_tables(factory.kw.get("bind"))
    rng = random.Random(seed)

    with transaction(factory) as session:
        members = _seed_members(session)
        books = _seed_books(session, rng)
        member_ids = [m.id for m in members if m.role == "MEMBER"]
        book_ids = [b.id for b in books]
        has_loans = session.query(LoanModel.id).first() is not None

    summary = {"members": len(members), "books": len(books)}
    if has_loans:
        logger.info(
            "Loans already present; skipping loan history",
            extra={"context": summary},
        )
        return summary

    summary.update(_seed_loans(LoanService(factory), rng, member_ids, book_ids))
    logger.info("Demo data seeded", extra={"context": summary})
    return summary

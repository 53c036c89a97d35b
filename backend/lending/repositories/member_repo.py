from typing import Optional

from lending.db.base import Member as MemberModel
from lending.domain.entities import Member
from lending.domain.interfaces import IMemberRepository


class MemberRepository(IMemberRepository):
    def __init__(self, db_session):
        self.db = db_session

    def get_by_id(self, member_id: str) -> Optional[Member]:
        db_member = self.db.query(MemberModel).filter_by(id=member_id).first()
        return self._to_domain(db_member) if db_member else None

    def get_by_email(self, email: str) -> Optional[Member]:
        db_member = (
            self.db.query(MemberModel).filter_by(email=email.strip().lower()).first()
        )
        return self._to_domain(db_member) if db_member else None

    def lock(self, member_id: str) -> bool:
        """Take a row lock on the member for the rest of the unit of work.

        Concurrent borrows by the same member queue here, so the active-loan
        count they read is never stale. SQLite has no row locks; there the
        write already issued by the stock reservation holds the database
        lock instead.
        """
        row = (
            self.db.query(MemberModel.id)
            .filter(MemberModel.id == member_id)
            .with_for_update()
            .first()
        )
        return row is not None

    def add(self, member: Member) -> Member:
        db_member = MemberModel(
            name=member.name,
            email=member.email.strip().lower(),
            role=member.role,
            active_flag=member.is_active,
        )
        if member.id:
            db_member.id = member.id
        self.db.add(db_member)
        self.db.flush()
        return self._to_domain(db_member)

    def _to_domain(self, db_member: MemberModel) -> Member:
        return Member(
            id=db_member.id,
            name=db_member.name,
            email=db_member.email,
            role=db_member.role,
            is_active=db_member.active_flag,
            created_at=db_member.created_at,
        )

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .db.tables import User
from .errors import UserNotFoundError


class UserDirectory:
    """Resolves reward recipients, optionally creating them on first reference.

    Creation is an INSERT ... ON CONFLICT DO NOTHING, so two transactions
    provisioning the same user concurrently both succeed.
    """

    def __init__(self, auto_provision: bool = True):
        self.auto_provision = auto_provision

    def exists(self, session: Session, user_id: int) -> bool:
        return session.scalar(select(User.id).where(User.id == user_id)) is not None

    def ensure(self, session: Session, user_id: int) -> bool:
        """Returns True when the user was created by this call."""
        if self.exists(session, user_id):
            return False
        if not self.auto_provision:
            raise UserNotFoundError(f"User {user_id} not found", user_id=user_id)

        insert = postgresql.insert if session.get_bind().dialect.name == "postgresql" else sqlite.insert
        result = session.execute(
            insert(User)
            .values(id=user_id, name=f"User {user_id}", email=f"user{user_id}@stocky.com")
            .on_conflict_do_nothing(index_elements=[User.id])
        )
        return result.rowcount == 1

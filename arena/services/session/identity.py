from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from arena import db
from arena.models import User


@dataclass(frozen=True)
class Identity:
    username: str
    account_id: Optional[int] = None
    kills: int = 0
    deaths: int = 0

    @classmethod
    def from_user(cls, user: User) -> 'Identity':
        return cls(username=user.username, account_id=user.id, kills=user.kills or 0, deaths=user.deaths or 0)


class IdentityUnavailable(Exception):
    """The account store could not be queried."""


class AccountIdentityProvider:
    """Verifies username/password pairs against the ``players`` table."""

    def verify(self, credentials) -> Optional[Identity]:
        credentials = credentials or {}
        username = credentials.get('username')
        password = credentials.get('password')
        if not username or not password:
            return None
        try:
            user = User.query.filter_by(username=username).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise IdentityUnavailable(str(exc)) from exc
        if user is None or not user.check_password(password):
            return None
        return Identity.from_user(user)

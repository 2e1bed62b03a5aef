"""User and role repositories."""

from __future__ import annotations

from typing import cast

from sqlalchemy import or_, select

from authgate.models.user import Role, User
from authgate.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Lookups only; lockout bookkeeping and token issuance live in services.
    """

    model = User

    def _filterable_fields(self):
        return {
            "email": User.email,
            "username": User.username,
        }

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_by_login(self, identifier: str) -> User | None:
        """Fetch a user whose username or email equals ``identifier``.

        The username match is exact; the email match is case-insensitive.
        """
        value = identifier.strip()
        stmt = select(User).where(or_(User.username == value, User.email == value.lower()))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    def exists_by_username(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username.strip())
        return bool(self.session.execute(stmt).first())


class RoleRepository(BaseRepository[Role]):
    """Persistence-only repository for :class:`Role`."""

    model = Role

    def _filterable_fields(self):
        return {"name": Role.name}

    def get_or_create(self, name: str) -> Role:
        """Return the role called ``name``, creating it when missing."""
        role = self.find_one(name=name)
        if role is None:
            role = self.add(Role(name=name))
        return role

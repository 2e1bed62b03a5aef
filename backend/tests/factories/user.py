"""Factory Boy definitions for :mod:`authgate.models.user`."""

from __future__ import annotations

import factory
from authgate.models.user import Role, User, UserClaim
from tests.factories import BaseFactory, SQLAlchemySession

DEFAULT_PASSWORD = "Passw0rd!"


class RoleFactory(BaseFactory):
    class Meta:
        model = Role

    id = None
    name = factory.Sequence(lambda n: f"role{n}")


class UserFactory(BaseFactory):
    """
    Build persisted :class:`authgate.models.user.User` instances.

    Notes
    -----
    - The password is hashed through the model's write-only setter.
    - ``roles`` accepts a list of role names, created on demand.
    """

    class Meta:
        model = User

    id = None  # let autoincrement handle it
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    username = factory.Sequence(lambda n: f"user{n}")
    full_name = factory.Faker("name")
    is_active = True
    two_factor_enabled = False
    failed_login_count = 0
    password_hash = factory.LazyFunction(lambda: "")  # set via postgen

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Set password using model setter (ensures hashing)."""
        obj.password = extracted or DEFAULT_PASSWORD
        if create:
            SQLAlchemySession.get().commit()

    @factory.post_generation
    def roles(obj, create, extracted, **kwargs):
        if not create or not extracted:
            return
        session = SQLAlchemySession.get()
        for name in extracted:
            role = session.query(Role).filter_by(name=name).one_or_none() or Role(name=name)
            obj.roles.append(role)
        session.commit()


class UserClaimFactory(BaseFactory):
    class Meta:
        model = UserClaim

    id = None
    user = factory.SubFactory(UserFactory)
    claim_type = "tenant"
    claim_value = factory.Sequence(lambda n: f"tenant-{n}")

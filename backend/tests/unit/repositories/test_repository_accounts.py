from datetime import datetime, timedelta, timezone

import pytest
from authgate.models.temp_registration import PENDING, PROMOTED, STAGED
from authgate.repositories.temp_registration import TempRegistrationRepository
from authgate.repositories.user import RoleRepository, UserRepository
from tests.factories.temp_registration import TempRegistrationFactory
from tests.factories.user import RoleFactory, UserFactory


class TestUserRepository:
    @pytest.fixture()
    def repo(self, session) -> UserRepository:
        return UserRepository(session=session)

    def test_get_by_login_matches_username_exactly_and_email_loosely(self, repo):
        user = UserFactory(username="Alice", email="alice@example.com")

        assert repo.get_by_login("Alice").id == user.id
        assert repo.get_by_login(" ALICE@example.com ").id == user.id
        assert repo.get_by_login("alice") is None

    def test_exists_helpers(self, repo):
        UserFactory(username="bob", email="bob@example.com")

        assert repo.exists_by_email("BOB@example.com")
        assert repo.exists_by_username("bob")
        assert not repo.exists_by_username("bobby")

    def test_filters_outside_whitelist_are_rejected(self, repo):
        with pytest.raises(ValueError, match="not filterable"):
            repo.find_one(password_hash="x")

    def test_find_one_and_exists_by_whitelisted_fields(self, repo):
        user = UserFactory(username="carol")

        assert repo.find_one(username="carol").id == user.id
        assert repo.exists(email=user.email)


class TestRoleRepository:
    def test_get_or_create_is_idempotent(self, session):
        repo = RoleRepository(session=session)
        existing = RoleFactory(name="admin")

        assert repo.get_or_create("admin").id == existing.id
        created = repo.get_or_create("auditor")
        assert created.id is not None
        assert repo.get_or_create("auditor").id == created.id


class TestTempRegistrationRepository:
    @pytest.fixture()
    def repo(self, session) -> TempRegistrationRepository:
        return TempRegistrationRepository(session=session)

    def test_latest_by_status_prefers_newest(self, repo):
        TempRegistrationFactory(email="a@x.com", status=PENDING)
        newest = TempRegistrationFactory(email="a@x.com", status=PENDING)
        staged = TempRegistrationFactory(email="a@x.com", status=STAGED)

        assert repo.latest_pending("A@x.com").id == newest.id
        assert repo.latest_unconfirmed("a@x.com").id == staged.id
        assert repo.latest_pending("b@x.com") is None

    def test_latest_unconfirmed_skips_promoted(self, repo):
        pending = TempRegistrationFactory(email="a@x.com", status=PENDING)
        TempRegistrationFactory(email="a@x.com", status=PROMOTED)

        assert repo.latest_unconfirmed("a@x.com").id == pending.id

    def test_pending_holders_ignores_expired_and_staged(self, repo):
        now = datetime.now(timezone.utc)
        TempRegistrationFactory(email="old@x.com", username="old", expires_at=now - timedelta(seconds=1))
        TempRegistrationFactory(email="st@x.com", username="st", status=STAGED)
        TempRegistrationFactory(email="p@x.com", username="pat", expires_at=now + timedelta(minutes=5))

        assert repo.pending_holders(email="old@x.com", username="old", now=now) == []
        assert repo.pending_holders(email="st@x.com", username="st", now=now) == []
        assert repo.pending_holders(email="new@x.com", username="pat", now=now) == ["p@x.com"]

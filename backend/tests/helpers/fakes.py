"""In-memory collaborators for service-level tests."""

from __future__ import annotations

from dataclasses import dataclass

from authgate.services._shared.errors import Reason
from authgate.services._shared.ports import EmailSender, IdentityProvider, InMemoryRefreshStore
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.identity.dto import SignInOutcome, SignInStatus, UserOut
from authgate.services.tokens.claims import Claim
from redis.exceptions import ConnectionError as RedisConnectionError


class FakeIdentity(IdentityProvider):
    """Dictionary-backed identity store with scripted sign-in outcomes."""

    def __init__(self) -> None:
        self.users: dict[int, UserOut] = {}
        self.roles: dict[int, set[str]] = {}
        self.claims: dict[int, list[Claim]] = {}
        self.password_hashes: dict[int, str] = {}
        self.sign_in_status: SignInStatus = SignInStatus.SUCCEEDED
        self.sign_in_calls: list[str] = []
        self.create_failure: Reason | None = None

    def add(
        self,
        user_id: int,
        email: str,
        username: str,
        full_name: str | None = None,
        roles: tuple[str, ...] = (),
    ) -> UserOut:
        user = UserOut(id=user_id, email=email, username=username, full_name=full_name)
        self.users[user_id] = user
        self.roles[user_id] = set(roles)
        return user

    def find_by_id(self, user_id: int | str) -> UserOut | None:
        try:
            return self.users.get(int(user_id))
        except (TypeError, ValueError):
            return None

    def find_by_email(self, email: str) -> UserOut | None:
        return next((u for u in self.users.values() if u.email == email), None)

    def exists(self, *, email: str, username: str) -> bool:
        return any(u.email == email or u.username == username for u in self.users.values())

    def sign_in(self, identifier: str, password: str) -> SignInOutcome:
        self.sign_in_calls.append(identifier)
        user = next(
            (u for u in self.users.values() if identifier in (u.email, u.username)),
            None,
        )
        if user is None:
            return SignInOutcome(SignInStatus.FAILED)
        return SignInOutcome(self.sign_in_status, user)

    def get_roles(self, user: UserOut) -> set[str]:
        return set(self.roles.get(user.id, set()))

    def get_claims(self, user: UserOut) -> list[Claim]:
        return list(self.claims.get(user.id, []))

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        full_name: str | None = None,
    ) -> Result[UserOut]:
        if self.create_failure is not None:
            return Err(self.create_failure, "scripted failure")
        if self.exists(email=email, username=username):
            return Err(Reason.USER_ALREADY_EXISTS, "Email or username already in use")
        user = self.add(max(self.users, default=0) + 1, email, username, full_name, ("user",))
        self.password_hashes[user.id] = password_hash
        return Ok(user)


class BrokenRefreshStore(InMemoryRefreshStore):
    """Refresh store whose every call fails like an unreachable Redis."""

    def find_by_refresh_token(self, refresh_token):
        raise RedisConnectionError("connection refused")

    def upsert(self, user_id, **kwargs):
        raise RedisConnectionError("connection refused")


class RacingRefreshStore(InMemoryRefreshStore):
    """Lets a competing rotation land between the ownership check and the write."""

    def __init__(self) -> None:
        super().__init__()
        self.race_with: str | None = None

    def find_by_user_and_refresh_token(self, user_id, refresh_token):
        record = super().find_by_user_and_refresh_token(user_id, refresh_token)
        if record is not None and self.race_with is not None:
            super().upsert(user_id, access_token="winner-access", refresh_token=self.race_with)
        return record


@dataclass(frozen=True)
class SentEmail:
    to_email: str
    subject: str
    code: str


class RecordingEmailSender(EmailSender):
    """Keeps every message in memory; ``fail`` makes ``send`` report failure."""

    def __init__(self, *, fail: bool = False) -> None:
        self.outbox: list[SentEmail] = []
        self.fail = fail

    def send(self, to_email: str, subject: str, code: str) -> bool:
        if self.fail:
            return False
        self.outbox.append(SentEmail(to_email=to_email, subject=subject, code=code))
        return True

    def last_code_for(self, email: str) -> str | None:
        """Return the most recent code sent to ``email``."""
        for sent in reversed(self.outbox):
            if sent.to_email == email:
                return sent.code
        return None

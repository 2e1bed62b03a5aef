"""
Unit tests for AuthFlowService.

The flow runs against the real identity, registration and token services on
the test database, with in-memory OTP/refresh stores and a recording mailer.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from authgate.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
from authgate.repositories.temp_registration import TempRegistrationRepository
from authgate.repositories.user import UserRepository
from authgate.services._shared.errors import ErrorKind, Reason
from authgate.services._shared.ports import InMemoryOtpStore, InMemoryRefreshStore
from authgate.services._shared.result import Err, Ok
from authgate.services.auth_flow.dto import ConfirmCodeIn, FlowState, LoginIn, RegistrationIn
from authgate.services.auth_flow.service import AuthFlowService
from authgate.services.identity.dto import SignInStatus
from authgate.services.identity.service import IdentityService
from authgate.services.otp.service import OtpService
from authgate.services.registration.service import RegistrationService
from authgate.services.tokens.service import TokenConfig, TokenService
from tests.factories.temp_registration import TempRegistrationFactory
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.fakes import FakeIdentity, RecordingEmailSender

ACCESS_SECRET = "flow-access-secret-0123456789abcdef"
REFRESH_SECRET = "flow-refresh-secret-0123456789abcdef"


class FailingOtpStore(InMemoryOtpStore):
    def put(self, email, digest, ttl_seconds):
        raise ConnectionRefusedError("redis down")


@pytest.fixture
def mail() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def refresh_store() -> InMemoryRefreshStore:
    return InMemoryRefreshStore()


def _flow(identity, mail, refresh_store, otp_store=None) -> AuthFlowService:
    return AuthFlowService(
        tokens=TokenService(
            codec=PyJWTTokenCodec(),
            store=refresh_store,
            identity=identity,
            config=TokenConfig(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET),
        ),
        identity=identity,
        otp=OtpService(otp_store or InMemoryOtpStore(), identity, "otp-secret-0123456789"),
        mailer=mail,
        registrations=RegistrationService(ttl=timedelta(hours=1)),
    )


@pytest.fixture
def identity() -> IdentityService:
    return IdentityService(max_failed_attempts=3)


@pytest.fixture
def flow(identity, mail, refresh_store) -> AuthFlowService:
    return _flow(identity, mail, refresh_store)


@pytest.fixture
def users(session) -> UserRepository:
    return UserRepository(session=session)


@pytest.fixture
def registrations(session) -> TempRegistrationRepository:
    return TempRegistrationRepository(session=session)


def _alice(**overrides) -> RegistrationIn:
    data = {"email": "a@x.com", "username": "alice", "password": "pw-alice-123"}
    data.update(overrides)
    return RegistrationIn(**data)


# --------------------------------------------------------------------------- #
# Registration
# --------------------------------------------------------------------------- #


class TestRegister:
    def test_round_trip_creates_user_and_session(self, flow, mail, users, registrations, refresh_store):
        step = flow.register(_alice(full_name="Smith Alice"))

        assert isinstance(step, Ok)
        assert step.value.state is FlowState.OTP_PENDING
        assert step.value.email == "a@x.com"
        (sent,) = mail.outbox
        assert sent.to_email == "a@x.com"
        assert sent.subject == "Validate Email Code"
        assert users.get_by_email("a@x.com") is None

        session = flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=sent.code))

        assert isinstance(session, Ok)
        assert session.value.state is FlowState.AUTHENTICATED
        user = users.get_by_email("a@x.com")
        assert user is not None
        assert user.username == "alice"
        assert user.full_name == "Smith Alice"
        assert user.verify_password("pw-alice-123")
        assert user.role_names == ["user"]
        assert registrations.latest_by_email("a@x.com", status="PROMOTED").promoted_user_id == user.id
        record = refresh_store.find_by_refresh_token(session.value.refresh_token)
        assert record.user_id == str(user.id)
        assert record.access_token == session.value.access_token

    def test_second_registration_before_confirmation_conflicts(self, flow, mail):
        flow.register(_alice())

        again = flow.register(_alice())
        same_username = flow.register(_alice(email="other@x.com"))

        for result in (again, same_username):
            assert isinstance(result, Err)
            assert result.reason is Reason.USER_ALREADY_EXISTS
            assert result.kind is ErrorKind.CONFLICT
        assert len(mail.outbox) == 1

    def test_existing_user_conflicts(self, flow, mail):
        UserFactory(email="a@x.com")

        result = flow.register(_alice())

        assert isinstance(result, Err)
        assert result.reason is Reason.USER_ALREADY_EXISTS
        assert mail.outbox == []

    def test_dispatch_failure_keeps_staged_record_and_allows_retry(self, flow, mail, registrations):
        mail.fail = True

        failed = flow.register(_alice())

        assert isinstance(failed, Err)
        assert failed.reason is Reason.OTP_DISPATCH_FAILURE
        assert failed.kind is ErrorKind.DISPATCH_FAILURE
        staged = registrations.latest_by_email("a@x.com", status="STAGED")
        assert staged is not None
        assert registrations.latest_by_email("a@x.com", status="PENDING") is None
        assert not flow.otp.has_outstanding("a@x.com")

        mail.fail = False
        retried = flow.register(_alice())

        assert isinstance(retried, Ok)
        pending = registrations.latest_by_email("a@x.com", status="PENDING")
        assert pending.id == staged.id
        assert registrations.latest_by_email("a@x.com", status="STAGED") is None

    def test_pending_write_failure_sends_nothing(self, flow, mail, monkeypatch):
        monkeypatch.setattr(
            flow.registrations,
            "mark_pending",
            lambda registration_id: Err(Reason.PERSISTENCE_FAILURE, "db down"),
        )

        result = flow.register(_alice())

        assert isinstance(result, Err)
        assert result.reason is Reason.PERSISTENCE_FAILURE
        assert mail.outbox == []
        assert not flow.otp.has_outstanding("a@x.com")

    def test_used_up_code_frees_the_registration(self, flow, mail, registrations):
        flow.register(_alice())
        original = registrations.latest_by_email("a@x.com", status="PENDING")
        first = mail.last_code_for("a@x.com")
        wrong = "000000" if first != "000000" else "111111"
        for _ in range(flow.otp.max_attempts):
            flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=wrong))

        again = flow.register(_alice())

        assert isinstance(again, Ok)
        assert len(mail.outbox) == 2
        assert registrations.latest_by_email("a@x.com", status="PENDING").id == original.id
        code = mail.last_code_for("a@x.com")
        assert isinstance(flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=code)), Ok)

    def test_expired_code_frees_username_for_another_registrant(self, identity, mail, refresh_store):
        ticks = [1000.0]
        flow = _flow(identity, mail, refresh_store, otp_store=InMemoryOtpStore(clock=lambda: ticks[0]))
        flow.register(_alice())
        ticks[0] += flow.otp.ttl_seconds + 1

        result = flow.register(_alice(email="b@x.com"))

        assert isinstance(result, Ok)
        code = mail.last_code_for("b@x.com")
        assert isinstance(flow.confirm_code(ConfirmCodeIn(email="b@x.com", code=code)), Ok)

    def test_otp_store_outage_is_a_dispatch_failure(self, identity, mail, refresh_store):
        flow = _flow(identity, mail, refresh_store, otp_store=FailingOtpStore())

        result = flow.register(_alice())

        assert isinstance(result, Err)
        assert result.reason is Reason.OTP_DISPATCH_FAILURE
        assert mail.outbox == []


# --------------------------------------------------------------------------- #
# Login
# --------------------------------------------------------------------------- #


class TestLogin:
    def test_success_sends_code_and_confirmation_issues_tokens(self, flow, mail, refresh_store):
        user = UserFactory(username="bob", email="bob@x.com", roles=["user"])

        step = flow.login(LoginIn(identifier="bob", password=DEFAULT_PASSWORD))

        assert isinstance(step, Ok)
        assert step.value.state is FlowState.OTP_PENDING
        assert step.value.email == "bob@x.com"
        code = mail.last_code_for("bob@x.com")

        session = flow.confirm_code(ConfirmCodeIn(email="bob@x.com", code=code))

        assert isinstance(session, Ok)
        assert refresh_store.find_by_user(str(user.id)).access_token == session.value.access_token

    def test_bad_password_sends_nothing(self, flow, mail):
        UserFactory(username="bob")

        result = flow.login(LoginIn(identifier="bob", password="wrong"))

        assert isinstance(result, Err)
        assert result.reason is Reason.INVALID_CREDENTIALS
        assert mail.outbox == []

    def test_unknown_user_is_invalid_credentials(self, flow, mail):
        result = flow.login(LoginIn(identifier="ghost", password="whatever"))

        assert isinstance(result, Err)
        assert result.reason is Reason.INVALID_CREDENTIALS

    def test_locked_out_account_never_dispatches(self, flow, mail):
        UserFactory(username="bob")
        for _ in range(3):
            flow.login(LoginIn(identifier="bob", password="wrong"))

        result = flow.login(LoginIn(identifier="bob", password=DEFAULT_PASSWORD))

        assert isinstance(result, Err)
        assert result.reason is Reason.LOCKED_OUT
        assert result.kind is ErrorKind.AUTH_FAILURE
        assert mail.outbox == []

    @pytest.mark.parametrize(
        ("status", "reason"),
        [
            (SignInStatus.NOT_ALLOWED, Reason.NOT_ALLOWED),
            (SignInStatus.REQUIRES_TWO_FACTOR, Reason.TWO_FACTOR_REQUIRED),
            (SignInStatus.LOCKED_OUT, Reason.LOCKED_OUT),
            (SignInStatus.FAILED, Reason.INVALID_CREDENTIALS),
        ],
    )
    def test_sign_in_statuses_map_to_auth_failures(self, mail, refresh_store, status, reason):
        fake = FakeIdentity()
        fake.add(1, "bob@x.com", "bob")
        fake.sign_in_status = status

        result = _flow(fake, mail, refresh_store).login(LoginIn(identifier="bob", password="pw"))

        assert isinstance(result, Err)
        assert result.reason is reason
        assert result.kind is ErrorKind.AUTH_FAILURE
        assert mail.outbox == []


# --------------------------------------------------------------------------- #
# Confirmation
# --------------------------------------------------------------------------- #


class TestConfirmCode:
    def test_wrong_code_fails(self, flow, mail):
        flow.register(_alice())
        code = mail.last_code_for("a@x.com")
        wrong = "000000" if code != "000000" else "111111"

        result = flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=wrong))

        assert isinstance(result, Err)
        assert result.reason is Reason.OTP_VERIFICATION_FAILED

    def test_no_pending_registration_and_no_user(self, flow):
        code = flow.otp.issue_code("nobody@x.com")

        result = flow.confirm_code(ConfirmCodeIn(email="nobody@x.com", code=code))

        assert isinstance(result, Err)
        assert result.reason is Reason.OTP_VERIFICATION_FAILED
        assert result.kind is ErrorKind.OTP_VERIFICATION_FAILED

    def test_code_cannot_be_replayed(self, flow, mail):
        flow.register(_alice())
        code = mail.last_code_for("a@x.com")
        assert isinstance(flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=code)), Ok)

        replay = flow.confirm_code(ConfirmCodeIn(email="a@x.com", code=code))

        assert isinstance(replay, Err)
        assert replay.reason is Reason.OTP_VERIFICATION_FAILED

    def test_failed_user_creation_is_verification_failure(self, mail, refresh_store):
        fake = FakeIdentity()
        fake.create_failure = Reason.PERSISTENCE_FAILURE
        flow = _flow(fake, mail, refresh_store)
        TempRegistrationFactory(email="p@x.com", username="pat")
        code = flow.otp.issue_code("p@x.com")

        result = flow.confirm_code(ConfirmCodeIn(email="p@x.com", code=code))

        assert isinstance(result, Err)
        assert result.reason is Reason.OTP_VERIFICATION_FAILED
        assert refresh_store.find_by_user("1") is None

    def test_expired_pending_registration_is_not_promoted(self, flow, users):
        TempRegistrationFactory(
            email="late@x.com",
            username="late",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        code = flow.otp.issue_code("late@x.com")

        result = flow.confirm_code(ConfirmCodeIn(email="late@x.com", code=code))

        assert isinstance(result, Err)
        assert result.reason is Reason.OTP_VERIFICATION_FAILED
        assert users.get_by_email("late@x.com") is None

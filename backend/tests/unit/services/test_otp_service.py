"""Unit tests for OtpService: issuance, verification and attempt limits."""

from __future__ import annotations

import pytest
from authgate.services._shared.ports import InMemoryOtpStore
from authgate.services.otp.service import OtpService
from tests.helpers.fakes import FakeIdentity

SECRET = "otp-secret-0123456789abcdef"


@pytest.fixture
def store() -> InMemoryOtpStore:
    return InMemoryOtpStore()


@pytest.fixture
def identity() -> FakeIdentity:
    fake = FakeIdentity()
    fake.add(1, "known@example.com", "known")
    return fake


@pytest.fixture
def otp(store, identity) -> OtpService:
    return OtpService(store, identity, SECRET, length=6, ttl_seconds=300, max_attempts=3)


def _wrong(code: str) -> str:
    return "".join(str((int(d) + 1) % 10) for d in code)


def test_requires_secret(store, identity):
    with pytest.raises(ValueError):
        OtpService(store, identity, "")


def test_issued_code_is_numeric_and_only_its_digest_is_stored(otp, store):
    code = otp.issue_code("new@example.com")

    assert len(code) == 6
    assert code.isdigit()
    entry = store.get("new@example.com")
    assert entry is not None
    assert code not in entry.digest


def test_correct_code_for_unknown_email_verifies_without_user(otp):
    code = otp.issue_code("new@example.com")

    result = otp.verify_code("new@example.com", code)

    assert result.verified is True
    assert result.user is None


def test_correct_code_for_existing_user_carries_the_user(otp):
    code = otp.issue_code("known@example.com")

    result = otp.verify_code("Known@Example.com ", code)

    assert result.verified is True
    assert result.user.id == 1


def test_code_is_consumed_by_verification(otp):
    code = otp.issue_code("new@example.com")
    otp.verify_code("new@example.com", code)

    assert otp.verify_code("new@example.com", code).verified is False


def test_reissue_invalidates_previous_code(otp):
    old = otp.issue_code("new@example.com")
    new = otp.issue_code("new@example.com")
    if old == new:
        pytest.skip("random codes collided")

    assert otp.verify_code("new@example.com", old).verified is False
    assert otp.verify_code("new@example.com", new).verified is True


def test_digest_is_bound_to_email_and_secret(otp, store, identity):
    other = OtpService(store, identity, "another-secret-0123456789")

    assert otp._digest("a@example.com", "123456") != otp._digest("b@example.com", "123456")
    assert otp._digest("a@example.com", "123456") != other._digest("a@example.com", "123456")
    assert otp._digest("A@example.com", "123456") == otp._digest("a@example.com", "123456")


def test_wrong_codes_exhaust_the_attempt_budget(otp, store):
    code = otp.issue_code("new@example.com")

    for _ in range(2):
        assert otp.verify_code("new@example.com", _wrong(code)).verified is False
    assert store.get("new@example.com").attempts == 2

    assert otp.verify_code("new@example.com", _wrong(code)).verified is False
    assert store.get("new@example.com") is None
    assert otp.verify_code("new@example.com", code).verified is False


def test_no_outstanding_code(otp):
    assert otp.verify_code("nobody@example.com", "123456").verified is False


def test_minimum_length_is_enforced(store, identity):
    otp = OtpService(store, identity, SECRET, length=2)

    assert len(otp.issue_code("x@example.com")) == 4


def test_outstanding_code_lapses_when_exhausted(otp):
    code = otp.issue_code("New@example.com")
    assert otp.has_outstanding("new@example.com")

    for _ in range(3):
        otp.verify_code("new@example.com", _wrong(code))

    assert not otp.has_outstanding("new@example.com")


def test_revoked_code_no_longer_verifies(otp):
    code = otp.issue_code("new@example.com")

    otp.revoke(" NEW@example.com ")

    assert not otp.has_outstanding("new@example.com")
    assert otp.verify_code("new@example.com", code).verified is False

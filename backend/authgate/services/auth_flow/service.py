"""
AuthFlowService
===============

Process-level service driving the two-phase sign-in and registration flows:

1. password check (login) or registration intake (register), followed by a
   one-time passcode emailed to the account address;
2. passcode confirmation, which issues an access/refresh token pair and, for
   registrations, promotes the staged record into a permanent user.

The service never writes refresh records itself; token issuance goes
through :class:`TokenService`.
"""

from __future__ import annotations

import logging

from authgate.core.logger import redact_email
from authgate.services._shared.errors import COLLABORATOR_ERRORS, Reason
from authgate.services._shared.ports import EmailSender, IdentityProvider
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.auth_flow.dto import (
    ConfirmCodeIn,
    FlowState,
    FlowStep,
    LoginIn,
    RegistrationIn,
    SessionOut,
)
from authgate.services.identity.dto import SignInStatus, UserOut
from authgate.services.otp.service import OtpService
from authgate.services.registration.service import RegistrationService
from authgate.services.tokens.service import TokenService

log = logging.getLogger(__name__)

DEFAULT_OTP_SUBJECT = "Validate Email Code"

# Non-success sign-in statuses -> failure reason
_SIGN_IN_REASON: dict[SignInStatus, tuple[Reason, str]] = {
    SignInStatus.LOCKED_OUT: (Reason.LOCKED_OUT, "Account is temporarily locked"),
    SignInStatus.NOT_ALLOWED: (Reason.NOT_ALLOWED, "Account is not allowed to sign in"),
    SignInStatus.REQUIRES_TWO_FACTOR: (
        Reason.TWO_FACTOR_REQUIRED,
        "Two-factor authentication is required",
    ),
    SignInStatus.FAILED: (Reason.INVALID_CREDENTIALS, "Invalid credentials"),
}


class AuthFlowService:
    """
    Orchestrates register/login → passcode → session.

    :param tokens: Issues the session once the passcode is confirmed.
    :param identity: Users, sign-in and user creation.
    :param otp: Passcode issuer/verifier.
    :param mailer: Passcode delivery.
    :param registrations: Staging store for unconfirmed registrations.
    :param otp_subject: Subject line of the passcode email.
    """

    def __init__(
        self,
        *,
        tokens: TokenService,
        identity: IdentityProvider,
        otp: OtpService,
        mailer: EmailSender,
        registrations: RegistrationService,
        otp_subject: str = DEFAULT_OTP_SUBJECT,
    ) -> None:
        self.tokens = tokens
        self.identity = identity
        self.otp = otp
        self.mailer = mailer
        self.registrations = registrations
        self.otp_subject = otp_subject

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #

    @staticmethod
    def _persistence_failure(exc: BaseException, step: str) -> Err:
        log.error("auth.%s failed: %s", step, exc.__class__.__name__, exc_info=exc)
        return Err(Reason.PERSISTENCE_FAILURE, "A storage dependency is unavailable")

    def _dispatch_code(self, email: str) -> Result[None]:
        """Issue a passcode for ``email`` and mail it."""
        try:
            code = self.otp.issue_code(email)
            sent = self.mailer.send(email, self.otp_subject, code)
        except COLLABORATOR_ERRORS as exc:
            log.error(
                "otp.dispatch_failed error=%s",
                exc.__class__.__name__,
                extra={"email": redact_email(email), "reason": Reason.OTP_DISPATCH_FAILURE.value},
            )
            return Err(Reason.OTP_DISPATCH_FAILURE, "Could not send the verification code")

        if not sent:
            log.error(
                "otp.dispatch_failed",
                extra={"email": redact_email(email), "reason": Reason.OTP_DISPATCH_FAILURE.value},
            )
            return Err(Reason.OTP_DISPATCH_FAILURE, "Could not send the verification code")
        return Ok(None)

    def _session(self, user: UserOut) -> Result[SessionOut]:
        issued = self.tokens.issue_session_pair(user)
        if isinstance(issued, Err):
            return issued
        log.info(
            "auth.authenticated",
            extra={"user_id": user.id, "state": FlowState.AUTHENTICATED.value},
        )
        return Ok(
            SessionOut(
                access_token=issued.value.access_token,
                refresh_token=issued.value.refresh_token,
                token_type=issued.value.token_type,
            )
        )

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register(self, dto: RegistrationIn) -> Result[FlowStep]:
        """
        Accept a registration and email a passcode.

        A pending registration only holds its email and username while its
        passcode is outstanding; once the code expires or is used up, the
        same or another registrant may stage over it.

        :returns: ``OTP_PENDING`` step; ``USER_ALREADY_EXISTS`` when a user
            or a pending registration with a live passcode holds the email
            or username; ``OTP_DISPATCH_FAILURE`` when the code could not be
            sent (the record goes back to ``STAGED`` and a retry overwrites it).
        """
        email = dto.email.strip().lower()
        log.info(
            "auth.register",
            extra={"email": redact_email(email), "state": FlowState.REGISTRATION_SUBMITTED.value},
        )

        try:
            taken = self.identity.exists(email=email, username=dto.username) or any(
                self.otp.has_outstanding(holder)
                for holder in self.registrations.pending_emails(email=email, username=dto.username)
            )
        except COLLABORATOR_ERRORS as exc:
            return self._persistence_failure(exc, "register")
        if taken:
            log.info(
                "auth.register_conflict",
                extra={"email": redact_email(email), "reason": Reason.USER_ALREADY_EXISTS.value},
            )
            return Err(Reason.USER_ALREADY_EXISTS, "Email or username already in use")

        staged = self.registrations.stage(dto)
        if isinstance(staged, Err):
            return staged
        log.info(
            "auth.temp_stored",
            extra={"email": redact_email(email), "state": FlowState.TEMP_STORED.value},
        )

        registration_id = staged.value.id
        marked = self.registrations.mark_pending(registration_id)
        if isinstance(marked, Err):
            return marked

        dispatched = self._dispatch_code(email)
        if isinstance(dispatched, Err):
            self._unsend(email, registration_id)
            return dispatched

        return Ok(FlowStep(state=FlowState.OTP_PENDING, email=email))

    def _unsend(self, email: str, registration_id: int) -> None:
        """Revoke an undelivered code and put the record back to ``STAGED``."""
        try:
            self.otp.revoke(email)
        except COLLABORATOR_ERRORS as exc:
            log.error("otp.revoke_failed error=%s", exc.__class__.__name__, exc_info=exc)
        reverted = self.registrations.mark_staged(registration_id)
        if isinstance(reverted, Err):
            log.error(
                "registration.revert_failed",
                extra={"email": redact_email(email), "reason": reverted.reason.value},
            )

    # --------------------------------------------------------------------- #
    # Login
    # --------------------------------------------------------------------- #

    def login(self, dto: LoginIn) -> Result[FlowStep]:
        """
        Check credentials and email a passcode to the account address.

        Only a successful password check sends a code; lockout, disallowed
        accounts, two-factor accounts and bad credentials fail without one.
        """
        try:
            outcome = self.identity.sign_in(dto.identifier, dto.password)
        except COLLABORATOR_ERRORS as exc:
            return self._persistence_failure(exc, "login")

        if not outcome.succeeded or outcome.user is None:
            reason, message = _SIGN_IN_REASON.get(
                outcome.status, (Reason.INVALID_CREDENTIALS, "Invalid credentials")
            )
            log.info("auth.login_rejected", extra={"reason": reason.value})
            return Err(reason, message)

        email = outcome.user.email
        log.info(
            "auth.credentials_accepted",
            extra={"user_id": outcome.user.id, "state": FlowState.CREDENTIALS_SUBMITTED.value},
        )

        dispatched = self._dispatch_code(email)
        if isinstance(dispatched, Err):
            return dispatched
        return Ok(FlowStep(state=FlowState.OTP_PENDING, email=email))

    # --------------------------------------------------------------------- #
    # Confirmation
    # --------------------------------------------------------------------- #

    def confirm_code(self, dto: ConfirmCodeIn) -> Result[SessionOut]:
        """
        Confirm a passcode and open a session.

        An existing user gets tokens directly. Otherwise the newest pending
        registration for the email is promoted into a user first; a missing
        record or a failed creation is reported as
        ``OTP_VERIFICATION_FAILED``.
        """
        email = dto.email.strip().lower()
        try:
            verification = self.otp.verify_code(email, dto.code)
        except COLLABORATOR_ERRORS as exc:
            return self._persistence_failure(exc, "confirm_code")

        if not verification.verified:
            log.info(
                "auth.otp_rejected",
                extra={"email": redact_email(email), "reason": Reason.OTP_VERIFICATION_FAILED.value},
            )
            return Err(Reason.OTP_VERIFICATION_FAILED, "Invalid or expired verification code")

        if verification.user is not None:
            return self._session(verification.user)

        try:
            pending = self.registrations.find_pending(email)
        except COLLABORATOR_ERRORS as exc:
            return self._persistence_failure(exc, "confirm_code")
        if pending is None:
            log.info(
                "auth.no_pending_registration",
                extra={"email": redact_email(email), "reason": Reason.OTP_VERIFICATION_FAILED.value},
            )
            return Err(Reason.OTP_VERIFICATION_FAILED, "No pending registration for this email")

        created = self.identity.create_user(
            pending.username,
            pending.email,
            pending.password_hash,
            pending.full_name,
        )
        if isinstance(created, Err):
            log.warning(
                "auth.promotion_failed",
                extra={"email": redact_email(email), "reason": created.reason.value},
            )
            return Err(Reason.OTP_VERIFICATION_FAILED, "Registration could not be completed")

        promoted = self.registrations.promote(pending.id, created.value.id)
        if isinstance(promoted, Err):
            # User already exists; the record stays PENDING and can no longer be promoted
            log.error(
                "auth.promotion_tag_failed",
                extra={"user_id": created.value.id, "reason": promoted.reason.value},
            )

        return self._session(created.value)

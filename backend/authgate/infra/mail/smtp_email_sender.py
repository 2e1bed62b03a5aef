from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from authgate.core.logger import redact_email
from authgate.services._shared.ports import EmailSender

log = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    """Send passcode emails over SMTP.

    Supports:
    - STARTTLS (``use_tls=True``) or implicit SSL
    - Dev mode when ``host`` is not configured: with ``log_codes`` the
      passcode is written to the DEBUG log, otherwise sending fails

    Outside dev mode the passcode is never written to the logs.
    """

    def __init__(
        self,
        *,
        host: str | None = None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str | None = None,
        from_name: str = "AuthGate",
        timeout: float = 30,
        log_codes: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or user
        self.from_name = from_name
        self.timeout = timeout
        self.log_codes = log_codes

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)

    def _build(self, to_email: str, subject: str, code: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(f"Your verification code is {code}", "plain"))
        msg.attach(
            MIMEText(
                f"<p>Your verification code is <strong>{code}</strong></p>",
                "html",
            )
        )
        return msg

    def send(self, to_email: str, subject: str, code: str) -> bool:
        """
        Deliver ``code`` to ``to_email``.

        :returns: ``True`` if sent (or logged in dev mode), ``False`` when the
            SMTP exchange failed or no transport is configured.
        """
        if not self.is_configured:
            if not self.log_codes:
                log.error("email.not_configured", extra={"email": redact_email(to_email)})
                return False
            log.debug(
                "email.dev_mode subject=%s code=%s",
                subject,
                code,
                extra={"email": redact_email(to_email)},
            )
            return True

        msg = self._build(to_email, subject, code)
        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.host, self.port, context=context, timeout=self.timeout
                ) as server:
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
        except smtplib.SMTPAuthenticationError as exc:
            log.error(
                "email.auth_failed host=%s code=%s",
                self.host,
                exc.smtp_code,
                extra={"email": redact_email(to_email)},
            )
            return False
        except smtplib.SMTPRecipientsRefused:
            log.error("email.recipient_refused", extra={"email": redact_email(to_email)})
            return False
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            # SMTPException and timeouts are OSError subclasses
            log.error(
                "email.send_failed host=%s port=%s error=%s",
                self.host,
                self.port,
                type(exc).__name__,
                extra={"email": redact_email(to_email)},
            )
            return False

        log.info("email.sent subject=%s", subject, extra={"email": redact_email(to_email)})
        return True

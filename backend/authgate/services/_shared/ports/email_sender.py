from __future__ import annotations

from typing import Protocol


class EmailSender(Protocol):
    """Port for delivering one-time passcodes by email."""

    def send(self, to_email: str, subject: str, code: str) -> bool:
        """
        Deliver ``code`` to ``to_email``.

        :returns: ``True`` when the message was handed off. Transport errors
            may also surface as ``OSError`` (``smtplib.SMTPException``).
        """


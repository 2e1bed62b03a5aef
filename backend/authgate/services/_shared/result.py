# comments in English; reST docstrings
"""Tagged success/failure values returned by every service operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar

from authgate.services._shared.errors import ErrorKind, Reason

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful outcome.

    :param value: Payload produced by the operation.
    :type value: T
    """

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Return the payload."""
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    """
    Failed outcome carrying a stable reason and a client-safe message.

    :param reason: Machine-checkable failure code.
    :type reason: Reason
    :param message: Human-readable explanation (no internals).
    :type message: str
    """

    reason: Reason
    message: str = ""

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        """Taxonomy category of :attr:`reason`."""
        return self.reason.kind

    def unwrap(self) -> NoReturn:
        raise ValueError(f"unwrap() called on failure: {self.reason.value}")


Result = Ok[T] | Err


__all__ = ["Ok", "Err", "Result"]

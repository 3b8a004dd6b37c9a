# /autoswap/core/errors.py
"""
Exception hierarchy for the swap session.

Fatal errors stop the session before (or instead of) any further transaction.
Transaction errors are task-level: executors turn them into ``False`` and the
session keeps going.
"""
from enum import Enum


class AutoSwapError(Exception):
    """Base class for all application errors."""


class ConfigurationError(AutoSwapError):
    """Required configuration is missing or malformed."""


class FatalSessionError(AutoSwapError):
    """A precondition that makes continuing the session meaningless."""


class FeeUnavailableError(FatalSessionError):
    """No fee information could be obtained and no default is configured."""


class InsufficientGasReserveError(FatalSessionError):
    """The native gas balance cannot pay for any transaction."""


class UnknownDirectionError(AutoSwapError, ValueError):
    """A swap direction that does not map to two distinct known assets."""


class ErrorKind(str, Enum):
    NONCE_TOO_LOW = "nonce_too_low"
    NONCE_TOO_HIGH = "nonce_too_high"
    REVERTED = "reverted"
    TIMEOUT = "timeout"
    OTHER = "other"

    @property
    def is_nonce_error(self) -> bool:
        return self in (ErrorKind.NONCE_TOO_LOW, ErrorKind.NONCE_TOO_HIGH)


class TransactionError(AutoSwapError):
    """A submission or confirmation failure, classified by the chain client."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER, tx_hash: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.tx_hash = tx_hash

    def __str__(self):
        return f"[{self.kind.value}] {super().__str__()}"


# Node error texts that mean the nonce was already used or is otherwise stale.
_NONCE_TOO_LOW_MARKERS = ("nonce too low", "already known", "replacement transaction underpriced", "nonce has already been used")
_NONCE_TOO_HIGH_MARKERS = ("nonce too high", "nonce gap")
_REVERT_MARKERS = ("revert", "execution reverted", "status 0")
_TIMEOUT_MARKERS = ("timeout", "timed out", "not in the chain after")


def classify_error(exc: BaseException) -> ErrorKind:
    """Maps a raw client/node exception onto an ``ErrorKind``."""
    if isinstance(exc, TransactionError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    message = str(exc).lower()
    if any(m in message for m in _NONCE_TOO_HIGH_MARKERS):
        return ErrorKind.NONCE_TOO_HIGH
    if any(m in message for m in _NONCE_TOO_LOW_MARKERS):
        return ErrorKind.NONCE_TOO_LOW
    if "nonce" in message:
        return ErrorKind.NONCE_TOO_LOW
    if any(m in message for m in _TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT
    if any(m in message for m in _REVERT_MARKERS):
        return ErrorKind.REVERTED
    return ErrorKind.OTHER

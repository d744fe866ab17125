"""Error taxonomy shared by the chain readers and the aggregation services."""

from typing import Optional


class ArcadeError(Exception):
    """Base class for errors raised by the dashboard core."""


class ReadError(ArcadeError):
    """A single external read (RPC call, log filter, contract field) failed.

    Recoverable: callers scope it to one source or one proposal id and wait
    for the next scheduled tick.
    """

    def __init__(self, message: str, *, method: str = "", target: Optional[str] = None):
        super().__init__(message)
        self.method = method
        self.target = target


class ConfigurationError(ArcadeError):
    """A required contract address is unset or a source kind is unsupported."""


class UserAbortedError(ArcadeError):
    """The user rejected a wallet prompt. Only raised by transaction flows."""

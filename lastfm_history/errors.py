from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


class LastFmError(Exception):
    """Base class for every error raised by the Last.fm history client."""


class DecodeError(LastFmError):
    pass


class MissingField(DecodeError):
    def __init__(self, field: str, path: Sequence[str] = ()) -> None:
        self.field = field
        self.path: Tuple[str, ...] = tuple(path)
        super().__init__(f"missing field `{self.qualified_name}`")

    @property
    def qualified_name(self) -> str:
        return ".".join(self.path + (self.field,))


class InvalidTimestamp(DecodeError):
    def __init__(self, value: object, reason: Optional[str] = None) -> None:
        self.value = value
        detail = f"invalid timestamp {value!r}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class MalformedPage(DecodeError):
    pass


class ConfigError(LastFmError):
    pass


class RemoteFailure(LastFmError):
    """Error reported by Last.fm that retrying cannot fix (bad key, bad params...)."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Last.fm error {code}: {message}")


class RetriableRemoteFailure(RemoteFailure):
    pass


class TransportError(LastFmError):
    pass


class TooManyRetries(LastFmError):
    def __init__(self, errors: Sequence[LastFmError]) -> None:
        self.errors: List[LastFmError] = list(errors)
        if self.errors:
            detail = f"giving up after {len(self.errors)} failed attempts, last error: {self.errors[-1]}"
        else:
            detail = "retry strategy did not allow any attempt"
        super().__init__(detail)


class MissingCredential(LastFmError):
    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f"environment variable {variable} is not set")


class CancellationRequested(LastFmError):
    """Raised to cooperatively abort a fetch when its consumer cancelled it."""


__all__ = [
    "LastFmError",
    "DecodeError",
    "MissingField",
    "InvalidTimestamp",
    "MalformedPage",
    "ConfigError",
    "RemoteFailure",
    "RetriableRemoteFailure",
    "TransportError",
    "TooManyRetries",
    "MissingCredential",
    "CancellationRequested",
]

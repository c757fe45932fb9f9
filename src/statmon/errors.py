"""Exception hierarchy for statmon."""

from enum import Enum


class StatmonError(Exception):
    """Base class for all statmon errors."""


class ConfigError(StatmonError):
    """Invalid configuration; fatal before the poll loop starts."""


class TerminalError(StatmonError):
    """The terminal cannot be used for rendering; fatal at setup."""


class FetchErrorKind(Enum):
    """Categories of transient fetch failures."""

    CONNECTION = "connection failure"
    TIMEOUT = "timeout"
    MALFORMED = "malformed response"


class FetchError(StatmonError):
    """
    A single fetch failed.

    Fetch errors are transient: the poll loop reports them and keeps going.
    Subclasses pin down the kind so the status line can tell them apart.
    """

    kind: FetchErrorKind = FetchErrorKind.CONNECTION

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"{self.kind.value} from {url}: {detail}")
        self.url = url
        self.detail = detail


class ConnectionFailure(FetchError):
    """Request could not be sent, or the server answered with an error status."""

    kind = FetchErrorKind.CONNECTION

    def __init__(self, url: str, detail: str, status_code: int | None = None) -> None:
        super().__init__(url, detail)
        self.status_code = status_code


class FetchTimeout(FetchError):
    """No complete response within the configured timeout."""

    kind = FetchErrorKind.TIMEOUT


class MalformedResponse(FetchError):
    """Response body was not a usable statistics document."""

    kind = FetchErrorKind.MALFORMED

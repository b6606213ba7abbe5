from enum import Enum
from typing import List, Optional


class FailureKind(Enum):
    INVALID_URL_FORMAT = "InvalidURLFormat"
    RESOLUTION_BLOCKED = "ResolutionBlocked"
    NO_QUALIFYING_RENDITION = "NoQualifyingRendition"
    RESOLUTION_FAILED = "ResolutionFailed"
    SESSION_LAUNCH_FAILED = "SessionLaunchFailed"
    NAVIGATION_TIMEOUT = "NavigationTimeout"
    NO_MEDIA_FOUND = "NoMediaFound"
    FETCH_FAILED = "FetchFailed"

    @property
    def is_blocking(self) -> bool:
        """True when the host actively refused automated access."""
        return self is FailureKind.RESOLUTION_BLOCKED


class StrategyFailure(Exception):
    """Raised by an extraction strategy. Recovered by the coordinator."""

    def __init__(self, kind: FailureKind, reason: str = ""):
        self.kind = kind
        self.reason = reason or kind.value
        super().__init__(f"{kind.value}: {self.reason}")


class MediaRelayError(Exception):
    """Base class for every error that may reach the caller."""

    http_status = 500
    error_kind = "ServerError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.error_kind}


class ConfigError(MediaRelayError):
    error_kind = "ConfigError"


class InvalidInput(MediaRelayError):
    http_status = 400
    error_kind = "InvalidInput"


class RequestRejected(MediaRelayError):
    http_status = 403
    error_kind = "RequestRejected"


class ExtractionExhausted(MediaRelayError):
    """Every strategy in the chain failed."""

    http_status = 400
    error_kind = "ExtractionExhausted"

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])

    @property
    def reasons(self) -> List[str]:
        return [a.describe() for a in self.attempts]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["attempts"] = self.reasons
        return data


class PlatformBlocked(ExtractionExhausted):
    """Exhaustion where at least one strategy hit an anti-automation wall."""

    http_status = 429
    error_kind = "PlatformBlocked"

    def __init__(self, message: str, attempts: Optional[List] = None, alternatives: Optional[List[dict]] = None):
        super().__init__(message, attempts)
        self.alternatives = list(alternatives or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["isBlocked"] = True
        data["alternatives"] = self.alternatives
        return data


class SessionLaunchFailed(MediaRelayError):
    http_status = 503
    error_kind = "SessionLaunchFailed"


class UnsupportedContentType(MediaRelayError):
    http_status = 502
    error_kind = "UnsupportedContentType"


class SuspiciouslySmallPayload(MediaRelayError):
    http_status = 502
    error_kind = "SuspiciouslySmallPayload"


class TransferTimeout(MediaRelayError):
    http_status = 504
    error_kind = "TransferTimeout"


class TransferFailed(MediaRelayError):
    """Upstream answered with a bad status or the connection broke."""

    http_status = 502
    error_kind = "TransferFailed"

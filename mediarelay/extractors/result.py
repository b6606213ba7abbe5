from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from mediarelay.core.errors import FailureKind
from mediarelay.core.media import extension_for, sanitize_title


@dataclass(frozen=True)
class ExtractionResult:
    """
    A resolved, playable resource.

    Produced by exactly one successful strategy and consumed once by the
    transfer manager. Resource URLs are usually signed and short-lived, so
    a result is never cached or shared between requests.
    """
    resource_url: str
    title: str
    content_type_hint: str = "video/mp4"
    approx_size_bytes: Optional[int] = None
    platform: str = "generic"
    referer: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return f"{sanitize_title(self.title)}.{extension_for(self.content_type_hint)}"


@dataclass(frozen=True)
class ExtractionAttempt:
    """Diagnostic record of one strategy invocation."""
    strategy_name: str
    started_at: datetime
    result: Optional[ExtractionResult] = None
    failure_kind: Optional[FailureKind] = None
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.result is not None

    def describe(self) -> str:
        if self.succeeded:
            return f"{self.strategy_name}: ok"
        return f"{self.strategy_name}: {self.failure_kind.value} ({self.reason})"

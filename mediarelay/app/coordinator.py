import logging
import time
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from mediarelay.core.errors import ExtractionExhausted, FailureKind, PlatformBlocked, StrategyFailure
from mediarelay.extractors.base import BaseExtractor
from mediarelay.extractors.registry import PlatformProfile
from mediarelay.extractors.result import ExtractionAttempt, ExtractionResult

logger = logging.getLogger(__name__)

ALTERNATIVES = [
    {"name": "SaveFrom.net", "url": "https://savefrom.net"},
    {"name": "Y2Mate", "url": "https://y2mate.com"},
    {"name": "SnapInsta", "url": "https://snapinsta.app"},
]


class ChainState(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    EXHAUSTED = "EXHAUSTED"


class ChainRun:
    """
    One pass through a strategy chain for one request.

    Strategies run strictly one after another. The first success ends the
    run; a failure is recorded and the next strategy is tried.
    """

    def __init__(self, strategies: Sequence[BaseExtractor], alternatives: Optional[List[dict]] = None):
        self.strategies = list(strategies)
        self.alternatives = alternatives if alternatives is not None else ALTERNATIVES
        self.state = ChainState.IDLE
        self.index: Optional[int] = None
        self.attempts: List[ExtractionAttempt] = []

    async def run(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        if self.state is not ChainState.IDLE:
            raise RuntimeError("a chain run can only be used once")

        for i, strategy in enumerate(self.strategies):
            self.state = ChainState.RUNNING
            self.index = i
            attempt = await self._attempt(strategy, url, profile)
            self.attempts.append(attempt)
            if attempt.succeeded:
                self.state = ChainState.SUCCEEDED
                return attempt.result

        self.state = ChainState.EXHAUSTED
        raise self._exhausted(profile)

    async def _attempt(self, strategy: BaseExtractor, url: str, profile: PlatformProfile) -> ExtractionAttempt:
        started_at = datetime.now()
        t0 = time.monotonic()
        logger.info("Trying %s strategy for %s", strategy.name, profile.id)
        try:
            result = await strategy.try_extract(url, profile)
        except StrategyFailure as e:
            logger.warning("%s strategy failed after %.1fs: %s", strategy.name, time.monotonic() - t0, e)
            return ExtractionAttempt(strategy.name, started_at, failure_kind=e.kind, reason=e.reason)
        except Exception as e:
            logger.exception("%s strategy crashed", strategy.name)
            return ExtractionAttempt(strategy.name, started_at, failure_kind=FailureKind.RESOLUTION_FAILED, reason=f"{type(e).__name__}: {e}")

        logger.info("%s strategy succeeded in %.1fs", strategy.name, time.monotonic() - t0)
        return ExtractionAttempt(strategy.name, started_at, result=result)

    def _exhausted(self, profile: PlatformProfile) -> ExtractionExhausted:
        if any(a.failure_kind and a.failure_kind.is_blocking for a in self.attempts):
            name = "This site" if profile.is_generic else profile.id.capitalize()
            return PlatformBlocked(
                f"{name} is blocking automated downloads (bot protection). "
                "Try again in a few minutes or use one of the alternatives.",
                attempts=self.attempts,
                alternatives=self.alternatives,
            )
        return ExtractionExhausted(
            "No playable media found at this URL. Only direct media links and supported "
            "video pages can be downloaded.",
            attempts=self.attempts,
        )


class StrategyCoordinator:
    """
    Builds the strategy chain for a platform and runs it.

    Ordering policy:
      classified platform   -> [direct (if the profile has one), browser, generic]
      unclassified platform -> [browser, generic] when rendering unknown
                               platforms is enabled, otherwise [generic]
    """

    def __init__(self, direct_extractors: Sequence[BaseExtractor], browser: Optional[BaseExtractor], generic: BaseExtractor, render_unknown_platforms: bool = True, alternatives: Optional[List[dict]] = None):
        self.direct_extractors = list(direct_extractors)
        self.browser = browser
        self.generic = generic
        self.render_unknown_platforms = render_unknown_platforms
        self.alternatives = alternatives

    def plan(self, profile: PlatformProfile) -> List[BaseExtractor]:
        chain = []
        if profile.is_generic:
            if self.render_unknown_platforms and self.browser is not None:
                chain.append(self.browser)
            chain.append(self.generic)
            return chain

        direct = next((d for d in self.direct_extractors if d.supports(profile)), None)
        if direct is not None:
            chain.append(direct)
        if self.browser is not None:
            chain.append(self.browser)
        chain.append(self.generic)
        return chain

    async def resolve(self, url: str, profile: PlatformProfile) -> Tuple[ExtractionResult, List[ExtractionAttempt]]:
        run = ChainRun(self.plan(profile), self.alternatives)
        logger.info("Strategy chain for %s: %s", profile.id, " -> ".join(s.name for s in run.strategies))
        result = await run.run(url, profile)
        return result, run.attempts

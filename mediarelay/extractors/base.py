from abc import ABC, abstractmethod

from mediarelay.extractors.registry import PlatformProfile
from mediarelay.extractors.result import ExtractionResult


class BaseExtractor(ABC):
    """
    Abstract base class for every extraction strategy.

    CRITICAL BOUNDARIES:
    - Extractors ONLY resolve a playable resource URL and its metadata.
    - Extractors do NOT download file content.
    - Extractors do NOT retry; the coordinator decides what runs next.
    """

    name = "base"

    def supports(self, profile: PlatformProfile) -> bool:
        """
        Check if this strategy applies to the given platform.

        Args:
            profile: The classified platform profile.

        Returns:
            True if the strategy should be part of the chain.
        """
        return True

    @abstractmethod
    async def try_extract(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        """
        Resolve a playable resource for `url`.

        Args:
            url: The page or resource URL given by the caller.
            profile: The classified platform profile.

        Returns:
            ExtractionResult: the resolved resource.

        Raises:
            StrategyFailure: with the failure kind when nothing was resolved.
        """
        pass

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"

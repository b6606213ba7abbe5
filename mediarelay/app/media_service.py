import logging
from typing import List, Optional, Tuple

from mediarelay.app.coordinator import StrategyCoordinator
from mediarelay.app.transfer import ProgressCallback, StreamingTransferManager, Transfer, TransferOutcome
from mediarelay.core.entities import ExtractionRequest
from mediarelay.core.errors import RequestRejected
from mediarelay.core.log import request_scope
from mediarelay.core.media import content_kind
from mediarelay.extractors.registry import PlatformProfile, ProfileRegistry
from mediarelay.extractors.result import ExtractionAttempt, ExtractionResult
from mediarelay.sources.resolver import resolve_url

logger = logging.getLogger(__name__)


class MediaService:
    """
    Entry point for the extraction-and-transfer pipeline.

    RESPONSIBILITIES:
    - Validate the request and classify its platform.
    - Run the strategy chain once per request (results are never reused).
    - Hand the resolved resource to the transfer manager.
    - It does NOT retry; a request makes at most one pass through the chain.
    """

    def __init__(self, registry: ProfileRegistry, coordinator: StrategyCoordinator, transfers: StreamingTransferManager):
        self.registry = registry
        self.coordinator = coordinator
        self.transfers = transfers

    async def resolve(self, request: ExtractionRequest) -> Tuple[ExtractionResult, List[ExtractionAttempt]]:
        with request_scope(request.request_id):
            result, attempts, _ = await self._resolve(request)
            return result, attempts

    async def describe(self, request: ExtractionRequest) -> dict:
        """Metadata-mode response body."""
        with request_scope(request.request_id):
            result, _, profile = await self._resolve(request)
            return {
                "success": True,
                "size": result.approx_size_bytes or profile.typical_size,
                "contentType": result.content_type_hint,
                "title": result.title,
                "filename": result.filename,
                "platform": result.platform,
                "isRealVideo": content_kind(result.content_type_hint) == "video",
            }

    async def open_transfer(self, request: ExtractionRequest, on_progress: Optional[ProgressCallback] = None) -> Transfer:
        with request_scope(request.request_id):
            result, _, profile = await self._resolve(request)
            return await self.transfers.open(
                result,
                expected_kind=self._expected_kind(result, profile),
                on_progress=on_progress,
                request_id=request.request_id,
                size_estimate=profile.typical_size,
            )

    async def download(self, request: ExtractionRequest, on_progress: Optional[ProgressCallback] = None) -> TransferOutcome:
        """Resolve and transfer, returning the validated body in one buffer."""
        with request_scope(request.request_id):
            result, _, profile = await self._resolve(request)
            return await self.transfers.transfer(
                result,
                expected_kind=self._expected_kind(result, profile),
                on_progress=on_progress,
                request_id=request.request_id,
                size_estimate=profile.typical_size,
            )

    async def _resolve(self, request: ExtractionRequest) -> Tuple[ExtractionResult, List[ExtractionAttempt], PlatformProfile]:
        if not request.proceed:
            raise RequestRejected("Download was not confirmed by the safety check")

        url = resolve_url(request.source_url)
        profile = self.registry.classify(url)
        logger.info("Processing %s (platform=%s, metadata_only=%s)", url, profile.id, request.metadata_only)
        result, attempts = await self.coordinator.resolve(url, profile)
        return result, attempts, profile

    @staticmethod
    def _expected_kind(result: ExtractionResult, profile: PlatformProfile) -> str:
        kind = content_kind(result.content_type_hint)
        return profile.content_kind if kind == "any" else kind

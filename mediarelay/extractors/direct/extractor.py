import logging

from mediarelay.core.errors import FailureKind, StrategyFailure
from mediarelay.core.interfaces import NetworkAdapter
from mediarelay.core.media import is_media_type, sanitize_title, url_basename
from mediarelay.extractors.base import BaseExtractor
from mediarelay.extractors.registry import HTTP_FILE, PlatformProfile
from mediarelay.extractors.result import ExtractionResult
from mediarelay.infra.network.http import NetworkError

logger = logging.getLogger(__name__)


class DirectFileExtractor(BaseExtractor):
    """
    The URL already is the media file.

    Resolution is a HEAD probe: the declared Content-Type must be a media
    type, and the size comes from Content-Length when the host sends it.
    """

    name = "direct"

    def __init__(self, network: NetworkAdapter):
        self.network = network

    def supports(self, profile: PlatformProfile) -> bool:
        return profile.direct == HTTP_FILE

    async def try_extract(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        if not profile.accepts_format(url):
            raise StrategyFailure(FailureKind.INVALID_URL_FORMAT, "not a direct file address")

        try:
            probe = await self.network.probe(url)
        except NetworkError as e:
            raise StrategyFailure(FailureKind.FETCH_FAILED, str(e)) from e

        logger.info("Direct URL check: status=%s type=%s length=%s", probe.status_code, probe.content_type, probe.content_length)
        if probe.status_code in (401, 403, 429):
            raise StrategyFailure(FailureKind.RESOLUTION_BLOCKED, f"HTTP {probe.status_code}")
        if probe.status_code >= 400:
            raise StrategyFailure(FailureKind.FETCH_FAILED, f"HTTP {probe.status_code}")
        if not is_media_type(probe.content_type):
            raise StrategyFailure(FailureKind.NO_QUALIFYING_RENDITION, f"declared type {probe.content_type or 'unknown'} is not media")

        name = url_basename(probe.url or url)
        title = name.rsplit(".", 1)[0] if "." in name else name
        return ExtractionResult(
            resource_url=probe.url or url,
            title=sanitize_title(title, default=profile.default_title),
            content_type_hint=probe.content_type.split(";")[0].strip(),
            approx_size_bytes=probe.content_length,
            platform=profile.id,
        )

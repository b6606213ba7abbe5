import logging
from typing import Optional, Sequence

from mediarelay.core.errors import FailureKind, StrategyFailure
from mediarelay.core.interfaces import NetworkAdapter
from mediarelay.core.media import content_type_for, is_media_type, sanitize_title, url_basename, url_extension
from mediarelay.extractors.base import BaseExtractor
from mediarelay.extractors.registry import GENERIC_RULES, PageRule, PlatformProfile
from mediarelay.extractors.result import ExtractionResult
from mediarelay.extractors.rules import title_from_html
from mediarelay.infra.network.http import NetworkError

logger = logging.getLogger(__name__)

BOT_WALL_MARKERS = (
    "captcha",
    "verify you are human",
    "unusual traffic",
    "confirm you're not a bot",
    "confirm you’re not a bot",
    "access denied",
)


def looks_like_bot_wall(html: str) -> bool:
    lowered = (html or "").lower()
    return any(marker in lowered for marker in BOT_WALL_MARKERS)


class GenericExtractor(BaseExtractor):
    """
    Last resort: fetch the raw HTML and scan it.

    Works without rendering and without knowing the platform, so it is the
    least reliable strategy.
    """

    name = "generic"

    def __init__(self, network: NetworkAdapter, rules: Sequence[PageRule] = GENERIC_RULES):
        self.network = network
        self.rules = tuple(rules)

    async def try_extract(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        try:
            probe = await self.network.probe(url, referer=profile.referer)
            if probe.status_code < 400 and is_media_type(probe.content_type):
                # The page URL itself serves media
                return self._result(probe.url or url, None, profile, probe.content_type, probe.content_length)

            page = await self.network.fetch_text(url, referer=profile.referer)
        except NetworkError as e:
            raise StrategyFailure(FailureKind.FETCH_FAILED, str(e)) from e

        if page.status_code in (401, 403, 429):
            raise StrategyFailure(FailureKind.RESOLUTION_BLOCKED, f"HTTP {page.status_code}")
        if page.status_code >= 400:
            raise StrategyFailure(FailureKind.FETCH_FAILED, f"HTTP {page.status_code}")

        media_url = self.scan(page.text, page.url or url)
        if media_url is None:
            if looks_like_bot_wall(page.text):
                raise StrategyFailure(FailureKind.RESOLUTION_BLOCKED, "page is an anti-automation challenge")
            raise StrategyFailure(FailureKind.NO_MEDIA_FOUND, "no media element or video metadata in page")

        logger.info("Found media URL in raw HTML")
        return self._result(media_url, title_from_html(page.text), profile, referer=page.url or url)

    def scan(self, html: str, base_url: str) -> Optional[str]:
        for rule in self.rules:
            found = rule(html, base_url)
            if found:
                return found
        return None

    def _result(self, media_url: str, title: Optional[str], profile: PlatformProfile, content_type: str = "", size: Optional[int] = None, referer: Optional[str] = None) -> ExtractionResult:
        if not content_type:
            ext = url_extension(media_url)
            content_type = content_type_for(ext) if ext else "video/mp4"
        if title is None:
            name = url_basename(media_url)
            title = name.rsplit(".", 1)[0] if "." in name else None
        return ExtractionResult(
            resource_url=media_url,
            title=sanitize_title(title, default=profile.default_title),
            content_type_hint=content_type.split(";")[0].strip(),
            approx_size_bytes=size,
            platform=profile.id,
            referer=profile.referer or referer,
        )

import asyncio
import logging
from typing import Callable, List, Optional

import yt_dlp
from yt_dlp.utils import DownloadError, ExtractorError

from mediarelay.core.errors import FailureKind, StrategyFailure
from mediarelay.core.media import content_type_for, sanitize_title
from mediarelay.extractors.base import BaseExtractor
from mediarelay.extractors.registry import YTDLP, PlatformProfile
from mediarelay.extractors.result import ExtractionResult
from .models import Rendition

logger = logging.getLogger(__name__)

# Phrases yt-dlp surfaces when the host refuses automated clients
BLOCK_MARKERS = (
    "sign in to confirm",
    "not a bot",
    "http error 403",
    "http error 429",
    "too many requests",
    "forbidden",
    "rate-limit",
    "rate limit",
    "captcha",
    "login required",
)


def select_rendition(renditions: List[Rendition]) -> Optional[Rendition]:
    """
    Highest quality among renditions carrying both video and audio.

    Ties go to the first-listed rendition.
    """
    best = None
    for r in renditions:
        if not (r.is_muxed and r.is_progressive and r.url):
            continue
        if best is None or r.height > best.height:
            best = r
    return best


def classify_error(message: str) -> FailureKind:
    lowered = message.lower()
    if any(marker in lowered for marker in BLOCK_MARKERS):
        return FailureKind.RESOLUTION_BLOCKED
    if "unsupported url" in lowered or "is not a valid url" in lowered:
        return FailureKind.INVALID_URL_FORMAT
    return FailureKind.RESOLUTION_FAILED


class YtDlpExtractor(BaseExtractor):
    """
    Direct resolution through yt-dlp.

    No page is rendered: yt-dlp speaks the platform's own player protocol
    and lists the available renditions.
    """

    name = "direct"

    def __init__(self, user_agent: str, ydl_factory: Callable = yt_dlp.YoutubeDL, socket_timeout: float = 15.0, resolve_timeout: float = 60.0):
        self.user_agent = user_agent
        self.ydl_factory = ydl_factory
        self.socket_timeout = socket_timeout
        self.resolve_timeout = resolve_timeout

    def supports(self, profile: PlatformProfile) -> bool:
        return profile.direct == YTDLP

    def _options(self) -> dict:
        return {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "socket_timeout": self.socket_timeout,
            "http_headers": {
                "User-Agent": self.user_agent,
                "Accept-Language": "en-US,en;q=0.5",
            },
        }

    def _extract_info(self, url: str) -> dict:
        with self.ydl_factory(self._options()) as ydl:
            return ydl.extract_info(url, download=False) or {}

    async def try_extract(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        if not profile.accepts_format(url):
            raise StrategyFailure(FailureKind.INVALID_URL_FORMAT, f"not a {profile.id} media address")

        logger.info("Resolving renditions via yt-dlp")
        try:
            # The worker thread cannot be interrupted; it ends on its own once
            # yt-dlp returns or its socket_timeout trips.
            info = await asyncio.wait_for(asyncio.to_thread(self._extract_info, url), self.resolve_timeout)
        except asyncio.TimeoutError as e:
            raise StrategyFailure(FailureKind.RESOLUTION_FAILED, f"yt-dlp gave no answer within {self.resolve_timeout:g}s") from e
        except (DownloadError, ExtractorError) as e:
            kind = classify_error(str(e))
            raise StrategyFailure(kind, str(e).strip()[:300]) from e

        if info.get("_type") == "playlist":
            raise StrategyFailure(FailureKind.NO_QUALIFYING_RENDITION, "URL points to a collection, not a single media item")

        renditions = [Rendition.from_format(f) for f in info.get("formats") or []]
        # Single-format extractors put the stream on the info dict itself
        if not renditions and info.get("url"):
            renditions = [Rendition.from_format(info)]

        chosen = select_rendition(renditions)
        if chosen is None:
            raise StrategyFailure(FailureKind.NO_QUALIFYING_RENDITION, f"{len(renditions)} renditions, none with both video and audio")

        logger.info("Selected rendition %s (%sp, %s)", chosen.format_id, chosen.height, chosen.ext)
        headers = dict(chosen.http_headers)
        headers.setdefault("User-Agent", self.user_agent)
        return ExtractionResult(
            resource_url=chosen.url,
            title=sanitize_title(info.get("title"), default=profile.default_title),
            content_type_hint=content_type_for(chosen.ext),
            approx_size_bytes=chosen.filesize,
            platform=profile.id,
            referer=profile.referer,
            headers=headers,
        )

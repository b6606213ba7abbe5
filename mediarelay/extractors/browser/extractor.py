import asyncio
import logging
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from mediarelay.core.errors import FailureKind, SessionLaunchFailed, StrategyFailure
from mediarelay.core.media import content_type_for, sanitize_title, url_extension
from mediarelay.extractors.base import BaseExtractor
from mediarelay.extractors.generic.extractor import looks_like_bot_wall
from mediarelay.extractors.registry import PlatformProfile
from mediarelay.extractors.result import ExtractionResult
from mediarelay.extractors.rules import title_from_html

logger = logging.getLogger(__name__)


class RequestObserver:
    """
    Collects outgoing request URLs that match a profile's interception filters.

    Called from the page's event dispatch; it only records and never holds
    a request back. The queue is bounded, extra matches are dropped.
    """

    def __init__(self, profile: PlatformProfile, max_items: int = 256):
        self.profile = profile
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_items)
        self.dropped = 0

    def __call__(self, request) -> None:
        try:
            url = request.url
            if not self.profile.observes(url, request.resource_type):
                return
            self.queue.put_nowait(url)
        except asyncio.QueueFull:
            self.dropped += 1

    def drain(self) -> List[str]:
        urls = []
        while True:
            try:
                urls.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return urls


def guess_content_type(media_url: str) -> str:
    query = parse_qs(urlparse(media_url).query)
    if query.get("mime"):
        return query["mime"][0]
    ext = url_extension(media_url)
    return content_type_for(ext) if ext else "video/mp4"


class BrowserExtractor(BaseExtractor):
    """
    Renders the page in headless Chromium and watches its network traffic.

    Launch -> arm interception -> navigate -> settle -> resolve -> teardown.
    The session is released on every exit path by the session pool.
    """

    name = "browser"

    def __init__(self, pool, navigation_timeout: float = 30.0, network_idle_timeout: float = 10.0, settle_delay: float = 2.0, max_observed: int = 256):
        self.pool = pool
        self.navigation_timeout = navigation_timeout
        self.network_idle_timeout = network_idle_timeout
        self.settle_delay = settle_delay
        self.max_observed = max_observed

    async def try_extract(self, url: str, profile: PlatformProfile) -> ExtractionResult:
        observer = RequestObserver(profile, self.max_observed)
        try:
            async with self.pool.session() as page:
                page.on("request", observer)
                await self._navigate(page, url)
                # Deferred players start fetching media after load
                await asyncio.sleep(self.settle_delay)
                return await self._resolve(page, url, profile, observer)
        except SessionLaunchFailed as e:
            raise StrategyFailure(FailureKind.SESSION_LAUNCH_FAILED, e.message) from e

    async def _navigate(self, page, url: str) -> None:
        logger.info("Navigating headless browser")
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise StrategyFailure(FailureKind.NAVIGATION_TIMEOUT, f"page did not load within {self.navigation_timeout:g}s") from e
        except PlaywrightError as e:
            raise StrategyFailure(FailureKind.FETCH_FAILED, str(e).splitlines()[0]) from e

        try:
            await page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout * 1000)
        except PlaywrightTimeoutError:
            # Pages with long-polling never go idle; continue with what loaded
            logger.debug("Network did not go idle within %gs", self.network_idle_timeout)

    async def _resolve(self, page, url: str, profile: PlatformProfile, observer: RequestObserver) -> ExtractionResult:
        observed = observer.drain()
        logger.info("Observed %d matching requests (%d dropped)", len(observed), observer.dropped)

        content = await self._content(page)
        title = await self._title(page, content)

        hits = [u for u in observed if profile.is_media_host(u)]
        if hits:
            logger.info("Media URL captured from network traffic")
            return self._result(hits[0], title, profile, page.url or url)

        for rule in profile.page_rules:
            found = rule(content, page.url or url)
            if found:
                logger.info("Media URL found by page rule %r", rule)
                return self._result(found, title, profile, page.url or url)

        if looks_like_bot_wall(content):
            raise StrategyFailure(FailureKind.RESOLUTION_BLOCKED, "rendered page is an anti-automation challenge")
        raise StrategyFailure(FailureKind.NO_MEDIA_FOUND, f"{len(observed)} intercepted requests, no page rule matched")

    async def _content(self, page) -> str:
        try:
            return await page.content()
        except PlaywrightError as e:
            logger.debug("Could not read page content: %s", e)
            return ""

    async def _title(self, page, content: str) -> Optional[str]:
        try:
            title = await page.title()
        except PlaywrightError:
            title = None
        return title or title_from_html(content)

    def _result(self, media_url: str, title: Optional[str], profile: PlatformProfile, page_url: str) -> ExtractionResult:
        return ExtractionResult(
            resource_url=media_url,
            title=sanitize_title(title, default=profile.default_title),
            content_type_hint=guess_content_type(media_url),
            platform=profile.id,
            referer=profile.referer or page_url,
        )

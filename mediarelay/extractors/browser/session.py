import asyncio
import logging
from contextlib import asynccontextmanager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from mediarelay.core.errors import SessionLaunchFailed

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-infobars",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--mute-audio",
    "--lang=en-US,en;q=0.9",
]

# Hide the automation flag before any page script runs
STEALTH_SCRIPT = """
(() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
})();
"""

VIEWPORT = {"width": 1280, "height": 800}


class BrowserSessionPool:
    """
    Hands out isolated headless Chromium sessions.

    At most `max_sessions` sessions are alive at once across all requests;
    callers wait for a free slot. Each session is a fresh browser with its
    own context and is torn down when the `session()` block exits, however
    it exits.
    """

    def __init__(self, user_agent: str, max_sessions: int = 2, headless: bool = True):
        self.user_agent = user_agent
        self.max_sessions = max_sessions
        self.headless = headless
        self._slots = asyncio.Semaphore(max_sessions)
        self._active = 0

    @property
    def active(self) -> int:
        return self._active

    @asynccontextmanager
    async def session(self):
        async with self._slots:
            playwright = None
            browser = None
            context = None
            try:
                try:
                    playwright = await async_playwright().start()
                    browser = await playwright.chromium.launch(
                        headless=self.headless,
                        args=LAUNCH_ARGS,
                        ignore_default_args=["--enable-automation"],
                    )
                    context = await browser.new_context(
                        user_agent=self.user_agent,
                        viewport=VIEWPORT,
                        locale="en-US",
                        extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
                    )
                    await context.add_init_script(STEALTH_SCRIPT)
                    page = await context.new_page()
                except PlaywrightError as e:
                    raise SessionLaunchFailed(f"Could not start browser: {e}") from e

                self._active += 1
                logger.debug("Browser session opened (%d active)", self._active)
                try:
                    yield page
                finally:
                    self._active -= 1
            finally:
                await self._teardown(playwright, browser, context)

    async def _teardown(self, playwright, browser, context):
        for label, closer in (("context", context and context.close), ("browser", browser and browser.close), ("driver", playwright and playwright.stop)):
            if not closer:
                continue
            try:
                await closer()
            except PlaywrightError as e:
                logger.debug("Ignoring error while closing %s: %s", label, e)
        logger.debug("Browser session released")

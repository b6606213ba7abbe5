"""
Shared pytest fixtures for all tests.

Nothing here touches the network or launches a browser: the network
adapter, yt-dlp and the browser session pool are all replaced with the
doubles in tests/mocks.
"""
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from mediarelay.app.coordinator import StrategyCoordinator
from mediarelay.app.media_service import MediaService
from mediarelay.app.transfer import StreamingTransferManager
from mediarelay.core.config import Settings
from mediarelay.extractors.browser.extractor import BrowserExtractor
from mediarelay.extractors.direct.extractor import DirectFileExtractor
from mediarelay.extractors.generic.extractor import GenericExtractor
from mediarelay.extractors.registry import ProfileRegistry, default_registry
from mediarelay.extractors.result import ExtractionResult
from mediarelay.extractors.ytdlp.extractor import YtDlpExtractor
from tests.mocks.fake_browser import FakeSessionPool
from tests.mocks.fake_network import FakeNetwork
from tests.mocks.fake_ytdlp import FakeYoutubeDL

TEST_UA = "Mozilla/5.0 (test)"


# ==================== Sample Data Fixtures ====================

@pytest.fixture
def sample_result() -> ExtractionResult:
    """A resolved mp4 with no known size."""
    return ExtractionResult(
        resource_url="https://cdn.example/file.mp4",
        title="Sample Clip",
        content_type_hint="video/mp4",
        platform="direct-file",
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(settle_delay=0.0, progress_interval=0.0)


# ==================== Doubles ====================

@pytest.fixture
def fake_network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def fake_ydl() -> FakeYoutubeDL:
    return FakeYoutubeDL()


@pytest.fixture
def fake_pool() -> FakeSessionPool:
    return FakeSessionPool()


# ==================== Service Wiring ====================

@pytest.fixture
def build_service(fake_network, fake_ydl, fake_pool):
    """Factory fixture wiring a MediaService around the doubles."""
    def _build(registry: ProfileRegistry = default_registry, render_unknown_platforms: bool = False, with_browser: bool = True, transfer_timeout: float = 5.0) -> MediaService:
        direct = [
            YtDlpExtractor(TEST_UA, ydl_factory=fake_ydl),
            DirectFileExtractor(fake_network),
        ]
        browser: Optional[BrowserExtractor] = None
        if with_browser:
            browser = BrowserExtractor(fake_pool, navigation_timeout=1.0, network_idle_timeout=0.1, settle_delay=0.0)
        coordinator = StrategyCoordinator(direct, browser, GenericExtractor(fake_network), render_unknown_platforms=render_unknown_platforms)
        transfers = StreamingTransferManager(fake_network, chunk_size=64 * 1024, transfer_timeout=transfer_timeout, progress_interval=0.0)
        return MediaService(registry, coordinator, transfers)
    return _build


@pytest.fixture
def service(build_service) -> MediaService:
    return build_service()


# ==================== FastAPI Test Client ====================

@pytest.fixture
def app(service, settings):
    """Create FastAPI app for testing."""
    from mediarelay.api.server import create_app
    return create_app({"settings": settings, "service": service})


@pytest.fixture
async def client(app) -> AsyncClient:
    """Create async test client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

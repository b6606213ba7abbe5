from typing import Optional

from mediarelay.app.coordinator import StrategyCoordinator
from mediarelay.app.media_service import MediaService
from mediarelay.app.transfer import StreamingTransferManager
from mediarelay.core.config import Settings
from mediarelay.extractors.browser.extractor import BrowserExtractor
from mediarelay.extractors.browser.session import BrowserSessionPool
from mediarelay.extractors.direct.extractor import DirectFileExtractor
from mediarelay.extractors.generic.extractor import GenericExtractor
from mediarelay.extractors.registry import ProfileRegistry
from mediarelay.extractors.ytdlp.extractor import YtDlpExtractor
from mediarelay.infra.network.http import HttpNetworkAdapter


def create_container(settings: Optional[Settings] = None) -> dict:
    # 1. Config
    settings = settings or Settings.from_env()

    # 2. Infra
    network = HttpNetworkAdapter(user_agent=settings.user_agent, timeout=settings.fetch_timeout)
    browser_pool = BrowserSessionPool(
        user_agent=settings.user_agent,
        max_sessions=settings.max_browser_sessions,
        headless=settings.headless,
    )

    # 3. Strategies
    direct = [
        YtDlpExtractor(user_agent=settings.user_agent, socket_timeout=settings.fetch_timeout),
        DirectFileExtractor(network),
    ]
    browser = BrowserExtractor(
        browser_pool,
        navigation_timeout=settings.navigation_timeout,
        network_idle_timeout=settings.network_idle_timeout,
        settle_delay=settings.settle_delay,
        max_observed=settings.max_observed_requests,
    )
    generic = GenericExtractor(network)

    # 4. Services
    registry = ProfileRegistry()
    coordinator = StrategyCoordinator(direct, browser, generic, render_unknown_platforms=settings.render_unknown_platforms)
    transfers = StreamingTransferManager(
        network,
        chunk_size=settings.chunk_size,
        transfer_timeout=settings.transfer_timeout,
        progress_interval=settings.progress_interval,
    )
    service = MediaService(registry, coordinator, transfers)

    return {
        "settings": settings,
        "network": network,
        "browser_pool": browser_pool,
        "registry": registry,
        "coordinator": coordinator,
        "transfers": transfers,
        "service": service,
    }

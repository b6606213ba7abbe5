import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from curl_cffi.requests import AsyncSession
from curl_cffi.requests.exceptions import RequestException

from mediarelay.core.interfaces import FetchedPage, NetworkAdapter, ProbeResult, StreamResponse

logger = logging.getLogger(__name__)

IMPERSONATE = "chrome120"

PAGE_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"


class NetworkError(Exception):
    pass


def parse_length(headers) -> Optional[int]:
    """Size from Content-Range (total) or Content-Length."""
    cr = headers.get("Content-Range") or headers.get("content-range")
    if cr and "/" in cr:
        total = cr.split("/")[-1].strip()
        if total.isdigit():
            return int(total)
    length = headers.get("Content-Length") or headers.get("content-length")
    if length and str(length).strip().isdigit():
        return int(length)
    return None


class CurlStreamResponse(StreamResponse):
    def __init__(self, response):
        self._response = response
        self.status_code = response.status_code
        self.headers = response.headers
        self.url = str(response.url)

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        except RequestException as e:
            raise NetworkError(f"Connection failed: {e}") from e

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpNetworkAdapter(NetworkAdapter):
    def __init__(self, user_agent: str, timeout: float = 15.0, stream_connect_timeout: float = 30.0):
        self.user_agent = user_agent
        self.timeout = timeout
        self.stream_connect_timeout = stream_connect_timeout

    def _add_browser_headers(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None, accept: Optional[str] = None) -> Dict[str, str]:
        final_headers = {}
        if headers:
            for k, v in headers.items():
                # Host and Content-Length are handled by the library
                if k.lower() in ("host", "content-length"):
                    continue
                final_headers[k] = v

        lowered = {k.lower() for k in final_headers}
        if "user-agent" not in lowered:
            final_headers["User-Agent"] = self.user_agent
        if referer and "referer" not in lowered:
            final_headers["Referer"] = referer
        if accept and "accept" not in lowered:
            final_headers["Accept"] = accept
        if "accept-language" not in lowered:
            final_headers["Accept-Language"] = "en-US,en;q=0.5"
        return final_headers

    async def probe(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> ProbeResult:
        h = self._add_browser_headers(url, referer, headers)
        try:
            async with AsyncSession(impersonate=IMPERSONATE) as s:
                resp = await s.head(url, headers=h, timeout=self.timeout, allow_redirects=True)
                length = parse_length(resp.headers)

                # Some hosts refuse HEAD or omit the size; fall back to a one-byte ranged GET
                if resp.status_code >= 400 or length is None:
                    logger.debug("HEAD gave %s without size, probing with bytes=0-0", resp.status_code)
                    h_range = dict(h)
                    h_range["Range"] = "bytes=0-0"
                    resp = await s.get(url, headers=h_range, timeout=self.timeout, stream=True, allow_redirects=True)
                    try:
                        length = parse_length(resp.headers)
                    finally:
                        await resp.aclose()

                return ProbeResult(
                    status_code=resp.status_code,
                    content_type=resp.headers.get("Content-Type", "").lower(),
                    content_length=length,
                    url=str(resp.url),
                )
        except RequestException as e:
            raise NetworkError(f"Connection failed: {e}") from e

    async def fetch_text(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> FetchedPage:
        h = self._add_browser_headers(url, referer, headers, accept=PAGE_ACCEPT)
        try:
            async with AsyncSession(impersonate=IMPERSONATE) as s:
                resp = await s.get(url, headers=h, timeout=self.timeout, allow_redirects=True)
                return FetchedPage(
                    status_code=resp.status_code,
                    text=resp.text,
                    url=str(resp.url),
                    content_type=resp.headers.get("Content-Type", "").lower(),
                )
        except RequestException as e:
            raise NetworkError(f"Connection failed: {e}") from e

    @asynccontextmanager
    async def open_stream(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        h = self._add_browser_headers(url, referer, headers)
        session = AsyncSession(impersonate=IMPERSONATE)
        response = None
        try:
            try:
                # Read timeout is per chunk; the whole-transfer deadline lives in the transfer manager
                resp = await session.get(url, headers=h, stream=True, allow_redirects=True, timeout=(self.stream_connect_timeout, self.stream_connect_timeout))
            except RequestException as e:
                raise NetworkError(f"Connection failed: {e}") from e
            response = CurlStreamResponse(resp)
            yield response
        finally:
            if response is not None:
                await response.aclose()
            await session.close()

"""
In-memory network adapter.

Responses are registered per URL; every call is recorded so tests can
assert on what went over the wire.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from mediarelay.core.interfaces import FetchedPage, NetworkAdapter, ProbeResult, StreamResponse
from mediarelay.infra.network.http import NetworkError


class FakeStreamResponse(StreamResponse):
    def __init__(self, status_code: int = 200, headers: Optional[Dict[str, str]] = None, chunks=(), delay: float = 0.0, fail_after: Optional[int] = None):
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.chunks = list(chunks)
        self.delay = delay
        self.fail_after = fail_after
        self.yielded = 0
        self.closed = False

    async def iter_chunks(self, chunk_size: int):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise NetworkError("Connection failed: connection reset by peer")
            if self.delay:
                await asyncio.sleep(self.delay)
            self.yielded += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def media_response(size: int, content_type: str = "video/mp4", chunk_size: int = 100_000, **kwargs) -> FakeStreamResponse:
    """A 200 response of `size` bytes split into equal chunks."""
    chunks = []
    remaining = size
    while remaining > 0:
        n = min(chunk_size, remaining)
        chunks.append(b"\x00" * n)
        remaining -= n
    headers = {"Content-Type": content_type, "Content-Length": str(size)}
    headers.update(kwargs.pop("headers", {}))
    return FakeStreamResponse(200, headers, chunks, **kwargs)


class FakeNetwork(NetworkAdapter):
    def __init__(self):
        self.probes: Dict[str, object] = {}
        self.pages: Dict[str, object] = {}
        self.streams: Dict[str, object] = {}
        self.calls: List[tuple] = []

    def add_probe(self, url: str, status_code: int = 200, content_type: str = "", content_length: Optional[int] = None):
        self.probes[url] = ProbeResult(status_code, content_type, content_length, url)

    def add_page(self, url: str, text: str, status_code: int = 200):
        self.pages[url] = FetchedPage(status_code, text, url, "text/html; charset=utf-8")

    def add_stream(self, url: str, response):
        self.streams[url] = response

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def probe(self, url, referer=None, headers=None) -> ProbeResult:
        self.calls.append(("probe", url, referer))
        found = self.probes.get(url, ProbeResult(200, "text/html", None, url))
        if isinstance(found, Exception):
            raise found
        return found

    async def fetch_text(self, url, referer=None, headers=None) -> FetchedPage:
        self.calls.append(("fetch_text", url, referer))
        found = self.pages.get(url, FetchedPage(404, "", url))
        if isinstance(found, Exception):
            raise found
        return found

    @asynccontextmanager
    async def open_stream(self, url, referer=None, headers=None):
        self.calls.append(("open_stream", url, referer, dict(headers or {})))
        response = self.streams.get(url)
        if response is None:
            raise NetworkError(f"Connection failed: no route to {url}")
        if isinstance(response, Exception):
            raise response
        try:
            yield response
        finally:
            await response.aclose()

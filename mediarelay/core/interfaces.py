from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Dict, Mapping, Optional


@dataclass
class ProbeResult:
    status_code: int
    content_type: str = ""
    content_length: Optional[int] = None
    url: str = ""


@dataclass
class FetchedPage:
    status_code: int
    text: str
    url: str
    content_type: str = ""


class StreamResponse(ABC):
    """An open HTTP response whose body has not been consumed yet."""

    status_code: int
    headers: Mapping[str, str]

    @abstractmethod
    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yields the body in chunks."""
        pass

    @abstractmethod
    async def aclose(self) -> None:
        pass


class NetworkAdapter(ABC):
    @abstractmethod
    async def probe(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> ProbeResult:
        """Returns status, content type and size without reading the body."""
        pass

    @abstractmethod
    async def fetch_text(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> FetchedPage:
        """Fetches a page as text (no rendering)."""
        pass

    @abstractmethod
    def open_stream(self, url: str, referer: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> AsyncContextManager[StreamResponse]:
        """Opens a streamed GET. The response is released when the context exits."""
        pass

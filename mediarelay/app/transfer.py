import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

from mediarelay.core.entities import TransferSession, TransferState
from mediarelay.core.errors import MediaRelayError, SuspiciouslySmallPayload, TransferFailed, TransferTimeout, UnsupportedContentType
from mediarelay.core.interfaces import NetworkAdapter
from mediarelay.core.media import MIN_PAYLOAD_BYTES, content_kind, is_manifest_type, is_textual
from mediarelay.extractors.result import ExtractionResult
from mediarelay.infra.network.http import NetworkError, parse_length

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

DEFAULT_SIZE_ESTIMATE = 50 * 1024 * 1024


class ProgressReporter:
    """
    Turns byte counts into a throttled, never-decreasing percentage.

    5% when the request goes out, 10% once headers are accepted, then
    10 + 85 * received/total capped at 95 while streaming. 100% is only
    reported by `finish()`.
    """

    def __init__(self, callback: Optional[ProgressCallback], total: Optional[int] = None, estimate: int = DEFAULT_SIZE_ESTIMATE, interval: float = 0.25, clock: Callable[[], float] = time.monotonic):
        self.callback = callback
        self.total = total
        self.estimate = max(int(estimate or DEFAULT_SIZE_ESTIMATE), 1)
        self.interval = interval
        self.clock = clock
        self.value = 0.0
        self._last_emit = None

    def percent_for(self, received: int) -> float:
        if self.total:
            return min(95.0, 10.0 + 85.0 * received / self.total)
        # Unknown size: creep towards 90% against a platform-typical size
        return min(95.0, 10.0 + min(80.0 * received / self.estimate, 80.0))

    def emit(self, value: float, force: bool = False) -> None:
        value = max(self.value, min(100.0, value))
        now = self.clock()
        if not force:
            if value <= self.value:
                return
            if self._last_emit is not None and now - self._last_emit < self.interval:
                return
        self.value = value
        self._last_emit = now
        if self.callback is not None:
            self.callback(value)

    def on_bytes(self, received: int) -> None:
        self.emit(self.percent_for(received))

    def finish(self) -> None:
        self.emit(100.0, force=True)


@dataclass
class TransferOutcome:
    body: bytes
    content_type: str
    filename: str
    session: TransferSession


class Transfer:
    """
    An accepted response that has not been consumed yet.

    Either iterate `iter_chunks()` to relay bytes as they arrive, or call
    `read_all()` to get the validated, reassembled body. Both close the
    upstream response when they finish, fail or are abandoned.
    """

    def __init__(self, session: TransferSession, response, stack: AsyncExitStack, result: ExtractionResult, content_type: str, expected_kind: str, reporter: ProgressReporter, deadline: float, chunk_size: int):
        self.session = session
        self.result = result
        self.content_type = content_type
        self.expected_kind = expected_kind
        self.reporter = reporter
        self._response = response
        self._stack = stack
        self._deadline = deadline
        self._chunk_size = chunk_size
        self._consumed = False

    @property
    def content_length(self) -> Optional[int]:
        return self.session.total_bytes_expected

    @property
    def filename(self) -> str:
        return self.result.filename

    @property
    def min_bytes(self) -> int:
        kind = content_kind(self.content_type)
        if kind == "any":
            kind = self.expected_kind
        return MIN_PAYLOAD_BYTES.get(kind, 1)

    def iter_chunks(self) -> AsyncIterator[bytes]:
        return self._pump(keep=False)

    async def read_all(self) -> bytes:
        async for _ in self._pump(keep=True):
            pass
        return self._body

    async def _pump(self, keep: bool):
        if self._consumed:
            raise RuntimeError("transfer body already consumed")
        self._consumed = True
        loop = asyncio.get_running_loop()
        session = self.session
        chunks = self._response.iter_chunks(self._chunk_size).__aiter__()
        try:
            while True:
                remaining = self._deadline - loop.time()
                if remaining <= 0:
                    raise TransferTimeout("Transfer timed out; the file may be too large or the host too slow")
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), remaining)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    raise TransferTimeout("Transfer timed out; the file may be too large or the host too slow")
                except NetworkError as e:
                    raise TransferFailed(str(e)) from e

                session.record(chunk, keep=keep)
                self.reporter.on_bytes(session.bytes_received)
                if not keep:
                    yield chunk

            session.advance(TransferState.VALIDATING)
            self._validate()
            self._body = session.reassemble() if keep else b""
            session.complete()
            logger.info("Transfer complete: %d bytes (%s)", session.bytes_received, self.content_type)
            self.reporter.finish()
        except BaseException as e:
            session.fail(str(e) or type(e).__name__)
            if isinstance(e, MediaRelayError):
                logger.warning("Transfer failed after %d bytes: %s", session.bytes_received, e)
            raise
        finally:
            await self.aclose()

    def _validate(self) -> None:
        received = self.session.bytes_received
        if received < self.min_bytes:
            raise SuspiciouslySmallPayload(
                f"Received only {received} bytes for {self.content_type or 'media'}; "
                "this is almost certainly an error page, not the media itself"
            )

    async def aclose(self) -> None:
        if not self.session.is_terminal:
            self.session.fail("closed before the body was relayed")
        await self._stack.aclose()


class StreamingTransferManager:
    """
    Relays a resolved resource to the caller with progress feedback.

    Rejects textual responses up front, bounds the whole transfer with a
    wall-clock deadline and refuses payloads below the floor for their
    kind. Nothing is shared between transfers.
    """

    def __init__(self, network: NetworkAdapter, chunk_size: int = 64 * 1024, transfer_timeout: float = 300.0, progress_interval: float = 0.25, clock: Callable[[], float] = time.monotonic):
        self.network = network
        self.chunk_size = chunk_size
        self.transfer_timeout = transfer_timeout
        self.progress_interval = progress_interval
        self.clock = clock

    async def open(self, result: ExtractionResult, expected_kind: Optional[str] = None, on_progress: Optional[ProgressCallback] = None, request_id: str = "-", size_estimate: Optional[int] = None) -> Transfer:
        expected_kind = expected_kind or content_kind(result.content_type_hint)
        session = TransferSession(request_id=request_id)
        reporter = ProgressReporter(on_progress, estimate=result.approx_size_bytes or size_estimate or DEFAULT_SIZE_ESTIMATE, interval=self.progress_interval, clock=self.clock)
        reporter.emit(5.0, force=True)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.transfer_timeout
        stack = AsyncExitStack()
        try:
            try:
                response = await asyncio.wait_for(
                    stack.enter_async_context(self.network.open_stream(result.resource_url, referer=result.referer, headers=result.headers)),
                    self.transfer_timeout,
                )
            except asyncio.TimeoutError:
                raise TransferTimeout("Timed out waiting for the media host to respond")
            except NetworkError as e:
                raise TransferFailed(str(e)) from e

            content_type = self._accept(response, expected_kind, result)
            session.total_bytes_expected = parse_length(response.headers) if response.status_code == 200 else None
            reporter.total = session.total_bytes_expected
            session.advance(TransferState.STREAMING)
            logger.info("Streaming %s (%s bytes expected)", content_type, session.total_bytes_expected or "unknown")
            reporter.emit(10.0, force=True)
        except BaseException as e:
            session.fail(str(e) or type(e).__name__)
            await stack.aclose()
            raise

        return Transfer(session, response, stack, result, content_type, expected_kind, reporter, deadline, self.chunk_size)

    async def transfer(self, result: ExtractionResult, expected_kind: Optional[str] = None, on_progress: Optional[ProgressCallback] = None, request_id: str = "-", size_estimate: Optional[int] = None) -> TransferOutcome:
        """Buffered transfer: returns the whole body once it has been validated."""
        handle = await self.open(result, expected_kind, on_progress, request_id, size_estimate)
        body = await handle.read_all()
        return TransferOutcome(body=body, content_type=handle.content_type, filename=handle.filename, session=handle.session)

    def _accept(self, response, expected_kind: str, result: ExtractionResult) -> str:
        status = response.status_code
        if status in (401, 403, 410, 429):
            raise TransferFailed(f"Media host refused the request (HTTP {status}); the link may have expired")
        if status not in (200, 206):
            raise TransferFailed(f"Media host answered HTTP {status}")

        declared = (response.headers.get("Content-Type") or "").strip()
        if expected_kind in ("video", "audio", "image") and is_textual(declared):
            raise UnsupportedContentType(
                f"Expected {expected_kind} but the host sent {declared.split(';')[0]}; "
                "the link resolved to a page instead of the media file"
            )
        if is_manifest_type(declared):
            raise UnsupportedContentType(
                f"The host sent a streaming playlist ({declared.split(';')[0]}), not a media file"
            )
        return declared or result.content_type_hint

import json
import logging
from typing import Optional
from urllib.parse import quote

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from mediarelay.core.entities import ExtractionRequest
from mediarelay.core.errors import MediaRelayError
from mediarelay.core.log import request_scope

logger = logging.getLogger(__name__)


def content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode() or "download"
    ascii_name = ascii_name.replace('"', "")
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def error_response(error: MediaRelayError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.http_status)


class RelayResponse(StreamingResponse):
    """
    Streams a transfer and closes its upstream response however the send ends,
    including when the headers never reach the client.
    """

    def __init__(self, transfer, content, **kwargs):
        super().__init__(content, **kwargs)
        self.transfer = transfer

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.transfer.aclose()


class RelayServer:
    """HTTP front for the media service."""

    def __init__(self, container: dict):
        self.container = container
        self.service = container["service"]
        settings = container.get("settings")
        self.host = settings.host if settings else "127.0.0.1"
        self.port = settings.port if settings else 8000
        self.app = FastAPI(title="mediarelay")
        self._setup_routes()

    def _setup_routes(self):
        @self.app.get("/ping")
        async def ping():
            return {"status": "ok"}

        @self.app.get("/api/download")
        async def download_get():
            return JSONResponse({"error": "Use POST method"}, status_code=405)

        @self.app.post("/api/download")
        async def download(request: Request):
            try:
                body = await request.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
            if not isinstance(body, dict):
                return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

            extraction = ExtractionRequest(
                source_url=body.get("url"),
                metadata_only=bool(body.get("metadataOnly", False)),
                proceed=body.get("canProceed", True) is not False,
            )
            try:
                if extraction.metadata_only:
                    return await self.service.describe(extraction)
                return await self._stream(extraction)
            except MediaRelayError as e:
                with request_scope(extraction.request_id):
                    logger.warning("Request failed: %s", e.message)
                return error_response(e)
            except Exception as e:
                with request_scope(extraction.request_id):
                    logger.exception("Unexpected failure")
                return JSONResponse({"error": f"Processing failed: {e}"}, status_code=500)

    async def _stream(self, extraction: ExtractionRequest) -> RelayResponse:
        def on_progress(percent: float):
            logger.debug("Progress %.0f%%", percent)

        transfer = await self.service.open_transfer(extraction, on_progress=on_progress)

        async def relay():
            with request_scope(extraction.request_id):
                try:
                    async for chunk in transfer.iter_chunks():
                        yield chunk
                except MediaRelayError as e:
                    # Headers are already sent; aborting is the only signal left
                    logger.warning("Aborting relay: %s", e.message)
                    raise

        try:
            headers = {
                "Content-Disposition": content_disposition(transfer.filename),
                "Cache-Control": "no-store",
            }
            if transfer.content_length:
                headers["Content-Length"] = str(transfer.content_length)
            return RelayResponse(transfer, relay(), media_type=transfer.content_type, headers=headers)
        except BaseException:
            await transfer.aclose()
            raise

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        uvicorn.run(self.app, host=host or self.host, port=port or self.port, log_level="info")


def create_app(container: dict) -> FastAPI:
    return RelayServer(container).app

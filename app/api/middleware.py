"""ASGI middleware capping the size of JSON request bodies."""

import logging

from fastapi import HTTPException
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.api.errors import error_response

logger = logging.getLogger(__name__)

TOO_LARGE_MESSAGE = "Request body too large"


class JSONBodyLimitMiddleware:
    """
    Reject JSON bodies above max_bytes with 413.

    A declared Content-Length is checked up front; chunked bodies are counted
    as they are received and cut off once the limit is crossed.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        headers = Headers(scope=scope)
        content_type = headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type != "application/json":
            await self.app(scope, receive, send)
            return

        length = headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            logger.info("Rejected %s bytes JSON body on %s", length, scope.get("path"))
            response = error_response(413, TOO_LARGE_MESSAGE)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    logger.info("Rejected streamed JSON body on %s", scope.get("path"))
                    raise HTTPException(status_code=413, detail=TOO_LARGE_MESSAGE)
            return message

        await self.app(scope, limited_receive, send)

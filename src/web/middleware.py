"""Request correlation ID middleware.

Each request gets a correlation ID, taken from the incoming
``X-Request-ID`` header when present. It is set on ``request_id_var`` so
every log line written while handling the request carries it, and it is
echoed in the response headers.

Written as a plain ASGI middleware so streaming responses pass through
untouched and keep their cancellation on client disconnect.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from services.logging_config import request_id_var

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware:

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = REQUEST_ID_HEADER,
        generator: Optional[Callable[[], str]] = None,
    ):
        self.app = app
        self.header_name = header_name
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(self.header_name) or self.generator()
        scope.setdefault("state", {})["request_id"] = request_id
        token = request_id_var.set(request_id)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[self.header_name] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            request_id_var.reset(token)

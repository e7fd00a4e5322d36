"""
ASGI middleware applying the dynamic CORS decision before any other processing.

Preflight requests are answered here. For actual requests the policy headers
are appended to the downstream response. Form-encoded bodies on protocol
paths are read to find client_id and then replayed to the application.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import parse_qsl

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authserver.api.services.cors_service import CorsPolicy, DynamicCorsResolver

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Token endpoint bodies are small; anything larger is not parsed for client_id
MAX_FORM_BODY_BYTES = 64 * 1024


def first_values(encoded: str) -> dict[str, str]:
    """Decode a urlencoded string; a repeated name keeps its first value."""
    values: dict[str, str] = {}
    for name, value in parse_qsl(encoded):
        values.setdefault(name, value)
    return values


class DynamicCORSMiddleware:
    def __init__(self, app: ASGIApp, resolver: Optional[DynamicCorsResolver] = None):
        self.app = app
        self.resolver = resolver or DynamicCorsResolver()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.resolver.applies_to(scope["path"]):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        if "origin" not in headers:
            await self.app(scope, receive, send)
            return

        params = first_values(scope.get("query_string", b"").decode("latin-1"))

        is_preflight = (
            scope["method"] == "OPTIONS" and "access-control-request-method" in headers
        )

        if not is_preflight and self._has_form_body(headers):
            body, receive = await self._buffer_body(receive)
            if body is not None:
                form = first_values(body.decode("utf-8", errors="replace"))
                # Query parameters win over the body, as for the token engine
                params = {**form, **params}

        # Client lookup is blocking database I/O
        policy = await run_in_threadpool(self.resolver.resolve, scope["path"], headers, params)

        if is_preflight:
            if policy is None:
                logger.debug(f"Rejected CORS preflight from {headers['origin']} on {scope['path']}")
            await self._preflight_response(policy, headers)(scope, receive, send)
            return

        if policy is None:
            await self.app(scope, receive, send)
            return

        await self.app(scope, receive, self._with_cors_headers(send, policy))

    @staticmethod
    def _has_form_body(headers: Headers) -> bool:
        content_type = headers.get("content-type", "")
        return content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE

    @staticmethod
    async def _buffer_body(receive: Receive) -> tuple[Optional[bytes], Receive]:
        """
        Read the request body and return a receive callable replaying it.

        Returns ``None`` as body when it exceeds MAX_FORM_BODY_BYTES; the
        replay still delivers the full body downstream.
        """
        messages: list[Message] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            messages.append(message)
            if message["type"] != "http.request":
                break
            size += len(message.get("body", b""))
            more_body = message.get("more_body", False)

        body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.request")

        async def replay() -> Message:
            if messages:
                return messages.pop(0)
            return await receive()

        return (body if size <= MAX_FORM_BODY_BYTES else None), replay

    @staticmethod
    def _preflight_response(policy: Optional[CorsPolicy], headers: Headers) -> PlainTextResponse:
        if policy is None:
            return PlainTextResponse("Disallowed CORS origin", status_code=400, headers={"Vary": "Origin"})

        requested = headers.get("access-control-request-method", "").upper()
        if requested not in policy.allowed_methods:
            return PlainTextResponse(
                "Disallowed CORS method",
                status_code=400,
                headers=policy.response_headers(headers.get("access-control-request-headers")),
            )

        return PlainTextResponse(
            "OK",
            status_code=200,
            headers=policy.response_headers(headers.get("access-control-request-headers")),
        )

    @staticmethod
    def _with_cors_headers(send: Send, policy: CorsPolicy) -> Send:
        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                for name, value in policy.simple_headers().items():
                    if name == "Vary":
                        response_headers.add_vary_header(value)
                    else:
                        response_headers[name] = value
            await send(message)

        return send_wrapper

"""HTTP middleware: request metrics, correlation IDs and access logging."""

import logging
import re
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from mediahost.core.logging import clear_correlation_id, set_correlation_id
from mediahost.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

CallNext = Callable[[Request], Awaitable[Response]]

# Folder ids, video ids and conversion ids (<uuid>_<bitrate>) in URL paths
_PATH_ID_PATTERNS = (
    (re.compile(r"[0-9a-fA-F]{8}-(?:[0-9a-fA-F]{4}-){3}[0-9a-fA-F]{12}(?:_\d+)?"), "{id}"),
    (re.compile(r"/\d+(?=/|$)"), "/{id}"),
)


def normalize_path(path: str) -> str:
    """Collapse identifiers in a path so metrics keep a bounded label set."""
    for pattern, placeholder in _PATH_ID_PATTERNS:
        path = pattern.sub(placeholder, path)
    return path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes their latency per method and route."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        labels = {"method": request.method, "endpoint": normalize_path(request.url.path)}
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(**labels)
        in_progress.inc()
        started = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(**labels).observe(time.perf_counter() - started)
            HTTP_REQUESTS_TOTAL.labels(status_code=status_code, **labels).inc()
            in_progress.dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the X-Correlation-ID header, or a fresh ID, to the request context."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[self.CORRELATION_ID_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line when a request arrives and one when it finishes."""

    def __init__(self, app: ASGIApp, log_request_body: bool = False):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.logger = logging.getLogger("mediahost.requests")

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        route = {"method": request.method, "path": request.url.path}
        arrival = dict(route, client_ip=request.client.host if request.client else None)
        if request.query_params:
            arrival["query"] = str(request.query_params)
        if self.log_request_body and request.method in ("POST", "PUT"):
            arrival["body"] = (await request.body()).decode("utf-8", errors="replace")
        self.logger.info("Request started", extra=arrival)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.exception(
                "Request failed",
                extra=dict(route, error=str(e), duration_ms=self._elapsed_ms(started)),
            )
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        self.logger.log(
            level,
            "Request completed",
            extra=dict(
                route,
                status_code=response.status_code,
                duration_ms=self._elapsed_ms(started),
            ),
        )
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

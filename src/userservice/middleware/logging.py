"""
=============================================================================
ACCESS LOG
=============================================================================

One line per routed request on the "userservice.access" logger.

    text (default):
        127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "POST /users" 201 48 3.12ms

    json (LOG_FORMAT=json):
        {"request_id": "a1b2c3d4", "method": "POST", "path": "/users", ...}

Every response also carries the request id in X-Request-ID so a client can
quote it when reporting a problem.

Request bodies are never logged: they contain names and email addresses.

=============================================================================
"""

import time
import json
import uuid
import logging
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import ParsedRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("userservice.access")

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestLog:
    """
    One access log entry.

        request_id:     Short random id, echoed in X-Request-ID
        method:         Method token as sent by the client
        path:           Decoded request path
        client_ip:      Peer address
        user_agent:     User-Agent header or "-"
        status_code:    Response status
        content_length: Response body size in bytes
        duration_ms:    Time spent in the router and handler
        timestamp:      Local time, Apache style
    """

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-combined-like line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogMiddleware(Middleware):
    """
    Times each request, logs it and tags the response with a request id.

    Should be added first so its timing covers everything below it.

        pipeline.add(AccessLogMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level the access lines are emitted at.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level

    def __call__(self, request: ParsedRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {request.raw_method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        log_entry = RequestLog(
            request_id=request_id,
            method=request.raw_method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        if self.include_request_id:
            response.set_header(REQUEST_ID_HEADER, request_id)

        return response

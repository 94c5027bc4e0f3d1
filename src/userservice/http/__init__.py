"""
=============================================================================
HTTP LAYER
=============================================================================

The minimal HTTP/1.1 toolkit the user service is built on:

    request.py       bytes → ParsedRequest        (RequestParser)
    router.py        ParsedRequest → handler      (Router)
    response.py      HTTPResponse → bytes         (ResponseBuilder, ok, ...)
    status_codes.py  HTTPStatus + reason phrases

=============================================================================
"""

from ..errors import MalformedRequest
from .request import ParsedRequest, Method, RequestParser
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,             # 200 OK
    created,        # 201 Created
    no_content,     # 204 No Content
    bad_request,    # 400 Bad Request
    not_found,      # 404 Not Found
    conflict,       # 409 Conflict
    internal_error, # 500 Internal Server Error
    error_response,
)
from .router import Router, Route, RouteMatch, positive_int
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "ParsedRequest",
    "Method",
    "RequestParser",
    "MalformedRequest",
    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "no_content",
    "bad_request",
    "not_found",
    "conflict",
    "internal_error",
    "error_response",
    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "positive_int",
    # Status codes
    "HTTPStatus",
]

"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds the HTTP/1.1 responses the service writes back before closing the
connection.

=============================================================================
WHAT GOES ON THE WIRE
=============================================================================

    HTTP/1.1 201 Created\r\n                 ← status line
    Content-Type: application/json\r\n
    Location: /users/1\r\n
    Content-Length: 47\r\n                    ← always computed
    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n   ← always added
    Server: userservice/1.0.0\r\n
    Connection: close\r\n                     ← one request per connection
    \r\n
    {"id": 1, "name": "Ada", "email": "ada@example.com"}

Bodies are either JSON or empty. A 204 never carries a body or a
Content-Type.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"
DEFAULT_SERVER_NAME = "userservice"


@dataclass
class HTTPResponse:
    """
    A response waiting to be serialized.

    Handlers return one of these; the server calls to_bytes() and writes
    the result with sendall().
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header and return self for chaining."""
        self.headers[name] = value
        return self

    def json(self) -> Any:
        """Decode the body back into Python (handy in tests and logs)."""
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize to bytes ready for socket.sendall().

        Content-Length, Date, Server and Connection are filled in unless the
        handler already set them. Connection is always "close": the server
        handles one request per connection.
        """
        response_headers = dict(self.headers)
        body = self.body if self.status.allows_body else b""

        if self.status.allows_body:
            response_headers.setdefault("Content-Length", str(len(body)))
        else:
            response_headers.pop("Content-Type", None)
            response_headers.pop("Content-Length", None)

        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)
        response_headers["Connection"] = "close"

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/users/1")
            .json({"id": 1, "name": "Ada", "email": "ada@example.com"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Serialize data as the JSON body and set Content-Type.

        Compact separators: {"id":1,"name":"Ada",...}.
        """
        self._body = json.dumps(data, separators=(",", ":")).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 HTTP-date.

    strftime("%a"/"%b") is locale dependent, so the names are spelled out.

        format_http_date(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))
        → "Sun, 18 Oct 2026 12:00:00 GMT"
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for every response the handlers produce. Error bodies are
# always {"error": "<message>"}.
#
# =============================================================================

def ok(body: Union[dict, list]) -> HTTPResponse:
    """200 OK with a JSON body."""
    return ResponseBuilder().status(HTTPStatus.OK).json(body).build()


def created(body: dict, location: Optional[str] = None) -> HTTPResponse:
    """201 Created with a JSON body and, optionally, a Location header."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED).json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def no_content() -> HTTPResponse:
    """204 No Content. Used for a successful DELETE."""
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """Any error status with the standard {"error": ...} body."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """400: malformed request, invalid body or invalid id."""
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404: no route, or no row for the id."""
    return error_response(HTTPStatus.NOT_FOUND, message)


def conflict(message: str = "Conflict") -> HTTPResponse:
    """409: the email is already taken."""
    return error_response(HTTPStatus.CONFLICT, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """
    500. Keep the message generic; the real cause goes to the log.
    """
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)

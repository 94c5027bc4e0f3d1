"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read from one accepted connection into a ParsedRequest.
Only the subset of HTTP/1.1 the user service needs is supported: a request
line, headers up to the empty line, and a Content-Length delimited body.

=============================================================================
WHAT WE ACCEPT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   PUT /users/7 HTTP/1.1\r\n            ← request line               │
    │   Host: localhost:8080\r\n             ← headers (any case)         │
    │   content-length: 46\r\n                                             │
    │   \r\n                                 ← end of headers             │
    │   {"name":"Ada","email":"ada@example.com"}  ← exactly 46 bytes     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

What we do NOT accept:

    - Transfer-Encoding: chunked   (no Content-Length → empty body)
    - more than one request per connection (surplus bytes are dropped)
    - HTTP versions other than 1.0 and 1.1

Every rejection is a MalformedRequest carrying the status code to send.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any
from urllib.parse import urlparse, unquote
import re
import json

from ..errors import MalformedRequest


class Method(Enum):
    """
    Request methods the router knows about.

    Anything else is parsed (so we can answer it) but lands on OTHER,
    which no route is registered for.
    """
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Method":
        try:
            return cls(token)
        except ValueError:
            return cls.OTHER


@dataclass
class ParsedRequest:
    """
    One parsed HTTP request. Lives for exactly one connection.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Method enum (GET/POST/PUT/DELETE/OTHER)
        raw_method:     The method token as the client sent it
        path:           URL-decoded path without the query string
        version:        "HTTP/1.0" or "HTTP/1.1"
        headers:        Header dict with LOWERCASE names
        body:           Exactly Content-Length bytes (b"" if none)
        path_params:    Filled in by the router: "/users/{id}" → {"id": "7"}
        client_address: (ip, port) of the peer, for logging

    =========================================================================
    """

    method: Method
    path: str
    version: str = "HTTP/1.1"
    raw_method: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    path_params: Dict[str, Any] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)

    _body_json: Optional[Any] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.raw_method:
            self.raw_method = self.method.value

    @property
    def content_length(self) -> int:
        """Declared body length; the parser has already validated it."""
        return int(self.headers.get("content-length", 0))

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def user_id(self) -> Optional[int]:
        """
        The {id} path parameter, if the matched route has one.

        The router converts "{id:int}" segments before the handler runs,
        so this is already an int.
        """
        return self.path_params.get("id")

    @property
    def json(self) -> Any:
        """
        Decode the body as JSON (cached after the first call).

        Raises:
            MalformedRequest: If the body is empty, not UTF-8 or not JSON.
        """
        if self._body_json is None:
            if not self.body:
                raise MalformedRequest("Request body is empty")
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise MalformedRequest(f"Invalid JSON body: {e}")
            except RecursionError:
                raise MalformedRequest("Invalid JSON body: nested too deeply")
        return self._body_json

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into ParsedRequest objects.

    ==========================================================================
    PARSE STEPS
    ==========================================================================

        1. Size check                 too big?        → 413
        2. Find \r\n\r\n              missing?        → 400 "Incomplete"
        3. Request line               bad shape?      → 400
        4. Headers                    lower-cased, duplicates joined
        5. Content-Length             bad number?     → 400
        6. Body                       short?          → 400 "Incomplete body"

    ==========================================================================
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s][^:]*):\s*(.*)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")
    CONTENT_LENGTH_PATTERN = re.compile(r"^[0-9]+$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> ParsedRequest:
        """
        Parse one complete request.

        Args:
            data: Everything read from the connection.
            client_address: Peer (ip, port), kept for logging.

        Returns:
            The parsed request.

        Raises:
            MalformedRequest: With status_code 400, or 413 when oversized.
        """
        if len(data) > self.max_request_size:
            raise MalformedRequest(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise MalformedRequest("Incomplete request: no header terminator")

        # Latin-1 never fails to decode, so odd bytes in headers surface as
        # a malformed line below instead of a decode error here.
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines[0]:
            raise MalformedRequest("Missing request line")

        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])
        content_length = self._parse_content_length(headers)

        if len(body) < content_length:
            raise MalformedRequest(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return ParsedRequest(
            method=Method.from_token(method),
            raw_method=method,
            path=path,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD SP PATH SP VERSION" and normalize the path.

        The query string is dropped: no endpoint reads one.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise MalformedRequest(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise MalformedRequest(f"Unsupported HTTP version: {version}")

        if not target.startswith("/"):
            raise MalformedRequest(f"Invalid request target: {target!r}")

        path = unquote(urlparse(target).path) or "/"
        return method.upper(), path, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: value" lines into a dict with lowercase names.

        Lines without a colon are skipped. A repeated header is joined with
        ", ", which is what RFC 7230 says it is equivalent to.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _parse_content_length(self, headers: Dict[str, str]) -> int:
        """
        Absent → 0. Anything but a single non-negative integer is rejected:
        a repeated header with differing values shows up here as "5, 7".
        """
        raw = headers.get("content-length")
        if raw is None:
            return 0
        if not self.CONTENT_LENGTH_PATTERN.match(raw):
            raise MalformedRequest(f"Invalid Content-Length: {raw!r}")
        return int(raw)

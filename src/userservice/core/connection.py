"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket for the length of one request:

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSED
               │                                      ▲
               └──────── peer closed / error ─────────┘

There is no keep-alive state: after the response is written the
connection is closed, whatever the client asked for.

=============================================================================
WHY READING NEEDS A LOOP
=============================================================================

TCP is a byte stream. One recv() may return half a header, or the headers
plus part of the body. We keep calling recv() until:

    1. the buffer contains \r\n\r\n          (headers complete), then
    2. the buffer holds Content-Length more  (body complete), or
    3. the peer closes                        (whatever we have is returned
                                               and the parser rejects it)

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..errors import MalformedRequest


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short random id used to correlate log lines.
        state: Where in the request lifecycle we are.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = None
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        # None keeps the socket fully blocking: a slow client holds its
        # worker until it sends or disconnects.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since accept()."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read the bytes of one HTTP request.

        Returns:
            The request bytes (possibly incomplete if the peer closed
            early), or None if the peer closed without sending anything.

        Raises:
            MalformedRequest: (413) if the request outgrows max_request_size,
                              or (400) if Content-Length is not a number.
            TimeoutError: If a socket timeout is configured and expires.
        """
        self.state = ConnectionState.READING

        try:
            while HEADER_TERMINATOR not in self._buffer:
                if not self._fill():
                    return self._buffer or None

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                if not self._fill():
                    break

            return self._buffer[:body_start + content_length]

        except socket.timeout:
            raise TimeoutError("Request read timeout")

    def _fill(self) -> bool:
        """
        recv() once into the buffer.

        Returns:
            False if the peer closed the connection.
        """
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False

        if not chunk:
            return False

        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise MalformedRequest(
                f"Request too large: more than {self.max_request_size} bytes",
                status_code=413,
            )
        return True

    def _content_length(self, header_section: bytes) -> int:
        """
        Find Content-Length in the raw headers (case-insensitive).

        Only needed to know how much more to read. The parser validates the
        headers properly afterwards.
        """
        for line in header_section.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                value = value.strip()
                if not value.isdigit():
                    raise MalformedRequest(f"Invalid Content-Length: {value!r}")
                return int(value)
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write the whole response with sendall().

        Returns:
            False if the client went away before we finished.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: send FIN, drain, release the descriptor.

        Unread bytes left in the kernel buffer at close() make the OS send
        RST, which can destroy a response the client has not read yet.
        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

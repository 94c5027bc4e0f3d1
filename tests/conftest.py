"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Dict, Generator, List, Optional, Tuple
import json
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userservice import ServiceConfig, create_app
from userservice.errors import Conflict, DatabaseUnavailable, NotFound
from userservice.models import User


# =============================================================================
# RAW REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """GET of a single user."""
    return (
        b"GET /users/1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST /users with a JSON body."""
    body = b'{"name": "Ada", "email": "ada@example.com"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


# =============================================================================
# IN-MEMORY GATEWAY
# =============================================================================

class FakeUserGateway:
    """
    Thread-safe in-memory stand-in for UserGateway.

    Same methods, same exceptions. Ids start at 1 and are never reused.
    Set fail=True to make every call raise DatabaseUnavailable.
    """

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.fail = False
        self.calls: List[str] = []

    def _check(self, operation: str):
        self.calls.append(operation)
        if self.fail:
            raise DatabaseUnavailable("connection refused")

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        return any(u.email == email and u.id != exclude_id for u in self._users.values())

    def ensure_schema(self) -> None:
        self._check("ensure_schema")

    def create(self, name: str, email: str) -> User:
        with self._lock:
            self._check("create")
            if self._email_taken(email):
                raise Conflict(email)
            user = User(id=self._next_id, name=name, email=email)
            self._users[user.id] = user
            self._next_id += 1
            return user

    def get(self, user_id: int) -> User:
        with self._lock:
            self._check("get")
            if user_id not in self._users:
                raise NotFound(user_id)
            return self._users[user_id]

    def list(self) -> List[User]:
        with self._lock:
            self._check("list")
            return list(self._users.values())

    def update(self, user_id: int, name: str, email: str) -> User:
        with self._lock:
            self._check("update")
            if user_id not in self._users:
                raise NotFound(user_id)
            if self._email_taken(email, exclude_id=user_id):
                raise Conflict(email)
            user = User(id=user_id, name=name, email=email)
            self._users[user_id] = user
            return user

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._check("delete")
            if self._users.pop(user_id, None) is None:
                raise NotFound(user_id)

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._users)


@pytest.fixture
def gateway() -> FakeUserGateway:
    return FakeUserGateway()


# =============================================================================
# SERVER HARNESS
# =============================================================================

@pytest.fixture
def config() -> ServiceConfig:
    """Test configuration: loopback, OS-assigned port, small pool."""
    return ServiceConfig(
        database_url="postgresql://test@localhost/test",
        host="127.0.0.1",
        port=0,
        workers=2,
        timeout=5.0,
        log_level="WARNING",
    )


class RawResponse:
    """A response read off the wire, split into its parts."""

    def __init__(self, data: bytes):
        self.raw = data
        head, _, self.body = data.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")

        self.status_line = lines[0]
        self.status = int(lines[0].split(" ")[1])
        self.headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            self.headers[name.strip().lower()] = value.strip()

    def json(self):
        return json.loads(self.body.decode("utf-8"))


class ServiceClient:
    """Talks to a running service one connection per request."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    def send_raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send bytes, half-close, read until the server closes."""
        with socket.create_connection((self.host, self.port), timeout=timeout) as s:
            s.sendall(data)
            s.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def request(self, method: str, path: str, body=None, headers: Optional[Dict[str, str]] = None) -> RawResponse:
        if body is None:
            payload = b""
        elif isinstance(body, bytes):
            payload = body
        else:
            payload = json.dumps(body).encode("utf-8")

        lines = [f"{method} {path} HTTP/1.1", f"Host: {self.host}:{self.port}"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if payload:
            lines.append("Content-Type: application/json")
            lines.append(f"Content-Length: {len(payload)}")

        data = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + payload
        return RawResponse(self.send_raw(data))

    def get(self, path: str) -> RawResponse:
        return self.request("GET", path)

    def post(self, path: str, body=None) -> RawResponse:
        return self.request("POST", path, body)

    def put(self, path: str, body=None) -> RawResponse:
        return self.request("PUT", path, body)

    def delete(self, path: str) -> RawResponse:
        return self.request("DELETE", path)


class RunningService:
    """Runs create_app(...) in a background thread."""

    def __init__(self, config: ServiceConfig, gateway):
        self.server = create_app(config, gateway)
        self._thread: Optional[threading.Thread] = None

    def start(self) -> Tuple[str, int]:
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self.server.address

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def running_service(config: ServiceConfig, gateway: FakeUserGateway) -> Generator[RunningService, None, None]:
    service = RunningService(config, gateway)
    service.start()

    yield service

    service.stop()


@pytest.fixture
def client(running_service: RunningService) -> ServiceClient:
    host, port = running_service.server.address
    return ServiceClient(host, port)

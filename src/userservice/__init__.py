"""
=============================================================================
USERSERVICE - User CRUD over a hand-rolled HTTP/1.1 server
=============================================================================

A single-resource HTTP service for users (id, name, email) stored in
PostgreSQL. HTTP is parsed and routed by hand over raw TCP sockets; each
connection carries exactly one request.

    client ──TCP──► SocketServer ──► ThreadPool worker
                                         │
                                         ├─ Connection.read_request()
                                         ├─ RequestParser.parse()
                                         ├─ AccessLogMiddleware
                                         ├─ Router → UserHandlers
                                         │              │
                                         │              └─ UserGateway ──► PostgreSQL
                                         └─ HTTPResponse.to_bytes() + close

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    userservice/
    ├── __main__.py          CLI entry point (python -m userservice)
    ├── app.py               create_app(): routes + middleware + gateway
    ├── server.py            HTTPServer
    ├── config.py            ServiceConfig
    ├── errors.py            exception hierarchy
    ├── models.py            User, UserPayload
    ├── gateway.py           UserGateway (psycopg2)
    ├── core/                sockets, connections, worker threads
    ├── http/                parser, router, responses, status codes
    ├── middleware/          pipeline + access log
    └── handlers/            the five user endpoints

=============================================================================
QUICK START
=============================================================================

    from userservice import ServiceConfig, UserGateway, create_app

    config = ServiceConfig.from_env()
    with UserGateway.connect(config.database_url) as gateway:
        gateway.ensure_schema()
        create_app(config, gateway).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServiceConfig
from .errors import (
    UserServiceError,
    MalformedRequest,
    InvalidPayload,
    NotFound,
    Conflict,
    DatabaseUnavailable,
    ConfigError,
)
from .models import User, UserPayload
from .gateway import UserGateway
from .server import HTTPServer
from .app import create_app

__all__ = [
    "__version__",
    "ServiceConfig",
    "UserServiceError",
    "MalformedRequest",
    "InvalidPayload",
    "NotFound",
    "Conflict",
    "DatabaseUnavailable",
    "ConfigError",
    "User",
    "UserPayload",
    "UserGateway",
    "HTTPServer",
    "create_app",
]

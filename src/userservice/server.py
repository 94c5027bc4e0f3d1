"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together. For every accepted connection a worker runs:

    1. READ      conn.read_request()          bytes up to Content-Length
    2. PARSE     RequestParser.parse()        → ParsedRequest (or 400/413)
    3. PIPELINE  AccessLogMiddleware → Router.handle → handler
    4. WRITE     response.to_bytes()          Connection: close
    5. CLOSE     conn.close()

One request per connection. There is no keep-alive loop: whatever the
client sends after the first request is discarded when the socket closes.

=============================================================================
ERRORS THAT NEVER REACH A HANDLER
=============================================================================

    ┌───────────────────────────────────┬─────────────────────────────────┐
    │ What happened                     │ Client sees                     │
    ├───────────────────────────────────┼─────────────────────────────────┤
    │ Peer closed before sending        │ nothing (socket just closes)    │
    │ Bad request line/headers/body     │ 400 {"error": "..."}            │
    │ Request larger than the limit     │ 413 {"error": "..."}            │
    │ Socket timeout (if configured)    │ 408 {"error": "..."}            │
    │ Handler raised unexpectedly       │ 500 {"error": "Internal ..."}   │
    │ Worker queue full                 │ 503 {"error": "..."}            │
    └───────────────────────────────────┴─────────────────────────────────┘

=============================================================================
"""

import logging
from typing import Optional, Callable

from .config import ServiceConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .errors import MalformedRequest
from .http import (
    ParsedRequest, RequestParser,
    HTTPResponse, HTTPStatus,
    Router, error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 30.0


class HTTPServer:
    """
    Threaded HTTP/1.1 server: one worker per connection, one request per
    connection.

        server = HTTPServer(config)
        UserHandlers(gateway).register(server.router)
        server.use(AccessLogMiddleware())
        server.run()            # blocks until SIGINT/SIGTERM or stop()
    """

    def __init__(self, config: ServiceConfig):
        self.config = config
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            workers=self.config.workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[ParsedRequest], HTTPResponse]] = None

    # =========================================================================
    # SETUP
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. First added = outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start serving. Blocks until stop() or a shutdown signal.

        Raises:
            OSError: If the port cannot be bound.
        """
        self._setup_logging()

        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")
        self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is accepting. Returns False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def stop(self):
        """Ask a running server to shut down. Safe from any thread."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        print()
        print(f"  {self.config.server_name} listening on http://{self.config.host}:{self.config.port}")
        print(f"  Workers: {self.config.workers}")
        print("  Press Ctrl+C to stop")
        self._router.print_routes()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("userservice").setLevel(level)

    def _shutdown(self):
        """Stop accepting (already done by the socket server), drain workers."""
        logger.info("Shutting down server...")
        self._thread_pool.shutdown(timeout=SHUTDOWN_TIMEOUT)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(self._process_connection, args=(conn,))

        if not submitted:
            logger.warning(
                f"[{conn.id}] Thread pool full ({self._thread_pool.busy_workers} busy, "
                f"{self._thread_pool.pending} queued), rejecting connection"
            )
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, handle and answer exactly one request (worker thread)."""
        with conn:
            try:
                raw_request = conn.read_request()
                if raw_request is None:
                    return

                request = self._parser.parse(raw_request, conn.address)
            except MalformedRequest as e:
                logger.debug(f"[{conn.id}] Malformed request from {conn.client_ip}: {e}")
                self._send_error(conn, HTTPStatus(e.status_code), str(e))
                return
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return

            conn.state = ConnectionState.PROCESSING

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            conn.send_response(response.to_bytes(self.config.server_name))

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Answer a request that never reached the router."""
        response = error_response(status, message)
        conn.send_response(response.to_bytes(self.config.server_name))

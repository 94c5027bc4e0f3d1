"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Everything above TCP
(parsing, routing, the database) happens in the callback it is given.

    start(on_connection)
        │
        ├──► socket(AF_INET, SOCK_STREAM) + SO_REUSEADDR
        ├──► bind(0.0.0.0:8080)
        ├──► listen(backlog)
        ├──► install SIGINT/SIGTERM handlers (main thread only)
        │
        └──► while running:
                 accept()  ← wakes at least once a second to check running
                 on_connection(Connection(...))

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable

from ..config import ServiceConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Blocking TCP accept loop.

    shutdown() may be called from a signal handler or any other thread;
    the loop notices within ACCEPT_POLL_INTERVAL seconds.
    """

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._original_handlers = {}

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """Bound (host, port), once listening. Useful when port=0."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[:2]

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        # Allow an immediate restart while old connections sit in TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def _setup_signals(self):
        """
        SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) stop the loop
        instead of killing the process mid-request.

        signal.signal() only works in the main thread; when the server runs
        in a background thread (tests) the caller stops it with shutdown().
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop. Blocks until shutdown().

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

    def shutdown(self):
        """Ask the accept loop to stop. Idempotent."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()
        self._ready.clear()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        logger.info("Socket server stopped")

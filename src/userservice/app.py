"""
Application factory.

    with UserGateway.connect(config.database_url) as gateway:
        create_app(config, gateway).run()
"""

import logging

from .config import ServiceConfig
from .handlers import UserHandlers
from .middleware import AccessLogMiddleware
from .server import HTTPServer


logger = logging.getLogger(__name__)


def create_app(config: ServiceConfig, gateway) -> HTTPServer:
    """
    Build a server with the user routes and the access log installed.

    Args:
        config: Validated by HTTPServer on construction.
        gateway: A connected UserGateway (or a stand-in with the same
                 methods). The caller owns it and closes it.

    Returns:
        An HTTPServer ready for run().
    """
    server = HTTPServer(config)
    server.use(AccessLogMiddleware(log_format=config.log_format))
    UserHandlers(gateway).register(server.router)

    logger.debug(f"Registered {len(server.router.routes())} routes")
    return server

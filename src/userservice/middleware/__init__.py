"""
Middleware run around the router for every parsed request.

    from userservice.middleware import MiddlewarePipeline, AccessLogMiddleware

    pipeline = MiddlewarePipeline().add(AccessLogMiddleware(log_format="json"))
    handler = pipeline.wrap(router.handle)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import AccessLogMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "AccessLogMiddleware",
    "RequestLog",
]

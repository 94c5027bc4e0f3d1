"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router like layers of an onion. The first one added
is the outermost: it sees the request first and the response last.

    ┌──────────────────────────────────────────────┐
    │  AccessLogMiddleware                         │
    │  ┌────────────────────────────────────────┐  │
    │  │                                        │  │
    │  │     router.handle(request)             │  │
    │  │                                        │  │
    │  └────────────────────────────────────────┘  │
    └──────────────────────────────────────────────┘

A middleware may return without calling next() (short-circuit), or call it
and adjust the response on the way out.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import ParsedRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[ParsedRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class AddHeader(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Thing", "1")
                return response
    """

    @abstractmethod
    def __call__(self, request: ParsedRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request, normally by calling next(request), and return
        a response.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware around one final handler.

        pipeline = MiddlewarePipeline().add(AccessLogMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (first added = outermost). Returns self."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain MW1 → MW2 → ... → handler.

        Wrapping happens in reverse so that the first middleware added ends
        up outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(self, middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: ParsedRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)

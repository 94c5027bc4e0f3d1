"""
=============================================================================
USER HANDLERS
=============================================================================

The five CRUD endpoints. Each handler takes a ParsedRequest whose {id}
has already been converted by the router, talks to the gateway, and
returns an HTTPResponse.

    ┌────────┬──────────────┬─────────┬──────────────────────────────────┐
    │ Method │ Path         │ Success │ Failures                         │
    ├────────┼──────────────┼─────────┼──────────────────────────────────┤
    │ POST   │ /users       │ 201     │ 400 bad body, 409 email taken    │
    │ POST   │ /users/{id}  │ 201     │ same as POST /users, id ignored  │
    │ GET    │ /users       │ 200     │                                  │
    │ GET    │ /users/{id}  │ 200     │ 404                              │
    │ PUT    │ /users/{id}  │ 200     │ 400 bad body, 404, 409           │
    │ DELETE │ /users/{id}  │ 204     │ 404                              │
    └────────┴──────────────┴─────────┴──────────────────────────────────┘

Any DatabaseUnavailable becomes a bare 500; the traceback goes to the log.

=============================================================================
"""

import functools
import logging
from typing import Callable, Optional

from ..errors import Conflict, DatabaseUnavailable, InvalidPayload, MalformedRequest, NotFound
from ..http.request import Method, ParsedRequest
from ..http.response import (
    HTTPResponse,
    bad_request,
    conflict,
    created,
    internal_error,
    no_content,
    not_found,
    ok,
)
from ..http.router import Router
from ..models import UserPayload


logger = logging.getLogger(__name__)


def _map_errors(handler: Callable[..., HTTPResponse]) -> Callable[..., HTTPResponse]:
    """Turn service exceptions raised inside a handler into error responses."""

    @functools.wraps(handler)
    def wrapper(self, request: ParsedRequest) -> HTTPResponse:
        try:
            return handler(self, request)
        except (MalformedRequest, InvalidPayload) as e:
            return bad_request(str(e))
        except NotFound as e:
            return not_found(str(e))
        except Conflict as e:
            return conflict(str(e))
        except DatabaseUnavailable:
            logger.exception(f"Database unavailable during {request.raw_method} {request.path}")
            return internal_error()

    return wrapper


class UserHandlers:
    """
    CRUD handlers bound to one gateway.

        handlers = UserHandlers(gateway)
        handlers.register(router)
    """

    def __init__(self, gateway):
        """
        Args:
            gateway: A UserGateway, or anything with the same five methods
                     (the tests use an in-memory one).
        """
        self.gateway = gateway
        self._router: Optional[Router] = None

    def register(self, router: Router) -> Router:
        """Add the user routes to router and return it."""
        router.add_route("/users", self.list_users, Method.GET, name="list_users")
        router.add_route("/users", self.create_user, Method.POST, name="create_user")
        # Any single segment after /users is accepted and ignored on create.
        router.add_route("/users/{id}", self.create_user, Method.POST)
        router.add_route("/users/{id:int}", self.get_user, Method.GET, name="get_user")
        router.add_route("/users/{id:int}", self.update_user, Method.PUT, name="update_user")
        router.add_route("/users/{id:int}", self.delete_user, Method.DELETE, name="delete_user")
        self._router = router
        return router

    @_map_errors
    def create_user(self, request: ParsedRequest) -> HTTPResponse:
        payload = UserPayload.from_json(request.json)
        user = self.gateway.create(payload.name, payload.email)
        logger.info(f"Created user {user.id}")
        return created(user.to_dict(), location=self._router.url_for("get_user", id=user.id))

    @_map_errors
    def get_user(self, request: ParsedRequest) -> HTTPResponse:
        user = self.gateway.get(request.user_id)
        return ok(user.to_dict())

    @_map_errors
    def list_users(self, request: ParsedRequest) -> HTTPResponse:
        return ok([user.to_dict() for user in self.gateway.list()])

    @_map_errors
    def update_user(self, request: ParsedRequest) -> HTTPResponse:
        # Validate before touching the database so a bad body changes nothing.
        payload = UserPayload.from_json(request.json)
        user = self.gateway.update(request.user_id, payload.name, payload.email)
        logger.info(f"Updated user {user.id}")
        return ok(user.to_dict())

    @_map_errors
    def delete_user(self, request: ParsedRequest) -> HTTPResponse:
        self.gateway.delete(request.user_id)
        logger.info(f"Deleted user {request.user_id}")
        return no_content()

"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler and pulls parameters out of the path.

=============================================================================
ROUTE TABLE OF THE USER SERVICE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET     /users            → list_users                            │
    │   GET     /users/{id:int}   → get_user                              │
    │   POST    /users            → create_user                           │
    │   POST    /users/{id}       → create_user (id ignored)              │
    │   PUT     /users/{id:int}   → update_user                           │
    │   DELETE  /users/{id:int}   → delete_user                           │
    └─────────────────────────────────────────────────────────────────────┘

    GET /users/42   → get_user,  path_params = {"id": 42}
    GET /users/abc  → 400 (segment matched, but is not a positive int)
    GET /users/0    → 400
    PATCH /users/1  → 404 (no route for that method)
    GET /accounts   → 404

=============================================================================
PATTERN SYNTAX
=============================================================================

    /users              literal segments, exact match
    /users/{id}         {name} captures one segment as a string
    /users/{id:int}     {name:int} captures one segment and converts it
                        with positive_int(); failure answers 400

Tie-break: a route with more literal segments is tried before one with
fewer, whatever the registration order ("/users/me" beats "/users/{id}").
Among equally specific routes the first registered wins.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List
import logging
import re

from .request import ParsedRequest, Method
from .response import HTTPResponse, bad_request, not_found


logger = logging.getLogger(__name__)

Handler = Callable[[ParsedRequest], HTTPResponse]


def positive_int(value: str) -> int:
    """
    Convert a path segment to an int > 0.

    Only plain ASCII digits are accepted: "+1", " 1", "1.0" and "١" (Arabic
    one, which int() would accept) are all rejected.
    """
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"not a positive integer: {value!r}")
    number = int(value)
    if number <= 0:
        raise ValueError(f"not a positive integer: {value!r}")
    return number


CONVERTERS: Dict[str, Callable[[str], Any]] = {
    "str": str,
    "int": positive_int,
}

_PARAM_SEGMENT = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<conv>[a-z]+))?\}$")


@dataclass
class Route:
    """
    A registered route.

        Route(
            path="/users/{id:int}",
            method=Method.GET,
            handler=get_user,
            name="get_user",
            _pattern=re.compile(r"^/users/(?P<id>[^/]+)$"),
            _converters={"id": positive_int},
            _literal_segments=1,
        )
    """

    path: str
    method: Method
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _converters: Dict[str, Callable[[str], Any]] = field(default_factory=dict, repr=False)
    _literal_segments: int = field(default=0, repr=False)


@dataclass
class RouteMatch:
    """A matched route and its raw (unconverted) path parameters."""
    route: Route
    params: Dict[str, str]

    def convert(self) -> Dict[str, Any]:
        """
        Apply the route's converters to the raw params.

        Raises:
            ValueError: If a converter rejects its segment.
        """
        converted: Dict[str, Any] = {}
        for name, raw in self.params.items():
            converter = self.route._converters.get(name, str)
            converted[name] = converter(raw)
        return converted


class Router:
    """
    Method + path router.

        router = Router()
        router.add_route("/users/{id:int}", get_user, Method.GET, name="get_user")

        response = router.handle(request)
        router.url_for("get_user", id=7)     → "/users/7"
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Method,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register handler for method + path pattern.

        Raises:
            ValueError: If the pattern uses an unknown converter.
        """
        pattern, converters, literal_segments = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method,
            handler=handler,
            name=name,
            _pattern=pattern,
            _converters=converters,
            _literal_segments=literal_segments,
        )

        # Keep _routes ordered most-specific first. Inserting after every
        # route at least as specific preserves registration order for ties.
        position = len(self._routes)
        for index, existing in enumerate(self._routes):
            if existing._literal_segments < literal_segments:
                position = index
                break
        self._routes.insert(position, route)

        if name:
            self._named_routes[name] = route

        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, Dict[str, Callable[[str], Any]], int]:
        """
        Compile "/users/{id:int}" into a regex plus converters.

            ""          → (skipped)
            "users"     → /users
            "{id:int}"  → /(?P<id>[^/]+)      converters["id"] = positive_int

            ^/users/(?P<id>[^/]+)$

        Returns:
            (compiled regex, converters by param name, literal segment count)
        """
        regex_parts = ["^"]
        converters: Dict[str, Callable[[str], Any]] = {}
        literal_segments = 0

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")
            param = _PARAM_SEGMENT.match(segment)

            if param:
                name = param.group("name")
                conv_name = param.group("conv") or "str"
                if conv_name not in CONVERTERS:
                    raise ValueError(f"Unknown converter {conv_name!r} in route {path}")
                converters[name] = CONVERTERS[conv_name]
                regex_parts.append(f"(?P<{name}>[^/]+)")
            else:
                literal_segments += 1
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")
        regex_parts.append("$")

        return re.compile("".join(regex_parts)), converters, literal_segments

    # =========================================================================
    # MATCHING AND DISPATCH
    # =========================================================================

    def match(self, method: Method, path: str) -> Optional[RouteMatch]:
        """
        First route (most specific first) whose method and pattern match.

        Trailing slashes are ignored: "/users/" is "/users".
        """
        path = "/" + path.strip("/") if path != "/" else "/"

        for route in self._routes:
            if route.method != method:
                continue
            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())

        return None

    def handle(self, request: ParsedRequest) -> HTTPResponse:
        """
        Route a request to its handler.

            no route                 → 404
            route, bad {id:int}      → 400
            route, params convert    → handler(request)
        """
        match = self.match(request.method, request.path)

        if match is None:
            logger.debug(f"No route for {request.raw_method} {request.path}")
            return not_found(f"No route for {request.raw_method} {request.path}")

        try:
            request.path_params = match.convert()
        except ValueError as e:
            logger.debug(f"Rejected path parameters for {request.path}: {e}")
            return bad_request(f"Invalid path parameter in {request.path}")

        return match.route.handler(request)

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def url_for(self, name: str, **params: Any) -> Optional[str]:
        """
        Reverse a named route.

            router.url_for("get_user", id=7)  → "/users/7"
        """
        route = self._named_routes.get(name)
        if not route:
            return None

        url = route.path
        for param_name, value in params.items():
            url = re.sub(r"\{" + re.escape(param_name) + r"(?::[a-z]+)?\}", str(value), url)
        return url

    def routes(self) -> List[Route]:
        """All routes, most specific first."""
        return list(self._routes)

    def print_routes(self) -> None:
        """Print the route table (shown in the startup banner)."""
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method.value:8} {route.path}")
        print("-" * 60)

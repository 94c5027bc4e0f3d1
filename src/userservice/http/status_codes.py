"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service can put on the wire, with reason phrases.

=============================================================================
WHICH CODE FOR WHICH OUTCOME
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  Code  │ When the user service sends it                            │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  200   │ GET /users, GET /users/{id}, PUT /users/{id}              │
    │  201   │ POST /users created a row                                 │
    │  204   │ DELETE /users/{id} removed a row (empty body)             │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Malformed request, invalid JSON body, bad {id}            │
    │  404   │ No such route, or no row for {id}                         │
    │  408   │ Socket timeout while reading (only if a timeout is set)   │
    │  409   │ Email already taken (unique constraint)                   │
    │  413   │ Request larger than max_request_size                      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Database failure or unexpected handler error              │
    │  503   │ Worker queue full, connection rejected                    │
    └────────┴───────────────────────────────────────────────────────────┘

We use IntEnum so a status compares equal to its integer:

    >>> HTTPStatus.CONFLICT == 409
    True

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the service.

    Only the codes the service can actually emit are listed; adding one
    means adding its phrase to _STATUS_PHRASES below.
    """

    # 2xx Success
    OK = 200                        # Read or update succeeded
    CREATED = 201                   # New user row inserted
    NO_CONTENT = 204                # Delete succeeded, no body

    # 4xx Client errors
    BAD_REQUEST = 400               # Malformed request or body
    NOT_FOUND = 404                 # Unknown route or missing row
    REQUEST_TIMEOUT = 408           # Client too slow (socket timeout)
    CONFLICT = 409                  # Unique email violated
    PAYLOAD_TOO_LARGE = 413         # Over max_request_size

    # 5xx Server errors
    INTERNAL_SERVER_ERROR = 500     # Database down or handler bug
    SERVICE_UNAVAILABLE = 503       # Worker queue full

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line:

            HTTP/1.1 409 Conflict
                     ─── ────────
                      │   └── phrase
                      └────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def allows_body(self) -> bool:
        """
        Whether a response with this status may carry a body.

        RFC 7230 forbids a body on 204; we also omit Content-Type for it.
        """
        return self != HTTPStatus.NO_CONTENT


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}

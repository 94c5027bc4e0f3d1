"""
Value types for the users table.

    User         a row: {"id": int, "name": str, "email": str}
    UserPayload  what POST/PUT bodies must contain: {"name": str, "email": str}
"""

from dataclasses import dataclass
from typing import Any, Dict, Sequence

from .errors import InvalidPayload


@dataclass(frozen=True)
class User:
    """A row of the users table. The id is assigned by the database."""

    id: int
    name: str
    email: str

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "User":
        """Build from an (id, name, email) row as returned by the cursor."""
        user_id, name, email = row
        return cls(id=user_id, name=name, email=email)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape, keys in the order clients see them."""
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class UserPayload:
    """
    Validated body of a create or update request.

    Only presence and type are checked. Uniqueness of the email is left
    to the database, which is the only place it can be checked safely.
    """

    name: str
    email: str

    REQUIRED_FIELDS = ("name", "email")

    @classmethod
    def from_json(cls, data: Any) -> "UserPayload":
        """
        Validate decoded JSON.

        Extra keys (including "id") are ignored.

        Raises:
            InvalidPayload: If data is not an object with string name/email,
                or a value cannot be encoded as UTF-8.
        """
        if not isinstance(data, dict):
            raise InvalidPayload("Request body must be a JSON object")

        for field_name in cls.REQUIRED_FIELDS:
            if field_name not in data:
                raise InvalidPayload(f"Missing required field: {field_name}")
            value = data[field_name]
            if not isinstance(value, str):
                raise InvalidPayload(f"Field {field_name!r} must be a string")
            # A \ud800 escape decodes to a lone surrogate.
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise InvalidPayload(f"Field {field_name!r} is not valid UTF-8 text") from None

        return cls(name=data["name"], email=data["email"])

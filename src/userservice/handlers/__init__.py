"""Request handlers. Only the users resource exists."""

from .users import UserHandlers

__all__ = ["UserHandlers"]

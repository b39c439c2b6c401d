"""Validated client-side access to a remote users collection."""

from .core.debounce import debounce
from .core.http import RequestDispatcher, dispatch
from .core.models import ErrorCode, NewUser, Response, Role, User, UserUpdate
from .services.user_service import UserService

__all__ = [
    "ErrorCode",
    "NewUser",
    "RequestDispatcher",
    "Response",
    "Role",
    "User",
    "UserService",
    "UserUpdate",
    "debounce",
    "dispatch",
]

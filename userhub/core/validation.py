import logging
import re
from typing import Any, Dict, Optional

from .http import RequestDispatcher
from .models import ErrorCode, Response, Role


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


class ValidationFailure(Exception):
    """A rejected precondition, carried to the caller as a failed ``Response``."""

    def __init__(self, response: Response):
        super().__init__(response.message)
        self.response = response

    @classmethod
    def of(cls, code: ErrorCode, message: str) -> "ValidationFailure":
        return cls(Response.fail(code, message))

    @property
    def error_code(self) -> Optional[str]:
        return self.response.error_code


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
        logger.info(f"Rejected email with invalid format: {email!r}")
        raise ValidationFailure.of(ErrorCode.INVALID_EMAIL, f"Invalid email format: {email!r}")
    return email


def validate_role(role: Any) -> Role:
    try:
        return Role(role)
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        logger.info(f"Rejected unknown role: {role!r}")
        raise ValidationFailure.of(ErrorCode.INVALID_ROLE, f"Invalid role {role!r}. Allowed: {allowed}")


async def ensure_email_available(dispatcher: RequestDispatcher, users_url: str, email: str) -> None:
    listing = await dispatcher.dispatch(users_url, "GET")
    if not listing.success:
        raise ValidationFailure(listing)

    candidate = email.casefold()
    for record in listing.data or []:
        existing = record.get("email") if isinstance(record, dict) else None
        if isinstance(existing, str) and existing.casefold() == candidate:
            logger.info(f"Rejected duplicate email: {email}")
            raise ValidationFailure.of(ErrorCode.DUPLICATE_EMAIL, f"A user with email {email} already exists")


async def ensure_user_exists(dispatcher: RequestDispatcher, user_url: str, user_id: int) -> Dict[str, Any]:
    """Return the current record for ``user_id`` or fail with ``NOT_FOUND``.

    Failures other than absence (timeouts, transport errors) propagate as-is.
    """
    found = await dispatcher.dispatch(user_url, "GET")
    if found.success and isinstance(found.data, dict):
        return found.data
    if found.success or found.status_code == 404 or found.error_code == ErrorCode.NOT_FOUND.value:
        logger.info(f"User {user_id} not found")
        raise ValidationFailure.of(ErrorCode.NOT_FOUND, f"User {user_id} not found")
    raise ValidationFailure(found)

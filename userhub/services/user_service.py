import logging
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..core.config import Config
from ..core.debounce import Debouncer, debounce
from ..core.http import RequestDispatcher
from ..core.models import ErrorCode, NewUser, Response, Role, User, UserUpdate
from ..core.validation import (
    ValidationFailure,
    ensure_email_available,
    ensure_user_exists,
    validate_email,
    validate_role,
)


logger = logging.getLogger(__name__)

SERVER_ASSIGNED_FIELDS = ("id", "createdAt", "created_at")


def _describe(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(item) for item in issue.get("loc", ())) or "payload"
        parts.append(f"{location}: {issue.get('msg')}")
    return "; ".join(parts)


def _parse_users(response: Response) -> Response:
    try:
        users = [User.model_validate(record) for record in response.data or []]
    except (ValidationError, TypeError) as e:
        logger.error(f"Malformed user list from backend: {e}")
        return Response.fail(ErrorCode.NETWORK_ERROR, "Malformed user list in response", status_code=response.status_code)
    return Response.ok(users, status_code=response.status_code)


def _parse_user(response: Response) -> Response:
    try:
        user = User.model_validate(response.data)
    except ValidationError as e:
        logger.error(f"Malformed user record from backend: {e}")
        return Response.fail(ErrorCode.NETWORK_ERROR, "Malformed user record in response", status_code=response.status_code)
    return Response.ok(user, status_code=response.status_code)


class UserService:
    """Validated CRUD and search over the backend ``/users`` collection.

    Every method returns a ``Response``. Validation runs before any mutating
    request and a rejected check means no mutating request is sent.
    """

    def __init__(self, dispatcher: Optional[RequestDispatcher] = None, base_url: Optional[str] = None):
        self.dispatcher = dispatcher or RequestDispatcher()
        self.base_url = (base_url or Config.api_url()).rstrip("/")

    @property
    def users_url(self) -> str:
        return f"{self.base_url}/users"

    def user_url(self, user_id: int) -> str:
        return f"{self.users_url}/{user_id}"

    async def create_user(self, new_user: Union[NewUser, Mapping[str, Any]]) -> Response:
        try:
            payload = new_user if isinstance(new_user, NewUser) else NewUser.model_validate(dict(new_user))
        except ValidationError as e:
            return Response.fail(ErrorCode.VALIDATION_ERROR, f"Invalid user payload: {_describe(e)}")

        try:
            email = validate_email(payload.email)
            role = validate_role(payload.role)
            await ensure_email_available(self.dispatcher, self.users_url, email)
        except ValidationFailure as failure:
            return failure.response

        body = {"name": payload.name, "email": email, "role": role.value}
        created = await self.dispatcher.dispatch(self.users_url, "POST", body=body)
        if not created.success:
            return created
        logger.info(f"Created user {created.data.get('id') if isinstance(created.data, dict) else '?'} ({email})")
        return _parse_user(created)

    async def get_users(self, role: Optional[Union[Role, str]] = None) -> Response:
        url = self.users_url
        wanted: Optional[Role] = None
        if role is not None:
            try:
                wanted = validate_role(role)
            except ValidationFailure as failure:
                return failure.response
            url = f"{url}?role={wanted.value}"

        listing = await self.dispatcher.dispatch(url, "GET")
        if not listing.success:
            return listing
        parsed = _parse_users(listing)
        if parsed.success and wanted is not None:
            # Backends that ignore the query parameter still yield only matching records
            parsed.data = [user for user in parsed.data if user.role == wanted]
        return parsed

    async def get_user(self, user_id: int) -> Response:
        try:
            record = await ensure_user_exists(self.dispatcher, self.user_url(user_id), user_id)
        except ValidationFailure as failure:
            return failure.response
        return _parse_user(Response.ok(record))

    async def update_user(self, user_id: int, fields: Union[UserUpdate, Mapping[str, Any]]) -> Response:
        if isinstance(fields, UserUpdate):
            update = fields
        else:
            supplied = {key: value for key, value in dict(fields).items() if key not in SERVER_ASSIGNED_FIELDS}
            try:
                update = UserUpdate.model_validate(supplied)
            except ValidationError as e:
                return Response.fail(ErrorCode.VALIDATION_ERROR, f"Invalid update payload: {_describe(e)}")

        nulls = update.null_fields()
        if nulls:
            return Response.fail(ErrorCode.VALIDATION_ERROR, f"Fields cannot be set to null: {', '.join(nulls)}")

        changes = update.changes()
        try:
            if "email" in changes:
                validate_email(changes["email"])
            if "role" in changes:
                changes["role"] = validate_role(changes["role"]).value
            current = await ensure_user_exists(self.dispatcher, self.user_url(user_id), user_id)
        except ValidationFailure as failure:
            return failure.response

        if not changes:
            return _parse_user(Response.ok(current))

        updated = await self.dispatcher.dispatch(self.user_url(user_id), "PUT", body=changes)
        if not updated.success:
            return updated
        logger.info(f"Updated user {user_id}: {', '.join(changes)}")
        return _parse_user(updated)

    async def delete_user(self, user_id: int) -> Response:
        try:
            await ensure_user_exists(self.dispatcher, self.user_url(user_id), user_id)
        except ValidationFailure as failure:
            return failure.response

        deleted = await self.dispatcher.dispatch(self.user_url(user_id), "DELETE")
        if not deleted.success:
            return deleted
        logger.info(f"Deleted user {user_id}")
        return Response.ok(True, status_code=deleted.status_code)

    async def search_users(self, query: str) -> Response:
        listing = await self.dispatcher.dispatch(self.users_url, "GET")
        if not listing.success:
            return listing
        parsed = _parse_users(listing)
        if not parsed.success:
            return parsed

        needle = (query or "").casefold()
        matches: List[User] = [
            user for user in parsed.data
            if needle in user.name.casefold() or needle in user.email.casefold()
        ]
        return Response.ok(matches, status_code=listing.status_code)

    def debounced_search(self, delay_ms: Optional[int] = None) -> Debouncer:
        """``search_users`` behind a debounce, for interactive callers."""
        return debounce(self.search_users, Config.SEARCH_DEBOUNCE_MS if delay_ms is None else delay_ms)

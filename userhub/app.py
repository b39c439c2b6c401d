"""Development backend for the users collection.

Serves ``/users`` from an in-memory store so the client layer can be run and
tested end to end without the production backend. Nothing is persisted.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.config import Config
from .core.middleware import global_exception_handler, log_requests
from .core.models import ErrorCode, Role
from .core.validation import EMAIL_PATTERN

logger = logging.getLogger(__name__)


def _checked_email(value: str) -> str:
    if not EMAIL_PATTERN.fullmatch(value):
        raise ValueError(f"invalid email format: {value!r}")
    return value


class UserIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    email: str
    role: Role = Role.USER

    @field_validator("email")
    @classmethod
    def check_email_shape(cls, value: str) -> str:
        return _checked_email(value)


class UserPatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    role: Optional[Role] = None

    @field_validator("email")
    @classmethod
    def check_email_shape(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _checked_email(value)


class UserStore:
    """Users keyed by id. Ids are assigned sequentially and never reused."""

    def __init__(self):
        self._users: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._users)

    def records(self, role: Optional[Role] = None) -> List[Dict[str, Any]]:
        records = list(self._users.values())
        if role is not None:
            records = [r for r in records if r["role"] == role.value]
        return records

    def get(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self._users.get(user_id)

    def email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        candidate = email.casefold()
        return any(
            r["email"].casefold() == candidate
            for r in self._users.values()
            if r["id"] != exclude_id
        )

    def create(self, name: str, email: str, role: Role) -> Dict[str, Any]:
        record = {
            "id": self._next_id,
            "name": name,
            "email": email,
            "role": role.value,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        self._users[record["id"]] = record
        self._next_id += 1
        return record

    def update(self, user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        record = self._users[user_id]
        for key, value in changes.items():
            record[key] = value.value if isinstance(value, Role) else value
        return record

    def delete(self, user_id: int) -> Dict[str, Any]:
        return self._users.pop(user_id)


def _error(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"errorCode": code.value, "message": message})


def create_app(store: Optional[UserStore] = None) -> FastAPI:
    store = store if store is not None else UserStore()
    app = FastAPI(title="Users Development API")
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _log_requests(request, call_next):
        return await log_requests(request, call_next)

    @app.exception_handler(Exception)
    async def _global_exception_handler(request, exc):
        return await global_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
        return _error(422, ErrorCode.VALIDATION_ERROR, f"Invalid request: {exc.errors()}")

    @app.get("/users")
    async def list_users(role: Optional[Role] = None):
        return store.records(role)

    @app.post("/users", status_code=201)
    async def create_user(payload: UserIn):
        if store.email_taken(payload.email):
            return _error(409, ErrorCode.DUPLICATE_EMAIL, f"A user with email {payload.email} already exists")
        return store.create(payload.name, payload.email, payload.role)

    @app.get("/users/{user_id}")
    async def get_user(user_id: int):
        record = store.get(user_id)
        if record is None:
            return _error(404, ErrorCode.NOT_FOUND, f"User {user_id} not found")
        return record

    @app.put("/users/{user_id}")
    async def update_user(user_id: int, payload: UserPatch):
        if store.get(user_id) is None:
            return _error(404, ErrorCode.NOT_FOUND, f"User {user_id} not found")
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes and store.email_taken(changes["email"], exclude_id=user_id):
            return _error(409, ErrorCode.DUPLICATE_EMAIL, f"A user with email {changes['email']} already exists")
        return store.update(user_id, changes)

    @app.delete("/users/{user_id}")
    async def delete_user(user_id: int):
        if store.get(user_id) is None:
            return _error(404, ErrorCode.NOT_FOUND, f"User {user_id} not found")
        return store.delete(user_id)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "users-dev-api",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "users": len(store),
        }

    return app


app = create_app()

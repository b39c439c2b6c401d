from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class ErrorCode(str, Enum):
    INVALID_EMAIL = "INVALID_EMAIL"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    INVALID_ROLE = "INVALID_ROLE"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class Response(BaseModel, Generic[T]):
    """Uniform result of every dispatch and user operation.

    Callers check ``success`` before trusting ``data``. ``status_code`` is the
    HTTP status of the reply when one was received.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Optional[T] = None
    message: str = ""
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    status_code: Optional[int] = Field(default=None, alias="statusCode")

    @classmethod
    def ok(cls, data: Any = None, status_code: Optional[int] = None) -> "Response":
        return cls(success=True, data=data, message="", status_code=status_code)

    @classmethod
    def fail(cls, code: Any, message: str, status_code: Optional[int] = None) -> "Response":
        # Plain strings on the envelope so server-supplied codes and ours compare alike
        error_code = code.value if isinstance(code, ErrorCode) else str(code)
        return cls(success=False, data=None, message=message, error_code=error_code, status_code=status_code)


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    email: str
    role: Role
    created_at: datetime = Field(alias="createdAt")


class NewUser(BaseModel):
    """Create payload. ``id`` and ``createdAt`` are server-assigned and dropped."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    email: str
    role: Union[Role, str] = Role.USER


class UserUpdate(BaseModel):
    """Fields to change on an existing user.

    Omitted fields stay unchanged. An explicit ``None`` is a rejected value,
    see ``null_fields``.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    role: Optional[Union[Role, str]] = None

    def null_fields(self) -> list[str]:
        return sorted(name for name in self.model_fields_set if getattr(self, name) is None)

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.model_fields_set)}

import os
from dataclasses import dataclass
from typing import List
from urllib.parse import urlparse

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Config:
    """Client configuration loaded from environment variables.

    Points the data-access layer at the users backend and holds the timing
    knobs for dispatch and search.
    """

    USERS_API_BASE_URL: str = os.getenv("USERS_API_BASE_URL", "http://localhost")
    USERS_API_PORT: int = int(os.getenv("USERS_API_PORT", "3000"))
    REQUEST_TIMEOUT_MS: int = int(os.getenv("REQUEST_TIMEOUT_MS", "2000"))
    SEARCH_DEBOUNCE_MS: int = int(os.getenv("SEARCH_DEBOUNCE_MS", "300"))
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    DEV_SERVER_HOST: str = os.getenv("DEV_SERVER_HOST", "127.0.0.1")

    @classmethod
    def api_url(cls) -> str:
        base = cls.USERS_API_BASE_URL.rstrip("/")
        parsed = urlparse(base)
        # An explicit port in the base URL wins over USERS_API_PORT
        if parsed.port is not None or not cls.USERS_API_PORT:
            return base
        return f"{base}:{cls.USERS_API_PORT}"

    @staticmethod
    def allowed_origins(extra_origins: List[str] | None = None) -> List[str]:
        env_origins = [o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
        merged = list(env_origins)
        if extra_origins:
            merged.extend(extra_origins)
        # Deduplicate while preserving order
        seen = set()
        result: List[str] = []
        for origin in merged:
            if origin not in seen:
                seen.add(origin)
                result.append(origin)
        return result

    @classmethod
    def validate(cls) -> None:
        parsed = urlparse(cls.USERS_API_BASE_URL)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("USERS_API_BASE_URL must be an absolute http(s) URL")
        if cls.REQUEST_TIMEOUT_MS <= 0:
            raise ValueError("REQUEST_TIMEOUT_MS must be positive")
        if cls.SEARCH_DEBOUNCE_MS < 0:
            raise ValueError("SEARCH_DEBOUNCE_MS must not be negative")

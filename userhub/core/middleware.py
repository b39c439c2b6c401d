import logging
import re
import time
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)

MUTATING_METHODS = {"POST", "PUT", "DELETE"}
USER_PATH = re.compile(r"/users/(\d+)")


def target_user_id(path: str) -> Optional[int]:
    match = USER_PATH.fullmatch(path)
    return int(match.group(1)) if match else None


def describe_request(request: Request) -> str:
    user_id = target_user_id(request.url.path)
    target = f" user={user_id}" if user_id is not None else ""
    return f"{request.method} {request.url.path}{target}"


async def log_requests(request: Request, call_next: Callable):
    started = time.monotonic()
    request_id = f"{int(time.time() * 1000)}-{id(request)}"

    try:
        response = await call_next(request)
    except Exception as e:
        elapsed = time.monotonic() - started
        logger.error(f"[{request_id}] {describe_request(request)} - ERROR: {e} - {elapsed:.2f}s")
        raise

    elapsed = time.monotonic() - started
    response.headers["X-Request-ID"] = request_id
    # Reads are only worth a line when slow or failed; every change to the collection is logged
    if request.method in MUTATING_METHODS or elapsed > 1.0 or response.status_code >= 400:
        logger.info(f"[{request_id}] {describe_request(request)} - {response.status_code} - {elapsed:.2f}s")
    return response


async def global_exception_handler(request: Request, exc: Exception):
    request_id = f"{int(time.time() * 1000)}-{id(request)}"
    logger.error(f"[{request_id}] Unhandled exception in {describe_request(request)}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"errorCode": "NETWORK_ERROR", "message": "Internal server error"},
    )

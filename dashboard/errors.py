"""Error envelope shared by every route, plus the FastAPI handlers that emit it."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="errors")


class ApiErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiError(Exception):
    """An error that maps directly onto an HTTP status and the JSON error envelope."""

    def __init__(
        self,
        status_code: int,
        code: ApiErrorCode,
        message: str,
        *,
        error: Optional[str] = None,
        details: Any = None,
        retry_after_seconds: Optional[int] = None,
        provider_status: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.error = error
        self.details = details
        self.retry_after_seconds = retry_after_seconds
        self.provider_status = provider_status

    def to_payload(self) -> dict[str, Any]:
        """Envelope with unset optional fields left out."""
        payload: dict[str, Any] = {}
        if self.error is not None:
            payload["error"] = self.error
        payload["code"] = self.code.value
        payload["message"] = self.message
        if self.details is not None:
            payload["details"] = self.details
        if self.retry_after_seconds is not None:
            payload["retryAfterSeconds"] = self.retry_after_seconds
        if self.provider_status is not None:
            payload["providerStatus"] = self.provider_status
        return payload

    def to_response(self) -> JSONResponse:
        headers = None
        if self.retry_after_seconds is not None:
            headers = {"Retry-After": str(self.retry_after_seconds)}
        return JSONResponse(
            status_code=self.status_code,
            content=jsonable_encoder(self.to_payload()),
            headers=headers,
        )


def validation_error(message: str, details: Any = None, *, status_code: int = 400) -> ApiError:
    return ApiError(
        status_code,
        ApiErrorCode.INVALID_REQUEST,
        message,
        error="Validation failed",
        details=details,
    )


def not_found_error(message: str) -> ApiError:
    return validation_error(message, status_code=404)


def provider_error(message: str, provider_status: Any = None, details: Any = None) -> ApiError:
    return ApiError(
        502,
        ApiErrorCode.PROVIDER_ERROR,
        message,
        provider_status=provider_status,
        details=details,
    )


def internal_error(details: Any = None) -> ApiError:
    return ApiError(500, ApiErrorCode.INTERNAL_ERROR, "Unexpected server error.", details=details)


def rate_limit_error(retry_after_seconds: int) -> ApiError:
    return ApiError(
        429,
        ApiErrorCode.RATE_LIMITED,
        "Too many requests. Please try again shortly.",
        error="Too Many Requests",
        retry_after_seconds=retry_after_seconds,
    )


def _describe_issues(exc: RequestValidationError) -> list[dict[str, Any]]:
    issues = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("query", "body", "path")]
        issues.append({"path": ".".join(loc), "message": err.get("msg", "")})
    return issues


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return exc.to_response()


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    where = {loc[0] for loc in (err.get("loc") or ("query",) for err in exc.errors())}
    message = "Invalid request body" if "body" in where else "Invalid query parameters"
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return validation_error(message, {"issues": _describe_issues(exc)}).to_response()


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error while serving {request.url.path}")
    return internal_error().to_response()


def install_exception_handlers(app: FastAPI) -> None:
    """Route ApiError, request validation failures and stray exceptions through the envelope."""
    app.add_exception_handler(ApiError, _handle_api_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)

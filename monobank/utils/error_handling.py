"""
Response classification for the monobank acquiring SDK
Maps completed HTTP exchanges to decoded models or structured errors
"""

import json
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..models.errors import (
    APIError,
    ClassifiedOutcome,
    DecodeError,
    ErrorDetail,
    ErrorKind,
    UnexpectedResponseError,
)
from .logger import trim_body

M = TypeVar("M", bound=BaseModel)

# Retry-After delta-seconds: optional sign and ASCII digits only
_DELTA_SECONDS = re.compile(r"[+-]?[0-9]+")

# Alternative names the API uses for a human-readable error text, in priority order
DESCRIPTION_FIELDS = ("errText", "errorDescription", "message", "error", "description", "detail")


class APIErrorBody(BaseModel):
    """Known shape of an API error body"""
    model_config = ConfigDict(extra="ignore")

    err_code: Any = Field(None, alias="errCode")
    err_text: Optional[str] = Field(None, alias="errText")
    error_description: Optional[str] = Field(None, alias="errorDescription")
    message: Optional[str] = None
    error: Optional[str] = None
    description: Optional[str] = None
    detail: Optional[str] = None


def kind_from_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status to an error kind"""
    if status_code == 400:
        return ErrorKind.BAD_REQUEST
    elif status_code == 403:
        return ErrorKind.INVALID_CREDENTIAL
    elif status_code == 404:
        return ErrorKind.NOT_FOUND
    elif status_code == 405:
        return ErrorKind.METHOD_NOT_ALLOWED
    elif status_code == 429:
        return ErrorKind.RATE_LIMITED
    elif 500 <= status_code <= 599:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNEXPECTED_RESPONSE


def any_to_string(value: Any) -> str:
    """Stringify a JSON scalar; integral numbers lose their fractional part"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def first_non_empty(*values: Optional[str]) -> str:
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


def parse_api_error_body(body: bytes) -> Tuple[str, str]:
    """
    Best-effort extraction of (errCode, description) from an error body

    Args:
        body: Raw response body

    Returns:
        Tuple of business error code and description (either may be empty)
    """
    if not body:
        return "", ""

    raw_text = body.decode("utf-8", errors="replace").strip()

    # Structured decode first
    try:
        parsed = APIErrorBody.model_validate_json(body)
    except PydanticValidationError:
        parsed = None

    if parsed is not None:
        err_code = any_to_string(parsed.err_code)
        desc = first_non_empty(
            parsed.err_text,
            parsed.error_description,
            parsed.message,
            parsed.error,
            parsed.description,
            parsed.detail,
        )
        return err_code, desc or raw_text

    # Fallback: generic key-value object
    try:
        generic = json.loads(body)
    except (ValueError, UnicodeDecodeError, RecursionError):
        generic = None

    if isinstance(generic, dict):
        err_code = any_to_string(generic.get("errCode"))
        desc = first_non_empty(*(any_to_string(generic.get(f)) for f in DESCRIPTION_FIELDS))
        if not desc and len(generic) == 1:
            desc = any_to_string(next(iter(generic.values())))
        return err_code, (desc or raw_text).strip()

    # Last resort: plain text or HTML body
    return "", raw_text


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[timedelta]:
    """
    Parse a Retry-After header (delta-seconds or HTTP-date)

    Args:
        value: Header value
        now: Reference time for HTTP-date values (defaults to current UTC time)

    Returns:
        Non-negative delay, or None if the header is absent, unparseable
        or too large to represent
    """
    value = (value or "").strip()
    if not value:
        return None

    if _DELTA_SECONDS.fullmatch(value):
        try:
            return timedelta(seconds=max(int(value), 0))
        except (OverflowError, ValueError):
            return None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return max(when - now, timedelta(0))


def build_error_detail(
    method: str,
    path: str,
    status_code: int,
    headers: Mapping[str, str],
    body: bytes,
) -> ErrorDetail:
    """Build the structured description of a non-2xx response"""
    headers = httpx.Headers(headers)
    err_code, desc = parse_api_error_body(body)

    retry_after = None
    if status_code == 429:
        retry_after = parse_retry_after(headers.get("Retry-After"))

    return ErrorDetail(
        kind=kind_from_status(status_code),
        http_method=method,
        request_path=path,
        status_code=status_code,
        content_type=headers.get("Content-Type", ""),
        business_error_code=err_code,
        business_description=desc,
        truncated_body=trim_body(body),
        retry_after=retry_after,
    )


def classify_response(
    method: str,
    path: str,
    status_code: int,
    headers: Mapping[str, str],
    body: bytes,
    model: Optional[Type[M]] = None,
) -> ClassifiedOutcome[M]:
    """
    Classify a completed HTTP exchange

    Args:
        method: Request method
        path: Request path
        status_code: Response status
        headers: Response headers
        body: Raw response body
        model: Expected success shape; None means the body is not decoded

    Returns:
        ClassifiedOutcome holding either the decoded model or the error
    """
    body = body or b""

    if not 200 <= status_code < 300:
        detail = build_error_detail(method, path, status_code, headers, body)
        return ClassifiedOutcome(error=APIError(detail))

    if model is None:
        return ClassifiedOutcome()

    if not body:
        return ClassifiedOutcome(
            error=UnexpectedResponseError(
                op="decode",
                message="empty response body",
                method=method,
                endpoint=path,
                status_code=status_code,
            )
        )

    try:
        value = model.model_validate_json(body)
    except PydanticValidationError as e:
        return ClassifiedOutcome(
            error=DecodeError(
                op="decode",
                message=f"json unmarshal response into {model.__name__}",
                body=trim_body(body),
                cause=e,
            )
        )
    return ClassifiedOutcome(value=value)

"""
Error models for the monobank acquiring SDK
Defines the error kind enum, structured error detail and the exception hierarchy
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, Dict, Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Closed set of error categories; branch on this rather than on types"""
    VALIDATION = "validation_error"
    ENCODE = "encode_error"
    DECODE = "decode_error"
    TRANSPORT = "transport_error"
    CONFIGURATION = "configuration_error"
    INVALID_SIGNATURE = "invalid_signature"
    # Derived from the HTTP status of a completed exchange
    BAD_REQUEST = "bad_request"
    INVALID_CREDENTIAL = "invalid_credential"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNEXPECTED_RESPONSE = "unexpected_response"
    # Business failure reported inside a successful response
    PAYMENT_ERROR = "payment_error"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TRANSPORT, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR}
)


class ErrorDetail(BaseModel):
    """Structured description of a non-2xx API response"""
    kind: ErrorKind = Field(..., description="Category derived from the status code")
    http_method: str = Field("", description="Request method")
    request_path: str = Field("", description="Request path (without base URL)")
    status_code: int = Field(0, description="HTTP status, 0 if no response was received")
    content_type: str = Field("", description="Response Content-Type header")
    business_error_code: str = Field("", description="errCode parsed from the body")
    business_description: str = Field("", description="Error text parsed from the body")
    truncated_body: bytes = Field(b"", description="Leading bytes of the raw body")
    retry_after: Optional[timedelta] = Field(
        None, description="Server-requested delay, only for rate-limited responses"
    )


class MonobankError(Exception):
    """Base class for all SDK errors"""
    kind: ErrorKind = ErrorKind.UNEXPECTED_RESPONSE

    def __init__(self, op: str = "", message: str = "", cause: Optional[BaseException] = None):
        self.op = op
        self.message = message
        self.cause = cause
        super().__init__(self._render())

    def _parts(self):
        return [p for p in (self.op, self.message) if p]

    def _render(self) -> str:
        parts = [f"monobank: {self.kind.value.replace('_', ' ')}", *self._parts()]
        if self.cause is not None:
            parts.append(str(self.cause))
        return ": ".join(parts)

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for HTTP responses"""
        return {
            "ok": False,
            "error": {
                "code": self.kind.value,
                "message": str(self),
                "details": self.details(),
            },
        }

    def details(self) -> Dict[str, Any]:
        return {"op": self.op} if self.op else {}


class ValidationError(MonobankError):
    """Caller supplied empty or invalid input"""
    kind = ErrorKind.VALIDATION


class EncodeError(MonobankError):
    """Request payload could not be encoded"""
    kind = ErrorKind.ENCODE


class ConfigurationError(MonobankError):
    """Client is missing configuration needed for the operation"""
    kind = ErrorKind.CONFIGURATION


class InvalidSignatureError(MonobankError):
    """Webhook signature did not verify against the public key"""
    kind = ErrorKind.INVALID_SIGNATURE


class DecodeError(MonobankError):
    """Malformed base64, JSON or key container"""
    kind = ErrorKind.DECODE

    def __init__(
        self,
        op: str = "",
        message: str = "",
        body: bytes = b"",
        cause: Optional[BaseException] = None,
    ):
        self.body = body
        super().__init__(op=op, message=message, cause=cause)


class TransportError(MonobankError):
    """Network call failed before a response was received"""
    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        op: str = "",
        method: str = "",
        url: str = "",
        cause: Optional[BaseException] = None,
    ):
        self.method = method
        self.url = url
        super().__init__(op=op, message="", cause=cause)

    def _parts(self):
        parts = super()._parts()
        if self.method and self.url:
            parts.append(f"{self.method} {self.url}")
        elif self.url:
            parts.append(self.url)
        return parts

    def details(self) -> Dict[str, Any]:
        return {**super().details(), "method": self.method, "url": self.url}


class UnexpectedResponseError(MonobankError):
    """API answered in a way the client cannot use (e.g. empty 2xx body)"""
    kind = ErrorKind.UNEXPECTED_RESPONSE

    def __init__(
        self,
        op: str = "",
        message: str = "",
        method: str = "",
        endpoint: str = "",
        status_code: int = 0,
        body: bytes = b"",
    ):
        self.method = method
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        super().__init__(op=op, message=message)

    def _parts(self):
        parts = [self.op] if self.op else []
        if self.method and self.endpoint:
            parts.append(f"{self.method} {self.endpoint}")
        elif self.endpoint:
            parts.append(self.endpoint)
        if self.status_code:
            parts.append(f"status={self.status_code}")
        if self.message:
            parts.append(self.message)
        return parts

    def details(self) -> Dict[str, Any]:
        return {
            **super().details(),
            "method": self.method,
            "endpoint": self.endpoint,
            "status_code": self.status_code,
        }


class APIError(MonobankError):
    """Non-2xx response from the monobank API"""

    def __init__(self, detail: ErrorDetail):
        self.detail = detail
        self.kind = detail.kind
        super().__init__(op="", message="")

    @property
    def status_code(self) -> int:
        return self.detail.status_code

    @property
    def retry_after(self) -> Optional[timedelta]:
        return self.detail.retry_after

    def _render(self) -> str:
        d = self.detail
        msg = f"monobank: {d.kind.value.replace('_', ' ')}: status={d.status_code}"
        if d.http_method and d.request_path:
            msg += f" {d.http_method} {d.request_path}"
        elif d.request_path:
            msg += f" endpoint={d.request_path}"
        if d.business_error_code.strip():
            msg += f" errCode={d.business_error_code.strip()}"
        if d.business_description.strip():
            msg += f" desc={d.business_description.strip()}"
        if d.retry_after is not None:
            msg += f" retryAfter={d.retry_after.total_seconds():g}s"
        return msg

    def details(self) -> Dict[str, Any]:
        return self.detail.model_dump(exclude={"truncated_body"}, mode="json")


@dataclass(frozen=True)
class ClassifiedOutcome(Generic[T]):
    """Result of classifying one HTTP exchange: a decoded value or an error, never both"""
    value: Optional[T] = None
    error: Optional[MonobankError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the decoded value or raise the classified error"""
        if self.error is not None:
            raise self.error
        return self.value

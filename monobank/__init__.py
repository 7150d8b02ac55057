"""
Typed async client for the monobank acquiring API
"""

from .config.logging import configure_logging, get_logger
from .config.settings import ClientSettings
from .integrations.monobank import MonobankClient
from .models.api import (
    CURRENCY_UAH,
    FiscalCheck,
    FiscalChecksResponse,
    InitiationKind,
    InvoiceCreateRequest,
    InvoiceCreateResponse,
    InvoiceStatus,
    InvoiceStatusResponse,
    MerchantPaymInfo,
    PaymentType,
    PublicKeyResponse,
    SaveCardData,
    WalletPaymentRequest,
    WalletPaymentResponse,
)
from .models.errors import (
    APIError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    ErrorDetail,
    ErrorKind,
    InvalidSignatureError,
    MonobankError,
    TransportError,
    UnexpectedResponseError,
    ValidationError,
)
from .models.payment_errors import PaymentError, PaymentErrorMeta, new_payment_error
from .utils.retry import RetryConfig, retryable

__version__ = "0.1.0"

__all__ = [
    "MonobankClient",
    "ClientSettings",
    "configure_logging",
    "get_logger",
    "CURRENCY_UAH",
    "InvoiceStatus",
    "PaymentType",
    "InitiationKind",
    "MerchantPaymInfo",
    "SaveCardData",
    "InvoiceCreateRequest",
    "InvoiceCreateResponse",
    "WalletPaymentRequest",
    "WalletPaymentResponse",
    "InvoiceStatusResponse",
    "PublicKeyResponse",
    "FiscalCheck",
    "FiscalChecksResponse",
    "ErrorKind",
    "ErrorDetail",
    "MonobankError",
    "ValidationError",
    "EncodeError",
    "DecodeError",
    "TransportError",
    "ConfigurationError",
    "InvalidSignatureError",
    "UnexpectedResponseError",
    "APIError",
    "PaymentError",
    "PaymentErrorMeta",
    "new_payment_error",
    "RetryConfig",
    "retryable",
]

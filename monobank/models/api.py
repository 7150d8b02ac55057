"""
Pydantic models for monobank acquiring API requests, responses and webhooks
"""

import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .errors import DecodeError, ValidationError

if TYPE_CHECKING:
    from .payment_errors import PaymentError

CURRENCY_UAH = 980


class InvoiceStatus(str, Enum):
    """Invoice/payment state as reported by the API"""

    CREATED = "created"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"
    REVERSED = "reversed"
    EXPIRED = "expired"


class PaymentType(str, Enum):
    """debit charges immediately, hold reserves funds until finalized"""

    DEBIT = "debit"
    HOLD = "hold"


class InitiationKind(str, Enum):
    """Who initiated a token payment"""

    MERCHANT = "merchant"
    CLIENT = "client"


FINAL_STATUSES = frozenset(
    {InvoiceStatus.SUCCESS, InvoiceStatus.FAILURE, InvoiceStatus.REVERSED, InvoiceStatus.EXPIRED}
)
FAILURE_STATUSES = frozenset(
    {InvoiceStatus.FAILURE, InvoiceStatus.REVERSED, InvoiceStatus.EXPIRED}
)
PENDING_STATUSES = frozenset({InvoiceStatus.CREATED, InvoiceStatus.PROCESSING})


def _normalize_status(status: Optional[str]) -> str:
    return (status or "").strip().lower()


def status_is_final(status: Optional[str]) -> bool:
    return _normalize_status(status) in FINAL_STATUSES


def status_is_success(status: Optional[str]) -> bool:
    return _normalize_status(status) == InvoiceStatus.SUCCESS


def status_is_failure(status: Optional[str]) -> bool:
    return _normalize_status(status) in FAILURE_STATUSES


def status_is_pending(status: Optional[str]) -> bool:
    return _normalize_status(status) in PENDING_STATUSES


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _StatusMixin:
    """is_* helpers for models exposing a `status` string"""

    def is_final(self) -> bool:
        return status_is_final(self.status)

    def is_success(self) -> bool:
        return status_is_success(self.status)

    def is_failure(self) -> bool:
        return status_is_failure(self.status)

    def is_pending(self) -> bool:
        return status_is_pending(self.status)


# Request Models


class MerchantPaymInfo(_APIModel):
    """Subset of merchantPaymInfo supported by the SDK"""

    reference: Optional[str] = None
    destination: Optional[str] = None
    comment: Optional[str] = None
    customer_emails: Optional[List[str]] = Field(None, alias="customerEmails")


class SaveCardData(_APIModel):
    save_card: bool = Field(True, alias="saveCard")
    wallet_id: Optional[str] = Field(None, alias="walletId")


class InvoiceCreateRequest(_APIModel):
    """Body of POST /api/merchant/invoice/create"""

    amount: int = Field(0, description="Amount in minor units")
    ccy: int = CURRENCY_UAH
    merchant_paym_info: Optional[MerchantPaymInfo] = Field(None, alias="merchantPaymInfo")
    redirect_url: Optional[str] = Field(None, alias="redirectUrl")
    web_hook_url: Optional[str] = Field(None, alias="webHookUrl")
    validity: Optional[int] = Field(None, description="Invoice lifetime in seconds")
    payment_type: PaymentType = Field(PaymentType.DEBIT, alias="paymentType")
    save_card_data: Optional[SaveCardData] = Field(None, alias="saveCardData")


class WalletPaymentRequest(_APIModel):
    """Body of POST /api/merchant/wallet/payment"""

    card_token: str = Field("", alias="cardToken")
    amount: int = Field(0, description="Amount in minor units")
    ccy: int = CURRENCY_UAH
    redirect_url: Optional[str] = Field(None, alias="redirectUrl")
    web_hook_url: Optional[str] = Field(None, alias="webHookUrl")
    initiation_kind: Optional[InitiationKind] = Field(None, alias="initiationKind")
    merchant_paym_info: Optional[MerchantPaymInfo] = Field(None, alias="merchantPaymInfo")
    payment_type: PaymentType = Field(PaymentType.DEBIT, alias="paymentType")


# Response Models


class InvoiceCreateResponse(_APIModel):
    invoice_id: str = Field("", alias="invoiceId")
    page_url: str = Field("", alias="pageUrl")

    def parsed_page_url(self) -> httpx.URL:
        """Return pageUrl as an absolute URL"""
        raw = (self.page_url or "").strip()
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as e:
            raise ValidationError(op="verification", message=f"cannot parse pageUrl {raw!r}", cause=e) from e
        if not raw or not url.is_absolute_url:
            raise ValidationError(op="verification", message=f"pageUrl is not absolute: {raw!r}")
        return url


class WalletPaymentResponse(_StatusMixin, _APIModel):
    invoice_id: str = Field("", alias="invoiceId")
    tds_url: Optional[str] = Field(None, alias="tdsUrl")
    status: str = ""
    failure_reason: Optional[str] = Field(None, alias="failureReason")
    amount: int = 0
    ccy: int = 0
    created_date: Optional[datetime] = Field(None, alias="createdDate")
    modified_date: Optional[datetime] = Field(None, alias="modifiedDate")

    def requires_3ds(self) -> bool:
        return bool(self.tds_url and self.tds_url.strip())

    def payment_error(self) -> Optional["PaymentError"]:
        """
        Business error derived from the response.

        wallet/payment carries failureReason but no errCode; use status()
        or the webhook for the code.
        """
        from .payment_errors import new_payment_error

        return new_payment_error(self.invoice_id, self.status, "", self.failure_reason or "")

    def require_no_payment_error(self) -> None:
        error = self.payment_error()
        if error is not None:
            raise error


class CancelItem(_APIModel):
    status: str = ""
    amount: int = 0
    ccy: int = 0
    created_date: Optional[datetime] = Field(None, alias="createdDate")
    modified_date: Optional[datetime] = Field(None, alias="modifiedDate")
    approval_code: Optional[str] = Field(None, alias="approvalCode")
    rrn: Optional[str] = None
    ext_ref: Optional[str] = Field(None, alias="extRef")
    masked_pan: Optional[str] = Field(None, alias="maskedPan")


class PaymentInfo(_APIModel):
    masked_pan: Optional[str] = Field(None, alias="maskedPan")
    approval_code: Optional[str] = Field(None, alias="approvalCode")
    rrn: Optional[str] = None
    tran_id: Optional[str] = Field(None, alias="tranId")
    terminal: Optional[str] = None
    payment_system: Optional[str] = Field(None, alias="paymentSystem")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    fee: Optional[int] = None


class WalletData(_APIModel):
    card_token: str = Field("", alias="cardToken")
    wallet_id: str = Field("", alias="walletId")
    status: str = ""


class TipsInfo(_APIModel):
    employee_id: Optional[str] = Field(None, alias="employeeId")
    amount: Optional[int] = None


class InvoiceStatusResponse(_StatusMixin, _APIModel):
    """GET /api/merchant/invoice/status response; also the webhook payload"""

    invoice_id: str = Field("", alias="invoiceId")
    status: str = ""
    failure_reason: Optional[str] = Field(None, alias="failureReason")
    err_code: Optional[str] = Field(None, alias="errCode")

    amount: int = 0
    ccy: int = 0
    final_amount: Optional[int] = Field(None, alias="finalAmount")

    created_date: Optional[datetime] = Field(None, alias="createdDate")
    modified_date: Optional[datetime] = Field(None, alias="modifiedDate")

    reference: Optional[str] = None
    destination: Optional[str] = None

    cancel_list: Optional[List[CancelItem]] = Field(None, alias="cancelList")
    payment_info: Optional[PaymentInfo] = Field(None, alias="paymentInfo")
    wallet_data: Optional[WalletData] = Field(None, alias="walletData")
    tips_info: Optional[TipsInfo] = Field(None, alias="tipsInfo")

    def payment_error(self) -> Optional["PaymentError"]:
        from .payment_errors import new_payment_error

        return new_payment_error(
            self.invoice_id, self.status, self.err_code or "", self.failure_reason or ""
        )

    def require_no_payment_error(self) -> None:
        error = self.payment_error()
        if error is not None:
            raise error


class PublicKeyResponse(_APIModel):
    """GET /api/merchant/pubkey response; key is base64-encoded PEM"""

    key: str = ""


class FiscalCheck(_APIModel):
    id: str = ""
    type: str = ""
    status: str = ""
    status_description: Optional[str] = Field(None, alias="statusDescription")
    tax_url: Optional[str] = Field(None, alias="taxUrl")
    file: Optional[str] = Field(None, description="Base64-encoded receipt document")
    fiscalization_source: Optional[str] = Field(None, alias="fiscalizationSource")

    def parsed_tax_url(self) -> Optional[httpx.URL]:
        raw = (self.tax_url or "").strip()
        if not raw:
            return None
        try:
            return httpx.URL(raw)
        except httpx.InvalidURL as e:
            raise ValidationError(op="fiscal_checks", message=f"cannot parse taxUrl {raw!r}", cause=e) from e

    def decoded_file(self) -> bytes:
        raw = (self.file or "").strip()
        if not raw:
            return b""
        try:
            return base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(op="fiscal_checks", message="base64 decode file", cause=e) from e


class FiscalChecksResponse(_APIModel):
    checks: List[FiscalCheck] = Field(default_factory=list)

    def _with_status(self, *statuses: str) -> List[FiscalCheck]:
        return [c for c in self.checks if c.status.strip().lower() in statuses]

    def done_checks(self) -> List[FiscalCheck]:
        return self._with_status("done")

    def pending_checks(self) -> List[FiscalCheck]:
        return self._with_status("new", "process")

    def failed_checks(self) -> List[FiscalCheck]:
        return self._with_status("failed")

    def last_check(self) -> Optional[FiscalCheck]:
        return self.checks[-1] if self.checks else None

"""
Business-level payment errors (errCode / failureReason) and the errCode catalog.

These are NOT HTTP or transport errors; a payment can fail inside a 200 response
or a webhook delivery.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .api import status_is_failure
from .errors import ErrorKind, MonobankError

CONTACT_ISSUING_BANK = "issuing bank"
CONTACT_MONOBANK = "monobank support"
CONTACT_CUSTOMER = "customer"
CONTACT_API = "api/integration team"

_HANDLING_HINTS = {
    CONTACT_ISSUING_BANK: "Ask customer to contact the issuing bank and verify card restrictions/limits.",
    CONTACT_MONOBANK: "Contact monobank support and provide invoiceId + errCode for investigation.",
    CONTACT_CUSTOMER: "Ask customer to fix input/payment details and retry the payment flow.",
    CONTACT_API: "Review integration/request validation and merchant configuration in API settings.",
}
_DEFAULT_HINT = "Review errCode and failureReason, then route to the responsible support team."


@dataclass(frozen=True)
class PaymentErrorMeta:
    """Human-friendly description of a payment errCode"""

    code: str
    text: str
    contact: str

    def handling_hint(self) -> str:
        """Practical next step for whoever owns the contact target"""
        return _HANDLING_HINTS.get(self.contact.strip().lower(), _DEFAULT_HINT)


def _meta(code: str, text: str, contact: str) -> PaymentErrorMeta:
    return PaymentErrorMeta(code=code, text=text, contact=contact)


_BANK, _MONO, _CUST, _API = CONTACT_ISSUING_BANK, CONTACT_MONOBANK, CONTACT_CUSTOMER, CONTACT_API

_BLOCKED_BY_ISSUER = "Transaction is blocked by the issuing bank."
_MERCHANT_CONFIG = "Merchant configuration error."
_INTERNAL_FAILURE = "Internal technical failure."
_TDS_FAILED = "3-D Secure verification failed."
_TDS_STEP = "Error occurred during 3-D Secure step."
_LIMITS_EXCEEDED = "Payment acceptance limits exceeded."
_INVALID_EXPIRY = "Card expiry date is invalid."
_LOST_CARD = "Card is reported as lost. Spending is restricted."
_INTERNET_LIMIT = "Card internet payment limit exceeded."

_CATALOG_ROWS = [
    ("6", _BLOCKED_BY_ISSUER, _BANK),
    ("40", _LOST_CARD, _BANK),
    ("41", _LOST_CARD, _BANK),
    ("50", "Card spending is restricted.", _BANK),
    ("51", "The card has expired.", _BANK),
    ("52", "Card number is invalid.", _BANK),
    ("54", "A technical failure occurred.", _BANK),
    ("55", _MERCHANT_CONFIG, _MONO),
    ("56", "Card type does not support this payment.", _BANK),
    ("57", "Transaction is not supported.", _BANK),
    ("58", "Card spending for purchases is restricted.", _BANK),
    ("58", "Card spending is restricted.", _BANK),
    ("59", "Insufficient funds to complete the purchase.", _BANK),
    ("60", "Card spending transactions count limit exceeded.", _BANK),
    ("61", _INTERNET_LIMIT, _BANK),
    ("62", "PIN retry attempts limit is reached or exceeded.", _BANK),
    ("63", _INTERNET_LIMIT, _BANK),
    ("67", _MERCHANT_CONFIG, _MONO),
    ("68", "Payment system declined the transaction.", _BANK),
    ("71", _BLOCKED_BY_ISSUER, _BANK),
    ("72", _BLOCKED_BY_ISSUER, _BANK),
    ("73", "Routing error.", _MONO),
    ("74", _MERCHANT_CONFIG, _MONO),
    ("75", _BLOCKED_BY_ISSUER, _BANK),
    ("80", "Invalid CVV code.", _BANK),
    ("81", "Invalid CVV2 code.", _BANK),
    ("82", "Transaction is not allowed under these conditions.", _BANK),
    ("82", _MERCHANT_CONFIG, _MONO),
    ("83", "Card payment attempts limit exceeded.", _BANK),
    ("84", "Invalid 3-D Secure CAVV value.", _MONO),
    ("98", _MERCHANT_CONFIG, _MONO),
    ("1000", _INTERNAL_FAILURE, _MONO),
    ("1005", _INTERNAL_FAILURE, _MONO),
    ("1010", _INTERNAL_FAILURE, _MONO),
    ("1014", "Full card details are required to process payment.", _CUST),
    ("1034", _TDS_FAILED, _BANK),
    ("1035", _TDS_FAILED, _BANK),
    ("1036", _INTERNAL_FAILURE, _MONO),
    ("1044", _MERCHANT_CONFIG, _MONO),
    ("1045", _TDS_FAILED, _BANK),
    ("1053", _MERCHANT_CONFIG, _MONO),
    ("1054", _TDS_FAILED, _MONO),
    ("1056", "Transfer is allowed only to cards issued by Ukrainian banks.", _MONO),
    ("1064", "Payment is allowed only with Mastercard or Visa cards.", _BANK),
    ("1066", _MERCHANT_CONFIG, _MONO),
    ("1077", "Payment amount is below minimum allowed amount (payment system settings).", _API),
    ("1080", _INVALID_EXPIRY, _BANK),
    ("1090", "Customer information not found.", _MONO),
    ("1115", _MERCHANT_CONFIG, _MONO),
    ("1121", _MERCHANT_CONFIG, _MONO),
    ("1145", "Minimum transfer amount is not met.", _MONO),
    ("1165", _BLOCKED_BY_ISSUER, _BANK),
    ("1187", "Receiver name must be provided.", _API),
    ("1193", _BLOCKED_BY_ISSUER, _BANK),
    ("1194", "This top-up method works only with cards issued by other banks.", _MONO),
    ("1200", "CVV code is required.", _BANK),
    ("1405", "Payment system transfer limits reached.", _BANK),
    ("1406", "Card is blocked by risk management.", _BANK),
    ("1407", "Transaction is blocked by risk management.", _MONO),
    ("1408", _BLOCKED_BY_ISSUER, _BANK),
    ("1411", "This type of operation from UAH cards is temporarily restricted.", _MONO),
    ("1413", _BLOCKED_BY_ISSUER, _BANK),
    ("1419", _INVALID_EXPIRY, _BANK),
    ("1420", _INTERNAL_FAILURE, _MONO),
    ("1421", _TDS_FAILED, _BANK),
    ("1422", _TDS_STEP, _BANK),
    ("1425", _TDS_STEP, _BANK),
    ("1428", _BLOCKED_BY_ISSUER, _BANK),
    ("1429", _TDS_FAILED, _BANK),
    ("1433", "Check receiver first and last name. If data is invalid, bank can reject the transfer.", _MONO),
    ("1436", "Payment rejected due to policy restrictions.", _MONO),
    ("1439", "Operation is not allowed under the eRecovery program.", _MONO),
    ("1458", "Transaction rejected at 3DS step.", _BANK),
    ("8001", "Payment link has expired.", _CUST),
    ("8002", "Customer cancelled the payment.", _CUST),
    ("8003", "Technical failure occurred.", _MONO),
    ("8004", "3-D Secure processing problem.", _BANK),
    ("8005", _LIMITS_EXCEEDED, _MONO),
    ("8006", _LIMITS_EXCEEDED, _MONO),
]

# errCode -> one or more possible descriptions (some codes are documented twice)
PAYMENT_ERROR_CATALOG: Dict[str, List[PaymentErrorMeta]] = {}
for _code, _text, _contact in _CATALOG_ROWS:
    PAYMENT_ERROR_CATALOG.setdefault(_code, []).append(_meta(_code, _text, _contact))


def lookup_payment_error_metas(code: str) -> List[PaymentErrorMeta]:
    """Return a copy of the catalog entries for errCode (empty if unknown)"""
    code = (code or "").strip()
    if not code:
        return []
    return list(PAYMENT_ERROR_CATALOG.get(code, []))


def _dedupe(values) -> List[str]:
    seen = set()
    out = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out


class PaymentError(MonobankError):
    """Business failure parsed from a status response or webhook"""
    kind = ErrorKind.PAYMENT_ERROR

    def __init__(
        self,
        invoice_id: str = "",
        status: str = "",
        err_code: str = "",
        failure_reason: str = "",
        metas: Optional[List[PaymentErrorMeta]] = None,
    ):
        self.invoice_id = invoice_id
        self.status = status
        self.err_code = err_code
        self.failure_reason = failure_reason
        self.metas = list(metas or [])
        super().__init__(op="payment")

    def _render(self) -> str:
        parts = ["monobank: payment error"]
        if self.invoice_id.strip():
            parts.append(f"invoiceId={self.invoice_id.strip()}")
        if self.status.strip():
            parts.append(f"status={self.status.strip()}")
        if self.err_code.strip():
            parts.append(f"errCode={self.err_code.strip()}")
        if self.failure_reason.strip():
            parts.append(f"reason={self.failure_reason.strip()}")
        if len(self.metas) == 1:
            if self.metas[0].contact.strip():
                parts.append(f"contact={self.metas[0].contact.strip()}")
        elif len(self.metas) > 1:
            parts.append(f"contact={len(self.metas)}-options")
        return " ".join(parts)

    def details(self):
        return {
            "invoice_id": self.invoice_id,
            "status": self.status,
            "err_code": self.err_code,
            "failure_reason": self.failure_reason,
            "contacts": self.contacts(),
        }

    def primary_meta(self) -> Optional[PaymentErrorMeta]:
        return self.metas[0] if self.metas else None

    def explanations(self) -> List[str]:
        return _dedupe(m.text for m in self.metas)

    def contacts(self) -> List[str]:
        return sorted(_dedupe(m.contact for m in self.metas))

    def handling_hints(self) -> List[str]:
        return _dedupe(m.handling_hint() for m in self.metas)


def new_payment_error(
    invoice_id: str,
    status: str,
    err_code: str = "",
    failure_reason: str = "",
    synthesize_from_status: bool = True,
) -> Optional[PaymentError]:
    """
    Build a PaymentError from status/webhook fields

    Args:
        invoice_id: Invoice identifier
        status: Invoice status string
        err_code: errCode field (may be empty)
        failure_reason: failureReason field (may be empty)
        synthesize_from_status: When there is neither code nor reason, still
            report a failure-class status as an error with a generated reason

    Returns:
        PaymentError, or None when the payload carries no failure
    """
    code = (err_code or "").strip()
    reason = (failure_reason or "").strip()

    if not code and not reason:
        if not synthesize_from_status or not status_is_failure(status):
            return None
        reason = f"payment status indicates failure: {status}"

    return PaymentError(
        invoice_id=(invoice_id or "").strip(),
        status=status or "",
        err_code=code,
        failure_reason=reason,
        metas=lookup_payment_error_metas(code),
    )

"""
monobank acquiring API client with webhook signature verification
"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

import httpx
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..config.logging import get_logger
from ..config.settings import (
    ClientSettings,
    PATH_INVOICE_CREATE,
    PATH_INVOICE_FISCAL_CHECKS,
    PATH_INVOICE_STATUS,
    PATH_PUBKEY,
    PATH_WALLET_PAYMENT,
)
from ..models.api import (
    FiscalChecksResponse,
    InitiationKind,
    InvoiceCreateRequest,
    InvoiceCreateResponse,
    InvoiceStatusResponse,
    PublicKeyResponse,
    WalletPaymentRequest,
    WalletPaymentResponse,
)
from ..models.errors import (
    APIError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    InvalidSignatureError,
    TransportError,
    ValidationError,
)
from ..utils.error_handling import classify_response
from ..utils.key_cache import CacheCell
from ..utils.logger import body_preview, redact_headers, trim_body
from ..utils.webhook_verification import (
    decode_base64,
    load_ecdsa_public_key,
    require_webhook_input,
    verify_webhook_signature,
)
from .http import HTTPClient, HTTPOptions, json_headers

M = TypeVar("M", bound=BaseModel)

DryRunHandler = Callable[[str, Any], None]
DryRun = Union[bool, DryRunHandler, None]


class MonobankClient:
    """
    Async client for the monobank acquiring API.

    Supported flows:
    - verification (invoice/create with saveCardData, card tokenization)
    - payment by card token (wallet/payment)
    - invoice status and fiscal checks
    - webhook parsing and X-Sign verification
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize monobank client

        Args:
            settings: Client settings (defaults to ClientSettings())
            http_client: Preconfigured httpx.AsyncClient (not closed by the client)
            logger: Logger receiving SDK events (defaults to the "monobank" logger)
        """
        self.settings = settings or ClientSettings()
        self.log = logger or get_logger("monobank")
        self.http = HTTPClient(
            HTTPOptions(
                timeout=self.settings.timeout,
                max_connections=self.settings.max_connections,
                keepalive_expiry=self.settings.keepalive_expiry,
            ),
            client=http_client,
        )

        self._public_key: CacheCell[ec.EllipticCurvePublicKey] = CacheCell()
        self._webhook_public_key_base64 = self.settings.webhook_public_key_base64

    async def __aenter__(self) -> "MonobankClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    # --- API operations ---

    async def verification(
        self,
        request: InvoiceCreateRequest,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[InvoiceCreateResponse]:
        """
        Create an invoice with saveCardData (card tokenization)

        Under the hood: POST /api/merchant/invoice/create

        Args:
            request: Invoice parameters
            token: X-Token overriding the client default
            dry_run: True or a handler(endpoint, payload) to skip the HTTP call

        Returns:
            invoiceId and pageUrl, or None on dry run
        """
        if request is None:
            raise ValidationError(op="verification", message="request is nil")
        tok = self._require_token("verification", token)

        if request.amount <= 0:
            raise ValidationError(op="verification", message="amount (minor units) must be > 0")

        save_card = request.save_card_data
        if save_card is not None and save_card.save_card:
            if not (save_card.wallet_id or "").strip():
                raise ValidationError(
                    op="verification",
                    message="walletId is required when saveCard is enabled",
                )

        payload = _dump_payload(request)
        if dry_run:
            self._handle_dry_run(dry_run, self.settings.base_url + PATH_INVOICE_CREATE, payload)
            return None

        return await self._do_json(
            "POST", PATH_INVOICE_CREATE, tok, payload, InvoiceCreateResponse
        )

    async def verification_link(
        self,
        request: InvoiceCreateRequest,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[httpx.URL]:
        """Create a tokenization invoice and return only its absolute pageUrl"""
        response = await self.verification(request, token=token, dry_run=dry_run)
        if response is None:
            return None
        return response.parsed_page_url()

    async def payment(
        self,
        request: WalletPaymentRequest,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[WalletPaymentResponse]:
        """
        Charge a tokenized card

        Under the hood: POST /api/merchant/wallet/payment
        """
        if request is None:
            raise ValidationError(op="payment", message="request is nil")
        tok = self._require_token("payment", token)

        if not (request.card_token or "").strip():
            raise ValidationError(op="payment", message="cardToken is required")
        if request.amount <= 0:
            raise ValidationError(op="payment", message="amount (minor units) must be > 0")
        if request.initiation_kind is None:
            raise ValidationError(op="payment", message="initiationKind is required (merchant|client)")
        if request.initiation_kind == InitiationKind.CLIENT and not (request.redirect_url or "").strip():
            raise ValidationError(
                op="payment", message="redirectUrl is required when initiationKind=client"
            )

        payload = _dump_payload(request)
        if dry_run:
            self._handle_dry_run(dry_run, self.settings.base_url + PATH_WALLET_PAYMENT, payload)
            return None

        return await self._do_json(
            "POST", PATH_WALLET_PAYMENT, tok, payload, WalletPaymentResponse
        )

    async def status(
        self,
        invoice_id: str,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[InvoiceStatusResponse]:
        """
        Get invoice status

        Under the hood: GET /api/merchant/invoice/status?invoiceId=...
        """
        tok = self._require_token("status", token)
        invoice_id = (invoice_id or "").strip()
        if not invoice_id:
            raise ValidationError(op="status", message="invoiceId is required")

        params = {"invoiceId": invoice_id}
        if dry_run:
            self._handle_dry_run(dry_run, self.settings.base_url + PATH_INVOICE_STATUS, params)
            return None

        return await self._do_json(
            "GET", PATH_INVOICE_STATUS, tok, None, InvoiceStatusResponse, params=params
        )

    async def fiscal_checks(
        self,
        invoice_id: str,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[FiscalChecksResponse]:
        """
        List fiscal receipts of an invoice

        Under the hood: GET /api/merchant/invoice/fiscal-checks?invoiceId=...
        """
        tok = self._require_token("fiscal_checks", token)
        invoice_id = (invoice_id or "").strip()
        if not invoice_id:
            raise ValidationError(op="fiscal_checks", message="invoiceId is required")

        params = {"invoiceId": invoice_id}
        if dry_run:
            self._handle_dry_run(
                dry_run, self.settings.base_url + PATH_INVOICE_FISCAL_CHECKS, params
            )
            return None

        return await self._do_json(
            "GET", PATH_INVOICE_FISCAL_CHECKS, tok, None, FiscalChecksResponse, params=params
        )

    async def public_key(
        self,
        *,
        token: Optional[str] = None,
        dry_run: DryRun = False,
    ) -> Optional[PublicKeyResponse]:
        """Fetch the base64 PEM key used to verify webhook signatures"""
        tok = self._require_token("pubkey", token)
        if dry_run:
            self._handle_dry_run(dry_run, self.settings.base_url + PATH_PUBKEY, None)
            return None
        return await self._do_json("GET", PATH_PUBKEY, tok, None, PublicKeyResponse)

    # --- Webhooks ---

    def parse_webhook(self, body: bytes) -> InvoiceStatusResponse:
        """
        Decode a webhook body without checking its signature

        Args:
            body: Raw request body

        Returns:
            Decoded invoice status event
        """
        self.log.debug("Webhook parse", extra={"event": "webhook_parse", "body_size": len(body or b"")})
        if not body:
            self.log.error("Webhook body is empty", extra={"event": "webhook_parse_failed"})
            raise ValidationError(op="webhook", message="body is empty")

        try:
            event = InvoiceStatusResponse.model_validate_json(body)
        except PydanticValidationError as e:
            self.log.error(
                "Webhook decode error",
                extra={"event": "webhook_parse_failed", "error": str(e)},
            )
            raise DecodeError(
                op="webhook", message="json unmarshal", body=trim_body(body), cause=e
            ) from e

        self.log.info(
            "Webhook parsed",
            extra={
                "event": "webhook_parsed",
                "invoice_id": event.invoice_id,
                "status": event.status,
            },
        )
        return event

    async def verify_webhook(self, body: bytes, x_sign: str) -> None:
        """
        Verify the X-Sign header against the raw webhook body

        Args:
            body: Raw request body exactly as received
            x_sign: X-Sign header value

        Raises:
            ValidationError: Empty body or header
            DecodeError: Malformed signature or key
            InvalidSignatureError: Signature mismatch
        """
        self.log.debug("Webhook verify", extra={"event": "webhook_verify", "body_size": len(body or b"")})
        try:
            x_sign = require_webhook_input(body, x_sign)
        except ValidationError as e:
            self.log.error("Webhook verify input rejected", extra={"event": "webhook_verify_failed", "error": str(e)})
            raise

        try:
            public_key = await self.get_webhook_public_key()
        except Exception as e:
            self.log.error(
                "Cannot resolve webhook public key",
                extra={"event": "webhook_verify_failed", "error": str(e)},
            )
            raise

        try:
            verify_webhook_signature(public_key, body, x_sign)
        except InvalidSignatureError:
            self.log.warning("Webhook signature is invalid", extra={"event": "webhook_signature_invalid"})
            raise
        except DecodeError as e:
            self.log.error("X-Sign decode error", extra={"event": "webhook_verify_failed", "error": str(e)})
            raise

        self.log.info("Webhook signature is valid", extra={"event": "webhook_signature_valid"})

    async def verify_and_parse_webhook(self, body: bytes, x_sign: str) -> InvoiceStatusResponse:
        """Verify the signature first; the body is only decoded once trusted"""
        await self.verify_webhook(body, x_sign)
        return self.parse_webhook(body)

    async def get_webhook_public_key(self) -> ec.EllipticCurvePublicKey:
        """Resolve (once) and return the webhook verification key"""
        return await self._public_key.get_or_resolve(self._resolve_webhook_public_key)

    async def _resolve_webhook_public_key(self) -> ec.EllipticCurvePublicKey:
        # 1) Raw PEM provided
        if self.settings.webhook_public_key_pem:
            self.log.debug("Using configured PEM public key", extra={"event": "pubkey_source", "source": "pem"})
            return load_ecdsa_public_key(self.settings.webhook_public_key_pem, op="pubkey")

        # 2) Base64 PEM provided
        if self._webhook_public_key_base64:
            self.log.debug("Using configured base64 public key", extra={"event": "pubkey_source", "source": "base64"})
            pem = decode_base64(self._webhook_public_key_base64, op="pubkey", what="public key")
            return load_ecdsa_public_key(pem, op="pubkey")

        # 3) Fetch from API using the default token
        token = self.settings.token
        if not token:
            raise ConfigurationError(
                op="pubkey",
                message="public key not configured and default token is empty; "
                "set webhook_public_key_pem, webhook_public_key_base64 or token",
            )

        self.log.info("Fetching webhook public key", extra={"event": "pubkey_fetch"})
        response = await self._do_json("GET", PATH_PUBKEY, token, None, PublicKeyResponse)
        encoded = (response.key or "").strip()
        if not encoded:
            raise DecodeError(op="pubkey", message="empty key in response")

        pem = decode_base64(encoded, op="pubkey", what="fetched key")
        public_key = load_ecdsa_public_key(pem, op="pubkey")
        self._webhook_public_key_base64 = encoded
        return public_key

    # --- internal helpers ---

    def _require_token(self, op: str, token: Optional[str]) -> str:
        # Token precedence: explicit argument > client default token
        tok = (token or "").strip() or (self.settings.token or "")
        if not tok:
            raise ValidationError(
                op=op, message="X-Token is required (pass token=... or set ClientSettings.token)"
            )
        return tok

    def _request_headers(self, token: str, has_body: bool) -> Dict[str, str]:
        headers = json_headers(has_body)
        headers["X-Token"] = token
        if self.settings.cms:
            headers["X-Cms"] = self.settings.cms
        if self.settings.cms_version:
            headers["X-Cms-Version"] = self.settings.cms_version
        return headers

    async def _do_json(
        self,
        method: str,
        path: str,
        token: str,
        payload: Optional[Dict[str, Any]],
        model: Optional[Type[M]],
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[M]:
        """
        Execute one JSON request and classify the response

        Args:
            method: HTTP method
            path: API path appended to the base URL
            token: X-Token value
            payload: JSON body (None for no body)
            model: Expected success shape
            params: Query parameters

        Returns:
            Decoded response model
        """
        if not (token or "").strip():
            self.log.error(
                "Token is empty",
                extra={"event": "http_request_failed", "method": method, "path": path},
            )
            raise ValidationError(op="auth", message="token is empty")

        endpoint = self.settings.base_url + path

        content = None
        if payload is not None:
            try:
                content = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
            except (TypeError, ValueError) as e:
                self.log.error(
                    "Cannot build request",
                    extra={"event": "http_request_failed", "method": method, "path": path, "error": str(e)},
                )
                raise EncodeError(op="request", message="build json request", cause=e) from e

        headers = self._request_headers(token, content is not None)
        self.log.info(
            f"HTTP request: {method} {path}",
            extra={"event": "http_request", "method": method, "path": path},
        )
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "HTTP request details",
                extra={
                    "event": "http_request",
                    "endpoint": endpoint,
                    "headers": redact_headers(headers),
                    "payload": body_preview(content or b""),
                },
            )

        try:
            response = await self.http.request(
                method, endpoint, headers=headers, content=content, params=params
            )
        except httpx.RequestError as e:
            self.log.error(
                "HTTP transport error",
                extra={"event": "http_transport_error", "method": method, "path": path, "error": str(e)},
            )
            raise TransportError(op="http.request", method=method, url=endpoint, cause=e) from e

        body = response.content
        self.log.info(
            f"HTTP response: {method} {path} -> {response.status_code}",
            extra={"event": "http_response", "method": method, "path": path, "status_code": response.status_code},
        )
        self.log.debug(
            "HTTP response body",
            extra={"event": "http_response", "path": path, "body": body_preview(body)},
        )

        outcome = classify_response(method, path, response.status_code, response.headers, body, model)
        if isinstance(outcome.error, APIError):
            self._log_api_error(outcome.error)
        elif outcome.error is not None:
            self.log.error(
                "HTTP response decode failed",
                extra={
                    "event": "http_response_invalid",
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "error": str(outcome.error),
                },
            )
        return outcome.unwrap()

    def _log_api_error(self, error: APIError) -> None:
        detail = error.detail
        extra = {
            "event": "http_response_error",
            "method": detail.http_method,
            "path": detail.request_path,
            "status_code": detail.status_code,
            "err_code": detail.business_error_code,
            "description": detail.business_description,
        }
        message = f"HTTP response: non-2xx {detail.http_method} {detail.request_path} -> {detail.status_code}"
        if detail.status_code >= 500:
            self.log.error(message, extra=extra)
        else:
            self.log.warning(message, extra=extra)

        if detail.retry_after is not None:
            self.log.warning(
                "Rate limited by monobank",
                extra={
                    "event": "http_retry_after",
                    "path": detail.request_path,
                    "retry_after_seconds": detail.retry_after.total_seconds(),
                },
            )

    def _handle_dry_run(self, dry_run: DryRun, endpoint: str, payload: Any) -> None:
        if callable(dry_run):
            dry_run(endpoint, payload)
            return

        self.log.info(
            f"Dry run: skipping request to {endpoint}",
            extra={"event": "dry_run", "endpoint": endpoint},
        )
        if payload is None:
            self.log.info("Dry run payload: <nil>", extra={"event": "dry_run"})
            return
        self.log.info(
            "Dry run payload:\n%s",
            json.dumps(payload, indent=2, ensure_ascii=False, default=str),
            extra={"event": "dry_run"},
        )


def _dump_payload(request: BaseModel) -> Dict[str, Any]:
    return request.model_dump(mode="json", by_alias=True, exclude_none=True)

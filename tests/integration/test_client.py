"""
Integration tests for MonobankClient API operations over a mocked transport
"""

import json
import logging
from datetime import timedelta

import httpx
import pytest

from monobank.config.settings import (
    ClientSettings,
    PATH_INVOICE_CREATE,
    PATH_INVOICE_FISCAL_CHECKS,
    PATH_INVOICE_STATUS,
    PATH_PUBKEY,
    PATH_WALLET_PAYMENT,
)
from monobank.integrations.monobank import MonobankClient
from monobank.models.api import (
    InitiationKind,
    InvoiceCreateRequest,
    SaveCardData,
    WalletPaymentRequest,
)
from monobank.models.errors import (
    APIError,
    ErrorKind,
    TransportError,
    UnexpectedResponseError,
    ValidationError,
)
from monobank.utils.logger import REDACT_VALUE

from tests.conftest import TEST_BASE_URL, TEST_TOKEN


def _json_response(status_code: int, payload, headers=None) -> httpx.Response:
    return httpx.Response(status_code, json=payload, headers=headers)


class TestVerification:
    """POST /api/merchant/invoice/create with saveCardData"""

    async def test_success(self, make_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(200, {"invoiceId": "inv-1", "pageUrl": "https://pay.mbnk.biz/inv-1"})

        client = make_client(handler, token=TEST_TOKEN)
        response = await client.verification(
            InvoiceCreateRequest(amount=100, save_card_data=SaveCardData(wallet_id="wallet-1"))
        )

        assert response.invoice_id == "inv-1"
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == TEST_BASE_URL + PATH_INVOICE_CREATE
        assert request.headers["X-Token"] == TEST_TOKEN
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Accept"] == "application/json"
        assert "X-Cms" not in request.headers
        assert json.loads(request.content) == {
            "amount": 100,
            "ccy": 980,
            "paymentType": "debit",
            "saveCardData": {"saveCard": True, "walletId": "wallet-1"},
        }

    async def test_explicit_token_wins(self, make_client):
        tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens.append(request.headers["X-Token"])
            return _json_response(200, {"invoiceId": "inv-1", "pageUrl": "https://pay.mbnk.biz/inv-1"})

        client = make_client(handler, token=TEST_TOKEN)
        await client.verification(InvoiceCreateRequest(amount=100), token="per-call-token")

        assert tokens == ["per-call-token"]

    async def test_cms_headers(self, make_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(200, {"invoiceId": "inv-1", "pageUrl": "https://pay.mbnk.biz/inv-1"})

        client = make_client(handler, token=TEST_TOKEN, cms="shopware", cms_version="6.5")
        await client.verification(InvoiceCreateRequest(amount=100))

        assert seen[0].headers["X-Cms"] == "shopware"
        assert seen[0].headers["X-Cms-Version"] == "6.5"

    @pytest.mark.parametrize(
        "request_kwargs,message",
        [
            ({"amount": 0}, "amount"),
            ({"amount": -5}, "amount"),
            ({"amount": 100, "save_card_data": SaveCardData(wallet_id=" ")}, "walletId"),
        ],
    )
    async def test_validation(self, make_client, request_kwargs, message):
        client = make_client(token=TEST_TOKEN)

        with pytest.raises(ValidationError) as exc_info:
            await client.verification(InvoiceCreateRequest(**request_kwargs))
        assert message in str(exc_info.value)

    async def test_missing_token(self, make_client):
        client = make_client()

        with pytest.raises(ValidationError) as exc_info:
            await client.verification(InvoiceCreateRequest(amount=100))
        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert "X-Token" in str(exc_info.value)

    async def test_verification_link(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response(200, {"invoiceId": "inv-1", "pageUrl": "https://pay.mbnk.biz/inv-1"})

        client = make_client(handler, token=TEST_TOKEN)
        url = await client.verification_link(InvoiceCreateRequest(amount=100))

        assert url == httpx.URL("https://pay.mbnk.biz/inv-1")

    async def test_verification_link_rejects_relative_url(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response(200, {"invoiceId": "inv-1", "pageUrl": "/inv-1"})

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(ValidationError):
            await client.verification_link(InvoiceCreateRequest(amount=100))


class TestPayment:
    """POST /api/merchant/wallet/payment"""

    async def test_success(self, make_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(
                200,
                {"invoiceId": "inv-7", "status": "processing", "tdsUrl": "https://3ds.example/x",
                 "amount": 100, "ccy": 980, "createdDate": "2024-05-01T10:00:00Z"},
            )

        client = make_client(handler, token=TEST_TOKEN)
        response = await client.payment(
            WalletPaymentRequest(card_token="card-token", amount=100,
                                 initiation_kind=InitiationKind.MERCHANT)
        )

        assert response.invoice_id == "inv-7"
        assert response.requires_3ds()
        assert response.is_pending()
        assert response.created_date.year == 2024
        assert str(seen[0].url) == TEST_BASE_URL + PATH_WALLET_PAYMENT
        assert json.loads(seen[0].content)["initiationKind"] == "merchant"

    @pytest.mark.parametrize(
        "request_kwargs,message",
        [
            ({"card_token": "", "amount": 100, "initiation_kind": "merchant"}, "cardToken"),
            ({"card_token": "ct", "amount": 0, "initiation_kind": "merchant"}, "amount"),
            ({"card_token": "ct", "amount": 100}, "initiationKind"),
            ({"card_token": "ct", "amount": 100, "initiation_kind": "client"}, "redirectUrl"),
        ],
    )
    async def test_validation(self, make_client, request_kwargs, message):
        client = make_client(token=TEST_TOKEN)

        with pytest.raises(ValidationError) as exc_info:
            await client.payment(WalletPaymentRequest(**request_kwargs))
        assert message in str(exc_info.value)


class TestStatusAndFiscalChecks:
    async def test_status(self, make_client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(
                200, {"invoiceId": "inv-1", "status": "failure", "errCode": "59",
                      "failureReason": "insufficient funds"}
            )

        client = make_client(handler, token=TEST_TOKEN)
        response = await client.status(" inv-1 ")

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == PATH_INVOICE_STATUS
        assert request.url.params["invoiceId"] == "inv-1"
        assert "Content-Type" not in request.headers
        assert response.is_failure()
        assert response.payment_error().err_code == "59"

    async def test_status_requires_invoice_id(self, make_client):
        client = make_client(token=TEST_TOKEN)

        with pytest.raises(ValidationError):
            await client.status("  ")

    async def test_fiscal_checks(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == PATH_INVOICE_FISCAL_CHECKS
            assert request.url.params["invoiceId"] == "inv-1"
            return _json_response(200, {"checks": [{"id": "c1", "type": "sale", "status": "done"}]})

        client = make_client(handler, token=TEST_TOKEN)
        response = await client.fiscal_checks("inv-1")

        assert [c.id for c in response.done_checks()] == ["c1"]

    async def test_public_key(self, make_client, public_key_base64):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == PATH_PUBKEY
            return _json_response(200, {"key": public_key_base64})

        client = make_client(handler, token=TEST_TOKEN)
        response = await client.public_key()

        assert response.key == public_key_base64


class TestResponseErrors:
    async def test_not_found(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response(404, {"errCode": "INVOICE_NOT_FOUND", "errText": "invoice not found"})

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(APIError) as exc_info:
            await client.status("missing")

        error = exc_info.value
        assert error.kind == ErrorKind.NOT_FOUND
        assert error.detail.request_path == PATH_INVOICE_STATUS
        assert error.detail.business_description == "invoice not found"

    async def test_rate_limited(self, make_client, caplog):
        caplog.set_level(logging.DEBUG, logger="monobank")

        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response(429, {"errText": "too many requests"}, headers={"Retry-After": "5"})

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(APIError) as exc_info:
            await client.status("inv-1")

        assert exc_info.value.kind == ErrorKind.RATE_LIMITED
        assert exc_info.value.retry_after == timedelta(seconds=5)
        events = {r.event: r.levelno for r in caplog.records if hasattr(r, "event")}
        assert events["http_response_error"] == logging.WARNING
        assert events["http_retry_after"] == logging.WARNING

    async def test_server_error_logged_at_error_level(self, make_client, caplog):
        caplog.set_level(logging.DEBUG, logger="monobank")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(APIError) as exc_info:
            await client.status("inv-1")

        assert exc_info.value.kind == ErrorKind.SERVER_ERROR
        assert exc_info.value.is_retryable
        records = [r for r in caplog.records if getattr(r, "event", None) == "http_response_error"]
        assert records[0].levelno == logging.ERROR

    async def test_empty_created_body(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, content=b"")

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(UnexpectedResponseError) as exc_info:
            await client.verification(InvoiceCreateRequest(amount=100))

        assert exc_info.value.status_code == 201

    async def test_transport_error(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, token=TEST_TOKEN)
        with pytest.raises(TransportError) as exc_info:
            await client.status("inv-1")

        error = exc_info.value
        assert error.kind == ErrorKind.TRANSPORT
        assert error.is_retryable
        assert error.method == "GET"
        assert error.url == TEST_BASE_URL + PATH_INVOICE_STATUS
        assert isinstance(error.__cause__, httpx.ConnectError)


class TestDryRun:
    async def test_dry_run_skips_network(self, make_client, caplog):
        caplog.set_level(logging.INFO, logger="monobank")
        client = make_client(token=TEST_TOKEN)

        result = await client.verification(InvoiceCreateRequest(amount=100), dry_run=True)

        assert result is None
        assert any(getattr(r, "event", None) == "dry_run" for r in caplog.records)
        assert any('"amount": 100' in r.getMessage() for r in caplog.records)

    async def test_dry_run_handler_receives_payload(self, make_client):
        captured = []
        client = make_client(token=TEST_TOKEN)

        result = await client.payment(
            WalletPaymentRequest(card_token="ct", amount=100, initiation_kind=InitiationKind.MERCHANT),
            dry_run=lambda endpoint, payload: captured.append((endpoint, payload)),
        )

        assert result is None
        endpoint, payload = captured[0]
        assert endpoint == TEST_BASE_URL + PATH_WALLET_PAYMENT
        assert payload["cardToken"] == "ct"

    async def test_dry_run_still_validates(self, make_client):
        client = make_client(token=TEST_TOKEN)

        with pytest.raises(ValidationError):
            await client.status("", dry_run=True)


async def test_request_headers_are_redacted_in_logs(make_client, caplog):
    caplog.set_level(logging.DEBUG, logger="monobank")

    def handler(request: httpx.Request) -> httpx.Response:
        return _json_response(200, {"invoiceId": "inv-1", "status": "success"})

    client = make_client(handler, token=TEST_TOKEN)
    await client.status("inv-1")

    logged = [r.headers for r in caplog.records if hasattr(r, "headers")]
    assert logged and all(h["X-Token"] == REDACT_VALUE for h in logged)
    assert all(TEST_TOKEN not in r.getMessage() for r in caplog.records)


async def test_context_manager_closes_owned_client():
    async with MonobankClient(ClientSettings(token=TEST_TOKEN)) as client:
        http_client = client.http._client
        assert not http_client.is_closed

    assert http_client.is_closed


async def test_context_manager_keeps_injected_client_open():
    injected = httpx.AsyncClient()
    async with MonobankClient(ClientSettings(token=TEST_TOKEN), http_client=injected):
        pass

    assert not injected.is_closed
    await injected.aclose()

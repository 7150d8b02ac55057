"""
Shared fixtures for the monobank SDK test suite
"""

import base64

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from monobank.config.settings import ClientSettings
from monobank.integrations.monobank import MonobankClient

TEST_BASE_URL = "https://api.test.monobank.local"
TEST_TOKEN = "test-merchant-token"


@pytest.fixture(scope="session")
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    """Throwaway P-256 key pair standing in for monobank's signing key"""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def public_key_pem(ec_private_key) -> bytes:
    return ec_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def public_key_base64(public_key_pem) -> str:
    return base64.b64encode(public_key_pem).decode("ascii")


@pytest.fixture(scope="session")
def sign(ec_private_key):
    """Return a function producing the X-Sign header for a body"""

    def _sign(body: bytes) -> str:
        signature = ec_private_key.sign(body, ec.ECDSA(hashes.SHA256()))
        return base64.b64encode(signature).decode("ascii")

    return _sign


@pytest_asyncio.fixture
async def make_client():
    """
    Factory building a MonobankClient on top of httpx.MockTransport

    Usage: make_client(handler, token=..., webhook_public_key_pem=...)
    """
    http_clients = []

    def _make(handler=None, **settings_kwargs) -> MonobankClient:
        if handler is None:

            def handler(request: httpx.Request) -> httpx.Response:
                raise AssertionError(f"unexpected request: {request.method} {request.url}")

        settings_kwargs.setdefault("base_url", TEST_BASE_URL)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return MonobankClient(ClientSettings(**settings_kwargs), http_client=http_client)

    yield _make

    for http_client in http_clients:
        await http_client.aclose()

"""
Client configuration for the monobank acquiring SDK.

Settings can be passed explicitly or loaded from environment variables
(optionally from a dotenv file) with the MONOBANK_ prefix.
"""

import os
from dataclasses import dataclass
from typing import Optional, TypeVar

from dotenv import load_dotenv

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.monobank.ua"

PATH_INVOICE_CREATE = "/api/merchant/invoice/create"
PATH_INVOICE_STATUS = "/api/merchant/invoice/status"
PATH_INVOICE_FISCAL_CHECKS = "/api/merchant/invoice/fiscal-checks"
PATH_WALLET_PAYMENT = "/api/merchant/wallet/payment"
PATH_PUBKEY = "/api/merchant/pubkey"

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONNECTIONS = 100
DEFAULT_KEEPALIVE_EXPIRY = 90.0

ENV_PREFIX = "MONOBANK_"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class ClientSettings:
    """
    Connection and credential settings for MonobankClient.

    Webhook public key sources are consulted in this order:
    1. webhook_public_key_pem (raw PEM bytes)
    2. webhook_public_key_base64 (base64-encoded PEM, as served by /pubkey)
    3. fetched from the API with the default token
    """

    base_url: str = DEFAULT_BASE_URL
    token: Optional[str] = None
    webhook_public_key_pem: Optional[bytes] = None
    webhook_public_key_base64: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY
    cms: Optional[str] = None
    cms_version: Optional[str] = None

    def __post_init__(self):
        self.base_url = (self.base_url or "").strip().rstrip("/") or DEFAULT_BASE_URL
        self.token = _clean(self.token)
        self.webhook_public_key_base64 = _clean(self.webhook_public_key_base64)
        if not self.webhook_public_key_pem:
            self.webhook_public_key_pem = None
        else:
            self.webhook_public_key_pem = bytes(self.webhook_public_key_pem)
        self.cms = _clean(self.cms)
        self.cms_version = _clean(self.cms_version)

    @classmethod
    def from_env(
        cls, env_file: Optional[str] = None, prefix: str = ENV_PREFIX
    ) -> "ClientSettings":
        """
        Build settings from environment variables

        Args:
            env_file: Optional dotenv file loaded before reading the environment
            prefix: Environment variable prefix (defaults to "MONOBANK_")

        Returns:
            ClientSettings populated from the environment
        """
        if env_file:
            load_dotenv(env_file)

        def env(key: str) -> Optional[str]:
            return os.getenv(f"{prefix}{key}")

        return cls(
            base_url=env("BASE_URL") or DEFAULT_BASE_URL,
            token=env("TOKEN"),
            webhook_public_key_base64=env("WEBHOOK_PUBLIC_KEY"),
            timeout=_convert_value(env("TIMEOUT"), float, DEFAULT_TIMEOUT),
            max_connections=_convert_value(
                env("MAX_CONNECTIONS"), int, DEFAULT_MAX_CONNECTIONS
            ),
            keepalive_expiry=_convert_value(
                env("KEEPALIVE_EXPIRY"), float, DEFAULT_KEEPALIVE_EXPIRY
            ),
            cms=env("CMS"),
            cms_version=env("CMS_VERSION"),
        )


def _convert_value(value: Optional[str], setting_type: type, default: T) -> T:
    """Convert an environment string to the setting type, falling back to default"""
    if value is None or not value.strip():
        return default
    try:
        return setting_type(value.strip())
    except (ValueError, TypeError):
        return default

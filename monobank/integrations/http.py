"""
Thin async HTTP transport over httpx for JSON APIs
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config.settings import (
    DEFAULT_KEEPALIVE_EXPIRY,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT,
)


@dataclass
class HTTPOptions:
    """Pool and timeout options for the default httpx client"""

    timeout: float = DEFAULT_TIMEOUT
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY


class HTTPClient:
    """
    Owns an httpx.AsyncClient and performs one request per call.

    A caller-supplied AsyncClient is used as-is and is not closed by aclose().
    """

    def __init__(
        self,
        options: Optional[HTTPOptions] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.options = options or HTTPOptions()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.options.timeout),
            limits=httpx.Limits(
                max_connections=self.options.max_connections,
                max_keepalive_connections=self.options.max_connections,
                keepalive_expiry=self.options.keepalive_expiry,
            ),
        )

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request and read the full body

        Raises:
            httpx.RequestError: Network failure before a response was received
        """
        response = await self._client.request(
            method=method,
            url=url,
            headers=headers,
            content=content,
            params=params,
        )
        await response.aread()
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def json_headers(has_body: bool) -> Dict[str, str]:
    """Accept/Content-Type headers for a JSON request"""
    headers = {"Accept": "application/json"}
    if has_body:
        headers["Content-Type"] = "application/json"
    return headers

"""
HTTP API Client

Thin async wrapper around httpx.AsyncClient for the ordering backend.

Responsibilities:
    - Base URL, JSON headers and a fixed request timeout
    - Mapping transport failures to NetworkError
    - Mapping non-2xx responses to ApiError / UnauthorizedError with the
      server-provided message
    - Unwrapping the {"message", "result"} response envelope

Authentication is NOT handled here. AuthenticatedClient in
foodcart.services.auth wraps this client and adds the bearer token and the
refresh-retry protocol.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx

from foodcart.core.config import get_settings
from foodcart.errors import ApiError, NetworkError, UnauthorizedError

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def bearer(token: Optional[str]) -> dict[str, str]:
    """Authorization header for a token, empty when there is none."""
    return {"Authorization": f"Bearer {token}"} if token else {}


def unwrap_result(body: Any) -> Any:
    """Return body["result"] when the server used the envelope format."""
    if isinstance(body, dict) and "result" in body:
        return body["result"]
    return body


class ApiClient:
    """
    JSON-over-HTTPS client.

    Attributes:
        base_url: Root URL of the API
        timeout: Per-request timeout in seconds

    Example:
        >>> client = ApiClient()
        >>> body = await client.get("/orders/123", headers=bearer(token))
        >>> order = unwrap_result(body)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()

        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._http_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=DEFAULT_HEADERS,
            timeout=self.timeout,
            transport=transport,
        )

        logger.debug(f"ApiClient initialized ({self.base_url}, timeout={self.timeout}s)")

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        Send a request and return the parsed JSON body.

        Raises:
            NetworkError: No response (connection failure or timeout)
            UnauthorizedError: 401 response
            ApiError: Any other non-2xx response
        """
        try:
            response = await self._http_client.request(
                method.upper(),
                path,
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {method.upper()} {path}")
            raise NetworkError() from e
        except httpx.TransportError as e:
            logger.error(f"No response received: {method.upper()} {path} ({e})")
            raise NetworkError() from e

        body = self._parse_body(response)

        if response.is_success:
            return body

        message = self._error_message(response, body)
        errors = body.get("errors") if isinstance(body, dict) else None

        logger.error(f"API Error: {response.status_code} {method.upper()} {path} - {message}")

        if response.status_code == 401:
            raise UnauthorizedError(message, 401, errors=errors, body=body)
        raise ApiError(message, response.status_code, errors=errors, body=body)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_message(response: httpx.Response, body: Any) -> str:
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase or f"HTTP {response.status_code}"

    # Convenience methods

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http_client.aclose()

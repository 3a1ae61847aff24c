"""
Authenticated Request Middleware

Wraps ApiClient so every call carries the current access token and
survives one access-token expiry.

Refresh-retry protocol:
    1. Send with "Authorization: Bearer <access token>"
    2. On 401, if a refresh token exists, refresh exactly once and replay
       the request once with the new token
    3. If the refresh fails, the session is torn down and the original 401
       propagates
    4. A 401 on the replay is never retried; the session is torn down and
       the error propagates

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from foodcart.errors import AuthError, UnauthorizedError
from foodcart.services.http import ApiClient, bearer

if TYPE_CHECKING:
    from foodcart.services.auth.session import SessionManager

logger = logging.getLogger(__name__)


class AuthenticatedClient:
    """
    Same request surface as ApiClient, with token injection and replay.

    Example:
        >>> api = session.api
        >>> body = await api.post("/orders", json=payload)
    """

    def __init__(self, client: ApiClient, session: "SessionManager"):
        self._client = client
        self._session = session

    async def _send(
        self,
        method: str,
        path: str,
        token: Optional[str],
        headers: Optional[dict[str, str]],
        **kwargs: Any,
    ) -> Any:
        merged = {**(headers or {}), **bearer(token)}
        return await self._client.request(method, path, headers=merged, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> Any:
        token = self._session.access_token

        try:
            return await self._send(method, path, token, headers, **kwargs)
        except UnauthorizedError as error:
            if not self._session.refresh_token:
                raise

            logger.info(f"401 on {method.upper()} {path}; refreshing session")
            try:
                new_token = await self._session.refresh_session(token)
            except AuthError as refresh_error:
                raise error from refresh_error

        try:
            return await self._send(method, path, new_token, headers, **kwargs)
        except UnauthorizedError:
            logger.warning(f"401 after refresh on {method.upper()} {path}; signing out")
            await self._session.teardown()
            raise

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

"""
Auth/Session Manager

Owns the access/refresh token pair and the authenticated user profile.

State machine:
    UNAUTHENTICATED --login/restore--> AUTHENTICATED
    AUTHENTICATED --logout/failed refresh--> UNAUTHENTICATED

Tokens are persisted under "accessToken" / "refreshToken" in the key-value
store and are never written to the logs.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import enum
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from foodcart.errors import AuthError, FoodCartError
from foodcart.models import UserRole
from foodcart.schemas import RegisterRequest, TokenPair, UserProfile
from foodcart.services.auth.middleware import AuthenticatedClient
from foodcart.services.http import ApiClient, bearer, unwrap_result
from foodcart.services.storage import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    BaseKeyValueStore,
    StorageError,
)

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


SessionListener = Callable[[SessionState], None]


class SessionManager:
    """
    Process-wide session.

    Login, refresh, logout and startup restore talk to the API through the
    raw ApiClient with explicit bearer headers. Everything else should go
    through `session.api`, the AuthenticatedClient bound to this session.

    Example:
        >>> session = SessionManager(ApiClient(), MemoryKeyValueStore())
        >>> await session.restore()
        >>> if not session.is_authenticated:
        ...     await session.login("john@example.com", "secret")
        >>> orders = await session.api.get("/orders/user")
    """

    def __init__(self, client: ApiClient, store: BaseKeyValueStore):
        self._client = client
        self._store = store
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._user: Optional[UserProfile] = None
        self._listeners: list[SessionListener] = []
        self._refresh_lock = asyncio.Lock()

        self.api = AuthenticatedClient(client, self)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def state(self) -> SessionState:
        if self._user is not None and self._access_token:
            return SessionState.AUTHENTICATED
        return SessionState.UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    def has_role(self, role: UserRole) -> bool:
        return self._user is not None and self._user.role == role

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback fired after every state transition.

        Returns:
            A function that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _save_tokens(self, tokens: TokenPair) -> None:
        try:
            await self._store.set_item(ACCESS_TOKEN_KEY, tokens.access_token)
            await self._store.set_item(REFRESH_TOKEN_KEY, tokens.refresh_token)
        except StorageError as e:
            logger.error(f"Error saving tokens: {e}")

    async def _clear_tokens(self) -> None:
        try:
            await self._store.multi_remove([ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY])
        except StorageError as e:
            logger.error(f"Error clearing tokens: {e}")

    def _apply_tokens(self, tokens: TokenPair) -> None:
        self._access_token = tokens.access_token
        self._refresh_token = tokens.refresh_token

    # =========================================================================
    # SERVER CALLS
    # =========================================================================

    async def _fetch_profile(self, access_token: str) -> UserProfile:
        body = await self._client.get("/users/profile", headers=bearer(access_token))
        return UserProfile.model_validate(unwrap_result(body))

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new access/refresh pair.

        Does not touch session state.

        Raises:
            AuthError: The refresh token is invalid/expired or the call failed
        """
        try:
            body = await self._client.post(
                "/auth/refresh-token",
                json={"refresh_token": refresh_token},
            )
            return TokenPair.model_validate(unwrap_result(body))
        except (FoodCartError, ValidationError) as e:
            logger.warning(f"Refresh token error: {e}")
            raise AuthError("Session expired. Please sign in again.", cause=e) from e

    async def login(self, email: str, password: str) -> UserProfile:
        """
        Sign in, persist tokens and load the profile.

        The previous session is only replaced once both the login and the
        profile fetch succeeded.

        Raises:
            AuthError: Invalid credentials, network failure or bad response
        """
        try:
            body = await self._client.post(
                "/auth/login",
                json={"email": email, "password": password},
            )
            tokens = TokenPair.model_validate(unwrap_result(body))
            profile = await self._fetch_profile(tokens.access_token)
        except (FoodCartError, ValidationError) as e:
            logger.warning(f"Login failed for {email}: {e}")
            raise AuthError("Login failed", cause=e) from e

        self._apply_tokens(tokens)
        self._user = profile
        await self._save_tokens(tokens)

        logger.info(f"User {profile.id} signed in")
        self._notify()
        return profile

    async def register(self, request: RegisterRequest) -> Any:
        """Create an account. Does not sign in."""
        try:
            body = await self._client.post(
                "/auth/register",
                json=request.model_dump(mode="json", exclude_none=True),
            )
        except FoodCartError as e:
            raise AuthError("Registration failed", cause=e) from e
        return unwrap_result(body)

    async def update_profile(self, changes: dict[str, Any]) -> UserProfile:
        """PUT /users/profile and merge the result into the cached user."""
        body = await self.api.put("/users/profile", json=changes)
        updated = unwrap_result(body) or {}

        merged = {**(self._user.model_dump() if self._user else {}), **updated}
        self._user = UserProfile.model_validate(merged)
        self._notify()
        return self._user

    async def logout(self) -> None:
        """
        Best-effort server-side invalidation, then unconditional local clear.
        """
        refresh_token = self._refresh_token
        if refresh_token:
            try:
                await self._client.post(
                    "/auth/logout",
                    json={"refresh_token": refresh_token},
                    headers=bearer(self._access_token),
                )
            except FoodCartError as e:
                logger.warning(f"Logout error: {e}")

        await self.teardown()

    async def teardown(self) -> None:
        """Clear persisted tokens and in-memory session without a server call."""
        was_authenticated = self.is_authenticated or self._access_token is not None

        await self._clear_tokens()
        self._access_token = None
        self._refresh_token = None
        self._user = None

        if was_authenticated:
            logger.info("Session cleared")
            self._notify()

    # =========================================================================
    # REFRESH PROTOCOL
    # =========================================================================

    async def refresh_session(self, failed_access_token: Optional[str]) -> str:
        """
        Replace the token pair after a 401 on `failed_access_token`.

        Requests that failed with the same stale token share one refresh:
        if another caller already rotated the token while we waited for the
        lock, its result is reused.

        Returns:
            The access token to replay the request with

        Raises:
            AuthError: Refresh failed; the session has been torn down
        """
        async with self._refresh_lock:
            if self._access_token and self._access_token != failed_access_token:
                return self._access_token

            refresh_token = self._refresh_token
            if not refresh_token:
                raise AuthError("No refresh token available")

            try:
                tokens = await self.refresh(refresh_token)
            except AuthError:
                await self.teardown()
                raise

            self._apply_tokens(tokens)
            await self._save_tokens(tokens)
            logger.debug("Access token refreshed")
            return tokens.access_token

    # =========================================================================
    # STARTUP
    # =========================================================================

    async def restore(self) -> Optional[UserProfile]:
        """
        Rebuild the session from persisted tokens at process start.

        Sequence:
            1. Fetch the profile with the stored access token
            2. On failure, refresh once and refetch
            3. On failure, clear everything

        Returns:
            The restored user, or None if the user is unauthenticated
        """
        try:
            stored_access = await self._store.get_item(ACCESS_TOKEN_KEY)
            stored_refresh = await self._store.get_item(REFRESH_TOKEN_KEY)
        except StorageError as e:
            logger.error(f"Auth initialization error: {e}")
            return None

        if not (stored_access and stored_refresh):
            if stored_access or stored_refresh:
                await self._clear_tokens()
            return None

        self._access_token = stored_access
        self._refresh_token = stored_refresh

        try:
            self._user = await self._fetch_profile(stored_access)
        except (FoodCartError, ValidationError) as e:
            logger.info(f"Stored access token rejected ({e}); refreshing")
            try:
                tokens = await self.refresh(stored_refresh)
                self._apply_tokens(tokens)
                await self._save_tokens(tokens)
                self._user = await self._fetch_profile(tokens.access_token)
            except (FoodCartError, ValidationError) as refresh_error:
                logger.info(f"Session restore failed: {refresh_error}")
                await self.teardown()
                return None

        logger.info(f"Session restored for user {self._user.id}")
        self._notify()
        return self._user

"""Bearer token acquisition for the identity provider."""

import asyncio
import logging
import time
from typing import Callable, Optional

from ..config import Settings
from ..errors import AuthError
from ..providers.identity import AuthToken, IdentityProviderClient
from .retry import Sleep, retry

logger = logging.getLogger(__name__)


class TokenCache:
    """
    Owns the identity provider's bearer token.

    A cached token is handed out until ``issued_at + expires_in`` minus the
    refresh buffer. Concurrent refreshes share one lock so only a single
    token request is in flight at a time.
    """

    def __init__(
        self,
        client: IdentityProviderClient,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self._clock = clock
        self._sleep = sleep
        self._token: Optional[AuthToken] = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Optional[AuthToken]:
        return self._token

    def _is_fresh(self, token: Optional[AuthToken]) -> bool:
        return token is not None and token.is_usable(
            self._clock(), self.settings.identity_token_refresh_buffer_seconds
        )

    async def get_token(self, force_refresh: bool = False) -> AuthToken:
        """
        Return a usable token, fetching one when none is cached or it expired.

        Args:
            force_refresh: Always fetch a new token

        Raises:
            AuthError: Provider rejected the credentials or was unreachable
        """
        if not force_refresh and self._is_fresh(self._token):
            return self._token

        async with self._lock:
            # Another waiter may have refreshed while we queued on the lock
            if not force_refresh and self._is_fresh(self._token):
                return self._token

            logger.info("Fetching identity provider auth token...")
            token = await self.client.authenticate()
            self._token = token
            logger.info("Identity provider auth token obtained")
            return token

    async def get_token_with_retry(self, force_refresh: bool = True) -> AuthToken:
        """Token acquisition wrapped in the configured retry policy."""
        return await retry(
            lambda: self.get_token(force_refresh=force_refresh),
            max_attempts=self.settings.identity_max_retries,
            base_delay_ms=self.settings.identity_retry_base_delay_ms,
            sleep=self._sleep,
        )

    async def try_get_token(self, attempts: int) -> Optional[AuthToken]:
        """
        Request a token up to ``attempts`` times without raising.

        Returns None once every attempt failed, letting the caller report
        the provider as unavailable.
        """
        for attempt in range(1, attempts + 1):
            try:
                return await self.get_token(force_refresh=True)
            except AuthError as e:
                logger.warning(f"Auth token attempt {attempt}/{attempts} failed: {e}")
        logger.error(f"Failed to obtain auth token after {attempts} attempts")
        return None

    def clear(self) -> None:
        self._token = None

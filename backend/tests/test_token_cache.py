"""Tests for identity provider token caching."""

import asyncio

import pytest

from compliance.errors import AuthError
from compliance.services.token_cache import TokenCache


@pytest.fixture
def tokens(identity_client, settings, clock, sleep):
    return TokenCache(identity_client, settings, clock=clock, sleep=sleep)


class TestGetToken:
    """Test TokenCache.get_token()."""

    @pytest.mark.asyncio
    async def test_fetches_when_empty(self, tokens, identity_client):
        """Test the first call authenticates."""
        token = await tokens.get_token()
        assert token.access_token == "token-1"
        assert identity_client.auth_calls == 1
        assert tokens.cached == token

    @pytest.mark.asyncio
    async def test_reuses_fresh_token(self, tokens, identity_client):
        """Test a fresh token is served from cache."""
        first = await tokens.get_token()
        second = await tokens.get_token()
        assert first == second
        assert identity_client.auth_calls == 1

    @pytest.mark.asyncio
    async def test_refreshes_inside_buffer(self, tokens, identity_client, clock, settings):
        """Test a token within the refresh buffer of expiry is replaced."""
        await tokens.get_token()
        # 3600s token, 300s buffer: usable until t+3300
        clock.advance(3600 - settings.identity_token_refresh_buffer_seconds - 1)
        assert (await tokens.get_token()).access_token == "token-1"

        clock.advance(1)
        assert (await tokens.get_token()).access_token == "token-2"
        assert identity_client.auth_calls == 2

    @pytest.mark.asyncio
    async def test_force_refresh(self, tokens, identity_client):
        """Test force_refresh always authenticates."""
        await tokens.get_token()
        token = await tokens.get_token(force_refresh=True)
        assert token.access_token == "token-2"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, tokens, identity_client):
        """Test parallel requests on an empty cache trigger a single auth call."""
        results = await asyncio.gather(*(tokens.get_token() for _ in range(10)))
        assert identity_client.auth_calls == 1
        assert {t.access_token for t in results} == {"token-1"}

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, tokens, identity_client):
        """Test authentication failures are raised and nothing is cached."""
        identity_client.auth_failures = 1
        with pytest.raises(AuthError):
            await tokens.get_token()
        assert tokens.cached is None

    @pytest.mark.asyncio
    async def test_clear(self, tokens, identity_client):
        """Test clear() forces the next call to authenticate."""
        await tokens.get_token()
        tokens.clear()
        assert tokens.cached is None
        await tokens.get_token()
        assert identity_client.auth_calls == 2


class TestRetries:
    """Test retrying token acquisition."""

    @pytest.mark.asyncio
    async def test_with_retry_recovers(self, tokens, identity_client, sleep, settings):
        """Test transient auth failures are retried with backoff."""
        identity_client.auth_failures = 2
        token = await tokens.get_token_with_retry()
        assert token.access_token == "token-3"
        base = settings.identity_retry_base_delay_ms / 1000
        assert sleep.delays == [base, base * 2]

    @pytest.mark.asyncio
    async def test_with_retry_exhausted(self, tokens, identity_client, settings):
        """Test the last AuthError is raised once retries are spent."""
        identity_client.auth_failures = 10
        with pytest.raises(AuthError):
            await tokens.get_token_with_retry()
        assert identity_client.auth_calls == settings.identity_max_retries

    @pytest.mark.asyncio
    async def test_try_get_token_returns_none(self, tokens, identity_client):
        """Test try_get_token gives up quietly after its attempts."""
        identity_client.auth_failures = 3
        assert await tokens.try_get_token(3) is None
        assert identity_client.auth_calls == 3

    @pytest.mark.asyncio
    async def test_try_get_token_third_attempt(self, tokens, identity_client):
        """Test try_get_token succeeds on a late attempt."""
        identity_client.auth_failures = 2
        token = await tokens.try_get_token(3)
        assert token is not None
        assert identity_client.auth_calls == 3

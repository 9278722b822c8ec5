"""Remotely managed settings (journey resource id) with an explicit TTL cache."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteConfigValues:
    identity_resource_id: str


@dataclass(frozen=True)
class CachedConfig:
    value: RemoteConfigValues
    fetched_at: float


class RemoteConfigSource(Protocol):
    async def fetch(self) -> Dict[str, Any]: ...


class StaticConfigSource:
    """Serves values straight from settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def fetch(self) -> Dict[str, Any]:
        return {"identity_resource_id": self.settings.identity_resource_id}


class HttpConfigSource:
    """Fetches a flat JSON document of parameters from ``url``."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self) -> Dict[str, Any]:
        response = await self._client.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("Remote config document must be a JSON object")
        return body


class RemoteConfigCache:
    """
    TTL cache in front of a RemoteConfigSource.

    A fetch failure serves the stale cached value when there is one, and the
    configured defaults otherwise.
    """

    def __init__(
        self,
        source: RemoteConfigSource,
        defaults: RemoteConfigValues,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.defaults = defaults
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[CachedConfig] = None

    @property
    def cached(self) -> Optional[CachedConfig]:
        return self._cached

    def _is_valid(self, now: float) -> bool:
        return self._cached is not None and now - self._cached.fetched_at < self.ttl_seconds

    async def get(self) -> RemoteConfigValues:
        now = self._clock()
        if self._is_valid(now):
            logger.debug("Remote config: using cached values")
            return self._cached.value

        try:
            raw = await self.source.fetch()
        except Exception as e:
            if self._cached is not None:
                logger.warning(f"Remote config fetch failed, using stale cache: {e}")
                return self._cached.value
            logger.warning(f"Remote config fetch failed, using defaults: {e}")
            return self.defaults

        values = RemoteConfigValues(
            identity_resource_id=raw.get("identity_resource_id") or self.defaults.identity_resource_id,
        )
        self._cached = CachedConfig(value=values, fetched_at=now)
        logger.info("Remote config refreshed")
        return values

    async def get_resource_id(self) -> str:
        return (await self.get()).identity_resource_id

    def clear(self) -> None:
        self._cached = None
        logger.info("Remote config cache cleared")

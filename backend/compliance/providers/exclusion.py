"""Self-exclusion registry contract and its httpx implementation.

Single lookups return their outcome in response headers (``x-exclusion``,
``x-unique-id``), not the body. Batch lookups return a JSON array with one
item per submitted person plus an ``x-unique-id`` header for the request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..config import Settings
from ..errors import ExclusionServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionResponse:
    exclusion: Optional[str]
    unique_id: Optional[str]


@dataclass(frozen=True)
class BatchExclusionResponse:
    request_id: Optional[str]
    items: List[Dict[str, Any]] = field(default_factory=list)


class ExclusionRegistryClient(Protocol):
    """Transport-independent view of the self-exclusion registry."""

    async def check(self, form: Dict[str, str]) -> ExclusionResponse: ...

    async def check_batch(self, items: List[Dict[str, Any]]) -> BatchExclusionResponse: ...


class HttpExclusionRegistryClient:
    """ExclusionRegistryClient over HTTPS."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.exclusion_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check(self, form: Dict[str, str]) -> ExclusionResponse:
        response = await self._send(
            self.settings.resolved_exclusion_api_url,
            "Gamstop API request failed",
            data=form,
        )
        return ExclusionResponse(
            exclusion=response.headers.get("x-exclusion"),
            unique_id=response.headers.get("x-unique-id"),
        )

    async def check_batch(self, items: List[Dict[str, Any]]) -> BatchExclusionResponse:
        response = await self._send(
            self.settings.resolved_exclusion_batch_api_url,
            "Gamstop Batch API request failed",
            json=items,
            headers={"Accept": "application/json"},
        )
        request_id = response.headers.get("x-unique-id")
        logger.info(f"Exclusion batch request ID: {request_id}")

        try:
            body = response.json()
        except ValueError as e:
            raise ExclusionServiceError("Invalid response format from Gamstop batch API") from e
        if not isinstance(body, list):
            raise ExclusionServiceError("Invalid response format from Gamstop batch API")

        return BatchExclusionResponse(request_id=request_id, items=body)

    async def _send(
        self,
        url: str,
        failure_label: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        request_headers = {"X-API-Key": self.settings.exclusion_api_key}
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.post(
                url,
                headers=request_headers,
                timeout=self.settings.exclusion_timeout_seconds,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise ExclusionServiceError(f"{failure_label}: request timeout ({e})") from e
        except httpx.HTTPError as e:
            raise ExclusionServiceError(f"{failure_label}: {e}") from e

        if not response.is_success:
            raise ExclusionServiceError(
                f"{failure_label}: {response.status_code} {response.reason_phrase} - {response.text}",
                provider_status=response.status_code,
            )
        return response

"""Identity verification provider contract and its httpx implementation.

The provider exposes an OAuth2 password-grant endpoint and a "journey" API:
a journey is started with structured identity data, then polled, and its
outstanding tasks are listed and completed (e.g. document submission).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..config import Settings
from ..errors import AuthError, ProviderError

logger = logging.getLogger(__name__)

JOURNEY_START = "/captain/api/journey/start"
JOURNEY_STATE = "/captain/api/journey/state/fetch"
JOURNEY_TASK_LIST = "/captain/api/journey/task/list"
JOURNEY_TASK_UPDATE = "/captain/api/journey/task/update"


@dataclass(frozen=True)
class AuthToken:
    """Bearer token issued by the provider's OAuth2 endpoint."""
    access_token: str
    token_type: str
    expires_in: int  # seconds
    issued_at: float  # epoch seconds

    def expires_at(self, refresh_buffer_seconds: int = 0) -> float:
        return self.issued_at + self.expires_in - refresh_buffer_seconds

    def is_usable(self, now: float, refresh_buffer_seconds: int) -> bool:
        return now < self.expires_at(refresh_buffer_seconds)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


@dataclass(frozen=True)
class StartJourneyResponse:
    instance_id: str
    status: Optional[str] = None


@dataclass(frozen=True)
class RawJourneyState:
    """Journey state as returned by the provider.

    ``flow`` is None while the provider has not built a context yet.
    """
    status: str
    flow: Optional[Dict[str, Dict[str, Any]]] = None


@dataclass(frozen=True)
class Task:
    task_id: str
    variant_id: Optional[str] = None


@dataclass(frozen=True)
class TaskList:
    status: Optional[str]
    instance_id: str
    tasks: List[Task] = field(default_factory=list)


@dataclass(frozen=True)
class SubmitResult:
    status: Optional[str]
    instance_id: str


class IdentityProviderClient(Protocol):
    """Transport-independent view of the identity provider."""

    async def authenticate(self) -> AuthToken: ...

    async def start_journey(self, request: Dict[str, Any], token: AuthToken) -> StartJourneyResponse: ...

    async def fetch_state(self, instance_id: str, token: AuthToken) -> RawJourneyState: ...

    async def list_tasks(self, instance_id: str, token: AuthToken) -> TaskList: ...

    async def update_task(self, request: Dict[str, Any], token: AuthToken) -> SubmitResult: ...


class HttpIdentityProviderClient:
    """IdentityProviderClient over HTTPS."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.identity_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def authenticate(self) -> AuthToken:
        form = {
            "client_id": self.settings.identity_client_id,
            "client_secret": self.settings.identity_client_secret,
            "grant_type": "password",
            "scope": "openid",
            "username": self.settings.identity_username,
            "password": self.settings.identity_password,
        }
        try:
            response = await self._client.post(
                self.settings.identity_auth_url,
                data=form,
                timeout=self.settings.identity_timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise AuthError(f"GBG Auth failed: request timeout ({e})") from e
        except httpx.HTTPError as e:
            raise AuthError(f"GBG Auth failed: {e}") from e

        if not response.is_success:
            raise AuthError(
                f"GBG Auth failed: {response.status_code} {response.reason_phrase} - {response.text}"
            )

        try:
            body = response.json()
            return AuthToken(
                access_token=body["access_token"],
                token_type=body.get("token_type", "Bearer"),
                expires_in=int(body.get("expires_in", 0)),
                issued_at=time.time(),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError(f"GBG Auth failed: malformed token response ({e})") from e

    async def start_journey(self, request: Dict[str, Any], token: AuthToken) -> StartJourneyResponse:
        body = await self._post(JOURNEY_START, request, token, "Failed to start journey")
        return StartJourneyResponse(instance_id=body["instanceId"], status=body.get("status"))

    async def fetch_state(self, instance_id: str, token: AuthToken) -> RawJourneyState:
        body = await self._post(
            JOURNEY_STATE,
            {"instanceId": instance_id, "filterKeys": ["/.*/"]},
            token,
            "Failed to fetch journey state",
        )
        context = (body.get("data") or {}).get("context")
        flow = None
        if context:
            flow = (context.get("process") or {}).get("flow") or {}
        return RawJourneyState(status=body.get("status", ""), flow=flow)

    async def list_tasks(self, instance_id: str, token: AuthToken) -> TaskList:
        body = await self._post(
            JOURNEY_TASK_LIST,
            {"instanceId": instance_id},
            token,
            "Failed to retrieve tasks",
        )
        tasks = [
            Task(task_id=item["taskId"], variant_id=item.get("variantId"))
            for item in (body.get("tasks") or [])
        ]
        return TaskList(
            status=body.get("status"),
            instance_id=body.get("instanceId", instance_id),
            tasks=tasks,
        )

    async def update_task(self, request: Dict[str, Any], token: AuthToken) -> SubmitResult:
        body = await self._post(JOURNEY_TASK_UPDATE, request, token, "Failed to submit documents")
        return SubmitResult(
            status=body.get("status"),
            instance_id=body.get("instanceId", request.get("instanceId", "")),
        )

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        token: AuthToken,
        failure_label: str,
    ) -> Dict[str, Any]:
        url = f"{self.settings.identity_base_url.rstrip('/')}{path}"
        try:
            response = await self._client.post(
                url,
                json=payload,
                headers={"Authorization": token.authorization},
                timeout=self.settings.identity_timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"{failure_label}: request timeout ({e})") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{failure_label}: {e}") from e

        if not response.is_success:
            logger.error(f"{failure_label}: HTTP {response.status_code}")
            raise ProviderError(
                f"{failure_label}: {response.status_code} {response.reason_phrase} - {response.text}",
                provider_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{failure_label}: invalid JSON response ({e})",
                provider_status=response.status_code,
            ) from e

"""Identity verification journeys hosted by the external provider.

This service is a stateless client: the journey lives with the provider and
only its ``instance_id`` is kept on the user record. A journey is started
with structured identity data, polled for a decision, and advanced by
completing its outstanding tasks (document submission).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..config import Settings
from ..errors import ServiceUnavailable, ValidationError
from ..providers.identity import (
    AuthToken,
    IdentityProviderClient,
    RawJourneyState,
    SubmitResult,
    Task,
)
from .address import build_current_address
from .decision import (
    DECISION_PREFIX,
    JourneyStatus,
    ProviderDecision,
    VerificationStatus,
    parse_decision,
    parse_journey_status,
    resolve_status,
)
from .domain import PersonData
from .token_cache import TokenCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JourneyOutcome:
    """Resolved view of a polled journey."""
    instance_id: str
    journey_status: JourneyStatus
    decision: ProviderDecision
    status: VerificationStatus

    @property
    def is_resolved(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class UploadOutcome:
    instance_id: str
    task_id: str
    status: Optional[str] = None


def extract_outcome(flow: Optional[Dict[str, Dict[str, Any]]]) -> Optional[str]:
    """First flow step outcome carrying a ``Decision:`` marker, if any."""
    for step in (flow or {}).values():
        outcome = ((step or {}).get("result") or {}).get("outcome")
        if isinstance(outcome, str) and DECISION_PREFIX in outcome:
            return outcome
    return None


def build_identity(person: PersonData) -> Dict[str, Any]:
    """Identity block of a journey start request."""
    identity: Dict[str, Any] = {
        "firstName": person.first_name,
        "lastNames": [person.last_name],
    }
    if person.date_of_birth:
        identity["dateOfBirth"] = person.date_of_birth
    if person.address:
        identity["currentAddress"] = build_current_address(person.address)
    if person.email:
        identity["emails"] = [{"type": "private", "email": person.email}]
    if person.phone:
        identity["phones"] = [{"type": "mobile", "number": person.phone}]
    return identity


class IdentityJourney:
    """Drives identity verification journeys with the provider."""

    def __init__(self, client: IdentityProviderClient, tokens: TokenCache, settings: Settings):
        self.client = client
        self.tokens = tokens
        self.settings = settings

    async def _token(self, token: Optional[AuthToken]) -> AuthToken:
        return token if token is not None else await self.tokens.get_token()

    async def start(self, person: PersonData, resource_id: str) -> str:
        """
        Start a journey for ``person`` and return its instance id.

        Raises:
            ValidationError: Address missing or incomplete
            AuthError: No token after the configured retries
            ProviderError: The start call failed
        """
        if person.address is None:
            raise ValidationError("Address is required for identity verification", field="address")

        missing = person.address.missing_fields()
        if missing:
            raise ValidationError(
                f"Address is missing required fields: {', '.join(missing)}",
                field="address",
            )

        # Fresh token per journey
        token = await self.tokens.get_token_with_retry(force_refresh=True)

        request = {
            "resourceId": resource_id,
            "context": {
                "subject": {
                    "identity": build_identity(person),
                    "documents": [],
                    "biometrics": [],
                },
            },
        }
        logger.debug(f"Journey start request built for resource {resource_id}")

        response = await self.client.start_journey(request, token)
        logger.info(f"Identity journey started: {response.instance_id}")
        return response.instance_id

    async def fetch_state(self, instance_id: str, token: Optional[AuthToken] = None) -> RawJourneyState:
        """Current provider-side state of a journey."""
        return await self.client.fetch_state(instance_id, await self._token(token))

    def resolve(self, instance_id: str, state: RawJourneyState) -> JourneyOutcome:
        """Derive the internal status from a raw journey state."""
        journey_status = parse_journey_status(state.status)

        if state.flow is None:
            logger.info(f"Journey {instance_id} has no context yet, still pending")
            return JourneyOutcome(
                instance_id=instance_id,
                journey_status=journey_status,
                decision=ProviderDecision.UNKNOWN,
                status=VerificationStatus.IN_PROGRESS,
            )

        decision = parse_decision(extract_outcome(state.flow))
        status = resolve_status(journey_status, decision)
        logger.info(
            f"Journey {instance_id}: provider status={state.status!r}, "
            f"decision={decision.value!r}, resolved={status.value}"
        )
        return JourneyOutcome(
            instance_id=instance_id,
            journey_status=journey_status,
            decision=decision,
            status=status,
        )

    async def poll(self, instance_id: str, token: Optional[AuthToken] = None) -> JourneyOutcome:
        state = await self.fetch_state(instance_id, token)
        return self.resolve(instance_id, state)

    async def retrieve_tasks(self, instance_id: str, token: Optional[AuthToken] = None) -> List[Task]:
        """Outstanding tasks of a journey. An empty list means nothing to submit."""
        task_list = await self.client.list_tasks(instance_id, await self._token(token))
        logger.info(f"Retrieved {len(task_list.tasks)} task(s) for journey {instance_id}")
        return list(task_list.tasks)

    async def submit_documents(
        self,
        instance_id: str,
        task_id: str,
        first_name: str,
        last_name: str,
        documents: Sequence[str],
        token: Optional[AuthToken] = None,
    ) -> SubmitResult:
        """Complete a task by attaching base64 document images."""
        if not documents:
            raise ValidationError("Provide at least 1 document for verification", field="documents")

        request = {
            "intent": "Complete",
            "instanceId": instance_id,
            "taskId": task_id,
            "context": {
                "subject": {
                    "identity": {
                        "firstName": first_name,
                        "lastNames": [last_name],
                    },
                    "documents": [{"side1Image": document} for document in documents],
                },
            },
        }

        logger.info(f"Submitting {len(documents)} document(s) to task {task_id}")
        result = await self.client.update_task(request, await self._token(token))
        logger.info(f"Documents submitted for journey {result.instance_id}")
        return result

    async def upload_documents(
        self,
        instance_id: str,
        first_name: str,
        last_name: str,
        documents: Sequence[str],
    ) -> UploadOutcome:
        """
        Submit documents to the first outstanding task of a journey.

        Raises:
            ServiceUnavailable: No token after ``upload_token_attempts`` tries
            ValidationError: The journey has no outstanding task
            ProviderError: Task listing or submission failed
        """
        attempts = self.settings.upload_token_attempts
        token = await self.tokens.try_get_token(attempts)
        if token is None:
            raise ServiceUnavailable(
                "Unable to authenticate with verification service. Please try again later.",
                details=f"No auth token after {attempts} attempts",
            )

        tasks = await self.retrieve_tasks(instance_id, token)
        if not tasks:
            raise ValidationError("No pending tasks found for this verification journey")

        task = tasks[0]
        result = await self.submit_documents(
            instance_id, task.task_id, first_name, last_name, documents, token
        )
        return UploadOutcome(instance_id=result.instance_id, task_id=task.task_id, status=result.status)

"""Self-exclusion registry lookups, single and batched."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import Settings
from ..errors import CorrelationError, ExclusionServiceError, ValidationError
from ..providers.exclusion import ExclusionRegistryClient
from .domain import PersonData

logger = logging.getLogger(__name__)

# Single lookups only treat "Y" as registered; batch lookups also treat the
# partial-match "P" as registered.
SINGLE_REGISTERED_VALUES = frozenset({"Y"})
BATCH_REGISTERED_VALUES = frozenset({"Y", "P"})


@dataclass(frozen=True)
class ExclusionCheckResult:
    is_registered: bool
    registration_id: Optional[str] = None


@dataclass(frozen=True)
class BatchUserData:
    """One person in a batch lookup, tagged with a caller-chosen correlation id."""
    first_name: str
    last_name: str
    date_of_birth: str
    email: str
    phone: str
    postcode: str
    correlation_id: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        payload = {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "email": self.email,
            "postcode": self.postcode,
            "mobile": self.phone,
        }
        if self.correlation_id:
            payload = {"correlationId": self.correlation_id, **payload}
        return payload


@dataclass(frozen=True)
class BatchExclusionResult:
    correlation_id: Optional[str]
    is_registered: bool
    provider_request_id: Optional[str]


class ExclusionChecker:
    """Checks people against the self-exclusion registry."""

    def __init__(self, client: ExclusionRegistryClient, settings: Settings):
        self.client = client
        self.settings = settings

    @property
    def batch_size_limit(self) -> int:
        return self.settings.exclusion_batch_size_limit

    async def check_one(self, person: PersonData) -> ExclusionCheckResult:
        """
        Look up a single person.

        Raises:
            ExclusionServiceError: The registry could not answer. Callers
                must treat this as blocking.
        """
        form = {
            "firstName": person.first_name,
            "lastName": person.last_name,
            "dateOfBirth": person.date_of_birth or "",
            "email": person.email or "",
            "postcode": person.address.postcode if person.address else "",
            "mobile": person.phone or "",
        }

        try:
            response = await self.client.check(form)
        except ExclusionServiceError as e:
            logger.error(f"Exclusion registry error: {e}")
            raise

        is_registered = response.exclusion in SINGLE_REGISTERED_VALUES
        logger.info(f"Exclusion check completed (registered={is_registered})")
        return ExclusionCheckResult(
            is_registered=is_registered,
            registration_id=response.unique_id,
        )

    async def check_batch(self, users: Sequence[BatchUserData]) -> List[BatchExclusionResult]:
        """
        Look up up to ``batch_size_limit`` people in one request.

        Raises:
            ValidationError: Too many users; nothing is sent
            ExclusionServiceError: The registry could not answer
        """
        if not users:
            return []

        if len(users) > self.batch_size_limit:
            raise ValidationError(
                f"Batch requests are limited to {self.batch_size_limit} users per request",
                field="users",
            )

        try:
            response = await self.client.check_batch([user.to_payload() for user in users])
        except ExclusionServiceError as e:
            logger.error(f"Exclusion batch registry error: {e}")
            raise

        return [
            BatchExclusionResult(
                correlation_id=item.get("correlationId"),
                is_registered=item.get("exclusion") in BATCH_REGISTERED_VALUES,
                provider_request_id=item.get("msRequestId"),
            )
            for item in response.items
        ]


def correlate(
    users: Sequence[BatchUserData],
    results: Sequence[BatchExclusionResult],
) -> Tuple[Dict[str, BatchExclusionResult], List[CorrelationError]]:
    """
    Match batch results back to their users by correlation id.

    Returns:
        Tuple of (results keyed by correlation id, errors for users whose
        id is absent from the response)
    """
    by_id = {result.correlation_id: result for result in results if result.correlation_id}
    errors = [
        CorrelationError(user.correlation_id or "")
        for user in users
        if not user.correlation_id or user.correlation_id not in by_id
    ]
    return by_id, errors

"""External provider contracts and their HTTP implementations."""

from .identity import (
    AuthToken,
    HttpIdentityProviderClient,
    IdentityProviderClient,
    RawJourneyState,
    StartJourneyResponse,
    SubmitResult,
    Task,
    TaskList,
)
from .exclusion import (
    BatchExclusionResponse,
    ExclusionRegistryClient,
    ExclusionResponse,
    HttpExclusionRegistryClient,
)

__all__ = [
    "AuthToken",
    "HttpIdentityProviderClient",
    "IdentityProviderClient",
    "RawJourneyState",
    "StartJourneyResponse",
    "SubmitResult",
    "Task",
    "TaskList",
    "BatchExclusionResponse",
    "ExclusionRegistryClient",
    "ExclusionResponse",
    "HttpExclusionRegistryClient",
]

"""Services for exclusion screening, identity journeys, document checks and bulk rechecks."""

from .retry import retry
from .token_cache import TokenCache
from .address import build_current_address, extract_premise, derive_thoroughfare
from .decision import VerificationStatus, ProviderDecision, JourneyStatus, map_decision, resolve_status
from .domain import Address, PersonData
from .exclusion import ExclusionChecker, ExclusionCheckResult, BatchUserData, BatchExclusionResult, correlate
from .journey import IdentityJourney, JourneyOutcome, UploadOutcome
from .documents import DocumentValidator
from .repository import UserRecord, UserRepository, InMemoryUserRepository
from .recheck import BatchRecheckJob, RecheckJobRun
from .remote_config import RemoteConfigCache, RemoteConfigValues, StaticConfigSource, HttpConfigSource
from .audit import AuditAction, AuditEntry, AuditTrail, InMemoryAuditTrail
from .onboarding import OnboardingService, NewUser

__all__ = [
    "retry",
    "TokenCache",
    "build_current_address",
    "extract_premise",
    "derive_thoroughfare",
    "VerificationStatus",
    "ProviderDecision",
    "JourneyStatus",
    "map_decision",
    "resolve_status",
    "Address",
    "PersonData",
    "ExclusionChecker",
    "ExclusionCheckResult",
    "BatchUserData",
    "BatchExclusionResult",
    "correlate",
    "IdentityJourney",
    "JourneyOutcome",
    "UploadOutcome",
    "DocumentValidator",
    "UserRecord",
    "UserRepository",
    "InMemoryUserRepository",
    "BatchRecheckJob",
    "RecheckJobRun",
    "RemoteConfigCache",
    "RemoteConfigValues",
    "StaticConfigSource",
    "HttpConfigSource",
    "AuditAction",
    "AuditEntry",
    "AuditTrail",
    "InMemoryAuditTrail",
    "OnboardingService",
    "NewUser",
]

"""Onboarding flows composed from the compliance services.

Account creation is fail-safe: a user who cannot be screened against the
self-exclusion registry is not created. Starting an identity journey is
best-effort and never blocks account creation.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from ..errors import (
    AuthError,
    ComplianceError,
    ExclusionServiceError,
    ConflictError,
    ProviderError,
    SelfExclusionError,
    ServiceUnavailable,
    ValidationError,
    classify_exclusion_error,
    classify_identity_error,
)
from ..providers.identity import Task
from .audit import AuditAction, AuditTrail, record
from .decision import VerificationStatus
from .documents import DocumentValidator
from .domain import Address, PersonData
from .exclusion import ExclusionChecker
from .journey import IdentityJourney, JourneyOutcome, UploadOutcome
from .recheck import BatchRecheckJob, RecheckJobRun
from .remote_config import RemoteConfigCache
from .repository import UserRecord, UserRepository, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewUser:
    """Input for account creation."""
    email: str
    first_name: str
    last_name: str
    date_of_birth: str
    phone_number: str
    address: Address

    def to_person(self) -> PersonData:
        return PersonData(
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            address=self.address,
            email=self.email,
            phone=self.phone_number,
        )


def can_recheck(user: UserRecord) -> bool:
    """Live re-checks need a date of birth, an address and a phone number."""
    return bool(user.date_of_birth and user.address is not None and user.phone_number)


def identity_failure(exc: ComplianceError, message: str) -> ComplianceError:
    """Replace a raw identity provider failure with a classified one."""
    classified = classify_identity_error(exc)
    details = f"{classified.code}: {classified.message}"
    logger.error(f"{message} [{classified.code}]: {exc}")
    if isinstance(exc, AuthError):
        return ServiceUnavailable(message, details=details)
    return ProviderError(message, provider_status=exc.provider_status, details=details)


class OnboardingService:
    """Entry point used by the API layer."""

    def __init__(
        self,
        repository: UserRepository,
        checker: ExclusionChecker,
        journey: IdentityJourney,
        remote_config: RemoteConfigCache,
        recheck_job: BatchRecheckJob,
        audit: AuditTrail,
        documents: Optional[DocumentValidator] = None,
    ):
        self.repository = repository
        self.checker = checker
        self.journey = journey
        self.remote_config = remote_config
        self.recheck_job = recheck_job
        self.audit = audit
        self.documents = documents or DocumentValidator()

    async def create_user(self, new_user: NewUser) -> UserRecord:
        """
        Screen and create a user account.

        Raises:
            ConflictError: Email already registered
            SelfExclusionError: The person is registered with the scheme
            ServiceUnavailable: The registry could not be reached
        """
        if await self.repository.get_by_email(new_user.email):
            raise ConflictError(f"A user with email {new_user.email} already exists")

        user_id = str(uuid.uuid4())
        person = new_user.to_person()

        try:
            exclusion = await self.checker.check_one(person)
        except ExclusionServiceError as e:
            classified = classify_exclusion_error(e)
            logger.error(f"Exclusion check failed during signup, refusing to create user: {e}")
            await record(self.audit, AuditAction.EXCLUSION_CHECK, user_id, status="error", code=classified.code)
            raise ServiceUnavailable(
                "Unable to verify self-exclusion status. Please try again later.",
                details=f"{classified.code}: {classified.message}",
            ) from e

        await record(
            self.audit,
            AuditAction.EXCLUSION_CHECK,
            user_id,
            is_registered=exclusion.is_registered,
            registration_id=exclusion.registration_id,
        )
        if exclusion.is_registered:
            logger.warning(f"Signup blocked for {user_id}: self-exclusion active")
            raise SelfExclusionError()

        kyc_instance_id = await self._start_journey(user_id, person)

        now = utcnow()
        user = UserRecord(
            id=user_id,
            email=new_user.email,
            first_name=new_user.first_name,
            last_name=new_user.last_name,
            date_of_birth=new_user.date_of_birth,
            phone_number=new_user.phone_number,
            address=new_user.address,
            is_self_excluded=False,
            exclusion_registry_id=exclusion.registration_id or "",
            kyc_instance_id=kyc_instance_id or "",
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.insert(user)
        await record(self.audit, AuditAction.CREATE_USER, user_id, kyc_started=bool(kyc_instance_id))
        logger.info(f"User created: {user_id}")
        return created

    async def _start_journey(self, user_id: str, person: PersonData) -> Optional[str]:
        try:
            resource_id = await self.remote_config.get_resource_id()
            instance_id = await self.journey.start(person, resource_id)
        except Exception as e:
            logger.error(f"Identity journey start failed for {user_id}, continuing without it: {e}")
            await record(self.audit, AuditAction.IDENTITY_CHECK, user_id, status="error", error=str(e))
            return None

        await record(self.audit, AuditAction.IDENTITY_CHECK, user_id, status="started", instance_id=instance_id)
        return instance_id

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return await self.repository.get_by_id(user_id)

    async def refresh_exclusion_status(self, user: UserRecord) -> UserRecord:
        """
        Re-check ``user`` against the registry and persist any change.

        Raises:
            ExclusionServiceError: The registry could not answer
        """
        if not can_recheck(user):
            return user

        result = await self.checker.check_one(user.to_person())
        await record(
            self.audit,
            AuditAction.EXCLUSION_CHECK,
            user.id,
            is_registered=result.is_registered,
            registration_id=result.registration_id,
        )

        if result.is_registered == user.is_self_excluded:
            return user

        await self.repository.update_exclusion_status(
            user.id,
            is_self_excluded=result.is_registered,
            registry_id=result.registration_id,
            updated_at=utcnow(),
        )
        logger.info(f"User {user.id}: self-excluded {user.is_self_excluded} -> {result.is_registered}")
        refreshed = await self.repository.get_by_id(user.id)
        return refreshed or user

    async def fetch_verification_state(self, instance_id: str) -> JourneyOutcome:
        """Poll a journey and persist the outcome once it is terminal."""
        if not instance_id:
            raise ValidationError("instance_id is required", field="instance_id")

        try:
            outcome = await self.journey.poll(instance_id)
        except (AuthError, ProviderError) as e:
            raise identity_failure(e, "Unable to fetch verification state. Please try again later.") from e

        if outcome.is_resolved:
            verified = outcome.status == VerificationStatus.PASS
            updated = await self.repository.update_kyc_outcome(
                instance_id,
                kyc_completed=True,
                is_identity_verified=verified,
                updated_at=utcnow(),
            )
            if updated:
                user = await self.repository.find_by_kyc_instance_id(instance_id)
                await record(
                    self.audit,
                    AuditAction.KYC_COMPLETED,
                    user.id if user else None,
                    instance_id=instance_id,
                    status=outcome.status.value,
                    decision=outcome.decision.value,
                )
            else:
                logger.warning(f"No user found for journey {instance_id}")
        return outcome

    def _require_journey(self, user: UserRecord) -> None:
        if not user.kyc_instance_id:
            raise ValidationError("Identity verification has not been started for this user")

    async def list_tasks(self, user: UserRecord) -> Sequence[Task]:
        self._require_journey(user)
        try:
            return await self.journey.retrieve_tasks(user.kyc_instance_id)
        except (AuthError, ProviderError) as e:
            raise identity_failure(e, "Unable to retrieve verification tasks. Please try again later.") from e

    async def upload_documents(self, user: UserRecord, documents: Sequence[str]) -> UploadOutcome:
        """
        Validate and submit identity documents for the user's journey.

        Raises:
            ValidationError: No journey, missing names or invalid documents
            ServiceUnavailable: No provider token after the upload attempts
            ProviderError: Task listing or submission failed (classified)
        """
        self._require_journey(user)
        if not user.first_name or not user.last_name:
            raise ValidationError("First name and last name are required for document verification")

        payloads = self.documents.validate(documents)
        try:
            outcome = await self.journey.upload_documents(
                user.kyc_instance_id, user.first_name, user.last_name, payloads
            )
        except (AuthError, ProviderError) as e:
            raise identity_failure(e, "Unable to submit documents. Please try again later.") from e
        await record(
            self.audit,
            AuditAction.IDENTITY_CHECK,
            user.id,
            status="documents_submitted",
            task_id=outcome.task_id,
        )
        return outcome

    async def run_exclusion_recheck(self) -> RecheckJobRun:
        report = await self.recheck_job.run()
        await record(self.audit, AuditAction.EXCLUSION_RECHECK, None, **report.to_dict())
        return report

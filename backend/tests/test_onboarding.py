"""Tests for the onboarding flows."""

import pytest

from compliance.api.dependencies import build_container
from compliance.errors import (
    ConflictError,
    ExclusionServiceError,
    ProviderError,
    SelfExclusionError,
    ServiceUnavailable,
    ValidationError,
)
from compliance.providers import RawJourneyState
from compliance.services import (
    AuditAction,
    InMemoryAuditTrail,
    InMemoryUserRepository,
    NewUser,
    RemoteConfigCache,
    RemoteConfigValues,
    StaticConfigSource,
    VerificationStatus,
)

from fakes import jpeg_data_url, make_address, make_user


@pytest.fixture
def repository():
    return InMemoryUserRepository()


@pytest.fixture
def audit():
    return InMemoryAuditTrail()


@pytest.fixture
def onboarding(settings, identity_client, exclusion_client, repository, audit, sleep):
    container = build_container(
        settings,
        identity_client=identity_client,
        exclusion_client=exclusion_client,
        repository=repository,
        audit=audit,
        remote_config=RemoteConfigCache(
            StaticConfigSource(settings),
            defaults=RemoteConfigValues(identity_resource_id="fallback"),
        ),
    )
    container.tokens._sleep = sleep
    container.onboarding.recheck_job._sleep = sleep
    return container.onboarding


def new_user(email="jane@example.com"):
    return NewUser(
        email=email,
        first_name="Jane",
        last_name="Doe",
        date_of_birth="1990-01-31",
        phone_number="07700900123",
        address=make_address(),
    )


class TestCreateUser:
    """Test OnboardingService.create_user()."""

    @pytest.mark.asyncio
    async def test_creates_and_starts_journey(self, onboarding, repository, identity_client, audit, settings):
        """Test a clean signup is persisted with its journey."""
        user = await onboarding.create_user(new_user())

        stored = await repository.get_by_id(user.id)
        assert stored.kyc_instance_id == "instance-1"
        assert stored.is_self_excluded is False
        assert stored.exclusion_registry_id == "single-1"
        assert identity_client.started[0]["resourceId"] == settings.identity_resource_id
        actions = [entry.action for entry in audit.entries]
        assert actions == [AuditAction.EXCLUSION_CHECK, AuditAction.IDENTITY_CHECK, AuditAction.CREATE_USER]

    @pytest.mark.asyncio
    async def test_excluded_user_blocked(self, onboarding, repository, exclusion_client, identity_client):
        """Test a registered person is refused and nothing is stored."""
        exclusion_client.excluded["jane@example.com"] = "Y"
        with pytest.raises(SelfExclusionError):
            await onboarding.create_user(new_user())

        assert await repository.get_by_email("jane@example.com") is None
        assert identity_client.started == []

    @pytest.mark.asyncio
    async def test_registry_down_blocks_signup(self, onboarding, repository, exclusion_client):
        """Test an unreachable registry is never read as 'not excluded'."""
        exclusion_client.error = ExclusionServiceError(
            "Gamstop API request failed: 403 Forbidden", provider_status=403
        )
        with pytest.raises(ServiceUnavailable) as exc_info:
            await onboarding.create_user(new_user())

        assert "INVALID_REQUEST" in exc_info.value.details
        assert await repository.get_by_email("jane@example.com") is None

    @pytest.mark.asyncio
    async def test_journey_failure_does_not_block(self, onboarding, repository, identity_client, audit):
        """Test a failed journey start still creates the user."""
        identity_client.start_error = ProviderError("Failed to start journey: 500", provider_status=500)
        user = await onboarding.create_user(new_user())

        stored = await repository.get_by_id(user.id)
        assert stored.kyc_instance_id == ""
        identity_entries = audit.by_action(AuditAction.IDENTITY_CHECK)
        assert identity_entries[0].details["status"] == "error"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, onboarding, exclusion_client):
        """Test a second signup with the same email conflicts before any lookup."""
        await onboarding.create_user(new_user())
        with pytest.raises(ConflictError):
            await onboarding.create_user(new_user("JANE@example.com"))
        assert len(exclusion_client.single_calls) == 1


class TestRefreshExclusionStatus:
    """Test live re-checks."""

    @pytest.mark.asyncio
    async def test_status_change_persisted(self, onboarding, repository, exclusion_client):
        """Test a newly registered user is flagged."""
        await repository.insert(make_user("u1"))
        exclusion_client.excluded["u1@example.com"] = "Y"

        user = await onboarding.refresh_exclusion_status(await repository.get_by_id("u1"))

        assert user.is_self_excluded is True
        assert (await repository.get_by_id("u1")).exclusion_registry_id == "single-1"

    @pytest.mark.asyncio
    async def test_skipped_without_phone(self, onboarding, exclusion_client):
        """Test users missing lookup data are not re-checked."""
        user = make_user("u1", phone_number="")
        assert await onboarding.refresh_exclusion_status(user) is user
        assert exclusion_client.single_calls == []

    @pytest.mark.asyncio
    async def test_registry_error_raised(self, onboarding, exclusion_client, registry_unavailable):
        """Test the caller decides how to handle registry failures."""
        exclusion_client.error = registry_unavailable
        with pytest.raises(ExclusionServiceError):
            await onboarding.refresh_exclusion_status(make_user("u1"))


class TestVerificationState:
    """Test polling and persisting journey outcomes."""

    @pytest.mark.asyncio
    async def test_pass_persisted(self, onboarding, repository, identity_client, audit):
        """Test a passed journey marks the user verified."""
        await repository.insert(make_user("u1", kyc_instance_id="inst-1"))
        identity_client.state = RawJourneyState(
            status="Completed", flow={"s": {"result": {"outcome": "Decision: Pass 1+1"}}}
        )

        outcome = await onboarding.fetch_verification_state("inst-1")

        assert outcome.status == VerificationStatus.PASS
        stored = await repository.get_by_id("u1")
        assert stored.kyc_completed is True
        assert stored.is_identity_verified is True
        assert audit.by_action(AuditAction.KYC_COMPLETED)[0].user_id == "u1"

    @pytest.mark.asyncio
    async def test_reject_persisted_unverified(self, onboarding, repository, identity_client):
        """Test a rejected journey completes KYC without verification."""
        await repository.insert(make_user("u1", kyc_instance_id="inst-1"))
        identity_client.state = RawJourneyState(
            status="Completed", flow={"s": {"result": {"outcome": "Decision: Reject"}}}
        )

        await onboarding.fetch_verification_state("inst-1")

        stored = await repository.get_by_id("u1")
        assert stored.kyc_completed is True
        assert stored.is_identity_verified is False

    @pytest.mark.asyncio
    async def test_in_progress_not_persisted(self, onboarding, repository):
        """Test pending journeys leave the user untouched."""
        await repository.insert(make_user("u1", kyc_instance_id="inst-1"))
        outcome = await onboarding.fetch_verification_state("inst-1")

        assert outcome.status == VerificationStatus.IN_PROGRESS
        assert (await repository.get_by_id("u1")).kyc_completed is False

    @pytest.mark.asyncio
    async def test_provider_failure_classified(self, onboarding, repository, identity_client):
        """Test a failed poll is re-raised with a generic message and classified details."""
        await repository.insert(make_user("u1", kyc_instance_id="inst-1"))
        identity_client.state_error = ProviderError(
            "Failed to fetch journey state: request timeout (read timed out)"
        )

        with pytest.raises(ProviderError) as exc_info:
            await onboarding.fetch_verification_state("inst-1")

        assert exc_info.value.message == "Unable to fetch verification state. Please try again later."
        assert exc_info.value.details == "TIMEOUT: Verification timed out. Please try again."
        assert (await repository.get_by_id("u1")).kyc_completed is False


class TestDocuments:
    """Test document upload through the service."""

    @pytest.mark.asyncio
    async def test_upload(self, onboarding, identity_client):
        """Test valid documents reach the provider without the data URL prefix."""
        user = make_user("u1", kyc_instance_id="inst-1")
        doc = jpeg_data_url()
        outcome = await onboarding.upload_documents(user, [doc])

        assert outcome.task_id == "task-1"
        documents = identity_client.updates[0]["context"]["subject"]["documents"]
        assert documents == [{"side1Image": doc.split(",", 1)[1]}]

    @pytest.mark.asyncio
    async def test_requires_journey(self, onboarding):
        """Test upload needs a started journey."""
        with pytest.raises(ValidationError):
            await onboarding.upload_documents(make_user("u1"), [jpeg_data_url()])

    @pytest.mark.asyncio
    async def test_invalid_document_not_sent(self, onboarding, identity_client):
        """Test invalid documents are rejected before any provider call."""
        user = make_user("u1", kyc_instance_id="inst-1")
        with pytest.raises(ValidationError):
            await onboarding.upload_documents(user, ["data:image/png;base64,AAAA"])
        assert identity_client.auth_calls == 0

    @pytest.mark.asyncio
    async def test_submission_failure_classified(self, onboarding, identity_client, audit):
        """Test a failed task update hides the provider body behind a classified error."""
        identity_client.update_error = ProviderError(
            "Failed to submit documents: 403 Forbidden - <html>denied</html>", provider_status=403
        )
        user = make_user("u1", kyc_instance_id="inst-1")

        with pytest.raises(ProviderError) as exc_info:
            await onboarding.upload_documents(user, [jpeg_data_url()])

        assert exc_info.value.provider_status == 403
        assert exc_info.value.details == (
            "FORBIDDEN: Access denied. Insufficient permissions or invalid credentials."
        )
        assert "<html>" not in exc_info.value.message
        assert audit.by_action(AuditAction.IDENTITY_CHECK) == []

    @pytest.mark.asyncio
    async def test_list_tasks_auth_failure(self, onboarding, identity_client):
        """Test a token failure while listing tasks is reported as unavailable."""
        identity_client.auth_failures = 1
        with pytest.raises(ServiceUnavailable) as exc_info:
            await onboarding.list_tasks(make_user("u1", kyc_instance_id="inst-1"))
        assert exc_info.value.details.startswith("AUTH_FAILED:")


class TestRunRecheck:
    """Test the recheck entry point."""

    @pytest.mark.asyncio
    async def test_audited(self, onboarding, repository, audit):
        """Test each run is recorded with its report."""
        await repository.insert(make_user("u1"))
        report = await onboarding.run_exclusion_recheck()

        assert report.total_users == 1
        entry = audit.by_action(AuditAction.EXCLUSION_RECHECK)[0]
        assert entry.details["unchanged"] == 1

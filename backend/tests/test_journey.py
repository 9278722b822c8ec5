"""Tests for identity verification journeys."""

import pytest

from compliance.errors import AuthError, ServiceUnavailable, ValidationError
from compliance.providers import RawJourneyState, Task
from compliance.services import PersonData, TokenCache
from compliance.services.decision import JourneyStatus, ProviderDecision, VerificationStatus
from compliance.services.journey import IdentityJourney, extract_outcome

from fakes import make_address


def flow_with(outcome):
    return {
        "step-1": {"result": {"outcome": "Document check ok"}},
        "step-2": {"result": {"outcome": outcome}},
    }


@pytest.fixture
def journey(identity_client, settings, clock, sleep):
    tokens = TokenCache(identity_client, settings, clock=clock, sleep=sleep)
    return IdentityJourney(identity_client, tokens, settings)


class TestStart:
    """Test starting a journey."""

    @pytest.mark.asyncio
    async def test_start_request(self, journey, identity_client, person):
        """Test the start request carries the identity block."""
        instance_id = await journey.start(person, "resource-1")

        assert instance_id == "instance-1"
        request = identity_client.started[0]
        assert request["resourceId"] == "resource-1"
        subject = request["context"]["subject"]
        assert subject["documents"] == []
        assert subject["biometrics"] == []
        identity = subject["identity"]
        assert identity["firstName"] == "Jane"
        assert identity["lastNames"] == ["Doe"]
        assert identity["dateOfBirth"] == "1990-01-31"
        assert identity["emails"] == [{"type": "private", "email": "jane@example.com"}]
        assert identity["phones"] == [{"type": "mobile", "number": "07700900123"}]
        assert identity["currentAddress"]["premise"] == "10"

    @pytest.mark.asyncio
    async def test_fresh_token_per_journey(self, journey, identity_client, person):
        """Test every start fetches a new token."""
        await journey.start(person, "r")
        await journey.start(person, "r")
        assert identity_client.auth_calls == 2
        assert identity_client.tokens_seen == ["token-1", "token-2"]

    @pytest.mark.asyncio
    async def test_missing_address(self, journey, identity_client):
        """Test a journey needs an address and no provider call is made."""
        person = PersonData(first_name="Jane", last_name="Doe")
        with pytest.raises(ValidationError):
            await journey.start(person, "r")
        assert identity_client.auth_calls == 0

    @pytest.mark.asyncio
    async def test_incomplete_address(self, journey):
        """Test blank mandatory address fields are named."""
        person = PersonData(first_name="Jane", last_name="Doe", address=make_address(postcode=""))
        with pytest.raises(ValidationError) as exc_info:
            await journey.start(person, "r")
        assert "postcode" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_auth_exhausted(self, journey, identity_client, person):
        """Test an AuthError surfaces after the retry budget."""
        identity_client.auth_failures = 10
        with pytest.raises(AuthError):
            await journey.start(person, "r")
        assert identity_client.started == []


class TestResolve:
    """Test deriving outcomes from journey state."""

    def test_no_context_is_in_progress(self, journey):
        """Test a state without context is pending."""
        outcome = journey.resolve("i", RawJourneyState(status="Completed", flow=None))
        assert outcome.status == VerificationStatus.IN_PROGRESS
        assert outcome.decision == ProviderDecision.UNKNOWN

    def test_completed_pass(self, journey):
        """Test a completed journey with a pass decision."""
        outcome = journey.resolve("i", RawJourneyState(status="Completed", flow=flow_with("Decision: Pass 2+2")))
        assert outcome.status == VerificationStatus.PASS
        assert outcome.journey_status == JourneyStatus.COMPLETED
        assert outcome.is_resolved

    def test_in_progress_manual_review(self, journey):
        """Test manual review resolves before completion."""
        state = RawJourneyState(status="InProgress", flow=flow_with("Decision: Manual review"))
        assert journey.resolve("i", state).status == VerificationStatus.MANUAL

    def test_completed_without_decision(self, journey):
        """Test a completed journey without a decision stays pending."""
        state = RawJourneyState(status="Completed", flow={"s": {"result": {"outcome": "done"}}})
        assert journey.resolve("i", state).status == VerificationStatus.IN_PROGRESS

    def test_extract_outcome_first_match(self):
        """Test the first step carrying a decision wins."""
        assert extract_outcome(flow_with("Decision: Reject")) == "Decision: Reject"
        assert extract_outcome({}) is None
        assert extract_outcome(None) is None

    @pytest.mark.asyncio
    async def test_poll(self, journey, identity_client):
        """Test poll fetches and resolves."""
        identity_client.state = RawJourneyState(status="Completed", flow=flow_with("Decision: Alert"))
        outcome = await journey.poll("instance-9")
        assert outcome.status == VerificationStatus.FAIL
        assert outcome.instance_id == "instance-9"


class TestUpload:
    """Test document upload."""

    @pytest.mark.asyncio
    async def test_submits_to_first_task(self, journey, identity_client):
        """Test documents go to the first task with the Complete intent."""
        identity_client.tasks.append(Task(task_id="task-2"))
        outcome = await journey.upload_documents("instance-1", "Jane", "Doe", ["AAAA", "BBBB"])

        assert outcome.task_id == "task-1"
        request = identity_client.updates[0]
        assert request["intent"] == "Complete"
        assert request["taskId"] == "task-1"
        assert request["context"]["subject"]["documents"] == [{"side1Image": "AAAA"}, {"side1Image": "BBBB"}]
        assert request["context"]["subject"]["identity"] == {"firstName": "Jane", "lastNames": ["Doe"]}

    @pytest.mark.asyncio
    async def test_no_tasks(self, journey, identity_client):
        """Test an empty task list is a validation error."""
        identity_client.tasks = []
        with pytest.raises(ValidationError):
            await journey.upload_documents("instance-1", "Jane", "Doe", ["AAAA"])
        assert identity_client.updates == []

    @pytest.mark.asyncio
    async def test_token_unavailable(self, journey, identity_client, settings):
        """Test three failed token attempts make the service unavailable."""
        identity_client.auth_failures = settings.upload_token_attempts
        with pytest.raises(ServiceUnavailable):
            await journey.upload_documents("instance-1", "Jane", "Doe", ["AAAA"])
        assert identity_client.auth_calls == settings.upload_token_attempts

    @pytest.mark.asyncio
    async def test_token_on_last_attempt(self, journey, identity_client, settings):
        """Test a token obtained on the last attempt is used."""
        identity_client.auth_failures = settings.upload_token_attempts - 1
        outcome = await journey.upload_documents("instance-1", "Jane", "Doe", ["AAAA"])
        assert outcome.task_id == "task-1"

    @pytest.mark.asyncio
    async def test_submit_requires_documents(self, journey):
        """Test submitting nothing is rejected."""
        with pytest.raises(ValidationError):
            await journey.submit_documents("i", "t", "Jane", "Doe", [])

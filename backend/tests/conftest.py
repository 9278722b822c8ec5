"""Shared fixtures."""

import pytest

from compliance.config import Settings
from compliance.errors import ExclusionServiceError
from compliance.services import PersonData

from fakes import FakeClock, FakeExclusionClient, FakeIdentityClient, RecordingSleep, make_address


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        identity_retry_base_delay_ms=10,
        exclusion_batch_size_limit=1000,
        exclusion_rate_limit_delay_seconds=1.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def identity_client(clock):
    return FakeIdentityClient(clock=clock)


@pytest.fixture
def exclusion_client():
    return FakeExclusionClient()


@pytest.fixture
def person():
    return PersonData(
        first_name="Jane",
        last_name="Doe",
        date_of_birth="1990-01-31",
        address=make_address(),
        email="jane@example.com",
        phone="07700900123",
    )


@pytest.fixture
def registry_unavailable():
    return ExclusionServiceError("Gamstop API request failed: 500 Internal Server Error - ", provider_status=500)

"""Service wiring and request dependencies."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from ..config import Settings
from ..providers import (
    ExclusionRegistryClient,
    HttpExclusionRegistryClient,
    HttpIdentityProviderClient,
    IdentityProviderClient,
)
from ..services import (
    AuditTrail,
    BatchRecheckJob,
    DocumentValidator,
    ExclusionChecker,
    HttpConfigSource,
    IdentityJourney,
    InMemoryAuditTrail,
    InMemoryUserRepository,
    OnboardingService,
    RemoteConfigCache,
    RemoteConfigValues,
    StaticConfigSource,
    TokenCache,
    UserRecord,
    UserRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived services shared by all requests."""
    settings: Settings
    repository: UserRepository
    tokens: TokenCache
    remote_config: RemoteConfigCache
    onboarding: OnboardingService


def build_container(
    settings: Settings,
    identity_client: Optional[IdentityProviderClient] = None,
    exclusion_client: Optional[ExclusionRegistryClient] = None,
    repository: Optional[UserRepository] = None,
    audit: Optional[AuditTrail] = None,
    remote_config: Optional[RemoteConfigCache] = None,
) -> ServiceContainer:
    """Wire the services. Provider clients default to the HTTP implementations."""
    identity_client = identity_client or HttpIdentityProviderClient(settings)
    exclusion_client = exclusion_client or HttpExclusionRegistryClient(settings)
    repository = repository or InMemoryUserRepository()
    audit = audit or InMemoryAuditTrail()

    if remote_config is None:
        source = (
            HttpConfigSource(settings.remote_config_url)
            if settings.remote_config_url
            else StaticConfigSource(settings)
        )
        remote_config = RemoteConfigCache(
            source,
            defaults=RemoteConfigValues(identity_resource_id=settings.identity_resource_id),
            ttl_seconds=settings.remote_config_ttl_seconds,
        )

    tokens = TokenCache(identity_client, settings)
    checker = ExclusionChecker(exclusion_client, settings)
    journey = IdentityJourney(identity_client, tokens, settings)
    onboarding = OnboardingService(
        repository=repository,
        checker=checker,
        journey=journey,
        remote_config=remote_config,
        recheck_job=BatchRecheckJob(repository, checker, settings),
        audit=audit,
        documents=DocumentValidator(settings.max_document_size_mb),
    )
    return ServiceContainer(
        settings=settings,
        repository=repository,
        tokens=tokens,
        remote_config=remote_config,
        onboarding=onboarding,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_onboarding(container: ServiceContainer = Depends(get_container)) -> OnboardingService:
    return container.onboarding


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    onboarding: OnboardingService = Depends(get_onboarding),
) -> UserRecord:
    """Resolve the caller from ``X-User-Id`` (set by the upstream auth layer)."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    user = await onboarding.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def require_admin_key(
    x_api_key: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> None:
    expected = container.settings.admin_api_key
    if expected and x_api_key != expected:
        logger.warning("Rejected admin request with invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")

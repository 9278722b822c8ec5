"""API route definitions."""

import logging
from fastapi import APIRouter, Depends, Query

from ..errors import ExclusionServiceError, SelfExclusionError
from ..models import (
    CreateUserRequest,
    UserResponse,
    VerificationStateResponse,
    TaskOut,
    TaskListResponse,
    DocumentUploadRequest,
    DocumentUploadResponse,
    RecheckResponse,
    ErrorResponse,
    HealthResponse,
)
from ..services import NewUser, OnboardingService, UserRecord
from .. import __version__
from .dependencies import (
    ServiceContainer,
    get_container,
    get_current_user,
    get_onboarding,
    require_admin_key,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Check API health."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=container.settings.environment,
    )


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=201,
    responses={
        403: {"model": ErrorResponse, "description": "Self-exclusion active"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        503: {"model": ErrorResponse, "description": "Exclusion registry unavailable"},
    },
    tags=["Users"]
)
async def create_user(
    body: CreateUserRequest,
    onboarding: OnboardingService = Depends(get_onboarding),
):
    """
    Create a user account.

    The person is screened against the self-exclusion registry first; if the
    registry cannot be reached the account is not created. An identity
    verification journey is then started, best-effort.
    """
    user = await onboarding.create_user(NewUser(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        date_of_birth=body.date_of_birth,
        phone_number=body.phone_number,
        address=body.address.to_domain(),
    ))
    return UserResponse.from_record(user)


@router.get(
    "/users/me",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse, "description": "Self-exclusion active"}},
    tags=["Users"]
)
async def get_me(
    user: UserRecord = Depends(get_current_user),
    onboarding: OnboardingService = Depends(get_onboarding),
):
    """Current user, re-checked live against the self-exclusion registry."""
    try:
        user = await onboarding.refresh_exclusion_status(user)
    except ExclusionServiceError as e:
        # Profile access stays available while the registry is down
        logger.error(f"Exclusion re-check failed for user {user.id}, proceeding: {e}")

    if user.is_self_excluded:
        raise SelfExclusionError()

    return UserResponse.from_record(user)


@router.get(
    "/users/me/verification/tasks",
    response_model=TaskListResponse,
    responses={422: {"model": ErrorResponse, "description": "No verification journey"}},
    tags=["Verification"]
)
async def list_verification_tasks(
    user: UserRecord = Depends(get_current_user),
    onboarding: OnboardingService = Depends(get_onboarding),
):
    """Outstanding tasks of the user's identity verification journey."""
    tasks = await onboarding.list_tasks(user)
    return TaskListResponse(
        instance_id=user.kyc_instance_id,
        tasks=[TaskOut(task_id=task.task_id, variant_id=task.variant_id) for task in tasks],
    )


@router.post(
    "/users/me/verification/documents",
    response_model=DocumentUploadResponse,
    responses={
        422: {"model": ErrorResponse, "description": "Invalid documents or no pending task"},
        503: {"model": ErrorResponse, "description": "Verification service unavailable"},
    },
    tags=["Verification"]
)
async def upload_documents(
    body: DocumentUploadRequest,
    user: UserRecord = Depends(get_current_user),
    onboarding: OnboardingService = Depends(get_onboarding),
):
    """Submit JPEG identity documents to the first outstanding journey task."""
    outcome = await onboarding.upload_documents(user, body.documents)
    return DocumentUploadResponse(
        success=True,
        instance_id=outcome.instance_id,
        task_id=outcome.task_id,
        status=outcome.status,
    )


@router.get(
    "/verification/state",
    response_model=VerificationStateResponse,
    tags=["Verification"]
)
async def get_verification_state(
    instance_id: str = Query(..., min_length=1, description="Journey instance id"),
    onboarding: OnboardingService = Depends(get_onboarding),
):
    """Poll a journey; terminal outcomes are stored on the user."""
    outcome = await onboarding.fetch_verification_state(instance_id)
    return VerificationStateResponse(
        instance_id=outcome.instance_id,
        status=outcome.status,
        journey_status=outcome.journey_status.value,
        decision=outcome.decision.value,
        is_resolved=outcome.is_resolved,
    )


@router.post(
    "/admin/exclusion/recheck",
    response_model=RecheckResponse,
    dependencies=[Depends(require_admin_key)],
    tags=["Admin"]
)
async def run_exclusion_recheck(onboarding: OnboardingService = Depends(get_onboarding)):
    """Re-check every eligible user against the self-exclusion registry."""
    report = await onboarding.run_exclusion_recheck()
    return RecheckResponse(**report.to_dict())

"""Provider decision vocabulary and its mapping to internal verification status."""

from enum import Enum
from typing import Optional


class VerificationStatus(str, Enum):
    """Internal identity verification outcome."""
    PASS = "PASS"
    FAIL = "FAIL"
    MANUAL = "MANUAL"
    IN_PROGRESS = "IN_PROGRESS"

    @property
    def is_terminal(self) -> bool:
        return self is not VerificationStatus.IN_PROGRESS


class ProviderDecision(str, Enum):
    """Closed set of decisions the identity provider reports in flow outcomes."""
    PASS = "Pass"
    PASS_1_1 = "Pass 1+1"
    PASS_2_2 = "Pass 2+2"
    ALERT = "Alert"
    REJECT = "Reject"
    MANUAL_REVIEW = "Manual review"
    UNKNOWN = "Unknown"


class JourneyStatus(str, Enum):
    """Lifecycle of a journey instance as reported by the provider."""
    STARTED = "Started"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


DECISION_PREFIX = "Decision:"

_DECISION_TO_STATUS = {
    ProviderDecision.PASS: VerificationStatus.PASS,
    ProviderDecision.PASS_1_1: VerificationStatus.PASS,
    ProviderDecision.PASS_2_2: VerificationStatus.PASS,
    ProviderDecision.ALERT: VerificationStatus.FAIL,
    ProviderDecision.REJECT: VerificationStatus.FAIL,
    ProviderDecision.MANUAL_REVIEW: VerificationStatus.MANUAL,
    ProviderDecision.UNKNOWN: VerificationStatus.IN_PROGRESS,
}

_JOURNEY_STATUS_ALIASES = {
    "started": JourneyStatus.STARTED,
    "inprogress": JourneyStatus.IN_PROGRESS,
    "in_progress": JourneyStatus.IN_PROGRESS,
    "completed": JourneyStatus.COMPLETED,
    "failed": JourneyStatus.FAILED,
}


def parse_decision(outcome: Optional[str]) -> ProviderDecision:
    """
    Parse a flow outcome such as ``"Decision: Pass 1+1"``.

    Accepts the bare decision text as well. Anything unrecognised is UNKNOWN.
    """
    if not outcome:
        return ProviderDecision.UNKNOWN

    text = outcome.strip()
    if text.startswith(DECISION_PREFIX):
        text = text[len(DECISION_PREFIX):].strip()

    for decision in ProviderDecision:
        if decision is not ProviderDecision.UNKNOWN and text.lower() == decision.value.lower():
            return decision
    return ProviderDecision.UNKNOWN


def parse_journey_status(status: Optional[str]) -> JourneyStatus:
    return _JOURNEY_STATUS_ALIASES.get((status or "").strip().lower(), JourneyStatus.UNKNOWN)


def map_decision(decision: ProviderDecision) -> VerificationStatus:
    """Map a provider decision to the internal status. Pure and total."""
    return _DECISION_TO_STATUS[decision]


def resolve_status(journey_status: JourneyStatus, decision: ProviderDecision) -> VerificationStatus:
    """
    Decide the internal status of a journey.

    A journey is resolved when the provider completed it, or when it is still
    in progress but already parked for manual review. Every other state stays
    IN_PROGRESS whatever decision text it carries.
    """
    if journey_status is JourneyStatus.COMPLETED:
        return map_decision(decision)
    if journey_status is JourneyStatus.IN_PROGRESS and decision is ProviderDecision.MANUAL_REVIEW:
        return VerificationStatus.MANUAL
    return VerificationStatus.IN_PROGRESS

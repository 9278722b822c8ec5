"""Audit trail of compliance decisions.

Writing an audit entry never fails the flow that produced it: a failing
trail is logged and the flow continues.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .repository import utcnow

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE_USER = "CREATE_USER"
    EXCLUSION_CHECK = "EXCLUSION_CHECK"
    EXCLUSION_RECHECK = "EXCLUSION_RECHECK"
    IDENTITY_CHECK = "IDENTITY_CHECK"
    KYC_COMPLETED = "KYC_COMPLETED"


@dataclass(frozen=True)
class AuditEntry:
    action: AuditAction
    user_id: Optional[str]
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


class AuditTrail(Protocol):
    async def write(self, entry: AuditEntry) -> None: ...


class InMemoryAuditTrail:
    """Keeps entries in a list, newest last."""

    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def write(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def by_action(self, action: AuditAction) -> List[AuditEntry]:
        return [entry for entry in self.entries if entry.action == action]


async def record(
    trail: AuditTrail,
    action: AuditAction,
    user_id: Optional[str],
    **details: Any,
) -> None:
    """Write one entry, logging instead of raising on failure."""
    entry = AuditEntry(action=action, user_id=user_id, details=details)
    try:
        await trail.write(entry)
    except Exception as e:
        logger.error(f"Failed to write audit entry {action.value} for user {user_id}: {e}")

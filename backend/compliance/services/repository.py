"""User store contract used by the compliance flows.

The relational store itself lives outside this service; only the reads and
writes the compliance flows need are described here, plus an in-memory
implementation for local runs and tests.
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from .domain import Address, PersonData

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    """Compliance-relevant columns of a user row."""
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    date_of_birth: Optional[str] = None
    phone_number: str = ""
    address: Optional[Address] = None
    is_self_excluded: bool = False
    exclusion_registry_id: str = ""
    kyc_instance_id: str = ""
    kyc_completed: bool = False
    is_identity_verified: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_person(self) -> PersonData:
        return PersonData(
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            address=self.address,
            email=self.email or None,
            phone=self.phone_number or None,
        )


class UserRepository(Protocol):
    """Persistence operations the compliance flows depend on."""

    async def get_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def get_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def insert(self, user: UserRecord) -> UserRecord: ...

    async def find_users_with_address(self) -> List[UserRecord]: ...

    async def update_exclusion_status(
        self,
        user_id: str,
        is_self_excluded: bool,
        registry_id: Optional[str],
        updated_at: datetime,
    ) -> None: ...

    async def find_by_kyc_instance_id(self, instance_id: str) -> Optional[UserRecord]: ...

    async def update_kyc_outcome(
        self,
        instance_id: str,
        kyc_completed: bool,
        is_identity_verified: bool,
        updated_at: datetime,
    ) -> int: ...


class InMemoryUserRepository:
    """Dict-backed UserRepository. Returns copies so callers cannot mutate stored rows."""

    def __init__(self, users: Optional[List[UserRecord]] = None):
        self._users: Dict[str, UserRecord] = {}
        for user in users or []:
            self._users[user.id] = copy.deepcopy(user)

    async def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        lowered = email.lower()
        for user in self._users.values():
            if user.email.lower() == lowered:
                return copy.deepcopy(user)
        return None

    async def insert(self, user: UserRecord) -> UserRecord:
        if user.id in self._users:
            raise KeyError(f"User {user.id} already exists")
        self._users[user.id] = copy.deepcopy(user)
        return copy.deepcopy(user)

    async def find_users_with_address(self) -> List[UserRecord]:
        return [copy.deepcopy(u) for u in self._users.values() if u.address is not None]

    async def update_exclusion_status(
        self,
        user_id: str,
        is_self_excluded: bool,
        registry_id: Optional[str],
        updated_at: datetime,
    ) -> None:
        user = self._users.get(user_id)
        if user is None:
            raise KeyError(f"User {user_id} not found")
        self._users[user_id] = replace(
            user,
            is_self_excluded=is_self_excluded,
            exclusion_registry_id=registry_id or user.exclusion_registry_id,
            updated_at=updated_at,
        )

    async def find_by_kyc_instance_id(self, instance_id: str) -> Optional[UserRecord]:
        for user in self._users.values():
            if instance_id and user.kyc_instance_id == instance_id:
                return copy.deepcopy(user)
        return None

    async def update_kyc_outcome(
        self,
        instance_id: str,
        kyc_completed: bool,
        is_identity_verified: bool,
        updated_at: datetime,
    ) -> int:
        updated = 0
        for user_id, user in list(self._users.items()):
            if instance_id and user.kyc_instance_id == instance_id:
                self._users[user_id] = replace(
                    user,
                    kyc_completed=kyc_completed,
                    is_identity_verified=is_identity_verified,
                    updated_at=updated_at,
                )
                updated += 1
        return updated

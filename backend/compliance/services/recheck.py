"""Periodic bulk re-verification of the user base against the exclusion registry.

The registry allows an average of one batch request per second over a
five-minute window, so chunks are dispatched strictly one after another with
a fixed delay in between. Each chunk is independent: a failed chunk is
counted and the run moves on.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Sequence

from ..config import Settings
from .exclusion import BatchUserData, ExclusionChecker, correlate
from .repository import UserRecord, UserRepository, utcnow
from .retry import Sleep

logger = logging.getLogger(__name__)


@dataclass
class RecheckJobRun:
    """Report of one recheck run."""
    total_users: int = 0
    batches_processed: int = 0
    changed: int = 0
    unchanged: int = 0
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChunkResult:
    changed: int = 0
    unchanged: int = 0
    errors: int = 0


def is_candidate(user: UserRecord) -> bool:
    """Users carrying every field the batch lookup needs."""
    return bool(
        user.address is not None
        and user.first_name
        and user.last_name
        and user.email
        and user.phone_number
        and user.address.postcode
    )


def chunk_users(users: Sequence[UserRecord], chunk_size: int) -> List[List[UserRecord]]:
    """Split into consecutive chunks of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
    return [list(users[i:i + chunk_size]) for i in range(0, len(users), chunk_size)]


def to_batch_user(user: UserRecord) -> BatchUserData:
    return BatchUserData(
        correlation_id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        date_of_birth=user.date_of_birth or "",
        email=user.email,
        phone=user.phone_number,
        postcode=user.address.postcode,
    )


class BatchRecheckJob:
    """Re-checks every eligible user and persists status changes."""

    def __init__(
        self,
        repository: UserRepository,
        checker: ExclusionChecker,
        settings: Settings,
        sleep: Sleep = asyncio.sleep,
    ):
        self.repository = repository
        self.checker = checker
        self.settings = settings
        self._sleep = sleep

    async def select_candidates(self) -> List[UserRecord]:
        users = await self.repository.find_users_with_address()
        candidates = [user for user in users if is_candidate(user)]
        skipped = len(users) - len(candidates)
        if skipped:
            logger.info(f"Skipping {skipped} user(s) with incomplete verification data")
        return candidates

    async def run(self) -> RecheckJobRun:
        """Run the job once and return its report."""
        start_time = time.monotonic()
        logger.info("Starting exclusion batch recheck job...")

        candidates = await self.select_candidates()
        report = RecheckJobRun(total_users=len(candidates))

        if not candidates:
            logger.info("No users found for exclusion recheck")
            report.duration_ms = int((time.monotonic() - start_time) * 1000)
            return report

        chunk_size = self.checker.batch_size_limit
        chunks = chunk_users(candidates, chunk_size)
        logger.info(f"Split {len(candidates)} users into {len(chunks)} batches of up to {chunk_size}")

        for index, chunk in enumerate(chunks, start=1):
            result = await self._process_chunk(chunk, index, len(chunks))
            report.batches_processed += 1
            report.changed += result.changed
            report.unchanged += result.unchanged
            report.errors += result.errors

            if index < len(chunks):
                delay = self.settings.exclusion_rate_limit_delay_seconds
                logger.info(f"Waiting {delay}s before next batch (rate limit)...")
                await self._sleep(delay)

        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Exclusion recheck finished: users={report.total_users}, "
            f"batches={report.batches_processed}, changed={report.changed}, "
            f"unchanged={report.unchanged}, errors={report.errors}, "
            f"duration={report.duration_ms}ms"
        )
        return report

    async def _process_chunk(self, chunk: List[UserRecord], number: int, total: int) -> ChunkResult:
        logger.info(f"Processing batch {number}/{total} ({len(chunk)} users)...")
        batch = [to_batch_user(user) for user in chunk]

        try:
            results = await self.checker.check_batch(batch)
        except Exception as e:
            logger.error(f"Error processing batch {number}: {e}")
            return ChunkResult(errors=len(chunk))

        logger.info(f"Received {len(results)} results for batch {number}")
        by_id, missing = correlate(batch, results)
        for error in missing:
            logger.error(f"Batch {number}: {error}")

        outcome = ChunkResult(errors=len(missing))
        for user in chunk:
            result = by_id.get(user.id)
            if result is None:
                continue

            if result.is_registered == user.is_self_excluded:
                outcome.unchanged += 1
                continue

            try:
                await self.repository.update_exclusion_status(
                    user.id,
                    is_self_excluded=result.is_registered,
                    registry_id=result.provider_request_id,
                    updated_at=utcnow(),
                )
            except Exception as e:
                logger.error(f"Failed to update exclusion status for user {user.id}: {e}")
                outcome.errors += 1
                continue

            logger.info(
                f"Updated user {user.id}: self-excluded {user.is_self_excluded} -> "
                f"{result.is_registered} (request {result.provider_request_id})"
            )
            outcome.changed += 1

        return outcome

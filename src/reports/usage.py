"""
Usage recording.

Runs after a report succeeds: writes the audit row and the quota update.
Recording is detached from the response; a failure is logged and never
reaches the user.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Set

from reports.persistence import ReportGeneration, ReportStore
from subscription.tier_control import SubscriptionTier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageRecorder:
    """Records report usage in background tasks it keeps track of."""

    def __init__(self, store: ReportStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self._clock = clock
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def record(
        self,
        user_id: str,
        tier: SubscriptionTier,
        scenario_ids: Sequence[str],
        report_type: str = "interactive",
    ) -> None:
        """Write the audit record, then the tier's quota update."""
        now = self._clock()
        is_preview = not tier.is_paid

        await self.store.record_generation(ReportGeneration(
            user_id=user_id,
            report_type=report_type,
            scenarios_included=list(scenario_ids),
            is_preview=is_preview,
            created_at=now,
        ))

        if is_preview:
            await self.store.mark_preview_generated(user_id, now)
            count: Optional[int] = None
        else:
            count = await self.store.increment_monthly_reports(user_id, now)

        logger.info(
            "Report usage recorded",
            extra={'extra_data': {
                'user_id': user_id,
                'tier': tier.value,
                'is_preview': is_preview,
                'reports_this_month': count,
            }}
        )

    def schedule(
        self,
        user_id: str,
        tier: SubscriptionTier,
        scenario_ids: Sequence[str],
        report_type: str = "interactive",
    ) -> asyncio.Task:
        """Record usage in a detached task; the caller does not wait."""
        task = asyncio.create_task(
            self.record(user_id, tier, scenario_ids, report_type),
            name=f"record-usage:{user_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Usage recording cancelled: {task.get_name()}")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Failed to record report usage: {error}",
                exc_info=error,
                extra={'extra_data': {'task': task.get_name()}}
            )

    async def drain(self) -> None:
        """Wait for every outstanding recording task."""
        while self._tasks:
            tasks: List[asyncio.Task] = list(self._tasks)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._tasks.difference_update(tasks)

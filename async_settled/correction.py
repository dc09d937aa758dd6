"""Precount correction trigger.

A settlement landing in an hour that has already fully elapsed changes totals
the hourly precount job has already computed. For those records a correction
task is appended to the shared ``precount_fix`` collection so the batch job
recounts the bucket. Settlements in the current, still-open hour are left
alone: the regular precount run will see them.
"""

import logging
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from .models import CorrectionTask, SettlementRecord
from .storage.base import StoreManager
from .timeutils import hour_start, to_datetime, utc_hour_bucket

logger = logging.getLogger(__name__)


class CorrectionTrigger:
    def __init__(
        self,
        stores: StoreManager,
        collection: str = "precount_fix",
        tz: str = "Asia/Taipei",
        clock: Callable[[], datetime] | None = None,
    ):
        self.stores = stores
        self.collection = collection
        self.zone = ZoneInfo(tz)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def elapsed_bucket(self, settled_time: int) -> str | None:
        """UTC hour bucket of ``settled_time`` if that hour is already over."""
        if not settled_time:
            return None
        bucket_start = hour_start(to_datetime(settled_time, self.zone))
        current_hour = hour_start(self._clock().astimezone(self.zone))
        # Same-zone comparison ignores fold; the repeated DST hour needs UTC.
        if bucket_start.astimezone(timezone.utc) < current_hour.astimezone(timezone.utc):
            return utc_hour_bucket(bucket_start)
        return None

    async def fire(self, record: SettlementRecord) -> bool:
        """Queue a correction task for ``record`` if its hour has elapsed."""
        bucket = self.elapsed_bucket(record.settled_time)
        if bucket is None:
            return False
        return await self._emit(record, bucket)

    async def fire_for_write(self, before: SettlementRecord, after: SettlementRecord) -> int:
        """Queue tasks for both the old and new bucket of a rewritten record.

        Returns the number of tasks written. A bucket shared by both
        snapshots is queued once, with the post-write values.
        """
        emitted = 0
        seen: set[str] = set()
        for record in (after, before):
            bucket = self.elapsed_bucket(record.settled_time)
            if bucket is None or bucket in seen:
                continue
            seen.add(bucket)
            if await self._emit(record, bucket):
                emitted += 1
        return emitted

    async def _emit(self, record: SettlementRecord, bucket: str) -> bool:
        task = CorrectionTask.from_record(record, bucket, created_at=self._clock())
        inserted = await self.stores.default().insert(self.collection, task.to_document())
        if inserted:
            logger.info(
                f"Queued precount fix for {record.op_code}/{record.bet_id} "
                f"(hour {bucket} UTC, status={record.status.value})"
            )
        return inserted

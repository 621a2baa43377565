"""Queue service: joins, status lookups, staff transitions and statistics.

Store layout::

    queues/waiting/{id}        customers in line
    queues/serving/{id}        customers being attended to
    queues/archived/{id}       completed and skipped customers
    queues/stats/daily/{YYYY-MM-DD}
    queues/stats/monthly/{YYYY-MM}
    settings/config            {averageServingTime}

An entry lives in exactly one partition. Moves between partitions are a
single multi-path update so no reader sees it in two places, and position
assignment and swaps run as store transactions over the waiting partition.
"""

import asyncio
import logging
import math
import time
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from zoneinfo import ZoneInfo

from queueline.core.config import Settings
from queueline.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    StoreTimeoutError,
    ValidationError,
)
from queueline.core.validators import parse_party_size, validate_join_form
from queueline.schemas.queue import (
    DailyStats,
    MonthlyStats,
    Partition,
    QueueEntry,
    QueueStatus,
    QueueStatusView,
)
from queueline.services.realtime import RealtimeStore, join_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUEUES_ROOT = "queues"
WAITING_PATH = join_path(QUEUES_ROOT, Partition.WAITING.value)
SERVING_PATH = join_path(QUEUES_ROOT, Partition.SERVING.value)
ARCHIVED_PATH = join_path(QUEUES_ROOT, Partition.ARCHIVED.value)
DAILY_STATS_PATH = join_path(QUEUES_ROOT, "stats", "daily")
MONTHLY_STATS_PATH = join_path(QUEUES_ROOT, "stats", "monthly")
CONFIG_PATH = "settings/config"

ADVANCE_TARGETS = (QueueStatus.SERVING, QueueStatus.COMPLETED, QueueStatus.SKIPPED)
PHONE_SUFFIX_LENGTH = 7


def now_ms() -> int:
    return int(time.time() * 1000)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def wait_minutes(created_at: Optional[int], served_at: Optional[int]) -> int:
    """Minutes between joining and being served; 0 when never served."""
    if not created_at or not served_at:
        return 0
    return round_half_up((served_at - created_at) / 60000)


def sorted_records(docs: Optional[Dict[str, Any]]) -> List[Tuple[str, Dict[str, Any]]]:
    """(id, record) pairs ordered by stored position, id as tie-break."""
    items = [(k, v) for k, v in (docs or {}).items() if isinstance(v, dict)]
    return sorted(items, key=lambda item: (item[1].get("position") or 0, item[0]))


def combine_partitions(
    waiting: Optional[Dict[str, Any]], serving: Optional[Dict[str, Any]]
) -> List[QueueEntry]:
    """Waiting and serving entries in one list, ascending by position."""
    entries = [
        QueueEntry.from_record(entry_id, record, QueueStatus.WAITING)
        for entry_id, record in sorted_records(waiting)
    ]
    entries += [
        QueueEntry.from_record(entry_id, record, QueueStatus.SERVING)
        for entry_id, record in sorted_records(serving)
    ]
    return sorted(entries, key=lambda e: (e.position, e.id))


def status_view(entry_id: str, entries: List[QueueEntry], average: int) -> Optional[QueueStatusView]:
    """Status of one entry derived from a single snapshot of the active line.

    ``entries`` is the line as ``combine_partitions`` builds it. Returns None
    when the entry is in neither partition.
    """
    waiting = [e for e in entries if e.status == QueueStatus.WAITING]
    rank = next((index for index, e in enumerate(waiting, start=1) if e.id == entry_id), 0)
    entry = waiting[rank - 1] if rank else next((e for e in entries if e.id == entry_id), None)
    if entry is None:
        return None
    return QueueStatusView(
        **entry.model_dump(exclude={"position"}),
        position=rank,
        queue_position=entry.position,
        people_ahead=max(rank - 1, 0),
        estimated_wait_time=len(waiting) * average,
    )


def _increment_stats(
    stats: Optional[Dict[str, Any]],
    party_size: int,
    wait_time: int,
    stamp: Optional[int] = None,
) -> Dict[str, Any]:
    stats = dict(stats or {})
    served = int(stats.get("totalServed") or 0) + 1
    total_wait = int(stats.get("totalWaitTime") or 0) + wait_time
    stats.update(
        totalServed=served,
        totalPeople=int(stats.get("totalPeople") or 0) + party_size,
        totalWaitTime=total_wait,
        avgWaitTime=round_half_up(total_wait / served),
    )
    if stamp is not None:
        stats["lastUpdated"] = stamp
    return stats


class QueueService:
    """Domain operations over the realtime store's queue partitions."""

    def __init__(
        self,
        store: RealtimeStore,
        settings: Settings,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.clock = clock
        self.timeout = settings.store_timeout_seconds
        self.default_average_serving_minutes = settings.default_average_serving_minutes
        self.history_default_limit = settings.history_default_limit
        self.tz = ZoneInfo(settings.stats_timezone)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Store call '{operation}' timed out after {self.timeout}s")
            raise StoreTimeoutError(operation, self.timeout) from None

    def day_key(self, stamp_ms: int) -> str:
        return datetime.fromtimestamp(stamp_ms / 1000, self.tz).strftime("%Y-%m-%d")

    def month_key(self, stamp_ms: int) -> str:
        return self.day_key(stamp_ms)[:7]

    # ==================== CUSTOMER OPERATIONS ====================

    async def join(self, name: Any, party_size: Any, phone: Any) -> str:
        """Add a party to the end of the line and return its id."""
        result = validate_join_form(name, phone, party_size)
        if not result.valid:
            raise ValidationError(result.message)

        entry_id = self.store.new_key()
        now = self.clock()
        record = {
            "name": name.strip(),
            "partySize": parse_party_size(party_size),
            "phone": phone.strip(),
            "createdAt": now,
            "updatedAt": now,
        }

        def assign_position(waiting):
            waiting = dict(waiting or {})
            positions = [doc.get("position") or 0 for doc in waiting.values() if isinstance(doc, dict)]
            waiting[entry_id] = {**record, "position": max(positions, default=0) + 1}
            return waiting

        try:
            committed = await self._call("join", self.store.transaction(WAITING_PATH, assign_position))
        except StoreTimeoutError:
            # A timed-out transaction can still commit; the id is ours, so look for it
            stored = await self._call("join", self.store.get(join_path(WAITING_PATH, entry_id)))
            if not isinstance(stored, dict):
                raise
            logger.warning(f"Join for {entry_id} committed after the store timed out")
            committed = {entry_id: stored}
        position = committed[entry_id]["position"]
        logger.info(f"Entry {entry_id} joined at position {position} (party of {record['partySize']})")
        return entry_id

    async def _locate(self, entry_id: str) -> Tuple[Optional[Partition], Optional[Dict[str, Any]]]:
        for partition, path in ((Partition.WAITING, WAITING_PATH), (Partition.SERVING, SERVING_PATH)):
            record = await self._call("locate", self.store.get(join_path(path, entry_id)))
            if isinstance(record, dict):
                return partition, record
        return None, None

    async def average_serving_minutes(self) -> int:
        config = await self._call("config", self.store.get(CONFIG_PATH))
        value = config.get("averageServingTime") if isinstance(config, dict) else None
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return int(value)
        return self.default_average_serving_minutes

    async def get_status(self, entry_id: str) -> QueueStatusView:
        """Entry from waiting or serving with its live rank and wait estimate.

        Rank and status come from one read of the waiting partition; the
        serving partition is only consulted when the entry is not waiting.
        """
        waiting = await self._call("get_status", self.store.get(WAITING_PATH))
        waiting = waiting if isinstance(waiting, dict) else None
        serving = None
        if not isinstance((waiting or {}).get(entry_id), dict):
            record = await self._call("get_status", self.store.get(join_path(SERVING_PATH, entry_id)))
            if not isinstance(record, dict):
                raise NotFoundError("Queue entry not found")
            serving = {entry_id: record}

        average = await self.average_serving_minutes()
        return status_view(entry_id, combine_partitions(waiting, serving), average)

    async def search(self, phone: Any) -> QueueEntry:
        """Find an active entry by phone: exact match, or same last 7 digits."""
        term = phone.strip().lower() if isinstance(phone, str) else ""
        if not term:
            raise ValidationError("Please enter a phone number")

        for partition, path in ((Partition.WAITING, WAITING_PATH), (Partition.SERVING, SERVING_PATH)):
            docs = await self._call("search", self.store.get(path))
            for entry_id, record in sorted_records(docs):
                candidate = record.get("phone")
                if not isinstance(candidate, str) or not candidate:
                    continue
                candidate = candidate.strip().lower()
                if candidate == term or candidate[-PHONE_SUFFIX_LENGTH:] == term[-PHONE_SUFFIX_LENGTH:]:
                    return QueueEntry.from_record(entry_id, record, QueueStatus(partition.value))

        raise NotFoundError("No queue found with this phone number")

    async def remove(self, entry_id: str) -> None:
        """Withdraw an entry from waiting and serving; absent entries are ignored."""
        await self._call(
            "remove",
            self.store.update(QUEUES_ROOT, {
                f"{Partition.WAITING.value}/{entry_id}": None,
                f"{Partition.SERVING.value}/{entry_id}": None,
            }),
        )
        logger.info(f"Entry {entry_id} withdrawn")

    # ==================== STAFF OPERATIONS ====================

    async def list_entries(self) -> List[QueueEntry]:
        waiting = await self._call("list", self.store.get(WAITING_PATH))
        serving = await self._call("list", self.store.get(SERVING_PATH))
        return combine_partitions(waiting, serving)

    async def advance(self, entry_id: str, status: Any) -> QueueEntry:
        """Move an entry to serving, or archive it as completed/skipped.

        Completing or skipping straight from waiting is allowed. Only
        completions count towards the daily and monthly statistics.
        """
        try:
            target = QueueStatus(status)
        except ValueError:
            raise InvalidTransitionError(str(status)) from None
        if target not in ADVANCE_TARGETS:
            raise InvalidTransitionError(target.value)

        partition, record = await self._locate(entry_id)
        if record is None:
            raise NotFoundError("Queue entry not found in waiting or serving")

        now = self.clock()
        if target is QueueStatus.SERVING:
            if partition is Partition.SERVING:
                logger.debug(f"Entry {entry_id} is already being served")
                return QueueEntry.from_record(entry_id, record, QueueStatus.SERVING)
            served = {**record, "servedAt": now, "updatedAt": now}
            await self._call(
                "advance",
                self.store.update(QUEUES_ROOT, {
                    f"{Partition.WAITING.value}/{entry_id}": None,
                    f"{Partition.SERVING.value}/{entry_id}": served,
                }),
            )
            logger.info(f"Entry {entry_id} is now being served")
            return QueueEntry.from_record(entry_id, served, QueueStatus.SERVING)

        wait_time = wait_minutes(record.get("createdAt"), record.get("servedAt"))
        archived = {
            **record,
            "status": target.value,
            "completedAt": now,
            "updatedAt": now,
            "waitTime": wait_time,
        }
        await self._call(
            "advance",
            self.store.update(QUEUES_ROOT, {
                f"{partition.value}/{entry_id}": None,
                f"{Partition.ARCHIVED.value}/{entry_id}": archived,
            }),
        )
        logger.info(f"Entry {entry_id} archived as {target.value} from {partition.value}")

        if target is QueueStatus.COMPLETED:
            await self._record_completion(int(record.get("partySize") or 1), wait_time, now)
        return QueueEntry.from_record(entry_id, archived, target)

    async def _record_completion(self, party_size: int, wait_time: int, now: int) -> None:
        """Bump the cached aggregates. Failures are logged, never raised."""
        try:
            await self._call(
                "stats",
                self.store.transaction(
                    join_path(DAILY_STATS_PATH, self.day_key(now)),
                    partial(_increment_stats, party_size=party_size, wait_time=wait_time, stamp=now),
                ),
            )
            await self._call(
                "stats",
                self.store.transaction(
                    join_path(MONTHLY_STATS_PATH, self.month_key(now)),
                    partial(_increment_stats, party_size=party_size, wait_time=wait_time),
                ),
            )
        except Exception as e:
            logger.error(f"Error updating stats: {e}")

    async def reorder(self, first_id: str, second_id: str) -> None:
        """Swap the positions of two waiting entries."""
        now = self.clock()

        def swap(waiting):
            waiting = dict(waiting or {})
            if not isinstance(waiting.get(first_id), dict) or not isinstance(waiting.get(second_id), dict):
                raise NotFoundError("One or both queue entries not found in waiting queue")
            first, second = dict(waiting[first_id]), dict(waiting[second_id])
            first["position"], second["position"] = second.get("position"), first.get("position")
            first["updatedAt"] = second["updatedAt"] = now
            waiting[first_id], waiting[second_id] = first, second
            return waiting

        await self._call("reorder", self.store.transaction(WAITING_PATH, swap))
        logger.info(f"Swapped positions of {first_id} and {second_id}")

    # ==================== STATISTICS ====================

    async def daily_stats(self, day: Optional[str] = None) -> DailyStats:
        day = day or self.day_key(self.clock())
        record = await self._call("stats", self.store.get(join_path(DAILY_STATS_PATH, day)))
        if not isinstance(record, dict):
            return DailyStats(date=day, last_updated=self.clock())
        return DailyStats.model_validate({**record, "date": day})

    async def monthly_stats(self, month: Optional[str] = None) -> MonthlyStats:
        month = month or self.month_key(self.clock())
        record = await self._call("stats", self.store.get(join_path(MONTHLY_STATS_PATH, month)))
        return MonthlyStats.model_validate({**(record if isinstance(record, dict) else {}), "month": month})

    async def completion_history(self, limit: Optional[int] = None) -> List[QueueEntry]:
        """Archived entries, most recently finished first."""
        limit = self.history_default_limit if limit is None else limit
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        docs = await self._call("history", self.store.get(ARCHIVED_PATH)) or {}
        entries = [
            QueueEntry.from_record(entry_id, record, QueueStatus.COMPLETED)
            for entry_id, record in docs.items()
            if isinstance(record, dict)
        ]
        entries.sort(key=lambda e: e.completed_at or 0, reverse=True)
        return entries[:limit]

    async def prune_archive(self, retention_days: int) -> int:
        """Delete archived entries finished more than ``retention_days`` ago."""
        cutoff = self.clock() - retention_days * 24 * 60 * 60 * 1000
        docs = await self._call("prune", self.store.get(ARCHIVED_PATH)) or {}
        expired = {
            entry_id: None
            for entry_id, record in docs.items()
            if isinstance(record, dict) and (record.get("completedAt") or 0) < cutoff
        }
        if expired:
            await self._call("prune", self.store.update(ARCHIVED_PATH, expired))
            logger.info(f"Archive retention: purged {len(expired)} entries older than {retention_days} days")
        return len(expired)

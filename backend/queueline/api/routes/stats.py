"""Statistics routes (staff)."""

from typing import Optional

from fastapi import APIRouter, Query

from queueline.api.deps import QueueServiceDep
from queueline.core.auth import RequireStaff
from queueline.core.responses import list_response

router = APIRouter()

DAY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
MONTH_PATTERN = r"^\d{4}-\d{2}$"


@router.get("/daily")
async def daily_stats(
    service: QueueServiceDep,
    staff: RequireStaff,
    day: Optional[str] = Query(None, pattern=DAY_PATTERN),
):
    """Completions for one day (today by default). Missing days read as zeros."""
    stats = await service.daily_stats(day)
    return stats.model_dump()


@router.get("/monthly")
async def monthly_stats(
    service: QueueServiceDep,
    staff: RequireStaff,
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
):
    stats = await service.monthly_stats(month)
    return stats.model_dump()


@router.get("/history")
async def completion_history(
    service: QueueServiceDep,
    staff: RequireStaff,
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    """Archived entries, most recently finished first."""
    entries = await service.completion_history(limit)
    return list_response([e.model_dump(mode="json") for e in entries])

"""Queue schemas.

Store documents use camelCase keys (``partySize``, ``createdAt``); the
models below accept either spelling and dump snake_case for the API.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QueueStatus(str, Enum):
    WAITING = "waiting"
    SERVING = "serving"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class Partition(str, Enum):
    WAITING = "waiting"
    SERVING = "serving"
    ARCHIVED = "archived"


class StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueueEntry(StoreModel):
    """One customer's place in line."""

    id: str
    name: str
    party_size: int
    phone: str
    position: int
    status: QueueStatus = QueueStatus.WAITING
    created_at: int
    updated_at: int
    served_at: Optional[int] = None
    completed_at: Optional[int] = None
    wait_time: Optional[int] = None

    @classmethod
    def from_record(cls, entry_id: str, record: Dict[str, Any], status: QueueStatus) -> "QueueEntry":
        data = dict(record)
        data.pop("id", None)
        # archived records carry their own terminal status
        data.setdefault("status", status.value)
        data.setdefault("updatedAt", data.get("createdAt", 0))
        data.setdefault("position", 0)
        return cls.model_validate({"id": entry_id, **data})


class QueueStatusView(QueueEntry):
    """QueueEntry as seen by the customer.

    ``position`` is the 1-based rank among waiting entries (0 once serving);
    ``queue_position`` keeps the stored position key.
    """

    queue_position: int
    people_ahead: int = 0
    estimated_wait_time: int = 0


class ApproachingNotice(BaseModel):
    type: str = "approaching"
    people_ahead: int
    message: str


class AggregateStats(StoreModel):
    total_served: int = 0
    total_people: int = 0
    total_wait_time: int = 0
    avg_wait_time: int = 0
    last_updated: Optional[int] = None


class DailyStats(AggregateStats):
    date: str = ""


class MonthlyStats(AggregateStats):
    month: str = ""


# =============================================================================
# Request bodies
# =============================================================================

class JoinRequest(BaseModel):
    """Join the line. Shape is checked by the join form validators, not here."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    phone: str = ""
    party_size: Union[int, str] = Field(default="", alias="partySize")


class StatusUpdateRequest(BaseModel):
    status: str


class ReorderRequest(BaseModel):
    first_id: str
    second_id: str


class LoginRequest(BaseModel):
    password: str

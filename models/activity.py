# models/activity.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from dataclasses import dataclass, asdict, field
from typing import Optional, List, Dict, Any, ClassVar, Type
from datetime import datetime
from uuid import uuid4

from utils.dates import UTCDateTime, utcnow


class Activity(SQLModel, table=True):
    __tablename__ = "activities"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    user_id: str = Field(index=True)
    type: str  # project | task | earning
    action: str
    target_id: Optional[str] = Field(default=None, index=True)
    target_name: Optional[str] = None
    team_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))


# ---- details payloads, one variant per action kind ----

_DETAIL_KINDS: Dict[str, Type["ActivityDetails"]] = {}


@dataclass(frozen=True)
class ActivityDetails:
    kind: ClassVar[str] = ""
    target_type: ClassVar[str] = "project"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.kind:
            _DETAIL_KINDS[cls.kind] = cls

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass(frozen=True)
class MilestoneAdded(ActivityDetails):
    kind: ClassVar[str] = "milestone_added"

    milestone_id: str
    milestone_title: str
    milestone_due_date: str


@dataclass(frozen=True)
class MilestoneUpdated(ActivityDetails):
    kind: ClassVar[str] = "milestone_updated"

    milestone_id: str
    milestone_title: str
    updated_fields: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MilestoneDeleted(ActivityDetails):
    kind: ClassVar[str] = "milestone_deleted"

    milestone_id: str
    milestone_title: str


@dataclass(frozen=True)
class ProjectDeleted(ActivityDetails):
    kind: ClassVar[str] = "project_deleted"

    deleted_tasks: int
    updated_teams: int


@dataclass(frozen=True)
class ConsistencyRepaired(ActivityDetails):
    kind: ClassVar[str] = "consistency_repaired"

    repairs: List[str]


@dataclass(frozen=True)
class TeamAttached(ActivityDetails):
    kind: ClassVar[str] = "team_attached"

    team_id: str
    team_name: str


@dataclass(frozen=True)
class TeamDetached(ActivityDetails):
    kind: ClassVar[str] = "team_detached"

    team_id: str
    team_name: str


@dataclass(frozen=True)
class TaskStatusChanged(ActivityDetails):
    kind: ClassVar[str] = "task_status_changed"
    target_type: ClassVar[str] = "task"

    project_id: str
    previous_status: str
    new_status: str


@dataclass(frozen=True)
class TaskSubmittedForReview(ActivityDetails):
    kind: ClassVar[str] = "task_submitted_for_review"
    target_type: ClassVar[str] = "task"

    project_id: str
    submitted_by: str


@dataclass(frozen=True)
class TaskApproved(ActivityDetails):
    kind: ClassVar[str] = "task_approved"
    target_type: ClassVar[str] = "task"

    project_id: str
    approved_by: str
    assigned_to: List[str]
    rate: float
    earnings_created: int


@dataclass(frozen=True)
class TaskRevisionRequested(ActivityDetails):
    kind: ClassVar[str] = "task_revision_requested"
    target_type: ClassVar[str] = "task"

    project_id: str
    requested_by: str
    note: str


def parse_details(data: Dict[str, Any]) -> ActivityDetails:
    """Rebuild the typed payload stored on an Activity row."""
    payload = dict(data or {})
    kind = payload.pop("kind", None)
    cls = _DETAIL_KINDS.get(kind)
    if cls is None:
        raise ValueError(f"Unknown activity kind: {kind!r}")
    return cls(**payload)

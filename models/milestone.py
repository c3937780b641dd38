# models/milestone.py
from sqlmodel import SQLModel, Field
from pydantic import field_validator
from typing import Optional
from datetime import datetime
from uuid import uuid4

from utils.dates import parse_date, utcnow

MILESTONE_STATUSES = ("not-started", "in-progress", "completed", "overdue")


class Milestone(SQLModel):
    """Dated checkpoint embedded in a Project document.

    Not a table: milestones live inside ``Project.milestones`` and are only
    reachable through the owning project. ``progress`` and ``status`` are
    derived by the metrics recalculator.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str
    description: Optional[str] = None
    due_date: datetime
    status: str = Field(default="not-started")
    progress: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("due_date", "created_at", "updated_at", mode="before")
    @classmethod
    def _as_utc(cls, v):
        return parse_date(v) or v

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        if v not in MILESTONE_STATUSES:
            raise ValueError(f"Unknown milestone status: {v}")
        return v

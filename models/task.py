# models/task.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from uuid import uuid4

from utils.dates import UTCDateTime, utcnow

TASK_STATUSES = ("backlog", "in_progress", "completed", "revision", "done", "blocked", "rejected")


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    project_id: str = Field(index=True)
    name: str
    description: Optional[str] = None
    status: str = Field(default="backlog")
    deadline: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    team_id: Optional[str] = None
    task_rate: float = Field(default=0.0)
    created_by: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    completed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    assigned_to: List[str] = Field(default_factory=list, sa_column=Column(JSON))

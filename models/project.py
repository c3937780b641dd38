# models/project.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import uuid4

from models.milestone import Milestone
from models.metrics import ProjectMetrics
from utils.dates import UTCDateTime, utcnow


class Project(SQLModel, table=True):
    __tablename__ = "projects"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    name: str
    description: Optional[str] = None
    status: str = Field(default="planning")
    priority: str = Field(default="medium")
    deadline: datetime = Field(sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    created_by: str
    project_manager_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    teams: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    task_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    # embedded documents, serialised; go through the methods below
    milestones: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    metrics: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    def get_milestones(self) -> List[Milestone]:
        return [Milestone.model_validate(m) for m in (self.milestones or [])]

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        for m in self.get_milestones():
            if m.id == milestone_id:
                return m
        return None

    def set_milestones(self, milestones: List[Milestone]) -> None:
        self.milestones = [m.model_dump(mode="json") for m in milestones]

    def add_milestone(self, milestone: Milestone) -> None:
        self.set_milestones(self.get_milestones() + [milestone])

    def replace_milestone(self, milestone: Milestone) -> None:
        current = self.get_milestones()
        if not any(m.id == milestone.id for m in current):
            raise ValueError("Milestone not found")
        self.set_milestones([milestone if m.id == milestone.id else m for m in current])

    def remove_milestone(self, milestone_id: str) -> Milestone:
        current = self.get_milestones()
        removed = next((m for m in current if m.id == milestone_id), None)
        if removed is None:
            raise ValueError("Milestone not found")
        self.set_milestones([m for m in current if m.id != milestone_id])
        return removed

    def get_metrics(self) -> ProjectMetrics:
        return ProjectMetrics.model_validate(self.metrics or {})

    def set_metrics(self, metrics: ProjectMetrics) -> None:
        self.metrics = metrics.model_dump()

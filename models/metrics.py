# models/metrics.py
from sqlmodel import SQLModel


class ProjectMetrics(SQLModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    completion_rate: float = 0.0  # 0..100
    pending_tasks: int = 0
    active_members: int = 0
    total_teams: int = 0
    active_milestones: int = 0

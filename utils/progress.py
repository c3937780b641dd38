# utils/progress.py
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from db import EntityNotFound, EntityStore
from models.metrics import ProjectMetrics
from models.milestone import Milestone
from models.task import Task
from utils.dates import parse_date, utcnow

logger = logging.getLogger(__name__)

COMPLETED_TASK_STATUSES = frozenset({"completed", "done"})


@dataclass(frozen=True)
class MilestoneProgress:
    progress: int
    related_tasks_count: int
    completed_tasks_count: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return _round_half_up(100 * part / whole)


def milestone_progress(milestone, tasks: Optional[Iterable[Task]]) -> MilestoneProgress:
    """Share of tasks due on or before the milestone that are finished.

    Tasks without a deadline never count toward a milestone.
    """
    due = parse_date(getattr(milestone, "due_date", None))
    if due is None:
        return MilestoneProgress(0, 0, 0)
    related = []
    for t in tasks or ():
        deadline = parse_date(getattr(t, "deadline", None))
        if deadline is not None and deadline <= due:
            related.append(t)
    completed = sum(1 for t in related if getattr(t, "status", None) in COMPLETED_TASK_STATUSES)
    return MilestoneProgress(_percent(completed, len(related)), len(related), completed)


def next_milestone_status(previous: str, progress: int, due_date, now: datetime) -> str:
    if progress == 100:
        return "completed"
    if progress > 0 and previous == "not-started":
        return "in-progress"
    due = parse_date(due_date)
    if due is not None and due < parse_date(now) and previous != "completed":
        return "overdue"
    return previous


def recompute_milestone(milestone: Milestone, tasks: Iterable[Task], now: datetime) -> Milestone:
    result = milestone_progress(milestone, tasks)
    status = next_milestone_status(milestone.status, result.progress, milestone.due_date, now)
    if result.progress == milestone.progress and status == milestone.status:
        return milestone
    return milestone.model_copy(update={"progress": result.progress, "status": status, "updated_at": parse_date(now)})


def compute_project_metrics(tasks: List[Task], milestones: List[Milestone], total_teams: int = 0) -> ProjectMetrics:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status in COMPLETED_TASK_STATUSES)
    active = {uid for t in tasks if t.status == "in_progress" for uid in (t.assigned_to or [])}
    return ProjectMetrics(
        total_tasks=total,
        completed_tasks=completed,
        completion_rate=(completed / total) * 100 if total else 0.0,
        pending_tasks=total - completed,
        active_members=len(active),
        total_teams=total_teams,
        active_milestones=sum(1 for m in milestones if m.status != "completed"),
    )


def recalculate_metrics(store: EntityStore, project_id: str, now: Optional[datetime] = None) -> ProjectMetrics:
    """Full recompute of a project's metrics and embedded milestones.

    Snapshot semantics: concurrent runs overwrite each other with equivalent
    results. Store failures propagate.
    """
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)
    tasks = store.query("tasks", project_id=project_id)
    now = parse_date(now) or utcnow()

    milestones = [recompute_milestone(m, tasks, now) for m in project.get_milestones()]
    project.set_milestones(milestones)
    metrics = compute_project_metrics(tasks, milestones, len(project.teams or []))
    project.set_metrics(metrics)

    store.update("projects", project_id, {"metrics": project.metrics, "milestones": project.milestones})
    logger.debug("recalculated metrics for project %s: %s", project_id, metrics)
    return metrics

# utils/consistency.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from db import EntityNotFound, EntityStore
from models.activity import ConsistencyRepaired
from utils.activity import log_activity
from utils.dates import parse_date, utcnow
from utils.permissions import PermissionContext
from utils.progress import recalculate_metrics

logger = logging.getLogger(__name__)

# actor recorded for repairs made outside any user request
SYSTEM_ACTOR = "system"


@dataclass
class AuditReport:
    is_consistent: bool
    issues: List[str] = field(default_factory=list)
    fixed: List[str] = field(default_factory=list)


def _repair_task_ids(store: EntityStore, project, fixed: List[str]) -> None:
    actual_ids = [t.id for t in store.query("tasks", project_id=project.id)]
    actual = set(actual_ids)
    current = list(project.task_ids or [])

    kept: List[str] = []
    orphaned = duplicates = 0
    for task_id in current:
        if task_id not in actual:
            orphaned += 1
        elif task_id in kept:
            duplicates += 1
        else:
            kept.append(task_id)
    missing = [i for i in actual_ids if i not in kept]

    if not (orphaned or duplicates or missing):
        return

    store.update("projects", project.id, {"task_ids": kept + missing, "updated_at": utcnow()})
    if orphaned:
        fixed.append(f"Removed {orphaned} orphaned task IDs from project")
    if duplicates:
        fixed.append(f"Removed {duplicates} duplicate task IDs from project")
    if missing:
        fixed.append(f"Added {len(missing)} missing task IDs to project")
    logger.info("project %s task references repaired: %s", project.id, "; ".join(fixed))


def _check_teams(store: EntityStore, project, issues: List[str]) -> None:
    # dangling team refs may be a deliberate removal in progress; report only
    for team_id in project.teams or []:
        if store.get("teams", team_id) is None:
            issues.append(f"Project references non-existent team: {team_id}")


def _check_milestone_dates(project, issues: List[str]) -> None:
    start = parse_date(project.created_at)
    end = parse_date(project.deadline)
    for m in project.get_milestones():
        due = parse_date(m.due_date)
        if start is not None and due < start:
            issues.append(f'Milestone "{m.title}" due date is before project start')
        if end is not None and due > end:
            issues.append(f'Milestone "{m.title}" due date is after project deadline')


def audit_project(store: EntityStore, project_id: str, context: Optional[PermissionContext] = None) -> AuditReport:
    """Audit a project for drift against its tasks and teams.

    Task references are repaired in place. Dangling team references and
    out-of-bounds milestones are only reported. Metrics are always
    recomputed at the end. Repairs are recorded as a ConsistencyRepaired
    activity on behalf of ``context``, or the system actor when none is given.
    Raises EntityNotFound if the project is missing.
    """
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)

    issues: List[str] = []
    fixed: List[str] = []

    _repair_task_ids(store, project, fixed)
    if fixed:
        log_activity(
            store,
            actor_id=context.user_id if context else SYSTEM_ACTOR,
            target_id=project.id,
            target_name=project.name,
            details=ConsistencyRepaired(repairs=list(fixed)),
        )
    _check_teams(store, project, issues)
    _check_milestone_dates(project, issues)

    recalculate_metrics(store, project_id)
    if not issues:
        fixed.append("Updated project metrics")
    else:
        logger.warning("project %s has %d unresolved issues", project_id, len(issues))

    return AuditReport(is_consistent=not issues, issues=issues, fixed=fixed)

# utils/relationships.py
import logging
from typing import Iterable, Optional

from db import EntityNotFound, EntityStore, update_op
from models.activity import TeamAttached, TeamDetached
from models.task import Task
from utils.activity import log_activity
from utils.dates import parse_date, utcnow
from utils.permissions import PermissionContext, PermissionDenied, get_project_permissions
from utils.progress import recalculate_metrics

logger = logging.getLogger(__name__)

# fields whose change invalidates project metrics or milestone progress
DERIVED_INPUT_FIELDS = ("status", "deadline", "assigned_to")


def maintain_project_task_relationship(store: EntityStore, project_id: str, task_id: str, operation: str) -> bool:
    """Add or remove ``task_id`` in the project's task list (set semantics).

    Returns True when the list changed. Metrics are only recomputed after a
    real change. Not transactional with ``Task.project_id``; drift between
    the two sides is healed by the consistency audit.
    """
    if operation not in ("add", "remove"):
        raise ValueError(f"Unknown relationship operation: {operation}")

    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)

    current = list(project.task_ids or [])
    if operation == "add":
        if task_id in current:
            return False
        updated = current + [task_id]
    else:
        if task_id not in current:
            return False
        updated = [i for i in current if i != task_id]

    store.update("projects", project_id, {"task_ids": updated, "updated_at": utcnow()})
    logger.info("%s task %s %s project %s", operation, task_id, "to" if operation == "add" else "from", project_id)
    recalculate_metrics(store, project_id)
    return True


def link_task(store: EntityStore, project_id: str, task_id: str) -> bool:
    return maintain_project_task_relationship(store, project_id, task_id, "add")


def unlink_task(store: EntityStore, project_id: str, task_id: str) -> bool:
    return maintain_project_task_relationship(store, project_id, task_id, "remove")


def _derived_inputs_changed(task: Task, previous: Optional[Task]) -> bool:
    if previous is None:
        return True
    for f in DERIVED_INPUT_FIELDS:
        new, old = getattr(task, f), getattr(previous, f)
        if f == "deadline":
            new, old = parse_date(new), parse_date(old)
        if new != old:
            return True
    return False


def on_task_saved(store: EntityStore, task: Task, previous: Optional[Task] = None) -> None:
    """Hook for the CRUD layer after a task was created or updated."""
    if previous is not None and previous.project_id and previous.project_id != task.project_id:
        try:
            unlink_task(store, previous.project_id, task.id)
        except EntityNotFound:
            logger.warning("task %s moved out of missing project %s", task.id, previous.project_id)

    changed = link_task(store, task.project_id, task.id)
    if not changed and _derived_inputs_changed(task, previous):
        recalculate_metrics(store, task.project_id)


def on_task_deleted(store: EntityStore, task: Task) -> None:
    """Hook for the CRUD layer after a task was deleted."""
    try:
        changed = unlink_task(store, task.project_id, task.id)
    except EntityNotFound:
        logger.warning("deleted task %s belonged to missing project %s", task.id, task.project_id)
        return
    if not changed:
        recalculate_metrics(store, task.project_id)


def _load_for_team_change(store: EntityStore, context: PermissionContext, project_id: str, user_teams: Iterable):
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)
    if not get_project_permissions(context, project, user_teams).can_manage_teams:
        raise PermissionDenied("You do not have permission to manage teams for this project")
    return project


def attach_team(
    store: EntityStore, context: PermissionContext, project_id: str, team_id: str, user_teams: Iterable = ()
) -> bool:
    """Link a team and a project on both sides in one batch.

    Returns False when both sides already reference each other.
    """
    project = _load_for_team_change(store, context, project_id, user_teams)
    team = store.get("teams", team_id)
    if team is None:
        raise EntityNotFound("teams", team_id)

    now = utcnow()
    ops = []
    if team_id not in (project.teams or []):
        ops.append(update_op("projects", project_id, {"teams": list(project.teams or []) + [team_id], "updated_at": now}))
    if project_id not in (team.projects or []):
        ops.append(update_op("teams", team_id, {"projects": list(team.projects or []) + [project_id], "updated_at": now}))
    if not ops:
        return False

    store.atomic_batch(ops)
    logger.info("attached team %s to project %s", team_id, project_id)
    recalculate_metrics(store, project_id)
    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project.id,
        target_name=project.name,
        team_id=team_id,
        details=TeamAttached(team_id=team_id, team_name=team.name),
    )
    return True


def detach_team(
    store: EntityStore, context: PermissionContext, project_id: str, team_id: str, user_teams: Iterable = ()
) -> bool:
    """Unlink a team from a project on both sides in one batch.

    A dangling reference to a team that no longer exists is dropped from the
    project alone. Returns False when neither side referenced the other.
    """
    project = _load_for_team_change(store, context, project_id, user_teams)
    team = store.get("teams", team_id)

    now = utcnow()
    ops = []
    if team_id in (project.teams or []):
        remaining = [t for t in project.teams if t != team_id]
        ops.append(update_op("projects", project_id, {"teams": remaining, "updated_at": now}))
    if team is not None and project_id in (team.projects or []):
        remaining = [p for p in team.projects if p != project_id]
        ops.append(update_op("teams", team_id, {"projects": remaining, "updated_at": now}))
    if not ops:
        return False

    store.atomic_batch(ops)
    logger.info("detached team %s from project %s", team_id, project_id)
    recalculate_metrics(store, project_id)
    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project.id,
        target_name=project.name,
        team_id=team_id,
        details=TeamDetached(team_id=team_id, team_name=team.name if team is not None else team_id),
    )
    return True

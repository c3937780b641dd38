# utils/cascade.py
import logging
from dataclasses import dataclass
from typing import Iterable, List

from db import EntityNotFound, EntityStore, WriteOp, delete_op, update_op
from models.activity import ProjectDeleted
from utils.activity import log_activity
from utils.dates import utcnow
from utils.permissions import PermissionContext, PermissionDenied, get_project_permissions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeResult:
    deleted_tasks: int
    updated_teams: int


def build_cascade_ops(store: EntityStore, project_id: str) -> List[WriteOp]:
    ops = [delete_op("tasks", t.id) for t in store.query("tasks", project_id=project_id)]
    now = utcnow()
    for team in store.query("teams"):
        if project_id in (team.projects or []):
            remaining = [p for p in team.projects if p != project_id]
            ops.append(update_op("teams", team.id, {"projects": remaining, "updated_at": now}))
    return ops


def _summarise(ops: List[WriteOp]) -> CascadeResult:
    return CascadeResult(
        deleted_tasks=sum(1 for op in ops if op.kind == "delete" and op.collection == "tasks"),
        updated_teams=sum(1 for op in ops if op.collection == "teams"),
    )


def cascade_project_deletion(store: EntityStore, project_id: str) -> CascadeResult:
    """Delete a project's tasks and drop it from every team, all-or-nothing."""
    ops = build_cascade_ops(store, project_id)
    store.atomic_batch(ops)
    result = _summarise(ops)
    logger.info(
        "cascade for project %s: %d tasks deleted, %d teams updated",
        project_id, result.deleted_tasks, result.updated_teams,
    )
    return result


def delete_project(
    store: EntityStore, context: PermissionContext, project_id: str, user_teams: Iterable = ()
) -> CascadeResult:
    """Delete the project row together with its cascade in one batch."""
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)
    if not get_project_permissions(context, project, user_teams).can_delete:
        raise PermissionDenied("Only admins can delete projects")

    ops = build_cascade_ops(store, project_id)
    store.atomic_batch(ops + [delete_op("projects", project_id)])
    result = _summarise(ops)
    logger.info("project %s deleted by %s", project_id, context.user_id)

    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project_id,
        target_name=project.name,
        details=ProjectDeleted(deleted_tasks=result.deleted_tasks, updated_teams=result.updated_teams),
    )
    return result

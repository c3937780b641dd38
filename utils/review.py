# utils/review.py
"""Task review workflow layered on Task.status.

Employees move their own tasks forward and submit them for review; only an
admin can approve (``completed -> done``) or send a task back for revision.
"""
import logging
from typing import Dict, Optional, Tuple

from db import EntityNotFound, EntityStore, StaleEntity, create_op, update_op
from models.activity import TaskApproved, TaskRevisionRequested, TaskStatusChanged, TaskSubmittedForReview
from models.earning import Earning
from models.task import TASK_STATUSES, Task
from utils.activity import log_activity
from utils.dates import utcnow
from utils.permissions import InvalidTransition, PermissionContext, PermissionDenied
from utils.progress import recalculate_metrics

logger = logging.getLogger(__name__)

# direct moves an assignee may make; in_progress -> completed goes through submit
EMPLOYEE_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "backlog": ("in_progress",),
    "in_progress": (),
    "completed": (),
    "revision": ("in_progress",),
    "done": (),
    "blocked": ("in_progress",),
    "rejected": ("in_progress",),
}

REVISABLE_STATUSES = ("completed", "in_progress")

NOT_AWAITING_APPROVAL = "Task is not awaiting approval or has already been processed."


def _load_task(store: EntityStore, task_id: str) -> Task:
    task = store.get("tasks", task_id)
    if task is None:
        raise EntityNotFound("tasks", task_id)
    return task


def _require_project(store: EntityStore, task: Task) -> None:
    if store.get("projects", task.project_id) is None:
        raise EntityNotFound("projects", task.project_id)


def _write_transition(store: EntityStore, task: Task, fields: Dict) -> None:
    try:
        store.atomic_batch([update_op("tasks", task.id, fields, expect={"status": task.status})])
    except StaleEntity as exc:
        raise InvalidTransition(f"Task status changed to {exc.actual} in the meantime") from exc


def _require_assignee(context: PermissionContext, task: Task) -> None:
    if context.user_id not in (task.assigned_to or []):
        raise PermissionDenied("You are not assigned to this task")


def _require_admin(context: PermissionContext, action: str) -> None:
    if not context.is_admin:
        raise PermissionDenied(f"Only admins can {action}")


def update_task_status_by_employee(store: EntityStore, context: PermissionContext, task_id: str, new_status: str) -> Task:
    task = _load_task(store, task_id)
    _require_assignee(context, task)
    if new_status not in TASK_STATUSES:
        raise InvalidTransition(f"Unknown task status: {new_status}")
    previous = task.status
    if new_status not in EMPLOYEE_TRANSITIONS.get(previous, ()):
        raise InvalidTransition(f"Cannot change task status from {previous} to {new_status}")
    _require_project(store, task)

    _write_transition(store, task, {"status": new_status, "updated_at": utcnow()})
    recalculate_metrics(store, task.project_id)
    log_activity(
        store,
        actor_id=context.user_id,
        target_id=task.id,
        target_name=task.name,
        team_id=task.team_id,
        details=TaskStatusChanged(project_id=task.project_id, previous_status=previous, new_status=new_status),
    )
    return _load_task(store, task_id)


def submit_task_for_review(store: EntityStore, context: PermissionContext, task_id: str) -> Task:
    task = _load_task(store, task_id)
    _require_assignee(context, task)
    if task.status != "in_progress":
        raise InvalidTransition(f"Only in-progress tasks can be submitted for review, not {task.status}")
    _require_project(store, task)

    now = utcnow()
    _write_transition(store, task, {"status": "completed", "completed_at": now, "updated_at": now})
    recalculate_metrics(store, task.project_id)
    log_activity(
        store,
        actor_id=context.user_id,
        target_id=task.id,
        target_name=task.name,
        team_id=task.team_id,
        details=TaskSubmittedForReview(project_id=task.project_id, submitted_by=context.user_id),
    )
    return _load_task(store, task_id)


def approve_task(store: EntityStore, context: PermissionContext, task_id: str) -> Task:
    """Approve a reviewed task; one Earning per assignee when the task pays."""
    _require_admin(context, "approve tasks")
    task = _load_task(store, task_id)
    if task.status != "completed":
        raise InvalidTransition(NOT_AWAITING_APPROVAL)
    _require_project(store, task)

    ops = [update_op("tasks", task.id, {"status": "done", "updated_at": utcnow()}, expect={"status": "completed"})]
    rate = float(task.task_rate or 0)
    if rate > 0:
        for assignee_id in task.assigned_to or []:
            ops.append(create_op("earnings", Earning(user_id=assignee_id, type="task", ref_id=task.id, amount=rate)))
    try:
        store.atomic_batch(ops)
    except StaleEntity as exc:
        # another approval or revision got there first
        raise InvalidTransition(NOT_AWAITING_APPROVAL) from exc

    earnings = len(ops) - 1
    logger.info("task %s approved by %s, %d earnings created", task.id, context.user_id, earnings)
    recalculate_metrics(store, task.project_id)
    log_activity(
        store,
        actor_id=context.user_id,
        target_id=task.id,
        target_name=task.name,
        team_id=task.team_id,
        details=TaskApproved(
            project_id=task.project_id,
            approved_by=context.user_id,
            assigned_to=list(task.assigned_to or []),
            rate=rate,
            earnings_created=earnings,
        ),
    )
    return _load_task(store, task_id)


def request_task_revision(
    store: EntityStore, context: PermissionContext, task_id: str, note: Optional[str] = None
) -> Task:
    _require_admin(context, "request revisions")
    task = _load_task(store, task_id)
    if task.status not in REVISABLE_STATUSES:
        raise InvalidTransition(f"Cannot request revision for a task in {task.status}")
    _require_project(store, task)

    _write_transition(store, task, {"status": "revision", "updated_at": utcnow()})
    recalculate_metrics(store, task.project_id)

    details = TaskRevisionRequested(
        project_id=task.project_id,
        requested_by=context.user_id,
        note=note or "Revision requested by admin.",
    )
    # one record per assignee so each sees it in their own feed
    for recipient in task.assigned_to or [context.user_id]:
        log_activity(
            store,
            actor_id=recipient,
            target_id=task.id,
            target_name=task.name,
            team_id=task.team_id,
            details=details,
        )
    return _load_task(store, task_id)

# utils/milestones.py
from typing import Iterable, Optional

from db import EntityNotFound, EntityStore
from models.activity import MilestoneAdded, MilestoneDeleted, MilestoneUpdated
from models.milestone import Milestone
from utils.activity import log_activity
from utils.dates import parse_date, utcnow
from utils.permissions import PermissionContext, PermissionDenied, get_project_permissions, validate_milestone_operation
from utils.progress import recalculate_metrics


def _load_project(store: EntityStore, project_id: str):
    project = store.get("projects", project_id)
    if project is None:
        raise EntityNotFound("projects", project_id)
    return project


def _save_and_recompute(store: EntityStore, project) -> None:
    store.update("projects", project.id, {"milestones": project.milestones, "updated_at": utcnow()})
    recalculate_metrics(store, project.id)


def add_milestone(
    store: EntityStore,
    context: PermissionContext,
    project_id: str,
    title: str,
    due_date,
    description: Optional[str] = None,
    user_teams: Iterable = (),
) -> Milestone:
    project = _load_project(store, project_id)
    check = validate_milestone_operation({"due_date": due_date}, project, context, user_teams)
    if not check.valid:
        raise PermissionDenied(check.reason)

    milestone = Milestone(title=title, description=description, due_date=parse_date(due_date))
    project.add_milestone(milestone)
    _save_and_recompute(store, project)

    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project.id,
        target_name=project.name,
        details=MilestoneAdded(
            milestone_id=milestone.id,
            milestone_title=milestone.title,
            milestone_due_date=milestone.due_date.isoformat(),
        ),
    )
    return _load_project(store, project_id).get_milestone(milestone.id)


def update_milestone(
    store: EntityStore,
    context: PermissionContext,
    project_id: str,
    milestone_id: str,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    due_date=None,
    user_teams: Iterable = (),
) -> Milestone:
    """Edit the user-owned fields of a milestone. Progress and status are derived."""
    project = _load_project(store, project_id)
    current = project.get_milestone(milestone_id)
    if current is None:
        raise EntityNotFound("milestones", milestone_id)

    changes = {}
    if title is not None:
        changes["title"] = title
    if description is not None:
        changes["description"] = description
    if due_date is not None:
        changes["due_date"] = parse_date(due_date)

    check = validate_milestone_operation(
        {"due_date": changes.get("due_date", current.due_date)}, project, context, user_teams
    )
    if not check.valid:
        raise PermissionDenied(check.reason)
    if not changes:
        return current

    updated = current.model_copy(update={**changes, "updated_at": utcnow()})
    project.replace_milestone(updated)
    _save_and_recompute(store, project)

    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project.id,
        target_name=project.name,
        details=MilestoneUpdated(
            milestone_id=milestone_id, milestone_title=updated.title, updated_fields=sorted(changes)
        ),
    )
    return _load_project(store, project_id).get_milestone(milestone_id)


def delete_milestone(
    store: EntityStore,
    context: PermissionContext,
    project_id: str,
    milestone_id: str,
    user_teams: Iterable = (),
) -> Milestone:
    project = _load_project(store, project_id)
    if not get_project_permissions(context, project, user_teams).can_create_milestones:
        raise PermissionDenied("You do not have permission to manage milestones")
    if project.status == "completed":
        raise PermissionDenied("Cannot change milestones of completed projects")
    if project.get_milestone(milestone_id) is None:
        raise EntityNotFound("milestones", milestone_id)

    removed = project.remove_milestone(milestone_id)
    _save_and_recompute(store, project)

    log_activity(
        store,
        actor_id=context.user_id,
        target_id=project.id,
        target_name=project.name,
        details=MilestoneDeleted(milestone_id=removed.id, milestone_title=removed.title),
    )
    return removed

# utils/permissions.py
"""Capability checks and business-rule validators.

Everything here is pure: no store access, no logging, no exceptions for
missing input. Absent projects or teams degrade to the most restrictive
answer; admins short-circuit to full access.
"""
from dataclasses import dataclass, fields
from typing import Dict, Iterable, Optional, Tuple

from utils.dates import parse_date

ADMIN = "admin"
EMPLOYEE = "employee"

PROJECT_STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "planning": ("in-progress", "on-hold"),
    "in-progress": ("completed", "on-hold"),
    "on-hold": ("in-progress", "planning"),
    "completed": (),
}


class PermissionDenied(PermissionError):
    pass


class InvalidTransition(ValueError):
    pass


@dataclass(frozen=True)
class PermissionContext:
    user_id: str
    user_role: str = EMPLOYEE
    project_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.user_role == ADMIN


@dataclass(frozen=True)
class ProjectPermissions:
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_teams: bool = False
    can_create_tasks: bool = False
    can_create_milestones: bool = False
    can_assign_tasks: bool = False
    can_approve_task_completion: bool = False

    @classmethod
    def full(cls) -> "ProjectPermissions":
        return cls(**{f.name: True for f in fields(cls)})


@dataclass(frozen=True)
class TaskPermissions:
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_assign: bool = False
    can_complete: bool = False
    can_comment: bool = False
    can_change_status: bool = False

    @classmethod
    def full(cls) -> "TaskPermissions":
        return cls(**{f.name: True for f in fields(cls)})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class Validation:
    valid: bool
    reason: Optional[str] = None


def _value(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _project_teams(project, user_teams: Iterable):
    attached = set(getattr(project, "teams", None) or [])
    return [t for t in (user_teams or ()) if t is not None and t.id in attached]


def _is_team_member(user_id: str, project, user_teams) -> bool:
    return any(t.has_member(user_id) for t in _project_teams(project, user_teams))


def _is_team_leader(user_id: str, project, user_teams) -> bool:
    return any(t.is_led_by(user_id) for t in _project_teams(project, user_teams))


def get_project_permissions(context: PermissionContext, project, user_teams: Iterable = ()) -> ProjectPermissions:
    if context.is_admin:
        return ProjectPermissions.full()
    if project is None:
        return ProjectPermissions()

    uid = context.user_id
    is_creator = project.created_by == uid
    is_project_manager = project.project_manager_id is not None and project.project_manager_id == uid
    is_team_member = _is_team_member(uid, project, user_teams)
    is_team_leader = _is_team_leader(uid, project, user_teams)

    can_view = is_team_member or is_creator or is_project_manager
    leads = is_project_manager or is_team_leader
    return ProjectPermissions(
        can_view=can_view,
        can_edit=is_creator or leads,
        can_delete=False,  # admins only
        can_manage_teams=is_creator or is_project_manager,
        can_create_tasks=can_view,
        can_create_milestones=leads,
        can_assign_tasks=leads,
        can_approve_task_completion=leads,
    )


def get_task_permissions(context: PermissionContext, task, project, user_teams: Iterable = ()) -> TaskPermissions:
    if context.is_admin:
        return TaskPermissions.full()
    if task is None or project is None:
        return TaskPermissions()

    uid = context.user_id
    project_perms = get_project_permissions(context, project, user_teams)
    is_assigned = uid in (task.assigned_to or [])
    is_creator = task.created_by == uid
    is_project_manager = project.project_manager_id is not None and project.project_manager_id == uid
    # leader of the task's own team, not any team on the project
    is_team_leader = bool(task.team_id) and any(
        t is not None and t.id == task.team_id and t.is_led_by(uid) for t in (user_teams or ())
    )

    acts = is_assigned or is_project_manager or is_team_leader
    return TaskPermissions(
        can_view=project_perms.can_view,
        can_edit=acts or is_creator,
        can_delete=is_creator or is_project_manager or is_team_leader,
        can_assign=project_perms.can_assign_tasks,
        can_complete=acts,
        can_comment=project_perms.can_view,
        can_change_status=acts,
    )


def can_transition_project_status(
    current_status: str, new_status: str, context: PermissionContext, project, user_teams: Iterable = ()
) -> Decision:
    if context.is_admin:
        return Decision(True)
    if new_status not in PROJECT_STATUS_TRANSITIONS.get(current_status, ()):
        return Decision(False, f"Cannot transition from {current_status} to {new_status}")
    if not get_project_permissions(context, project, user_teams).can_edit:
        return Decision(False, "You do not have permission to change project status")
    return Decision(True)


def validate_task_assignment(task, assignee_id: str, project, user_teams: Iterable) -> Validation:
    if project is None or not _is_team_member(assignee_id, project, user_teams):
        return Validation(False, "User must be a member of project teams to be assigned tasks")
    if project.status == "completed":
        return Validation(False, "Cannot assign tasks to completed projects")
    task_deadline = parse_date(_value(task, "deadline"))
    project_deadline = parse_date(project.deadline)
    if task_deadline is not None and project_deadline is not None and task_deadline > project_deadline:
        return Validation(False, "Task deadline cannot be after project deadline")
    return Validation(True)


def validate_milestone_operation(milestone, project, context: PermissionContext, user_teams: Iterable = ()) -> Validation:
    """Gate milestone create/edit. ``milestone`` may be a Milestone or a plain dict."""
    if not get_project_permissions(context, project, user_teams).can_create_milestones:
        return Validation(False, "You do not have permission to manage milestones")
    if project is None:
        return Validation(False, "Project not found")
    if project.status == "completed":
        return Validation(False, "Cannot create milestones for completed projects")
    due = parse_date(_value(milestone, "due_date"))
    if due is None:
        return Validation(False, "Milestone due date is required")
    deadline = parse_date(project.deadline)
    if deadline is not None and due > deadline:
        return Validation(False, "Milestone due date cannot be after project deadline")
    start = parse_date(project.created_at)
    if start is not None and due < start:
        return Validation(False, "Milestone due date cannot be before project start date")
    return Validation(True)

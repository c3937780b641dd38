# tests/test_cascade.py
import pytest

from conftest import make_team
from db import EntityNotFound, StoreError, update_op
from utils.cascade import cascade_project_deletion, delete_project
from utils.permissions import PermissionContext, PermissionDenied


def _seed(store, project_factory, task_factory):
    project = project_factory(teams=["t1", "t2"])
    other = project_factory(name="other")
    task_factory(project.id)
    task_factory(project.id)
    kept = task_factory(other.id)
    store.add(make_team("t1", projects=[project.id, other.id]))
    store.add(make_team("t2", projects=[project.id]))
    store.add(make_team("t3", projects=[other.id]))
    return project, other, kept


def test_cascade_removes_tasks_and_team_references(store, project_factory, task_factory):
    project, other, kept = _seed(store, project_factory, task_factory)

    result = cascade_project_deletion(store, project.id)

    assert result.deleted_tasks == 2
    assert result.updated_teams == 2
    assert store.query("tasks", project_id=project.id) == []
    assert all(project.id not in t.projects for t in store.query("teams"))
    assert store.get("teams", "t1").projects == [other.id]
    assert store.get("tasks", kept.id) is not None


def test_cascade_failure_leaves_no_partial_effect(store, project_factory, task_factory):
    project, other, _ = _seed(store, project_factory, task_factory)

    class FailingStore:
        def __init__(self, inner):
            self.inner = inner

        def __getattr__(self, name):
            return getattr(self.inner, name)

        def atomic_batch(self, ops):
            ops = list(ops)
            # the last team update hits a row that vanished underneath us
            ops[-1] = update_op("teams", "vanished", {"projects": []})
            return self.inner.atomic_batch(ops)

    with pytest.raises((EntityNotFound, StoreError)):
        cascade_project_deletion(FailingStore(store), project.id)

    assert len(store.query("tasks", project_id=project.id)) == 2
    assert store.get("teams", "t1").projects == [project.id, other.id]
    assert store.get("teams", "t2").projects == [project.id]


def test_delete_project_requires_admin(store, project_factory, task_factory):
    project, _, _ = _seed(store, project_factory, task_factory)
    creator = PermissionContext(user_id="creator")

    with pytest.raises(PermissionDenied):
        delete_project(store, creator, project.id)
    assert store.get("projects", project.id) is not None

    admin = PermissionContext(user_id="root", user_role="admin")
    delete_project(store, admin, project.id)

    assert store.get("projects", project.id) is None
    assert store.query("tasks", project_id=project.id) == []
    [activity] = store.query("activities", target_id=project.id)
    assert activity.action == "project_deleted"
    assert activity.details["deleted_tasks"] == 2


def test_cascade_database_error_rolls_back(store, fail_statements, project_factory, task_factory):
    project, other, kept = _seed(store, project_factory, task_factory)
    fail_statements("UPDATE teams")

    with pytest.raises(StoreError):
        cascade_project_deletion(store, project.id)

    assert len(store.query("tasks", project_id=project.id)) == 2
    assert store.get("teams", "t1").projects == [project.id, other.id]

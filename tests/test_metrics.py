# tests/test_metrics.py
from datetime import datetime

import pytest

from db import EntityNotFound, StoreError
from models.milestone import Milestone
from utils.progress import recalculate_metrics

NOW = datetime(2025, 3, 1)


def _with_milestone(store, project, due=datetime(2025, 6, 30), status="not-started"):
    project.add_milestone(Milestone(title="Beta", due_date=due, status=status))
    store.update("projects", project.id, {"milestones": project.milestones})


def test_recalculate_metrics_scenario(store, project_factory, task_factory):
    project = project_factory()
    _with_milestone(store, project)
    task_factory(project.id, deadline=datetime(2025, 5, 1), status="done")
    task_factory(project.id, deadline=datetime(2025, 6, 1), status="backlog")
    task_factory(project.id, deadline=datetime(2025, 7, 1), status="done")

    metrics = recalculate_metrics(store, project.id, now=NOW)

    assert metrics.total_tasks == 3
    assert metrics.completed_tasks == 2
    assert metrics.pending_tasks == 1
    assert metrics.completion_rate == pytest.approx(200 / 3)

    stored = store.get("projects", project.id)
    assert stored.get_metrics() == metrics
    [milestone] = stored.get_milestones()
    assert milestone.progress == 50
    assert milestone.status == "in-progress"
    assert metrics.active_milestones == 1


def test_recalculate_metrics_is_idempotent(store, project_factory, task_factory):
    project = project_factory()
    _with_milestone(store, project)
    task_factory(project.id, deadline=datetime(2025, 5, 1), status="in_progress", assigned_to=["u1", "u2"])
    task_factory(project.id, deadline=datetime(2025, 6, 1), status="done")

    recalculate_metrics(store, project.id, now=NOW)
    first = store.get("projects", project.id)
    recalculate_metrics(store, project.id, now=datetime(2025, 3, 2))
    second = store.get("projects", project.id)

    assert first.metrics == second.metrics
    assert first.milestones == second.milestones
    assert second.get_metrics().active_members == 2


def test_overdue_milestone(store, project_factory):
    project = project_factory()
    _with_milestone(store, project, due=datetime(2025, 2, 1))
    recalculate_metrics(store, project.id, now=NOW)
    [milestone] = store.get("projects", project.id).get_milestones()
    assert milestone.status == "overdue"
    assert milestone.progress == 0


def test_recalculate_metrics_missing_project(store):
    with pytest.raises(EntityNotFound):
        recalculate_metrics(store, "ghost")


def test_recalculate_metrics_propagates_store_errors(store, fail_statements, project_factory, task_factory):
    project = project_factory()
    task_factory(project.id, status="done")
    fail_statements("UPDATE projects")

    with pytest.raises(StoreError):
        recalculate_metrics(store, project.id, now=NOW)
    assert store.get("projects", project.id).metrics == {}

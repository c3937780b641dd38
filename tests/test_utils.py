# tests/test_utils.py
from datetime import date, datetime, timedelta, timezone

from models.milestone import Milestone
from models.task import Task
from utils.dates import parse_date
from utils.progress import compute_project_metrics, milestone_progress, next_milestone_status, recompute_milestone


def _task(deadline, status="backlog", assigned_to=()):
    return Task(project_id="p1", name="t", created_by="u", deadline=deadline, status=status, assigned_to=list(assigned_to))


def _milestone(due, status="not-started", progress=0):
    return Milestone(title="Beta", due_date=due, status=status, progress=progress)


def test_milestone_progress_counts_tasks_due_on_or_before_milestone():
    milestone = _milestone(datetime(2025, 6, 30))
    tasks = [
        _task(datetime(2025, 5, 1), "done"),
        _task(datetime(2025, 6, 1), "backlog"),
        _task(datetime(2025, 7, 1), "done"),
    ]
    result = milestone_progress(milestone, tasks)
    assert result.progress == 50
    assert result.related_tasks_count == 2
    assert result.completed_tasks_count == 1


def test_milestone_progress_due_date_is_inclusive():
    milestone = _milestone(datetime(2025, 6, 30))
    result = milestone_progress(milestone, [_task(datetime(2025, 6, 30), "completed")])
    assert result.progress == 100


def test_milestone_progress_without_related_tasks_is_zero():
    milestone = _milestone(datetime(2025, 6, 30))
    assert milestone_progress(milestone, []).progress == 0
    assert milestone_progress(milestone, None).progress == 0
    assert milestone_progress(milestone, [_task(None, "done")]).related_tasks_count == 0


def test_milestone_progress_rounds_half_up():
    milestone = _milestone(datetime(2025, 6, 30))
    tasks = [_task(datetime(2025, 1, 1), "done")] + [_task(datetime(2025, 1, 1)) for _ in range(7)]
    # 1/8 = 12.5%
    assert milestone_progress(milestone, tasks).progress == 13
    tasks = [_task(datetime(2025, 1, 1), "done")] + [_task(datetime(2025, 1, 1)) for _ in range(2)]
    assert milestone_progress(milestone, tasks).progress == 33


def test_milestone_progress_never_raises_on_bad_input():
    class Broken:
        due_date = "not a date"

    assert milestone_progress(Broken(), [_task(datetime(2025, 1, 1))]).progress == 0


def test_next_status_rule_order():
    now = datetime(2025, 8, 1)
    past = datetime(2025, 6, 30)
    future = datetime(2025, 9, 30)
    assert next_milestone_status("overdue", 100, past, now) == "completed"
    assert next_milestone_status("not-started", 40, past, now) == "in-progress"
    assert next_milestone_status("in-progress", 40, past, now) == "overdue"
    assert next_milestone_status("in-progress", 40, future, now) == "in-progress"
    assert next_milestone_status("not-started", 0, future, now) == "not-started"


def test_completed_milestone_is_not_demoted():
    now = datetime(2025, 8, 1)
    assert next_milestone_status("completed", 50, datetime(2025, 6, 30), now) == "completed"


def test_recompute_milestone_keeps_timestamp_when_unchanged():
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    milestone = _milestone(datetime(2025, 6, 30), status="in-progress", progress=50)
    tasks = [_task(datetime(2025, 5, 1), "done"), _task(datetime(2025, 6, 1))]
    assert recompute_milestone(milestone, tasks, now) is milestone

    changed = recompute_milestone(_milestone(datetime(2025, 6, 30)), tasks, now)
    assert changed.progress == 50
    assert changed.status == "in-progress"
    assert changed.updated_at == now


def test_compute_project_metrics():
    tasks = [
        _task(datetime(2025, 1, 1), "done"),
        _task(datetime(2025, 1, 1), "completed"),
        _task(datetime(2025, 1, 1), "in_progress", ["a", "b"]),
        _task(datetime(2025, 1, 1), "in_progress", ["b"]),
        _task(datetime(2025, 1, 1), "backlog", ["c"]),
    ]
    metrics = compute_project_metrics(tasks, [], total_teams=2)
    assert metrics.total_tasks == 5
    assert metrics.completed_tasks == 2
    assert metrics.completion_rate == 40.0
    assert metrics.pending_tasks == 3
    assert metrics.active_members == 2
    assert metrics.total_teams == 2


def test_compute_project_metrics_empty():
    metrics = compute_project_metrics([], [])
    assert metrics.total_tasks == 0
    assert metrics.completion_rate == 0.0


def test_parse_date_normalises_inputs():
    assert parse_date(date(2025, 1, 2)) == datetime(2025, 1, 2, tzinfo=timezone.utc)
    assert parse_date("2025-01-02T10:00:00+02:00") == datetime(2025, 1, 2, 8, 0, tzinfo=timezone.utc)
    assert parse_date(datetime(2025, 1, 2, 8, 0)).tzinfo is timezone.utc
    assert parse_date(datetime(2025, 1, 2, 10, 0, tzinfo=timezone(timedelta(hours=2)))).hour == 8
    assert parse_date("garbage") is None
    assert parse_date(None) is None


def test_naive_and_aware_dates_compare_as_utc():
    milestone = _milestone("2025-06-30T00:00:00+00:00")
    assert milestone.due_date.tzinfo is not None
    tasks = [_task(datetime(2025, 6, 30), "done")]
    assert milestone_progress(milestone, tasks).progress == 100
    assert next_milestone_status("in-progress", 0, datetime(2025, 6, 30), datetime(2025, 7, 1, tzinfo=timezone.utc)) == "overdue"

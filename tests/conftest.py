# tests/conftest.py
from datetime import datetime

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

import db
from models import Project, Task, Team


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    db.init_db(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def store(engine):
    return db.SqlStore(sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False))


@pytest.fixture
def fail_statements(engine):
    """Make SQL statements starting with any registered prefix fail like a locked database."""
    prefixes = []

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if any(statement.startswith(p) for p in prefixes):
            raise OperationalError(statement, parameters, Exception("database is locked"))

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    yield prefixes.append
    event.remove(engine, "before_cursor_execute", _before_cursor_execute)


def make_project(**kw) -> Project:
    data = dict(
        name="Website relaunch",
        status="in-progress",
        deadline=datetime(2025, 12, 31),
        created_at=datetime(2025, 1, 1),
        created_by="creator",
    )
    data.update(kw)
    return Project(**data)


def make_task(project_id: str, **kw) -> Task:
    data = dict(name="task", project_id=project_id, status="backlog", created_by="creator")
    data.update(kw)
    return Task(**data)


def make_team(team_id: str, members=(), lead=None, projects=()) -> Team:
    return Team(
        id=team_id,
        name=f"team {team_id}",
        members=[{"user_id": uid, "role": "member"} for uid in members],
        lead={"user_id": lead, "role": "lead"} if lead else None,
        projects=list(projects),
    )


@pytest.fixture
def project_factory(store):
    def _create(**kw) -> Project:
        project = make_project(**kw)
        store.add(project)
        return store.get("projects", project.id)
    return _create


@pytest.fixture
def task_factory(store):
    def _create(project_id: str, link: bool = True, **kw) -> Task:
        task = make_task(project_id, **kw)
        store.add(task)
        if link:
            project = store.get("projects", project_id)
            store.update("projects", project_id, {"task_ids": list(project.task_ids) + [task.id]})
        return store.get("tasks", task.id)
    return _create

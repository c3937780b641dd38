# db.py

#============================================================#
#                       Keel-PM Integrity                    #
#============================================================#
# Purpose     : Entity store for the project integrity       #
#               engine: engine/session setup plus the        #
#               get / query / update / atomic-batch contract #
#               the engine consumes (SQLite/Postgres)        #
#============================================================#


from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Type

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, select

from models import Activity, Earning, Project, Task, Team

logger = logging.getLogger(__name__)

# ---- Engine / Session ----
DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///integrity.db"

engine = create_engine(DATABASE_URL, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)

COLLECTIONS: Dict[str, Type[SQLModel]] = {
    "projects": Project,
    "tasks": Task,
    "teams": Team,
    "activities": Activity,
    "earnings": Earning,
}


def init_db(bind=None):
    SQLModel.metadata.create_all(bind or engine)


# ---- errors ----
class StoreError(RuntimeError):
    """A store call failed; the caller decides whether to retry."""


class EntityNotFound(LookupError):
    def __init__(self, collection: str, entity_id: str):
        super().__init__(f"{collection}/{entity_id} not found")
        self.collection = collection
        self.entity_id = entity_id


class StaleEntity(RuntimeError):
    """An update precondition no longer held when the batch ran."""

    def __init__(self, collection: str, entity_id: str, field_name: str, actual: Any):
        super().__init__(f"{collection}/{entity_id} has {field_name}={actual!r}")
        self.collection = collection
        self.entity_id = entity_id
        self.field_name = field_name
        self.actual = actual


# ---- batch writes ----
@dataclass(frozen=True)
class WriteOp:
    kind: str  # create | update | delete
    collection: str
    entity_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    entity: Optional[SQLModel] = None
    # update only: field values the row must still hold, checked under a row lock
    expect: Dict[str, Any] = field(default_factory=dict)


def create_op(collection: str, entity: SQLModel) -> WriteOp:
    return WriteOp("create", collection, getattr(entity, "id", None), entity=entity)


def update_op(
    collection: str, entity_id: str, fields: Dict[str, Any], expect: Optional[Dict[str, Any]] = None
) -> WriteOp:
    return WriteOp("update", collection, entity_id, fields=dict(fields), expect=dict(expect or {}))


def delete_op(collection: str, entity_id: str) -> WriteOp:
    return WriteOp("delete", collection, entity_id)


# ---- store contract ----
class EntityStore(Protocol):
    def get(self, collection: str, entity_id: str) -> Optional[SQLModel]: ...

    def query(self, collection: str, **filters: Any) -> List[SQLModel]: ...

    def update(self, collection: str, entity_id: str, fields: Dict[str, Any]) -> None: ...

    def add(self, entity: SQLModel) -> None: ...

    def atomic_batch(self, ops: Iterable[WriteOp]) -> None: ...


def _model_for(collection: str) -> Type[SQLModel]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


class SqlStore:
    """EntityStore over SQLModel sessions.

    Every call runs in its own session. Returned entities are detached
    snapshots: changing them does nothing until passed back through
    ``update`` or ``atomic_batch``.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, collection: str, entity_id: str) -> Optional[SQLModel]:
        model = _model_for(collection)
        try:
            with self._session_factory() as s:
                return s.get(model, entity_id)
        except SQLAlchemyError as exc:
            logger.error("get %s/%s failed: %s", collection, entity_id, exc)
            raise StoreError(f"get {collection}/{entity_id} failed") from exc

    def query(self, collection: str, **filters: Any) -> List[SQLModel]:
        model = _model_for(collection)
        stmt = select(model)
        for name, value in filters.items():
            stmt = stmt.where(getattr(model, name) == value)
        try:
            with self._session_factory() as s:
                return list(s.exec(stmt).all())
        except SQLAlchemyError as exc:
            logger.error("query %s %s failed: %s", collection, filters, exc)
            raise StoreError(f"query {collection} failed") from exc

    def update(self, collection: str, entity_id: str, fields: Dict[str, Any]) -> None:
        self.atomic_batch([update_op(collection, entity_id, fields)])

    def add(self, entity: SQLModel) -> None:
        collection = next((name for name, model in COLLECTIONS.items() if isinstance(entity, model)), None)
        if collection is None:
            raise ValueError(f"Unsupported entity type: {type(entity).__name__}")
        self.atomic_batch([create_op(collection, entity)])

    def atomic_batch(self, ops: Iterable[WriteOp]) -> None:
        """Apply all ops in one transaction; nothing is written if any op fails."""
        ops = list(ops)
        if not ops:
            return
        try:
            with self._session_factory() as s:
                try:
                    for op in ops:
                        self._apply(s, op)
                    s.commit()
                except Exception:
                    s.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.error("atomic batch of %d ops failed: %s", len(ops), exc)
            raise StoreError(f"atomic batch of {len(ops)} ops failed") from exc

    def _apply(self, s: Session, op: WriteOp) -> None:
        model = _model_for(op.collection)
        if op.kind == "create":
            s.add(op.entity)
            s.flush()
            return
        obj = s.get(model, op.entity_id, with_for_update=bool(op.expect) or None)
        if op.kind == "delete":
            if obj is not None:
                s.delete(obj)
                s.flush()
            return
        if op.kind == "update":
            if obj is None:
                raise EntityNotFound(op.collection, op.entity_id)
            for k, expected in op.expect.items():
                if getattr(obj, k) != expected:
                    raise StaleEntity(op.collection, op.entity_id, k, getattr(obj, k))
            for k, v in op.fields.items():
                setattr(obj, k, v)
            s.add(obj)
            s.flush()
            return
        raise ValueError(f"Unknown write op: {op.kind}")

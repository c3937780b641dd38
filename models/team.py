# models/team.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import uuid4

from utils.dates import UTCDateTime, utcnow


class Team(SQLModel, table=True):
    __tablename__ = "teams"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    # [{"user_id": ..., "role": ...}]
    members: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    lead: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    projects: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    def has_member(self, user_id: str) -> bool:
        return any((m or {}).get("user_id") == user_id for m in (self.members or []))

    def is_led_by(self, user_id: str) -> bool:
        return bool(self.lead) and self.lead.get("user_id") == user_id

# models/earning.py
from sqlmodel import SQLModel, Field
from datetime import datetime
from uuid import uuid4

from utils.dates import UTCDateTime, utcnow


class Earning(SQLModel, table=True):
    __tablename__ = "earnings"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    user_id: str = Field(index=True)
    type: str = Field(default="task")  # task | attendance
    ref_id: str
    amount: float
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, Text
from sqlmodel import SQLModel, Field

from studio.utils.clock import utc_now


class ProjectStatus(str, Enum):
    EN_COURS = "EN_COURS"
    TERMINE = "TERMINE"
    ANNULE = "ANNULE"
    A_REWORK = "A_REWORK"
    GHOST_PRODUCTION = "GHOST_PRODUCTION"
    ARCHIVE = "ARCHIVE"


STATUS_VALUES = [s.value for s in ProjectStatus]

# Contadores de streams en días tras el release
MILESTONE_FIELDS = [
    "streams_j7",
    "streams_j14",
    "streams_j21",
    "streams_j28",
    "streams_j56",
    "streams_j84",
    "streams_j180",
    "streams_j365",
]


def clamp_progress(value: Optional[int]) -> Optional[int]:
    """None se conserva: sin progreso no es lo mismo que 0%."""
    if value is None:
        return None
    return max(0, min(100, int(value)))


class Project(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    status: str = Field(default=ProjectStatus.EN_COURS.value, index=True)
    progress: Optional[int] = None
    collab: Optional[str] = None
    style: Optional[str] = None
    label: Optional[str] = None
    label_final: Optional[str] = None
    deadline: Optional[date] = None
    release_date: Optional[date] = None
    streams_j7: Optional[int] = None
    streams_j14: Optional[int] = None
    streams_j21: Optional[int] = None
    streams_j28: Optional[int] = None
    streams_j56: Optional[int] = None
    streams_j84: Optional[int] = None
    streams_j180: Optional[int] = None
    streams_j365: Optional[int] = None
    note: Optional[str] = Field(default=None, sa_column=Column(Text))
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

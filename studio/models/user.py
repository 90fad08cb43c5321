from typing import Optional
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime

from studio.utils.clock import utc_now


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(unique=True)
    password_hash: str
    roles: Optional[str] = ""   # Coma separada, ej: "admin,user"
    last_access_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_date: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_date: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    active: bool = True

from typing import Optional
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime

from studio.utils.clock import utc_now


class AssistantConfirmation(SQLModel, table=True):
    """Confirmación de batch ya aplicada; evita aplicar dos veces el mismo token."""
    id: Optional[int] = Field(default=None, primary_key=True)
    confirmation_id: str = Field(index=True, unique=True)
    user_id: int = Field(foreign_key="user.id")
    count: int = 0
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))

# schemas/user.py

from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime


class UserCreate(BaseModel):
    username: str
    email: str
    password: str


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    roles: List[str]
    last_access_date: Optional[datetime]
    created_date: datetime
    updated_date: datetime
    active: bool

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

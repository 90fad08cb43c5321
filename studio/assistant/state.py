from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from studio.schemas.assistant import QueryFilters, UpdateData
from studio.schemas.project import ProjectRead
from studio.utils.clock import utc_now


class ScopeSource(str, Enum):
    LAST_LISTED_IDS = "LastListedIds"
    EXPLICIT_FILTER = "ExplicitFilter"
    LAST_APPLIED_FILTER = "LastAppliedFilter"
    ALL_PROJECTS = "AllProjects"


ID_SCOPES = (ScopeSource.LAST_LISTED_IDS, ScopeSource.ALL_PROJECTS)


class UpdateConfirmation(BaseModel):
    """Modificación en lote preparada; no se envía nada hasta confirm()."""
    filters: QueryFilters = QueryFilters()
    update_data: UpdateData
    affected_projects: List[ProjectRead] = []
    affected_project_ids: List[int] = []
    scope_source: ScopeSource
    fields_to_show: List[str] = []
    preview_diff: List[str] = []
    skipped_no_deadline: int = 0
    confirmation_id: str
    expected_updated_at_by_id: Dict[str, datetime] = {}
    status: Literal["pending", "confirmed", "cancelled"] = "pending"


class MessageData(BaseModel):
    type: str
    projects: List[ProjectRead] = []
    fields_to_show: List[str] = []
    null_progress_count: int = 0


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    data: Optional[MessageData] = None
    update_confirmation: Optional[UpdateConfirmation] = None


class AssistantState(BaseModel):
    """Estado único de la conversación; cada handler lo recibe de forma explícita."""
    messages: List[Message] = []
    projects: List[ProjectRead] = []
    last_filters: Optional[QueryFilters] = None
    last_applied_filter: Optional[QueryFilters] = None
    last_listed_ids: List[int] = []
    is_loading: bool = False

    def add_message(self, role: str, content: str, **extra) -> Message:
        msg = Message(role=role, content=content, **extra)
        self.messages.append(msg)
        return msg

    def project_by_id(self) -> Dict[int, ProjectRead]:
        return {p.id: p for p in self.projects}

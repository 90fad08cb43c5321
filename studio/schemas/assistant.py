from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from studio.models.project import clamp_progress
from studio.schemas.project import CamelModel, ProjectChanges

FILTER_KEYS = [
    "status",
    "min_progress",
    "max_progress",
    "collab",
    "style",
    "label",
    "has_deadline",
    "name",
    "no_progress",
]


class QueryFilters(CamelModel):
    status: Optional[str] = None
    min_progress: Optional[int] = None
    max_progress: Optional[int] = None
    collab: Optional[str] = None
    style: Optional[str] = None
    label: Optional[str] = None
    has_deadline: Optional[bool] = None
    name: Optional[str] = None
    no_progress: Optional[bool] = None
    sort_by: Optional[str] = None
    sort_direction: Optional[Literal["asc", "desc"]] = None

    def active(self) -> dict:
        """Criterios presentes (sin None ni cadenas vacías), en snake_case."""
        out = {}
        for key in FILTER_KEYS:
            value = getattr(self, key)
            if value is None or value == "":
                continue
            out[key] = value
        return out

    def to_wire(self) -> dict:
        return {to_camel(key): value for key, value in self.active().items()}


class UpdateData(ProjectChanges):
    new_note: Optional[str] = None
    project_name: Optional[str] = None

    def to_wire(self) -> dict:
        data = self.model_dump(by_alias=True, exclude_unset=True, include=set(ProjectChanges.model_fields))
        # new_deadline=None explícito se conserva; el resto de None sobra
        return {k: v for k, v in data.items() if v is not None or k == "newDeadline"}

    def is_note_shortcut(self) -> bool:
        return bool(self.project_name and self.new_note)


class CreateData(CamelModel):
    name: Optional[str] = None
    status: Optional[str] = None
    progress: Optional[int] = None
    collab: Optional[str] = None
    style: Optional[str] = None
    deadline: Optional[str] = None

    @field_validator("progress")
    @classmethod
    def clamp(cls, value):
        return clamp_progress(value)


class QueryContext(CamelModel):
    available_collabs: List[str] = []
    available_styles: List[str] = []
    project_count: int = 0
    available_statuses: List[str] = []


class HistoryEntry(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ParseQueryRequest(CamelModel):
    query: str
    context: QueryContext = QueryContext()
    conversation_history: Optional[List[HistoryEntry]] = None
    last_filters: Optional[QueryFilters] = None


QueryType = Literal["count", "list", "search", "create", "update"]


class ParsedQuery(CamelModel):
    type: QueryType = "list"
    filters: QueryFilters = QueryFilters()
    create_data: Optional[CreateData] = None
    update_data: Optional[UpdateData] = None
    understood: bool = False
    clarification: Optional[str] = None
    is_conversational: bool = False
    fields_to_show: Optional[List[str]] = None

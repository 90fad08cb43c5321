from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from studio.models.project import ProjectStatus, clamp_progress


class CamelModel(BaseModel):
    """Los clientes hablan camelCase (labelFinal, streamsJ7...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProjectCreate(CamelModel):
    name: str
    status: ProjectStatus = ProjectStatus.EN_COURS
    progress: Optional[int] = None
    collab: Optional[str] = None
    style: Optional[str] = None
    label: Optional[str] = None
    label_final: Optional[str] = None
    deadline: Optional[date] = None
    release_date: Optional[date] = None
    note: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Project name is required")
        return value.strip()

    @field_validator("progress")
    @classmethod
    def clamp(cls, value):
        return clamp_progress(value)


class ProjectRead(CamelModel):
    id: int
    name: str
    status: str
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
    note: Optional[str] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = None
    status: Optional[ProjectStatus] = None
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
    note: Optional[str] = None

    @field_validator("progress")
    @classmethod
    def clamp(cls, value):
        return clamp_progress(value)


class DeadlineShift(CamelModel):
    days: int = 0
    weeks: int = 0
    months: int = 0

    def is_zero(self) -> bool:
        return not (self.days or self.weeks or self.months)


class ProjectChanges(CamelModel):
    """Valores nuevos de una modificación en lote. Campos no enviados = sin cambio."""
    new_progress: Optional[int] = None
    new_status: Optional[ProjectStatus] = None
    # fecha ISO o expresión relativa ("tomorrow", "next week"); null explícito borra la deadline
    new_deadline: Optional[str] = None
    push_deadline_by: Optional[DeadlineShift] = None
    new_collab: Optional[str] = None
    new_style: Optional[str] = None
    new_label: Optional[str] = None
    new_label_final: Optional[str] = None

    @field_validator("new_progress")
    @classmethod
    def clamp(cls, value):
        return clamp_progress(value)

    def has_changes(self) -> bool:
        return any(
            name in self.model_fields_set and (getattr(self, name) is not None or name == "new_deadline")
            for name in CHANGE_FIELDS
        )

    def touches_deadline(self) -> bool:
        return "new_deadline" in self.model_fields_set or self.push_deadline_by is not None


CHANGE_FIELDS = list(ProjectChanges.model_fields.keys())


class BatchUpdateRequest(ProjectChanges):
    project_ids: Optional[List[int]] = None
    scope_source: Optional[str] = None
    # filtros (excluyentes con project_ids)
    status: Optional[str] = None
    min_progress: Optional[int] = None
    max_progress: Optional[int] = None
    collab: Optional[str] = None
    style: Optional[str] = None
    label: Optional[str] = None
    has_deadline: Optional[bool] = None
    name: Optional[str] = None
    no_progress: Optional[bool] = None
    confirmation_id: Optional[str] = None
    expected_updated_at_by_id: Optional[Dict[str, datetime]] = None


class BatchUpdateResult(BaseModel):
    count: int
    message: str


class BatchUpdateResponse(BaseModel):
    data: BatchUpdateResult


class AddNoteRequest(CamelModel):
    project_name: str
    new_note: str


class AddNoteResult(CamelModel):
    message: str
    project_id: int


class AddNoteResponse(BaseModel):
    data: AddNoteResult

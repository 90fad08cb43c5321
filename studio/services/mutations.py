from datetime import date
from typing import Any, Optional

from studio.models.project import ProjectStatus, clamp_progress
from studio.schemas.project import ProjectChanges
from studio.services.dates import parse_date_expression, shift_date


class InvalidDeadline(ValueError):
    pass


def resolve_new_deadline(changes: ProjectChanges, today: Optional[date] = None) -> Optional[date]:
    """Fecha absoluta de new_deadline. None = borrar la deadline."""
    if changes.new_deadline is None:
        return None
    parsed = parse_date_expression(changes.new_deadline, today)
    if parsed is None:
        raise InvalidDeadline(f"Invalid deadline: {changes.new_deadline}")
    return parsed


def apply_changes(project: Any, changes: ProjectChanges, today: Optional[date] = None) -> bool:
    """
    Aplica los valores nuevos sobre un proyecto (tabla o snapshot del cliente).

    El desplazamiento de deadline se calcula sobre la deadline actual de CADA proyecto;
    un proyecto sin deadline no se desplaza y la función devuelve False.
    new_deadline explícito tiene prioridad sobre el desplazamiento.
    """
    explicit_deadline = "new_deadline" in changes.model_fields_set
    if changes.push_deadline_by is not None and not explicit_deadline and project.deadline is None:
        return False

    if changes.new_progress is not None:
        project.progress = clamp_progress(changes.new_progress)
    if changes.new_status is not None:
        status = ProjectStatus(changes.new_status)
        project.status = status.value
        if status == ProjectStatus.TERMINE:
            project.progress = 100
    if explicit_deadline:
        project.deadline = resolve_new_deadline(changes, today)
    elif changes.push_deadline_by is not None:
        shift = changes.push_deadline_by
        project.deadline = shift_date(project.deadline, shift.days, shift.weeks, shift.months)
    if changes.new_collab is not None:
        project.collab = changes.new_collab
    if changes.new_style is not None:
        project.style = changes.new_style
    if changes.new_label is not None:
        project.label = changes.new_label
    if changes.new_label_final is not None:
        project.label_final = changes.new_label_final
    return True

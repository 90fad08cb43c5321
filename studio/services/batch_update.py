import logging
from datetime import date
from typing import List, Optional

from sqlmodel import Session, select, func

from studio.models.assistant_confirmation import AssistantConfirmation
from studio.models.project import Project
from studio.schemas.assistant import FILTER_KEYS, QueryFilters
from studio.schemas.project import BatchUpdateRequest, BatchUpdateResult
from studio.services.filters import filter_projects
from studio.services.mutations import InvalidDeadline, apply_changes, resolve_new_deadline
from studio.services.notes import append_note
from studio.utils.clock import as_utc, utc_now

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Some projects changed since confirmation. Please re-list."


class BatchUpdateError(ValueError):
    def __init__(self, status_code: int, detail):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


def request_filters(req: BatchUpdateRequest) -> QueryFilters:
    return QueryFilters(**{key: getattr(req, key) for key in FILTER_KEYS})


def select_targets(session: Session, user_id: int, req: BatchUpdateRequest) -> List[Project]:
    """projectIds tiene prioridad; si no hay ids, se recalcula el conjunto con los filtros."""
    if req.project_ids:
        return list(
            session.exec(
                select(Project)
                .where(Project.user_id == user_id)
                .where(Project.id.in_(req.project_ids))
                .order_by(Project.id)
            ).all()
        )

    filters = request_filters(req)
    if not filters.active():
        raise BatchUpdateError(400, "No target: send projectIds or at least one filter")
    rows = session.exec(select(Project).where(Project.user_id == user_id).order_by(Project.id)).all()
    return filter_projects(rows, filters).filtered


def _conflicts(rows: List[Project], expected: dict) -> List[int]:
    out = []
    for p in rows:
        stamp = expected.get(str(p.id))
        if stamp is None:
            continue
        if p.updated_at is None or as_utc(stamp) != as_utc(p.updated_at):
            out.append(p.id)
    return out


def run_batch_update(
    session: Session,
    user_id: int,
    req: BatchUpdateRequest,
    today: Optional[date] = None,
) -> BatchUpdateResult:
    if not req.has_changes():
        raise BatchUpdateError(400, "No modification specified")
    if (
        req.push_deadline_by is not None
        and req.push_deadline_by.is_zero()
        and "new_deadline" not in req.model_fields_set
    ):
        raise BatchUpdateError(400, "Deadline shift must not be zero")

    if req.confirmation_id:
        done = session.exec(
            select(AssistantConfirmation).where(AssistantConfirmation.confirmation_id == req.confirmation_id)
        ).first()
        if done is not None:
            if done.user_id != user_id:
                raise BatchUpdateError(409, "Confirmation already used")
            logger.info("Confirmation %s already applied (%s projects)", req.confirmation_id, done.count)
            return BatchUpdateResult(count=done.count, message="Modification already applied")

    try:
        resolve_new_deadline(req, today)
    except InvalidDeadline as exc:
        raise BatchUpdateError(400, str(exc)) from exc

    rows = select_targets(session, user_id, req)

    if req.expected_updated_at_by_id:
        conflicts = _conflicts(rows, req.expected_updated_at_by_id)
        if conflicts:
            logger.warning("Batch update conflict on projects %s", conflicts)
            raise BatchUpdateError(409, {"message": CONFLICT_MESSAGE, "conflictProjectIds": conflicts})

    now = utc_now()
    count = 0
    skipped = 0
    for project in rows:
        if not apply_changes(project, req, today):
            skipped += 1
            continue
        project.updated_at = now
        session.add(project)
        count += 1

    if req.confirmation_id:
        session.add(AssistantConfirmation(confirmation_id=req.confirmation_id, user_id=user_id, count=count))
    session.commit()

    logger.info(
        "Batch update user=%s scope=%s matched=%s updated=%s skipped=%s",
        user_id, req.scope_source or "filters", len(rows), count, skipped,
    )
    message = f"{count} project(s) updated"
    if skipped:
        message += f" ({skipped} skipped, no deadline)"
    return BatchUpdateResult(count=count, message=message)


def find_project_by_name(session: Session, user_id: int, name: str) -> Optional[Project]:
    """Coincidencia exacta sin mayúsculas; si no hay, el primer nombre que la contenga."""
    needle = name.strip().lower()
    exact = session.exec(
        select(Project).where(Project.user_id == user_id).where(func.lower(Project.name) == needle)
    ).first()
    if exact is not None:
        return exact
    rows = session.exec(select(Project).where(Project.user_id == user_id).order_by(Project.id)).all()
    for p in rows:
        if needle in p.name.lower():
            return p
    return None


def add_note(session: Session, user_id: int, project_name: str, content: str, today: Optional[date] = None) -> Project:
    project = find_project_by_name(session, user_id, project_name)
    if project is None:
        raise BatchUpdateError(404, f'Project "{project_name}" not found')
    project.note = append_note(project.note, content, today)
    project.updated_at = utc_now()
    session.add(project)
    session.commit()
    session.refresh(project)
    logger.info("Note added to project %s", project.id)
    return project

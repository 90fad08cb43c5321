import logging
import uuid
from datetime import date
from typing import List, Optional

from studio.assistant.scope import ResolvedScope
from studio.assistant.state import Message, ScopeSource, UpdateConfirmation
from studio.schemas.assistant import UpdateData
from studio.schemas.project import DeadlineShift, ProjectRead
from studio.services.dates import format_date
from studio.services.mutations import apply_changes, resolve_new_deadline

logger = logging.getLogger(__name__)

DEFAULT_FIELDS = ["progress", "status", "deadline"]
PREVIEW_LIMIT = 3


def _fmt_progress(value: Optional[int]) -> str:
    return "none" if value is None else f"{value}%"


def _fmt_shift(shift: DeadlineShift) -> str:
    parts = []
    for amount, unit in ((shift.months, "month"), (shift.weeks, "week"), (shift.days, "day")):
        if amount:
            parts.append(f"{abs(amount)} {unit}{'s' if abs(amount) > 1 else ''}")
    values = [v for v in (shift.days, shift.weeks, shift.months) if v]
    if all(v > 0 for v in values):
        return "deadline pushed back by " + ", ".join(parts)
    if all(v < 0 for v in values):
        return "deadline moved earlier by " + ", ".join(parts)
    return f"deadline shifted by {shift.months:+d} month(s), {shift.weeks:+d} week(s), {shift.days:+d} day(s)"


def describe_changes(update: UpdateData, today: Optional[date] = None) -> List[str]:
    out = []
    if update.new_progress is not None:
        out.append(f"progress → {update.new_progress}%")
    if update.new_status is not None:
        out.append(f"status → {update.new_status.value}")
    if "new_deadline" in update.model_fields_set:
        new_deadline = resolve_new_deadline(update, today)
        out.append("deadline removed" if new_deadline is None else f"deadline → {format_date(new_deadline)}")
    elif update.push_deadline_by is not None:
        out.append(_fmt_shift(update.push_deadline_by))
    for field, label in (
        ("new_collab", "collab"),
        ("new_style", "style"),
        ("new_label", "label"),
        ("new_label_final", "final label"),
    ):
        value = getattr(update, field)
        if value is not None:
            out.append(f"{label} → {value}")
    return out


def diff_project(project: ProjectRead, update: UpdateData, today: Optional[date] = None) -> str:
    """Una línea por proyecto: "Track A: progress 50% → 60%, deadline 15/01/2024 → 29/01/2024"."""
    after = project.model_copy()
    apply_changes(after, update, today)
    changes = []
    if after.progress != project.progress:
        changes.append(f"progress {_fmt_progress(project.progress)} → {_fmt_progress(after.progress)}")
    if after.status != project.status:
        changes.append(f"status {project.status} → {after.status}")
    if after.deadline != project.deadline:
        changes.append(f"deadline {format_date(project.deadline)} → {format_date(after.deadline)}")
    for field in ("collab", "style", "label", "label_final"):
        before_value = getattr(project, field)
        after_value = getattr(after, field)
        if after_value != before_value:
            changes.append(f"{field.replace('_', ' ')} {before_value or 'none'} → {after_value}")
    return f"{project.name}: " + (", ".join(changes) if changes else "no change")


def stage_update(
    scope: ResolvedScope,
    update: UpdateData,
    fields_to_show: Optional[List[str]] = None,
    today: Optional[date] = None,
) -> Message:
    """
    Construye el mensaje de confirmación de una modificación en lote.
    No llama al backend: la modificación solo sale con confirm().
    """
    affected = list(scope.projects)
    skipped = 0
    if update.push_deadline_by is not None and "new_deadline" not in update.model_fields_set:
        with_deadline = [p for p in affected if p.deadline is not None]
        skipped = len(affected) - len(with_deadline)
        affected = with_deadline

    if not affected:
        text = "No project matches this request."
        if skipped:
            text = f"No project to update: {skipped} project(s) have no deadline."
        return Message(role="assistant", content=text)

    ids = list(dict.fromkeys(p.id for p in affected))
    preview = [diff_project(p, update, today) for p in affected[:PREVIEW_LIMIT]]
    confirmation = UpdateConfirmation(
        filters=scope.filters,
        update_data=update,
        affected_projects=[p.model_copy() for p in affected],
        affected_project_ids=ids,
        scope_source=scope.source,
        fields_to_show=fields_to_show or list(DEFAULT_FIELDS),
        preview_diff=preview,
        skipped_no_deadline=skipped,
        confirmation_id=uuid.uuid4().hex,
        expected_updated_at_by_id={str(p.id): p.updated_at for p in affected if p.updated_at is not None},
    )

    lines = []
    if scope.source == ScopeSource.ALL_PROJECTS:
        lines.append(f"Warning: no project was selected, this applies to ALL your projects ({len(ids)}).")
    description = f"Update {len(ids)} project(s): " + ", ".join(describe_changes(update, today))
    if skipped:
        description += f" ({skipped} ignored - no deadline)"
    lines.append(description)
    if scope.null_progress_count:
        lines.append(f"{scope.null_progress_count} projects without progress were ignored.")
    lines.extend(f"- {line}" for line in preview)
    if len(affected) > PREVIEW_LIMIT:
        lines.append(f"... and {len(affected) - PREVIEW_LIMIT} more")
    lines.append("Confirm?")

    logger.info("Staged update %s on %s project(s) (%s)", confirmation.confirmation_id, len(ids), scope.source.value)
    return Message(role="assistant", content="\n".join(lines), update_confirmation=confirmation)

import logging
from datetime import date
from typing import List, NamedTuple, Optional

from studio.assistant.client import CancelToken, StudioApiClient
from studio.assistant.scope import build_scope_payload, scope_ids
from studio.assistant.state import AssistantState, UpdateConfirmation
from studio.services.mutations import apply_changes

logger = logging.getLogger(__name__)


class CommitResult(NamedTuple):
    updated_count: int
    expected_count: int
    mismatch: bool
    message: str = ""


def build_commit_payload(confirmation: UpdateConfirmation) -> dict:
    payload = build_scope_payload(confirmation)
    payload.update(confirmation.update_data.to_wire())
    payload["confirmationId"] = confirmation.confirmation_id
    if confirmation.expected_updated_at_by_id:
        payload["expectedUpdatedAtById"] = {
            key: value.isoformat() for key, value in confirmation.expected_updated_at_by_id.items()
        }
    return payload


def patch_local_projects(
    state: AssistantState,
    project_ids: List[int],
    confirmation: UpdateConfirmation,
    today: Optional[date] = None,
) -> int:
    """Aplica el cambio a la copia local, solo a los ids conocidos."""
    wanted = set(project_ids)
    patched = 0
    for project in state.projects:
        if project.id not in wanted:
            continue
        if apply_changes(project, confirmation.update_data, today):
            # la versión del servidor ya no es la del snapshot
            project.updated_at = None
            patched += 1
    return patched


def commit(
    client: StudioApiClient,
    state: AssistantState,
    confirmation: UpdateConfirmation,
    today: Optional[date] = None,
    cancel: Optional[CancelToken] = None,
) -> CommitResult:
    """
    Envía la modificación confirmada y reconcilia el estado local.

    Si falla la llamada se propaga el error sin tocar el estado local.
    Si el servidor devuelve un número distinto del esperado se registra un aviso;
    el resultado del servidor se acepta igualmente.
    """
    payload = build_commit_payload(confirmation)
    ids = scope_ids(confirmation)
    expected = len(ids)

    data = client.batch_update(payload, cancel=cancel)
    updated = int(data.get("count", 0))
    mismatch = updated != expected
    if mismatch:
        logger.warning(
            "Batch update count mismatch for %s: expected %s, server updated %s",
            confirmation.confirmation_id, expected, updated,
        )

    patched = patch_local_projects(state, ids, confirmation, today)
    logger.info("Committed %s: server=%s local=%s", confirmation.confirmation_id, updated, patched)
    return CommitResult(updated, expected, mismatch, data.get("message", ""))

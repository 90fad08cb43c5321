import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel

from studio.assistant.state import ID_SCOPES, ScopeSource, UpdateConfirmation
from studio.schemas.assistant import QueryFilters
from studio.schemas.project import ProjectRead
from studio.services.filters import filter_projects, is_scoping_filter, summarize_filter

logger = logging.getLogger(__name__)

# Claves de filtro en el wire; nunca junto a projectIds
FILTER_WIRE_KEYS = [
    "status",
    "minProgress",
    "maxProgress",
    "collab",
    "style",
    "label",
    "hasDeadline",
    "name",
    "noProgress",
]


class ResolvedScope(BaseModel):
    source: ScopeSource
    filters: QueryFilters = QueryFilters()
    projects: List[ProjectRead] = []
    null_progress_count: int = 0


def resolve_scope(
    projects: Sequence[ProjectRead],
    filters: Optional[QueryFilters],
    last_listed_ids: Sequence[int],
    last_applied_filter: Optional[QueryFilters] = None,
) -> ResolvedScope:
    """
    Decide sobre qué proyectos actúa una modificación:

    1. filtro explícito en el mensaje -> ExplicitFilter
    2. hay una lista anterior -> LastListedIds (los ids mostrados, sin filtros)
    3. hay un filtro aplicado antes -> LastAppliedFilter
    4. nada -> AllProjects (la confirmación avisa de que son todos)
    """
    if is_scoping_filter(filters):
        res = filter_projects(projects, filters)
        scope = ResolvedScope(
            source=ScopeSource.EXPLICIT_FILTER,
            filters=filters,
            projects=res.filtered,
            null_progress_count=res.null_progress_count,
        )
    elif last_listed_ids:
        by_id = {p.id: p for p in projects}
        # orden de la última lista; los ids que ya no existen se pierden
        listed = [by_id[i] for i in dict.fromkeys(last_listed_ids) if i in by_id]
        scope = ResolvedScope(source=ScopeSource.LAST_LISTED_IDS, projects=listed)
    elif is_scoping_filter(last_applied_filter):
        res = filter_projects(projects, last_applied_filter)
        scope = ResolvedScope(
            source=ScopeSource.LAST_APPLIED_FILTER,
            filters=last_applied_filter,
            projects=res.filtered,
            null_progress_count=res.null_progress_count,
        )
    else:
        scope = ResolvedScope(source=ScopeSource.ALL_PROJECTS, projects=list(projects))

    logger.info(
        "Scope %s filters=%s affected=%s",
        scope.source.value, summarize_filter(scope.filters), len(scope.projects),
    )
    return scope


def scope_ids(confirmation: UpdateConfirmation) -> List[int]:
    """Ids de la confirmación; si la lista viene vacía se sacan de los snapshots mostrados."""
    if confirmation.affected_project_ids:
        return list(confirmation.affected_project_ids)
    if confirmation.scope_source in ID_SCOPES:
        logger.warning("Empty affected_project_ids under %s, using snapshots", confirmation.scope_source.value)
    return [p.id for p in confirmation.affected_projects]


def build_scope_payload(confirmation: UpdateConfirmation) -> dict:
    """Alcance en el wire: o projectIds + scopeSource, o claves de filtro. Nunca ambos."""
    if confirmation.scope_source in ID_SCOPES:
        return {"projectIds": scope_ids(confirmation), "scopeSource": confirmation.scope_source.value}
    payload = confirmation.filters.to_wire()
    if not payload:
        # filtro vacío: el servidor lo rechaza, van los ids
        return {"projectIds": scope_ids(confirmation), "scopeSource": confirmation.scope_source.value}
    return payload

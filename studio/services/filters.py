from typing import Any, Iterable, List, NamedTuple, Optional

from studio.schemas.assistant import QueryFilters



class FilterResult(NamedTuple):
    filtered: List[Any]
    null_progress_count: int
    has_progress_filter: bool


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle.lower() in value.lower()


def filter_projects(projects: Iterable[Any], filters: Optional[QueryFilters]) -> FilterResult:
    """
    Selecciona los proyectos que cumplen TODOS los criterios, en este orden:
    status exacto, noProgress, rango de progreso, collab, style, label, name, hasDeadline.

    - noProgress excluye el rango: solo pasan los proyectos sin progreso.
    - min == max es igualdad exacta; si no, los límites son estrictos (> min, < max).
    - Con un rango activo, los proyectos sin progreso se descartan y se cuentan en null_progress_count.

    No modifica la lista de entrada y conserva el orden.
    """
    result = list(projects)
    if filters is None:
        return FilterResult(result, 0, False)

    null_count = 0
    min_p = filters.min_progress
    max_p = filters.max_progress
    has_progress_filter = min_p is not None or max_p is not None

    if filters.status:
        result = [p for p in result if p.status == filters.status]

    if filters.no_progress:
        result = [p for p in result if p.progress is None]
    elif has_progress_filter:
        kept = []
        for p in result:
            if p.progress is None:
                null_count += 1
                continue
            if min_p is not None and max_p is not None and min_p == max_p:
                if p.progress != min_p:
                    continue
            else:
                if min_p is not None and not p.progress > min_p:
                    continue
                if max_p is not None and not p.progress < max_p:
                    continue
            kept.append(p)
        result = kept

    if filters.collab:
        result = [p for p in result if _contains(p.collab, filters.collab)]
    if filters.style:
        result = [p for p in result if _contains(p.style, filters.style)]
    if filters.label:
        result = [p for p in result if _contains(p.label, filters.label)]
    if filters.name:
        result = [p for p in result if _contains(p.name, filters.name)]
    if filters.has_deadline is not None:
        result = [p for p in result if (p.deadline is not None) == filters.has_deadline]

    return FilterResult(result, null_count, has_progress_filter)


def sort_projects(projects: List[Any], sort_by: Optional[str], direction: Optional[str] = "asc") -> List[Any]:
    """Ordena por un campo; los valores nulos van siempre al final."""
    if not sort_by:
        return list(projects)
    present = [p for p in projects if getattr(p, sort_by, None) is not None]
    missing = [p for p in projects if getattr(p, sort_by, None) is None]

    def key(p):
        value = getattr(p, sort_by)
        return value.lower() if isinstance(value, str) else value

    present.sort(key=key, reverse=(direction == "desc"))
    return present + missing


def apply_filter_and_sort(projects: Iterable[Any], filters: Optional[QueryFilters]) -> FilterResult:
    res = filter_projects(projects, filters)
    if filters is not None and filters.sort_by:
        return res._replace(filtered=sort_projects(res.filtered, filters.sort_by, filters.sort_direction))
    return res


def is_filter_empty(filters: Optional[QueryFilters]) -> bool:
    if filters is None:
        return True
    return not filters.active() and not filters.sort_by and not filters.sort_direction


def is_scoping_filter(filters: Optional[QueryFilters]) -> bool:
    """True si el filtro restringe realmente un subconjunto (status, collab, progreso, hasDeadline...)."""
    return filters is not None and bool(filters.active())


def summarize_filter(filters: Optional[QueryFilters]) -> dict:
    if filters is None:
        return {"empty": True}
    summary = filters.active()
    if filters.sort_by:
        summary["sort_by"] = filters.sort_by
        summary["sort_direction"] = filters.sort_direction or "asc"
    return summary or {"empty": True}

import re
from enum import Enum
from typing import List


class FollowUp(str, Enum):
    CONTINUATION = "continuation"
    NEW_QUERY = "new_query"


STATUS_WORDS = (
    r"termin[ée]e?s?|finished|completed|done|en\s+cours|in\s+progress|ongoing|annul[ée]e?s?"
    r"|cancell?ed|ghost(?:\s*prod(?:uction)?)?|archiv[ée]e?s?|rework"
)
PROJECT_WORDS = r"projects?|projets?|tracks?|morceaux"

# Forma de búsqueda nueva: siempre gana a la continuación
NEW_SEARCH_PATTERNS = [
    re.compile(rf"\b(?:{PROJECT_WORDS})\b.*\b(?:{STATUS_WORDS})\b", re.IGNORECASE),
    re.compile(rf"\b(?:{STATUS_WORDS})\b.*\b(?:{PROJECT_WORDS})\b", re.IGNORECASE),
    re.compile(
        rf"\b(?:{PROJECT_WORDS})\s+(?:with|avec|at|à|above|below|over|under|without|sans"
        r"|more\s+than|less\s+than|plus\s+de|moins\s+de|in|en|of|de|du|by|par)\b",
        re.IGNORECASE,
    ),
    re.compile(rf"\b(?:all|tous|toutes)\s+(?:the\s+|les\s+|mes\s+|my\s+)?(?:{PROJECT_WORDS})\b", re.IGNORECASE),
    re.compile(r"\b(?:how\s+many|combien)\b", re.IGNORECASE),
    re.compile(
        rf"\b(?:those|ones|ceux|celles)\s+(?:that\s+are\s+|which\s+are\s+|qui\s+sont\s+)?(?:{STATUS_WORDS})\b",
        re.IGNORECASE,
    ),
]

MUTATION_PATTERNS = [
    re.compile(
        r"\b(?:set|put|change|update|modify|move|push|pull|postpone|delay|mark|rename|add|create|delete|remove"
        r"|met|mets|mettre|passe|passer|modifie|modifier|marque|décale|decale|repousse|avance|ajoute|ajouter"
        r"|crée|cree|créer|supprime)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:met|mets|passe|change|modifie|marque)-les\b", re.IGNORECASE),
]

CONTINUATION_PATTERNS = [
    re.compile(r"\b(?:their|those|these|them|ces|ceux(?:-là|-ci)?|celles(?:-là|-ci)?|leurs?)\b", re.IGNORECASE),
    re.compile(r"\b(?:details?|détails?|infos?|informations?|more\s+info)\b", re.IGNORECASE),
    re.compile(
        r"\b(?:too|also|as\s+well|aussi|également)\b", re.IGNORECASE
    ),
    re.compile(
        r"^(?:and|et)?\s*(?:the|les|la|le)?\s*(?:deadlines?|progress|avancement|status|statuts?|collabs?"
        r"|styles?|labels?|release\s+dates?|dates?\s+de\s+sortie)\s*\??$",
        re.IGNORECASE,
    ),
]

DETAIL_REQUEST = re.compile(r"\b(?:details?|détails?|infos?|informations?|everything|all\s+fields|tout)\b", re.IGNORECASE)

DETAIL_FIELDS = ["status", "progress", "collab", "releaseDate", "deadline", "style", "label", "labelFinal"]

FIELD_PATTERNS = [
    ("releaseDate", re.compile(r"release|sortie|\bwhen\b|\bquand\b", re.IGNORECASE)),
    ("deadline", re.compile(r"deadline|date\s*limite|\bdue\b", re.IGNORECASE)),
    ("progress", re.compile(r"avancement|progress|%|pourcent", re.IGNORECASE)),
    ("status", re.compile(r"statut|status|[ée]tat|\bstate\b", re.IGNORECASE)),
    ("collab", re.compile(r"collab|avec\s+qui|\bfeat|partenaire|partner", re.IGNORECASE)),
    ("style", re.compile(r"style|genre", re.IGNORECASE)),
    ("labelFinal", re.compile(r"label\s*final|final\s+label", re.IGNORECASE)),
    ("label", re.compile(r"\blabels?\b(?!\s*final)", re.IGNORECASE)),
]


def is_new_search(text: str) -> bool:
    return any(p.search(text) for p in NEW_SEARCH_PATTERNS)


def is_mutation(text: str) -> bool:
    return any(p.search(text) for p in MUTATION_PATTERNS)


def classify(text: str, has_prior_results: bool) -> FollowUp:
    """
    Decide si el mensaje se refiere al resultado anterior o es una consulta nueva.

    Orden: sin resultados previos -> nueva; forma de búsqueda nueva -> nueva (gana siempre);
    verbo de modificación -> nueva (el parser la interpreta y el alcance sale de la última lista);
    referencia al resultado anterior -> continuación.
    """
    t = (text or "").strip()
    if not t or not has_prior_results:
        return FollowUp.NEW_QUERY
    if is_new_search(t):
        return FollowUp.NEW_QUERY
    if is_mutation(t):
        return FollowUp.NEW_QUERY
    if any(p.search(t) for p in CONTINUATION_PATTERNS):
        return FollowUp.CONTINUATION
    return FollowUp.NEW_QUERY


def requested_fields(text: str) -> List[str]:
    """Columnas que pide el mensaje ("their deadlines too" -> ["deadline"]). Detalles = todas."""
    t = text or ""
    if DETAIL_REQUEST.search(t):
        return list(DETAIL_FIELDS)
    return [name for name, pattern in FIELD_PATTERNS if pattern.search(t)]

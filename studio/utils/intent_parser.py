import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from studio.schemas.assistant import ParsedQuery

logger = logging.getLogger(__name__)

FALLBACK_CLARIFICATION = "I didn't understand, please rephrase."

# El modelo a veces envuelve el JSON en ```json ... ```
FENCE = re.compile(r"```(?:json)?\s*(?P<body>.*?)```", re.IGNORECASE | re.DOTALL)


def _extract_json_block(text: str) -> Optional[str]:
    t = (text or "").strip()
    m = FENCE.search(t)
    if m:
        t = m.group("body").strip()
    start = t.find("{")
    end = t.rfind("}")
    if start == -1 or end <= start:
        return None
    return t[start : end + 1]


def not_understood(clarification: str = FALLBACK_CLARIFICATION) -> ParsedQuery:
    return ParsedQuery(type="list", understood=False, clarification=clarification)


def parse_intent_output(text: str) -> ParsedQuery:
    """
    Convierte la salida del LLM en un ParsedQuery.
    Fallback: si no hay JSON válido devuelve understood=False con la frase de aclaración fija.
    """
    block = _extract_json_block(text)
    if block is None:
        logger.warning("LLM output without JSON object: %r", (text or "")[:200])
        return not_understood()
    try:
        data = json.loads(block)
    except json.JSONDecodeError as exc:
        logger.warning("LLM output is not valid JSON: %s", exc)
        return not_understood()
    if not isinstance(data, dict):
        return not_understood()

    # claves vacías que el modelo rellena con null
    for key in ("filters", "createData", "updateData"):
        if data.get(key) is None:
            data.pop(key, None)
    update = data.get("updateData")
    if isinstance(update, dict):
        # null = "sin cambio"; borrar la deadline se pide con removeDeadline
        remove_deadline = bool(update.pop("removeDeadline", False))
        update = {k: v for k, v in update.items() if v is not None}
        if remove_deadline:
            update["newDeadline"] = None
        data["updateData"] = update
    try:
        parsed = ParsedQuery.model_validate(data)
    except ValidationError as exc:
        logger.warning("LLM output does not match ParsedQuery: %s", exc)
        return not_understood()

    if not parsed.understood and not parsed.clarification:
        parsed.clarification = FALLBACK_CLARIFICATION
    return parsed

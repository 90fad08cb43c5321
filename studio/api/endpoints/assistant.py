import json
import logging

from fastapi import APIRouter, Depends, HTTPException

from studio.api.endpoints.auth import get_current_user
from studio.models.user import User
from studio.schemas.assistant import ParseQueryRequest, ParsedQuery
from studio.utils import ollama_client
from studio.utils.intent_parser import parse_intent_output
from studio.utils.prompt_loader import load_prompt

logger = logging.getLogger(__name__)

router = APIRouter()

HISTORY_TURNS = 6


def build_parse_prompt(req: ParseQueryRequest) -> str:
    ctx = req.context
    history = req.conversation_history or []
    history_txt = "\n".join(f"{h.role}: {h.content}" for h in history[-HISTORY_TURNS:]) or "(none)"
    last_filters = json.dumps(req.last_filters.to_wire()) if req.last_filters else "{}"
    return load_prompt(
        "parse_query.txt",
        statuses=", ".join(ctx.available_statuses) or "(none)",
        collabs=", ".join(ctx.available_collabs) or "(none)",
        styles=", ".join(ctx.available_styles) or "(none)",
        project_count=ctx.project_count,
        last_filters=last_filters,
        history=history_txt,
        query=req.query,
    )


@router.post("/parse-query", response_model=ParsedQuery, response_model_exclude_unset=True)
def parse_query(
    req: ParseQueryRequest,
    current_user: User = Depends(get_current_user),
):
    if not req.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    prompt = build_parse_prompt(req)
    try:
        raw = ollama_client.call_ollama(prompt)
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    parsed = parse_intent_output(raw)
    logger.info("Parsed query %r -> type=%s understood=%s", req.query, parsed.type, parsed.understood)
    return parsed

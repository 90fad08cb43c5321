import logging
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "static" / "prompts"


@lru_cache(maxsize=None)
def read_template(filename: str) -> str:
    return (PROMPTS_DIR / filename).read_text(encoding="utf-8")


def load_prompt(filename: str, **kwargs) -> str:
    """Rellena la plantilla; las llaves literales del JSON van escapadas como {{ }}."""
    try:
        return read_template(filename).format(**kwargs)
    except KeyError as exc:
        logger.error("Prompt %s needs placeholder %s", filename, exc)
        raise

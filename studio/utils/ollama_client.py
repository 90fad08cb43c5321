import logging
import os
from typing import Optional

import requests
from studio.core.config import Settings


logger = logging.getLogger(__name__)


def call_ollama(prompt: str, model: Optional[str] = None, settings: Optional[Settings] = None) -> str:
    """Llama al endpoint de generación de Ollama con el prompt indicado."""
    if settings is None:
        settings = Settings()
    base_url = os.environ.get("OLLAMA_URL") or settings.ollama_url
    model = model or settings.ollama_model

    try:
        response = requests.post(
            base_url.rstrip("/") + "/api/generate",
            json={
                "model": model,
                "prompt": prompt,
                "stream": False,
                "format": "json",
            },
            timeout=60,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        content = getattr(exc.response, "text", "")
        if content:
            logger.error("Ollama request failed: %s", content)
        else:
            logger.error("Ollama request failed: %s", exc)
        raise RuntimeError(
            f"Error calling Ollama at {base_url}: {content or exc}"
        ) from exc

    result = response.json()
    return result.get("response", "")

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

PROJECT_CREATED = "projectCreatedFromAssistant"
PROJECTS_UPDATED = "projectsUpdatedFromAssistant"

Handler = Callable[[Dict[str, Any]], None]


class EventBus:
    """Avisos hacia fuera del asistente (otras vistas que recargan proyectos)."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._handlers[name]:
            self._handlers[name].remove(handler)

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        for handler in list(self._handlers[name]):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", name)

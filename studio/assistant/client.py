import logging
import threading
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from studio.core.config import Settings
from studio.schemas.assistant import ParsedQuery
from studio.schemas.project import ProjectRead
from studio.assistant.errors import ApiError, RequestCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """Se marca al cerrar la sesión; las llamadas en curso no aplican su resultado."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self):
        if self.cancelled:
            raise RequestCancelled("Request cancelled")


class StudioApiClient:
    """
    Cliente HTTP+JSON del backend (/api/projects, /api/assistant).

    `http` puede ser cualquier objeto con la interfaz de requests.Session
    (en los tests, el TestClient de FastAPI).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        http=None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or Settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.http = http or requests.Session()
        self.token = token

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def request(self, method: str, path: str, cancel: Optional[CancelToken] = None, **kwargs) -> Any:
        if cancel is not None:
            cancel.check()
        url = self.base_url + path
        try:
            response = self.http.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError(0, f"Network error: {exc}") from exc
        if cancel is not None:
            cancel.check()

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
            logger.error("%s %s -> %s %s", method, path, response.status_code, detail)
            raise ApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("%s %s -> %s body is not JSON", method, path, response.status_code)
            raise ApiError(response.status_code, "Invalid JSON response") from exc

    def _read(self, path: str, build):
        """Convierte el JSON en modelos; una respuesta con otra forma es un ApiError."""
        try:
            return build()
        except (ValidationError, KeyError, TypeError) as exc:
            logger.error("Unexpected response shape from %s: %s", path, exc)
            raise ApiError(0, f"Unexpected response from {path}") from exc

    def login(self, username: str, password: str) -> str:
        data = self.request("POST", "/auth/login", data={"username": username, "password": password})
        self.token = self._read("/auth/login", lambda: data["access_token"])
        return self.token

    def list_projects(self, cancel: Optional[CancelToken] = None) -> List[ProjectRead]:
        data = self.request("GET", "/api/projects", cancel=cancel)
        return self._read("/api/projects", lambda: [ProjectRead.model_validate(p) for p in data])

    def create_project(self, payload: dict, cancel: Optional[CancelToken] = None) -> ProjectRead:
        data = self.request("POST", "/api/projects", cancel=cancel, json=payload)
        return self._read("/api/projects", lambda: ProjectRead.model_validate(data))

    def update_project(self, project_id: int, payload: dict, cancel: Optional[CancelToken] = None) -> ProjectRead:
        path = f"/api/projects/{project_id}"
        data = self.request("PATCH", path, cancel=cancel, json=payload)
        return self._read(path, lambda: ProjectRead.model_validate(data))

    def parse_query(self, payload: dict, cancel: Optional[CancelToken] = None) -> ParsedQuery:
        path = "/api/assistant/parse-query"
        data = self.request("POST", path, cancel=cancel, json=payload)
        return self._read(path, lambda: ParsedQuery.model_validate(data))

    def batch_update(self, payload: dict, cancel: Optional[CancelToken] = None) -> dict:
        path = "/api/projects/batch-update"
        data = self.request("POST", path, cancel=cancel, json=payload)
        return self._read(path, lambda: dict(data["data"]))

    def add_note(self, project_name: str, new_note: str, cancel: Optional[CancelToken] = None) -> dict:
        path = "/api/projects/add-note"
        data = self.request(
            "POST",
            path,
            cancel=cancel,
            json={"projectName": project_name, "newNote": new_note},
        )
        return self._read(path, lambda: dict(data["data"]))

import logging
from datetime import date
from typing import List, Optional

from studio.assistant import events
from studio.assistant.classifier import DETAIL_FIELDS, FollowUp, classify, requested_fields
from studio.assistant.client import CancelToken, StudioApiClient
from studio.assistant.committer import commit
from studio.assistant.errors import AssistantError, RequestCancelled
from studio.assistant.scope import resolve_scope
from studio.assistant.stager import stage_update
from studio.assistant.state import AssistantState, ID_SCOPES, Message, MessageData, ScopeSource
from studio.core.config import Settings
from studio.models.project import STATUS_VALUES
from studio.schemas.assistant import ParsedQuery, UpdateData
from studio.schemas.project import ProjectRead
from studio.services.dates import parse_date_expression
from studio.services.filters import apply_filter_and_sort, summarize_filter
from studio.services.mutations import InvalidDeadline
from studio.services.notes import append_note
from studio.utils.intent_parser import FALLBACK_CLARIFICATION

logger = logging.getLogger(__name__)

HISTORY_TURNS = 6
LIST_FIELDS = ["status", "progress", "deadline"]


class AssistantSession:
    """
    Conversación con el asistente de proyectos.

    Un turno se procesa entero (incluidas las llamadas HTTP) antes del siguiente;
    mientras `state.is_loading` está activo se rechazan nuevos envíos.
    """

    def __init__(
        self,
        client: StudioApiClient,
        bus: Optional[events.EventBus] = None,
        settings: Optional[Settings] = None,
        today: Optional[date] = None,
    ):
        self.client = client
        self.bus = bus or events.EventBus()
        self.settings = settings or Settings()
        self.today = today
        self.state = AssistantState()
        self.cancel_token = CancelToken()

    # ---------- ciclo de vida ----------

    def load_projects(self) -> List[ProjectRead]:
        self.state.projects = self.client.list_projects(cancel=self.cancel_token)
        return self.state.projects

    def close(self):
        self.cancel_token.cancel()

    def reset(self):
        self.state.messages = []
        self.state.last_filters = None
        self.state.last_applied_filter = None
        self.state.last_listed_ids = []

    def _reply(self, content: str, **extra) -> Message:
        return self.state.add_message("assistant", content, **extra)

    # ---------- turno de usuario ----------

    def handle_input(self, text: str) -> Optional[Message]:
        text = (text or "").strip()
        if not text:
            return None
        if self.state.is_loading:
            logger.warning("Input ignored while a request is in flight")
            return None

        history = list(self.state.messages[-HISTORY_TURNS:])
        self.state.add_message("user", text)
        self.state.is_loading = True
        try:
            if classify(text, bool(self.state.last_listed_ids)) == FollowUp.CONTINUATION:
                return self._show_previous(text)
            parsed = self._parse(text, history)
            if parsed is None:
                return self._reply(FALLBACK_CLARIFICATION)
            return self._dispatch(parsed)
        except RequestCancelled:
            logger.info("Turn cancelled, result discarded")
            return None
        except AssistantError as exc:
            return self._reply(f"Error: {exc}")
        finally:
            self.state.is_loading = False

    def _parse(self, text: str, history: List[Message]) -> Optional[ParsedQuery]:
        projects = self.state.projects
        payload = {
            "query": text,
            "context": {
                "availableCollabs": sorted({p.collab for p in projects if p.collab}),
                "availableStyles": sorted({p.style for p in projects if p.style}),
                "projectCount": len(projects),
                "availableStatuses": STATUS_VALUES,
            },
            "conversationHistory": [{"role": m.role, "content": m.content} for m in history],
        }
        if self.state.last_filters is not None:
            payload["lastFilters"] = self.state.last_filters.to_wire()
        try:
            return self.client.parse_query(payload, cancel=self.cancel_token)
        except RequestCancelled:
            raise
        except AssistantError as exc:
            logger.error("Query parser failed: %s", exc)
            return None

    def _dispatch(self, parsed: ParsedQuery) -> Message:
        if not parsed.understood:
            return self._reply(parsed.clarification or FALLBACK_CLARIFICATION)
        if parsed.is_conversational:
            return self._reply(parsed.clarification or FALLBACK_CLARIFICATION)
        if parsed.type in ("count", "list", "search"):
            return self._query(parsed)
        if parsed.type == "create":
            return self._create(parsed)
        return self._update(parsed)

    def _show_previous(self, text: str) -> Message:
        by_id = self.state.project_by_id()
        listed = [by_id[i] for i in self.state.last_listed_ids if i in by_id]
        fields = requested_fields(text) or list(DETAIL_FIELDS)
        return self._reply(
            f"Here are the {len(listed)} project(s) from the previous list.",
            data=MessageData(type="list", projects=listed, fields_to_show=fields),
        )

    def _query(self, parsed: ParsedQuery) -> Message:
        filters = parsed.filters
        res = apply_filter_and_sort(self.state.projects, filters)
        count = len(res.filtered)
        self.state.last_filters = filters
        self.state.last_applied_filter = filters
        self.state.last_listed_ids = [p.id for p in res.filtered]
        logger.info("Query %s filters=%s -> %s", parsed.type, summarize_filter(filters), count)

        if parsed.type == "count":
            text = f"You have {count} project(s)."
        elif count:
            text = f"Found {count} project(s)."
        else:
            text = "No project matches."
        if res.null_progress_count:
            text += f" {res.null_progress_count} projects without progress were ignored."

        data = MessageData(
            type=parsed.type,
            projects=res.filtered if parsed.type != "count" else [],
            fields_to_show=parsed.fields_to_show or list(LIST_FIELDS),
            null_progress_count=res.null_progress_count,
        )
        return self._reply(text, data=data)

    def _create(self, parsed: ParsedQuery) -> Message:
        data = parsed.create_data
        if data is None or not (data.name or "").strip():
            return self._reply("What name should the new project have?")

        payload = {"name": data.name.strip(), "status": data.status or "EN_COURS"}
        if data.status and data.status not in STATUS_VALUES:
            return self._reply(f"Unknown status {data.status}. Use one of: {', '.join(STATUS_VALUES)}.")
        for key in ("progress", "collab", "style"):
            value = getattr(data, key)
            if value is not None:
                payload[key] = value
        if data.deadline:
            deadline = parse_date_expression(data.deadline, self.today)
            if deadline is None:
                return self._reply(f"I could not read the deadline \"{data.deadline}\".")
            payload["deadline"] = deadline.isoformat()

        project = self.client.create_project(payload, cancel=self.cancel_token)
        self.state.projects.append(project)
        self.bus.emit(events.PROJECT_CREATED, {"project": project})
        return self._reply(
            f"Project \"{project.name}\" created.",
            data=MessageData(type="create", projects=[project], fields_to_show=list(LIST_FIELDS)),
        )

    def _update(self, parsed: ParsedQuery) -> Message:
        update = parsed.update_data or UpdateData()
        if update.is_note_shortcut():
            return self._add_note(update)
        if not update.has_changes():
            return self._reply("What should I change on these projects?")

        scope = resolve_scope(
            self.state.projects,
            parsed.filters,
            self.state.last_listed_ids,
            self.state.last_applied_filter,
        )
        if scope.source == ScopeSource.LAST_LISTED_IDS and not scope.projects:
            logger.warning("Last listed projects are gone, nothing staged")
            return self._reply("The projects from the last list are no longer available. Which projects should I update?")
        try:
            msg = stage_update(scope, update, parsed.fields_to_show, self.today)
        except InvalidDeadline as exc:
            return self._reply(f"{exc}. Use a date like 2024-03-01, tomorrow or next week.")
        self.state.messages.append(msg)
        return msg

    def _add_note(self, update: UpdateData) -> Message:
        data = self.client.add_note(update.project_name, update.new_note, cancel=self.cancel_token)
        project_id = data.get("projectId")
        for project in self.state.projects:
            if project.id == project_id:
                project.note = append_note(project.note, update.new_note, self.today)
        self.bus.emit(events.PROJECTS_UPDATED, {"projectIds": [project_id], "count": 1})
        return self._reply(data.get("message", "Note added."))

    # ---------- confirmación ----------

    def confirm(self, index: int) -> Message:
        msg = self.state.messages[index]
        confirmation = msg.update_confirmation
        if confirmation is None or confirmation.status != "pending":
            return msg
        if self.state.is_loading:
            logger.warning("Confirm ignored while a request is in flight")
            return msg

        self.state.is_loading = True
        try:
            result = commit(self.client, self.state, confirmation, self.today, cancel=self.cancel_token)
        except RequestCancelled:
            logger.info("Commit %s cancelled", confirmation.confirmation_id)
            return msg
        except AssistantError as exc:
            logger.error("Commit %s failed: %s", confirmation.confirmation_id, exc)
            msg.content += f"\n\nError: {exc}"
            return msg
        finally:
            self.state.is_loading = False

        confirmation.status = "confirmed"
        msg.content += f"\n\n{result.updated_count} project(s) updated."
        if result.mismatch:
            msg.content += f" ({result.expected_count} detected, {result.updated_count} modified)"
            if self.settings.assistant_debug:
                msg.content += (
                    f"\n[debug] count mismatch: expected={result.expected_count} "
                    f"actual={result.updated_count} confirmation={confirmation.confirmation_id}"
                )

        if confirmation.scope_source not in ID_SCOPES:
            self.state.last_filters = confirmation.filters
            self.state.last_applied_filter = confirmation.filters
        self.bus.emit(
            events.PROJECTS_UPDATED,
            {"projectIds": list(confirmation.affected_project_ids), "count": result.updated_count},
        )
        return msg

    def cancel(self, index: int) -> Message:
        msg = self.state.messages[index]
        confirmation = msg.update_confirmation
        if confirmation is None or confirmation.status != "pending":
            return msg
        confirmation.status = "cancelled"
        msg.content += "\n\nModification cancelled."
        logger.info("Update %s cancelled by user", confirmation.confirmation_id)
        return msg

    def pending_confirmations(self) -> List[int]:
        return [
            i for i, m in enumerate(self.state.messages)
            if m.update_confirmation is not None and m.update_confirmation.status == "pending"
        ]

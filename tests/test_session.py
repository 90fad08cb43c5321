import sys
import json
import os
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")

import pytest

from studio.assistant import events
from studio.assistant.client import StudioApiClient
from studio.assistant.errors import ApiError
from studio.assistant.session import AssistantSession
from studio.assistant.state import ScopeSource
from studio.core.config import Settings
from studio.schemas.assistant import ParsedQuery
from studio.schemas.project import ProjectRead
from studio.utils.intent_parser import FALLBACK_CLARIFICATION

TODAY = date(2024, 1, 10)


class FakeClient:
    """Sustituye al backend: el parser devuelve las respuestas encoladas."""

    def __init__(self, projects):
        self.projects = projects
        self.parsed = []
        self.parse_payloads = []
        self.batch_payloads = []
        self.batch_count = None
        self.batch_error = None
        self.parse_error = None

    def list_projects(self, cancel=None):
        return [p.model_copy() for p in self.projects]

    def parse_query(self, payload, cancel=None):
        if cancel is not None:
            cancel.check()
        self.parse_payloads.append(payload)
        if self.parse_error is not None:
            raise self.parse_error
        return ParsedQuery.model_validate(self.parsed.pop(0))

    def create_project(self, payload, cancel=None):
        return ProjectRead(id=100, status=payload.get("status", "EN_COURS"), **{
            k: v for k, v in payload.items() if k != "status"
        })

    def batch_update(self, payload, cancel=None):
        self.batch_payloads.append(payload)
        if self.batch_error is not None:
            raise self.batch_error
        count = self.batch_count
        if count is None:
            count = len(payload.get("projectIds", []))
        return {"count": count, "message": "ok"}

    def add_note(self, project_name, new_note, cancel=None):
        return {"message": f'Note added to "{project_name}"', "projectId": 2}


@pytest.fixture
def catalog():
    return [
        ProjectRead(id=1, name="Alpha", status="EN_COURS", progress=40, collab="Mia", deadline=date(2024, 1, 15)),
        ProjectRead(id=2, name="Beta", status="EN_COURS", progress=None, collab="Leo"),
        ProjectRead(id=3, name="Gamma", status="TERMINE", progress=90),
        ProjectRead(id=4, name="Delta", status="GHOST_PRODUCTION", progress=20, deadline=date(2024, 2, 1)),
    ]


@pytest.fixture
def session(catalog):
    client = FakeClient(catalog)
    s = AssistantSession(client, settings=Settings(assistant_debug=False), today=TODAY)
    s.load_projects()
    return s


def test_list_then_update_them_uses_last_listed_ids(session):
    session.client.parsed = [
        {"type": "list", "understood": True, "filters": {"status": "EN_COURS", "minProgress": 30}},
        {"type": "update", "understood": True, "filters": {}, "updateData": {"newProgress": 80}},
    ]
    listing = session.handle_input("list the projects in progress above 30%")
    assert [p.id for p in listing.data.projects] == [1]
    assert "1 projects without progress were ignored" in listing.content

    staged = session.handle_input("set them to 80%")
    conf = staged.update_confirmation
    assert conf.scope_source == ScopeSource.LAST_LISTED_IDS
    assert conf.affected_project_ids == [1]
    # nada enviado antes de confirmar
    assert session.client.batch_payloads == []

    index = len(session.state.messages) - 1
    done = session.confirm(index)
    payload = session.client.batch_payloads[0]
    assert payload["projectIds"] == [1]
    assert "status" not in payload and "minProgress" not in payload
    assert conf.status == "confirmed"
    assert "1 project(s) updated." in done.content
    assert session.state.project_by_id()[1].progress == 80


def test_explicit_filter_update_sends_filters(session):
    session.client.parsed = [
        {"type": "update", "understood": True, "filters": {"status": "GHOST_PRODUCTION"},
         "updateData": {"pushDeadlineBy": {"weeks": -1}}},
    ]
    staged = session.handle_input("pull the ghost prod deadlines forward by a week")
    assert staged.update_confirmation.scope_source == ScopeSource.EXPLICIT_FILTER

    session.client.batch_count = 1
    session.confirm(len(session.state.messages) - 1)
    payload = session.client.batch_payloads[0]
    assert payload["status"] == "GHOST_PRODUCTION"
    assert payload["pushDeadlineBy"] == {"weeks": -1}
    assert "projectIds" not in payload
    assert session.state.project_by_id()[4].deadline == date(2024, 1, 25)
    assert session.state.last_applied_filter.status == "GHOST_PRODUCTION"


def test_cancel_never_sends(session):
    session.client.parsed = [
        {"type": "update", "understood": True, "filters": {"collab": "mia"}, "updateData": {"newStyle": "Techno"}},
    ]
    session.handle_input("change the style of the Mia projects to Techno")
    index = len(session.state.messages) - 1
    cancelled = session.cancel(index)
    assert "Modification cancelled." in cancelled.content
    session.confirm(index)
    assert session.client.batch_payloads == []
    assert session.state.project_by_id()[1].style is None


def test_commit_failure_keeps_confirmation_and_allows_retry(session):
    session.client.parsed = [
        {"type": "update", "understood": True, "filters": {"status": "TERMINE"}, "updateData": {"newLabel": "Armada"}},
    ]
    session.handle_input("set label Armada on finished projects")
    index = len(session.state.messages) - 1
    session.client.batch_error = ApiError(500, "database is down")
    msg = session.confirm(index)
    assert "Error: 500: database is down" in msg.content
    assert msg.update_confirmation.status == "pending"
    assert session.state.project_by_id()[3].label is None
    assert session.state.is_loading is False

    session.client.batch_error = None
    session.client.batch_count = 1
    session.confirm(index)
    assert msg.update_confirmation.status == "confirmed"
    assert session.state.project_by_id()[3].label == "Armada"


def test_mismatch_is_reported_but_not_fatal(session):
    session.settings.assistant_debug = True
    session.client.parsed = [
        {"type": "update", "understood": True, "filters": {"status": "EN_COURS"}, "updateData": {"newProgress": 10}},
    ]
    session.handle_input("put the projects in progress at 10%")
    session.client.batch_count = 5
    msg = session.confirm(len(session.state.messages) - 1)
    assert "(2 detected, 5 modified)" in msg.content
    assert "[debug] count mismatch" in msg.content
    assert msg.update_confirmation.status == "confirmed"


def test_no_scope_stages_all_projects(session):
    session.client.parsed = [
        {"type": "update", "understood": True, "updateData": {"newCollab": "Nova"}},
    ]
    staged = session.handle_input("set collab Nova")
    assert staged.update_confirmation.scope_source == ScopeSource.ALL_PROJECTS
    assert "ALL your projects (4)" in staged.content


def test_follow_up_relists_previous_results(session):
    session.client.parsed = [
        {"type": "list", "understood": True, "filters": {"collab": "mia"}},
    ]
    session.handle_input("list the projects with Mia")
    follow = session.handle_input("show me their deadlines too")
    assert len(session.client.parse_payloads) == 1
    assert [p.id for p in follow.data.projects] == [1]
    assert follow.data.fields_to_show == ["deadline"]


def test_count_and_context_sent_to_parser(session):
    session.client.parsed = [
        {"type": "count", "understood": True, "filters": {"noProgress": True}},
    ]
    msg = session.handle_input("how many projects without progress")
    assert msg.content == "You have 1 project(s)."
    payload = session.client.parse_payloads[0]
    assert payload["context"]["availableCollabs"] == ["Leo", "Mia"]
    assert payload["context"]["projectCount"] == 4
    assert "GHOST_PRODUCTION" in payload["context"]["availableStatuses"]


def test_parser_failure_falls_back(session):
    session.client.parse_error = ApiError(502, "llm down")
    msg = session.handle_input("blah")
    assert msg.content == FALLBACK_CLARIFICATION


def test_conversational_and_not_understood(session):
    session.client.parsed = [
        {"type": "list", "understood": True, "isConversational": True, "clarification": "Hi, ask me about your projects."},
        {"type": "list", "understood": False},
    ]
    assert session.handle_input("hello").content == "Hi, ask me about your projects."
    assert session.handle_input("qwerty").content == FALLBACK_CLARIFICATION


def test_create_requires_name_then_creates(session):
    received = []
    session.bus.subscribe(events.PROJECT_CREATED, received.append)
    session.client.parsed = [
        {"type": "create", "understood": True, "createData": {"collab": "Mia"}},
        {"type": "create", "understood": True, "createData": {"name": "Sunrise", "deadline": "next week"}},
    ]
    ask = session.handle_input("create a project with Mia")
    assert ask.content == "What name should the new project have?"
    assert received == []

    created = session.handle_input("create Sunrise for next week")
    assert created.content == 'Project "Sunrise" created.'
    assert session.state.project_by_id()[100].deadline == date(2024, 1, 17)
    assert received[0]["project"].name == "Sunrise"


def test_note_shortcut_commits_immediately(session):
    received = []
    session.bus.subscribe(events.PROJECTS_UPDATED, received.append)
    session.client.parsed = [
        {"type": "update", "understood": True, "updateData": {"projectName": "Beta", "newNote": "new vocals"}},
    ]
    msg = session.handle_input("add a note to Beta: new vocals")
    assert msg.update_confirmation is None
    assert msg.content == 'Note added to "Beta"'
    assert "new vocals" in session.state.project_by_id()[2].note
    assert received == [{"projectIds": [2], "count": 1}]


def test_loading_flag_rejects_duplicate_input(session):
    session.state.is_loading = True
    assert session.handle_input("list my projects") is None
    assert session.state.messages == []


def test_closed_session_discards_results(session):
    session.close()
    session.client.parsed = [{"type": "list", "understood": True}]
    assert session.handle_input("list my projects") is None
    assert session.state.is_loading is False
    assert all(m.role == "user" for m in session.state.messages)


def test_reset_clears_conversation(session):
    session.client.parsed = [{"type": "list", "understood": True}]
    session.handle_input("list my projects")
    session.reset()
    assert session.state.messages == []
    assert session.state.last_listed_ids == []
    assert len(session.state.projects) == 4


class HtmlResponse:
    status_code = 200
    content = b"<html>gateway</html>"
    text = "<html>gateway</html>"

    def json(self):
        return json.loads(self.text)


class JsonResponse:
    status_code = 200

    def __init__(self, body):
        self.text = json.dumps(body)
        self.content = self.text.encode()

    def json(self):
        return json.loads(self.text)


class ScriptedHttp:
    """Devuelve la respuesta registrada para cada path."""

    def __init__(self, routes):
        self.routes = routes

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        path = url.replace("http://testserver", "")
        return self.routes[path]


def http_session(routes):
    client = StudioApiClient(base_url="http://testserver", token="t", http=ScriptedHttp(routes))
    return AssistantSession(client, settings=Settings(), today=TODAY)


def test_non_json_parser_reply_falls_back():
    s = http_session({"/api/assistant/parse-query": HtmlResponse()})
    msg = s.handle_input("how many projects do I have")
    assert msg.content == FALLBACK_CLARIFICATION
    assert s.state.is_loading is False


def test_parser_reply_with_wrong_shape_falls_back():
    s = http_session({"/api/assistant/parse-query": JsonResponse({"type": "delete", "understood": True})})
    msg = s.handle_input("delete everything")
    assert msg.content == FALLBACK_CLARIFICATION


def test_malformed_project_list_raises_api_error():
    s = http_session({"/api/projects": JsonResponse([{"name": "no id"}])})
    with pytest.raises(ApiError):
        s.load_projects()


def test_batch_reply_without_data_is_api_error():
    client = StudioApiClient(
        base_url="http://testserver",
        token="t",
        http=ScriptedHttp({"/api/projects/batch-update": JsonResponse({"count": 1})}),
    )
    with pytest.raises(ApiError) as exc:
        client.batch_update({"projectIds": [1], "newProgress": 10})
    assert "Unexpected response" in str(exc.value)

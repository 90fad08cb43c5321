import sys
import os
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.pool import StaticPool

from studio.main import app
from studio.models.user import User
from studio.models.project import Project
from studio.schemas.project import ProjectRead
from studio.api.endpoints.auth import get_current_user
from studio.database import get_session


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
SQLModel.metadata.create_all(engine)


def override_get_session():
    with Session(engine) as session:
        yield session


def reset_database():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def make_client():
    client = TestClient(app)
    user = User(id=1, username="alice", email="alice@example.com", password_hash="hashed")
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_session] = override_get_session
    return client


def test_create_project_returns_camel_case_and_clamps_progress():
    reset_database()
    client = make_client()

    payload = {"name": "  Night Drive ", "progress": 140, "labelFinal": "Spinnin", "deadline": "2024-01-15"}
    response = client.post("/api/projects", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Night Drive"
    assert data["status"] == "EN_COURS"
    assert data["progress"] == 100
    assert data["labelFinal"] == "Spinnin"
    assert data["deadline"] == "2024-01-15"
    assert data["userId"] == 1
    assert "streamsJ7" in data

    app.dependency_overrides.clear()


def test_create_project_without_name_is_rejected():
    reset_database()
    client = make_client()

    response = client.post("/api/projects", json={"name": "   "})
    assert response.status_code == 422

    app.dependency_overrides.clear()


def test_create_project_keeps_null_progress():
    reset_database()
    client = make_client()

    response = client.post("/api/projects", json={"name": "Sketch"})
    assert response.status_code == 201
    assert response.json()["progress"] is None

    app.dependency_overrides.clear()


def test_list_projects_filtered_by_owner():
    reset_database()
    client = make_client()

    with Session(engine) as session:
        session.add(Project(name="mine", user_id=1))
        session.add(Project(name="other", user_id=2))
        session.commit()

    response = client.get("/api/projects")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["name"] == "mine"

    app.dependency_overrides.clear()


def test_get_project_by_id_and_404_for_non_owner():
    reset_database()
    client = make_client()

    with Session(engine) as session:
        own_proj = Project(name="own", user_id=1)
        other_proj = Project(name="other", user_id=2)
        session.add(own_proj)
        session.add(other_proj)
        session.commit()
        session.refresh(own_proj)
        session.refresh(other_proj)
        own_id = own_proj.id
        other_id = other_proj.id

    resp_ok = client.get(f"/api/projects/{own_id}")
    assert resp_ok.status_code == 200
    assert resp_ok.json()["id"] == own_id

    resp_404 = client.get(f"/api/projects/{other_id}")
    assert resp_404.status_code == 404
    assert resp_404.json()["detail"] == "Project not found"

    app.dependency_overrides.clear()


def test_patch_project_partial_update():
    reset_database()
    client = make_client()

    with Session(engine) as session:
        project = Project(name="old", progress=20, collab="Mia", deadline=date(2024, 1, 15), user_id=1)
        session.add(project)
        session.commit()
        session.refresh(project)
        pid = project.id

    response = client.patch(f"/api/projects/{pid}", json={"progress": 55, "streamsJ7": 1200})
    assert response.status_code == 200
    data = response.json()
    assert data["progress"] == 55
    assert data["streamsJ7"] == 1200
    assert data["collab"] == "Mia"

    response = client.patch(f"/api/projects/{pid}", json={"status": "TERMINE"})
    assert response.json()["progress"] == 100

    with Session(engine) as session:
        updated = session.get(Project, pid)
        assert updated.status == "TERMINE"
        assert updated.streams_j7 == 1200

    app.dependency_overrides.clear()


def test_patch_rejects_unknown_status():
    reset_database()
    client = make_client()

    with Session(engine) as session:
        project = Project(name="p", user_id=1)
        session.add(project)
        session.commit()
        session.refresh(project)
        pid = project.id

    response = client.patch(f"/api/projects/{pid}", json={"status": "WHATEVER"})
    assert response.status_code == 422

    app.dependency_overrides.clear()


def test_delete_project_and_verify_204_and_404():
    reset_database()
    client = make_client()

    with Session(engine) as session:
        project = Project(name="todel", user_id=1)
        session.add(project)
        session.commit()
        session.refresh(project)
        pid = project.id

    resp = client.delete(f"/api/projects/{pid}")
    assert resp.status_code == 204

    resp2 = client.delete(f"/api/projects/{pid}")
    assert resp2.status_code == 404

    app.dependency_overrides.clear()


def test_project_read_from_table_row_uses_camel_aliases():
    row = Project(id=7, name="Nightfall", label_final="Armada", streams_j7=1200, user_id=1)
    read = ProjectRead.model_validate(row)
    data = read.model_dump(by_alias=True)
    assert data["labelFinal"] == "Armada"
    assert data["streamsJ7"] == 1200
    assert ProjectRead(id=1, name="x", status="EN_COURS", label_final="y").label_final == "y"

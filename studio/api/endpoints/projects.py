from typing import List

from fastapi import APIRouter, HTTPException, Depends, status
from sqlmodel import Session, select

from studio.models.project import Project
from studio.models.user import User
from studio.schemas.project import (
    AddNoteRequest,
    AddNoteResponse,
    AddNoteResult,
    BatchUpdateRequest,
    BatchUpdateResponse,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
)
from studio.api.endpoints.auth import get_current_user
from studio.database import get_session
from studio.services.batch_update import BatchUpdateError, add_note, run_batch_update
from studio.utils.clock import utc_now

router = APIRouter()


@router.post("/batch-update", response_model=BatchUpdateResponse)
def batch_update(
    req: BatchUpdateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        result = run_batch_update(session, current_user.id, req)
    except BatchUpdateError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return BatchUpdateResponse(data=result)


@router.post("/add-note", response_model=AddNoteResponse)
def add_project_note(
    req: AddNoteRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if not req.new_note.strip():
        raise HTTPException(status_code=400, detail="Note content is empty")
    try:
        project = add_note(session, current_user.id, req.project_name, req.new_note)
    except BatchUpdateError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return AddNoteResponse(
        data=AddNoteResult(message=f'Note added to "{project.name}"', project_id=project.id)
    )


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    project = Project(**project_in.model_dump(), user_id=current_user.id)
    project.status = project_in.status.value
    if project.status == "TERMINE":
        project.progress = 100
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


@router.get("", response_model=List[ProjectRead])
def list_projects(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    projects = session.exec(
        select(Project).where(Project.user_id == current_user.id).order_by(Project.id)
    ).all()
    return projects


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    project = session.get(Project, project_id)
    if not project or project.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    project = session.get(Project, project_id)
    if not project or project.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    project_data = project_in.model_dump(exclude_unset=True)
    for key, value in project_data.items():
        if key == "status" and value is not None:
            value = value.value
        setattr(project, key, value)
    if project.status == "TERMINE":
        project.progress = 100
    project.updated_at = utc_now()
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    project = session.get(Project, project_id)
    if not project or project.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    session.delete(project)
    session.commit()

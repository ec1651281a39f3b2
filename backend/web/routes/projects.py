"""Draft project endpoints (save/load of editor state)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.metro.errors import NotFound
from backend.web import wiring
from backend.web.auth_utils import current_principal


projects_router = APIRouter(tags=["Projects"])


class SaveProjectRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    project_data: Optional[str] = None
    current_step: int = 0


@projects_router.get("/api/projects")
def list_projects():
    return wiring.get_project_repo().list_all()


@projects_router.get("/api/projects/{project_id}")
def get_project(project_id: str):
    project = wiring.get_project_repo().find_by_id(project_id)
    if project is None:
        raise NotFound(f"Project niet gevonden: {project_id}")
    return project


@projects_router.put("/api/projects/{project_id}")
def save_project(request: Request, project_id: str, payload: SaveProjectRequest):
    username = current_principal(request).username or "unknown"
    wiring.get_project_repo().save(project_id, payload.name, payload.project_data, payload.current_step, username)
    return {"status": "saved", "id": project_id}


@projects_router.delete("/api/projects/{project_id}", status_code=204)
def delete_project(project_id: str):
    if not wiring.get_project_repo().delete(project_id):
        raise NotFound(f"Project niet gevonden: {project_id}")
    return Response(status_code=204)


__all__ = ["projects_router"]

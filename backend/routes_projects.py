"""
backend/routes_projects.py

Project endpoints: list/create projects, project details, pledges and
owner updates.

Guarantees:
- Reads are public; every write requires a bearer token
- user_id on inserted rows comes from the token, never from the body
- Writes run with the caller's credentials (data.as_user) so the hosted
  store's row-level policies apply
- Pledge quota and update ownership are checked here AND enforced by the
  data layer; the client-side checks are conveniences only
- Backend failures return a fixed message; details are printed, never returned
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import ValidationError

from backend.auth_context import AuthContext, get_data_service, require_auth_context
from backend.config import IS_DEV
from backend.data_service import (
    DataService,
    DataServiceError,
    NotFoundError,
    PermissionDeniedError,
    PledgeRejectedError,
)
from domains.funding.metrics import pledge_limit_error
from domains.funding.models.project import (
    PledgeCreate,
    PledgePoint,
    Project,
    ProjectCreate,
    ProjectDetail,
    SORT_ORDERS,
    SortOption,
    Update,
    UpdateCreate,
    parse_sort,
)

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)

OWNER_ONLY_MESSAGE = "Only the project owner can post updates"


# ---------------------------------------------------------
# Read helpers (backend-agnostic)
# ---------------------------------------------------------
def list_projects(data: DataService, sort: SortOption = SortOption.newest) -> List[Project]:
    column, desc = SORT_ORDERS[sort]
    rows = data.table("projects").select("*").order(column, desc=desc).execute().data
    return [Project.model_validate(r) for r in rows or []]


def fetch_project(data: DataService, project_id: str) -> Project:
    rows = data.table("projects").select("*").eq("id", project_id).limit(1).execute().data
    if not rows:
        raise NotFoundError("Project not found")
    return Project.model_validate(rows[0])


def fetch_updates(data: DataService, project_id: str) -> List[Update]:
    rows = (
        data.table("updates")
        .select("*")
        .eq("project_id", project_id)
        .order("created_at", desc=True)
        .execute()
        .data
    )
    return [Update.model_validate(r) for r in rows or []]


def fetch_pledges(data: DataService, project_id: str) -> List[PledgePoint]:
    rows = (
        data.table("pledges")
        .select("amount, created_at")
        .eq("project_id", project_id)
        .order("created_at", desc=False)
        .execute()
        .data
    )
    return [PledgePoint.model_validate(r) for r in rows or []]


def fetch_project_detail(data: DataService, project_id: str) -> ProjectDetail:
    """Project row, then its updates, then its pledges (three sequential reads)."""
    project = fetch_project(data, project_id)
    updates = fetch_updates(data, project_id)
    pledges = fetch_pledges(data, project_id)
    return ProjectDetail(**project.model_dump(), updates=updates, pledges=pledges)


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
@router.get("", response_model=List[Project])
def get_projects(
    sort: str = Query("newest", description="newest | most-funded | ending-soon"),
    data: DataService = Depends(get_data_service),
) -> List[Project]:
    """
    All projects in the requested order. An empty store yields [].

    Raises:
        HTTPException(500): data service failure
    """
    try:
        return list_projects(data, parse_sort(sort))
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error fetching projects: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch projects")


@router.post("", response_model=Project)
def create_project(
    request: ProjectCreate,
    ctx: AuthContext = Depends(require_auth_context),
    data: DataService = Depends(get_data_service),
) -> Project:
    """
    Insert one project owned by the caller and return the stored row.

    Raises:
        HTTPException(401): missing/invalid token
        HTTPException(422): malformed body (handled by FastAPI)
        HTTPException(500): data service failure
    """
    row = request.model_dump()
    row["user_id"] = ctx.user_id
    try:
        inserted = data.as_user(ctx.access_token).table("projects").insert(row).execute().data
        if not inserted:
            raise DataServiceError("insert returned no row")
        project = Project.model_validate(inserted[0])
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error creating project: {e}")
        raise HTTPException(status_code=500, detail="Failed to create project")

    if IS_DEV:
        print(f"[PROJECTS] Created project_id={project.id}, user_id={ctx.user_id}")
    return project


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project_id: str = Path(..., min_length=1, max_length=64),
    data: DataService = Depends(get_data_service),
) -> ProjectDetail:
    """
    Raises:
        HTTPException(404): unknown project
        HTTPException(500): data service failure
    """
    try:
        return fetch_project_detail(data, project_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error fetching project {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load project details")


# ---------------------------------------------------------
# Updates
# ---------------------------------------------------------
@router.get("/{project_id}/updates", response_model=List[Update])
def get_updates(
    project_id: str = Path(..., min_length=1, max_length=64),
    data: DataService = Depends(get_data_service),
) -> List[Update]:
    try:
        return fetch_updates(data, project_id)
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error fetching updates for {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch updates")


@router.post("/{project_id}/updates", response_model=List[Update])
def post_update(
    request: UpdateCreate,
    project_id: str = Path(..., min_length=1, max_length=64),
    ctx: AuthContext = Depends(require_auth_context),
    data: DataService = Depends(get_data_service),
) -> List[Update]:
    """
    Owner-only status post. Returns the refreshed updates list (newest first).

    Raises:
        HTTPException(401): missing/invalid token
        HTTPException(403): caller does not own the project
        HTTPException(404): unknown project
        HTTPException(500): data service failure
    """
    try:
        project = fetch_project(data, project_id)
        if project.user_id != ctx.user_id:
            raise PermissionDeniedError(OWNER_ONLY_MESSAGE)
        data.as_user(ctx.access_token).table("updates").insert({
            "content": request.content,
            "project_id": project_id,
            "user_id": ctx.user_id,
        }).execute()
        return fetch_updates(data, project_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except PermissionDeniedError:
        if IS_DEV:
            print(f"[PROJECTS] Update refused: user_id={ctx.user_id} is not owner of {project_id}")
        raise HTTPException(status_code=403, detail=OWNER_ONLY_MESSAGE)
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error posting update to {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to post update")


# ---------------------------------------------------------
# Pledges
# ---------------------------------------------------------
@router.get("/{project_id}/pledges", response_model=List[PledgePoint])
def get_pledges(
    project_id: str = Path(..., min_length=1, max_length=64),
    data: DataService = Depends(get_data_service),
) -> List[PledgePoint]:
    try:
        return fetch_pledges(data, project_id)
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error fetching pledges for {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch pledges")


@router.post("/{project_id}/pledges", response_model=ProjectDetail)
def post_pledge(
    request: PledgeCreate,
    project_id: str = Path(..., min_length=1, max_length=64),
    ctx: AuthContext = Depends(require_auth_context),
    data: DataService = Depends(get_data_service),
) -> ProjectDetail:
    """
    Pledge toward a project and return the refreshed project detail.

    The remaining-amount check here gives a fast, friendly refusal; the data
    layer repeats it atomically so concurrent pledges cannot overshoot.

    Raises:
        HTTPException(400): amount exceeds the remaining amount
        HTTPException(401): missing/invalid token
        HTTPException(404): unknown project
        HTTPException(500): data service failure
    """
    try:
        project = fetch_project(data, project_id)
        refusal = pledge_limit_error(request.amount, project.current_amount, project.goal_amount)
        if refusal:
            raise PledgeRejectedError(refusal)
        data.as_user(ctx.access_token).place_pledge(project_id, ctx.user_id, request.amount)
        detail = fetch_project_detail(data, project_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except PledgeRejectedError as e:
        raise HTTPException(status_code=400, detail=_pledge_refusal_text(e, data, project_id))
    except (DataServiceError, ValidationError) as e:
        print(f"[PROJECTS] Error making pledge on {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process pledge")

    if IS_DEV:
        print(f"[PROJECTS] Pledge accepted: project_id={project_id}, user_id={ctx.user_id}, amount={request.amount}")
    return detail


def _pledge_refusal_text(e: PledgeRejectedError, data: DataService, project_id: str) -> str:
    """Prefer the user-facing wording; trigger messages are terse."""
    message = str(e)
    if message.startswith("The maximum pledge amount") or message.startswith("Pledge amount"):
        return message
    try:
        project = fetch_project(data, project_id)
    except (DataServiceError, ValidationError):
        return "Pledge exceeds the remaining amount"
    return f"The maximum pledge amount available is ${max(project.goal_amount - project.current_amount, 0.0):.2f}"

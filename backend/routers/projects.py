# routers/projects.py — Projects, boards and project membership
from datetime import datetime
from typing import Optional, List, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_member, CurrentUser
from database import get_db_session
from models import Board, Project, ProjectMember, ProjectVisibility, User
import storage

router = APIRouter(prefix="/api/v1", tags=["Projects"])


# ============================================================
# SCHEMAS
# ============================================================

def _sdg_list(values: Optional[List[Union[int, str]]]) -> Optional[List[str]]:
    if values is None:
        return None
    out = []
    for v in values:
        try:
            n = int(v)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid SDG identifier: {v!r}")
        if not 1 <= n <= 17:
            raise ValueError(f"SDG identifiers range from 1 to 17, got {n}")
        if str(n) not in out:
            out.append(str(n))
    return out


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: ProjectVisibility = ProjectVisibility.PUBLIC
    sdg_tags: List[Union[int, str]] = Field(default_factory=list)

    @field_validator("sdg_tags")
    @classmethod
    def validate_sdg_tags(cls, v):
        return _sdg_list(v)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: Optional[ProjectVisibility] = None
    sdg_tags: Optional[List[Union[int, str]]] = None

    @field_validator("sdg_tags")
    @classmethod
    def validate_sdg_tags(cls, v):
        return _sdg_list(v)


class ColumnDef(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    order: int = 0


class BoardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    columns: Optional[List[ColumnDef]] = None


class BoardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    columns: Optional[List[ColumnDef]] = None


class MemberAdd(BaseModel):
    user_id: str
    role: str = Field("member", min_length=1, max_length=50)


class BoardOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    project_id: str
    columns: List[ColumnDef] = []
    created_at: str
    updated_at: str


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    visibility: str
    sdg_tags: List[str] = []
    owner_id: str
    created_at: str
    updated_at: str


class ProjectCreatedOut(ProjectOut):
    default_board: BoardOut


class MemberOut(BaseModel):
    id: str
    project_id: str
    user_id: str
    role: str
    display_name: str
    profile_image_url: Optional[str] = None
    points: int
    level: int
    joined_at: str


# ============================================================
# HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _project_to_out(p: Project) -> ProjectOut:
    return ProjectOut(
        id=p.id,
        name=p.name,
        description=p.description,
        visibility=p.visibility.value if isinstance(p.visibility, ProjectVisibility) else p.visibility,
        sdg_tags=p.sdg_tags or [],
        owner_id=p.owner_id,
        created_at=_ts(p.created_at),
        updated_at=_ts(p.updated_at),
    )


def _board_to_out(b: Board) -> BoardOut:
    return BoardOut(
        id=b.id,
        name=b.name,
        description=b.description,
        project_id=b.project_id,
        columns=sorted((ColumnDef(**c) for c in b.columns or []), key=lambda c: c.order),
        created_at=_ts(b.created_at),
        updated_at=_ts(b.updated_at),
    )


def _member_to_out(m: ProjectMember, u: User) -> MemberOut:
    return MemberOut(
        id=m.id,
        project_id=m.project_id,
        user_id=u.id,
        role=m.role,
        display_name=u.display_name,
        profile_image_url=u.profile_image_url,
        points=u.points,
        level=u.level,
        joined_at=_ts(m.joined_at),
    )


async def _visible_project(db: AsyncSession, project_id: str, user: CurrentUser) -> Project:
    """Load a project the user may see; private projects are hidden from non-members"""
    project = await storage.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if not user.is_admin and not await storage.can_view_project(db, project, user.id):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _managed_project(db: AsyncSession, project_id: str, user: CurrentUser) -> Project:
    """Load a project the user may modify: its owner or an admin"""
    project = await storage.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.owner_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Only the project owner can modify this project")
    return project


# ============================================================
# PROJECT ENDPOINTS
# ============================================================

@router.get("/projects", response_model=List[ProjectOut])
async def list_projects(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Projects the caller owns plus all public projects"""
    projects = await storage.get_projects(db, user.id)
    return [_project_to_out(p) for p in projects]


@router.post("/projects", response_model=ProjectCreatedOut, status_code=201)
async def create_project(
    data: ProjectCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a project; a default board is created with it"""
    project, board = await storage.create_project(db, data.model_dump(), owner_id=user.id)
    return ProjectCreatedOut(**_project_to_out(project).model_dump(), default_board=_board_to_out(board))


@router.get("/projects/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _project_to_out(await _visible_project(db, project_id, user))


@router.patch("/projects/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _managed_project(db, project_id, user)
    payload = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k == "description"
    }
    project = await storage.update_project(db, project_id, payload, actor_id=user.id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return _project_to_out(project)


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a project with its boards, tasks and memberships"""
    await _managed_project(db, project_id, user)
    if not await storage.delete_project(db, project_id, actor_id=user.id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"status": "deleted", "id": project_id}


# ============================================================
# BOARD ENDPOINTS
# ============================================================

@router.get("/projects/{project_id}/boards", response_model=List[BoardOut])
async def list_boards(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _visible_project(db, project_id, user)
    boards = await storage.get_boards_by_project(db, project_id)
    return [_board_to_out(b) for b in boards]


@router.post("/projects/{project_id}/boards", response_model=BoardOut, status_code=201)
async def create_board(
    project_id: str,
    data: BoardCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _managed_project(db, project_id, user)
    payload = data.model_dump(exclude_none=True)
    board = await storage.create_board(db, project_id, payload, actor_id=user.id)
    return _board_to_out(board)


@router.get("/boards/{board_id}", response_model=BoardOut)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = await storage.get_board(db, board_id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    await _visible_project(db, board.project_id, user)
    return _board_to_out(board)


@router.patch("/boards/{board_id}", response_model=BoardOut)
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename a board or reconfigure its columns"""
    board = await storage.get_board(db, board_id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    await _managed_project(db, board.project_id, user)

    board = await storage.update_board(db, board_id, data.model_dump(exclude_unset=True), actor_id=user.id)
    return _board_to_out(board)


# ============================================================
# MEMBER ENDPOINTS
# ============================================================

@router.get("/projects/{project_id}/members", response_model=List[MemberOut])
async def list_members(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _visible_project(db, project_id, user)
    return [_member_to_out(m, u) for m, u in await storage.get_project_members(db, project_id)]


@router.post("/projects/{project_id}/members", response_model=MemberOut, status_code=201)
async def add_member(
    project_id: str,
    data: MemberAdd,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _managed_project(db, project_id, user)
    member = await storage.add_project_member(db, project_id, data.user_id, actor_id=user.id, role=data.role)
    added = await storage.get_user(db, member.user_id)
    return _member_to_out(member, added)


@router.delete("/projects/{project_id}/members/{user_id}")
async def remove_member(
    project_id: str,
    user_id: str,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _managed_project(db, project_id, user)
    if not await storage.remove_project_member(db, project_id, user_id, actor_id=user.id):
        raise HTTPException(status_code=404, detail="Member not found")
    return {"status": "removed", "project_id": project_id, "user_id": user_id}

# routers/tasks.py — Tasks, status transitions, comments, time logs and dependencies
from datetime import datetime
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from activity import get_task_activities, get_task_time_logs
from auth import get_current_user, require_member, CurrentUser
from database import get_db_session
from models import Board, Task, TaskComment, TaskDependency, TaskPriority, TaskStatus, TaskType
from routers.activities import ActivityOut, _activity_to_out
from search import TaskSearchParams, get_tasks_by_user, search_tasks
import lifecycle
import storage

router = APIRouter(prefix="/api/v1", tags=["Tasks"])

# Fields a PATCH may explicitly set to null
CLEARABLE_TASK_FIELDS = {"description", "assignee_id", "estimation_hours", "due_date", "sdg_link"}


# ============================================================
# SCHEMAS
# ============================================================

def _sdg_number(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid SDG identifier: {v!r}")
    if not 1 <= n <= 17:
        raise ValueError(f"SDG identifiers range from 1 to 17, got {n}")
    return str(n)


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: TaskType = TaskType.TASK
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assignee_id: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    estimation_hours: Optional[int] = Field(None, ge=0)
    reward_points: int = Field(100, ge=0)
    due_date: Optional[datetime] = None
    sdg_link: Optional[str] = None
    progress: int = Field(0, ge=0, le=100)

    @field_validator("sdg_link", mode="before")
    @classmethod
    def validate_sdg_link(cls, v):
        return _sdg_number(v)


class TaskUpdate(BaseModel):
    """Reporter and reward points are fixed at creation and cannot be changed here"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[str] = None
    labels: Optional[List[str]] = None
    estimation_hours: Optional[int] = Field(None, ge=0)
    due_date: Optional[datetime] = None
    sdg_link: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("sdg_link", mode="before")
    @classmethod
    def validate_sdg_link(cls, v):
        return _sdg_number(v)


class TaskAssign(BaseModel):
    assignee_id: Optional[str] = None


class TaskLabels(BaseModel):
    labels: List[str]


class TaskTransition(BaseModel):
    status: TaskStatus
    comment: Optional[str] = Field(None, max_length=2000)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment content cannot be empty")
        return v


class CommentUpdate(CommentCreate):
    pass


class TimeLogCreate(BaseModel):
    time_spent: float = Field(..., gt=0, le=24 * 7)
    description: Optional[str] = Field(None, max_length=2000)
    date: Optional[datetime] = None


class DependencyCreate(BaseModel):
    depends_on_task_id: str


class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    priority: str
    status: str
    board_id: str
    assignee_id: Optional[str] = None
    reporter_id: str
    labels: List[str] = []
    estimation_hours: Optional[int] = None
    reward_points: int
    due_date: Optional[str] = None
    sdg_link: Optional[str] = None
    progress: int = 0
    created_at: str
    updated_at: str


class CommentOut(BaseModel):
    id: str
    task_id: str
    user_id: str
    author_name: str
    content: str
    created_at: str
    updated_at: Optional[str] = None


class TimeLogOut(BaseModel):
    id: str
    task_id: str
    user_id: str
    time_spent: float
    description: Optional[str] = None
    date: str
    created_at: str


class DependencyOut(BaseModel):
    id: str
    task_id: str
    depends_on_task_id: str
    created_at: str


# ============================================================
# HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _task_to_out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        title=t.title,
        description=t.description,
        type=t.type.value,
        priority=t.priority.value,
        status=t.status.value,
        board_id=t.board_id,
        assignee_id=t.assignee_id,
        reporter_id=t.reporter_id,
        labels=t.labels or [],
        estimation_hours=t.estimation_hours,
        reward_points=t.reward_points,
        due_date=_ts(t.due_date),
        sdg_link=t.sdg_link,
        progress=t.progress,
        created_at=_ts(t.created_at),
        updated_at=_ts(t.updated_at),
    )


async def _comment_to_out(db: AsyncSession, c: TaskComment) -> CommentOut:
    author = await storage.get_user(db, c.user_id)
    return CommentOut(
        id=c.id,
        task_id=c.task_id,
        user_id=c.user_id,
        author_name=author.display_name if author else "Unknown",
        content=c.content,
        created_at=_ts(c.created_at),
        updated_at=_ts(c.updated_at),
    )


def _time_log_to_out(log: Dict[str, Any]) -> TimeLogOut:
    return TimeLogOut(
        id=log["id"],
        task_id=log["task_id"],
        user_id=log["user_id"],
        time_spent=log["time_spent"],
        description=log["description"],
        date=_ts(log["date"]),
        created_at=_ts(log["created_at"]),
    )


def _dependency_to_out(d: TaskDependency) -> DependencyOut:
    return DependencyOut(
        id=d.id,
        task_id=d.task_id,
        depends_on_task_id=d.depends_on_task_id,
        created_at=_ts(d.created_at),
    )


async def _can_see_project(db: AsyncSession, project_id: str, user: CurrentUser) -> bool:
    project = await storage.get_project(db, project_id)
    if project is None:
        return False
    return user.is_admin or await storage.can_view_project(db, project, user.id)


async def _visible_board(db: AsyncSession, board_id: str, user: CurrentUser) -> Board:
    """Boards of private projects look missing to outsiders"""
    board = await storage.get_board(db, board_id)
    if board is None or not await _can_see_project(db, board.project_id, user):
        raise HTTPException(status_code=404, detail="Board not found")
    return board


async def _get_task_or_404(db: AsyncSession, task_id: str, user: CurrentUser) -> Task:
    task = await lifecycle.get_task(db, task_id)
    board = await storage.get_board(db, task.board_id) if task else None
    if board is None or not await _can_see_project(db, board.project_id, user):
        raise HTTPException(status_code=404, detail="Task not found")
    return task


async def _get_own_comment(db: AsyncSession, comment_id: str, user: CurrentUser) -> TaskComment:
    comment = await lifecycle.get_task_comment(db, comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    await _get_task_or_404(db, comment.task_id, user)
    if comment.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the comment author can modify it")
    return comment


# ============================================================
# BOARD TASKS
# ============================================================

@router.get("/boards/{board_id}/tasks", response_model=List[TaskOut])
async def list_board_tasks(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _visible_board(db, board_id, user)
    return [_task_to_out(t) for t in await lifecycle.get_tasks_by_board(db, board_id)]


@router.post("/boards/{board_id}/tasks", response_model=TaskOut, status_code=201)
async def create_task(
    board_id: str,
    data: TaskCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a task on a board. The caller is recorded as reporter."""
    await _visible_board(db, board_id, user)
    task = await lifecycle.create_task(db, board_id, data.model_dump(), reporter_id=user.id)
    return _task_to_out(task)


# ============================================================
# QUERIES
# ============================================================

@router.get("/tasks/my-tasks", response_model=List[TaskOut])
async def my_tasks(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Tasks assigned to the caller"""
    return [_task_to_out(t) for t in await get_tasks_by_user(db, user.id)]


@router.get("/tasks/search", response_model=List[TaskOut])
async def search(
    query: Optional[str] = Query(default=None, max_length=200),
    assignee_id: Optional[str] = None,
    reporter_id: Optional[str] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    type: Optional[TaskType] = None,
    project_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    params = TaskSearchParams(
        query=query, assignee_id=assignee_id, reporter_id=reporter_id,
        status=status, priority=priority, type=type, project_id=project_id,
        viewer_id=None if user.is_admin else user.id,
        limit=limit, offset=offset,
    )
    return [_task_to_out(t) for t in await search_tasks(db, params)]


# ============================================================
# TASK ENDPOINTS
# ============================================================

@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _task_to_out(await _get_task_or_404(db, task_id, user))


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Partial update. Moving the task to done credits its assignee."""
    await _get_task_or_404(db, task_id, user)
    payload = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k in CLEARABLE_TASK_FIELDS
    }
    task = await lifecycle.update_task(db, task_id, payload, actor_id=user.id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return _task_to_out(task)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    task = await _get_task_or_404(db, task_id, user)
    if task.reporter_id != user.id and not user.is_admin:
        board = await storage.get_board(db, task.board_id)
        project = await storage.get_project(db, board.project_id)
        if project.owner_id != user.id:
            raise HTTPException(status_code=403, detail="Only the reporter or project owner can delete this task")

    await lifecycle.delete_task(db, task_id, actor_id=user.id)
    return {"status": "deleted", "id": task_id}


@router.patch("/tasks/{task_id}/assign", response_model=TaskOut)
async def assign_task(
    task_id: str,
    data: TaskAssign,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Assign the task to a user, or unassign it with a null assignee"""
    await _get_task_or_404(db, task_id, user)
    task = await lifecycle.assign_task(db, task_id, data.assignee_id, actor_id=user.id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return _task_to_out(task)


@router.put("/tasks/{task_id}/labels", response_model=TaskOut)
async def set_labels(
    task_id: str,
    data: TaskLabels,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    task = await lifecycle.update_task_labels(db, task_id, data.labels, actor_id=user.id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return _task_to_out(task)


@router.post("/tasks/{task_id}/transition", response_model=TaskOut)
async def transition_task(
    task_id: str,
    data: TaskTransition,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    task = await lifecycle.transition_task(db, task_id, data.status, actor_id=user.id, comment=data.comment)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return _task_to_out(task)


# ============================================================
# COMMENTS
# ============================================================

@router.get("/tasks/{task_id}/comments", response_model=List[CommentOut])
async def list_comments(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    return [await _comment_to_out(db, c) for c in await lifecycle.get_task_comments(db, task_id)]


@router.post("/tasks/{task_id}/comments", response_model=CommentOut, status_code=201)
async def add_comment(
    task_id: str,
    data: CommentCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    comment = await lifecycle.create_task_comment(db, task_id, user.id, data.content)
    return await _comment_to_out(db, comment)


@router.patch("/comments/{comment_id}", response_model=CommentOut)
async def edit_comment(
    comment_id: str,
    data: CommentUpdate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_own_comment(db, comment_id, user)
    comment = await lifecycle.update_task_comment(db, comment_id, data.content, actor_id=user.id)
    return await _comment_to_out(db, comment)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_own_comment(db, comment_id, user)
    await lifecycle.delete_task_comment(db, comment_id, actor_id=user.id)
    return {"status": "deleted", "id": comment_id}


# ============================================================
# TIME LOGS
# ============================================================

@router.get("/tasks/{task_id}/time-logs", response_model=List[TimeLogOut])
async def list_time_logs(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    return [_time_log_to_out(log) for log in await get_task_time_logs(db, task_id)]


@router.post("/tasks/{task_id}/time-logs", response_model=TimeLogOut, status_code=201)
async def log_time(
    task_id: str,
    data: TimeLogCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    log = await lifecycle.log_time(
        db, task_id, user.id, data.time_spent, description=data.description, date=data.date,
    )
    return _time_log_to_out(log)


# ============================================================
# DEPENDENCIES & HISTORY
# ============================================================

@router.get("/tasks/{task_id}/dependencies", response_model=List[DependencyOut])
async def list_dependencies(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    return [_dependency_to_out(d) for d in await lifecycle.get_task_dependencies(db, task_id)]


@router.post("/tasks/{task_id}/dependencies", response_model=DependencyOut, status_code=201)
async def add_dependency(
    task_id: str,
    data: DependencyCreate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task_or_404(db, task_id, user)
    dependency = await lifecycle.create_task_dependency(db, task_id, data.depends_on_task_id, actor_id=user.id)
    return _dependency_to_out(dependency)


@router.get("/tasks/{task_id}/activities", response_model=List[ActivityOut])
async def task_activities(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Activity history for one task, newest first"""
    await _get_task_or_404(db, task_id, user)
    return [_activity_to_out(a) for a in await get_task_activities(db, task_id)]

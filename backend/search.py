# search.py — Filtered, paginated task queries
import logging
from typing import List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Board, Project, Task, TaskPriority, TaskStatus, TaskType
from storage import project_visible_to

logger = logging.getLogger("sdg-taskboard.search")


class TaskSearchParams(BaseModel):
    """Search filters. Every filter that is set must match (AND)."""
    query: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    type: Optional[TaskType] = None
    project_id: Optional[str] = None
    # Restrict to projects this user can see; None searches everything
    viewer_id: Optional[str] = None
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_tasks(db: AsyncSession, params: TaskSearchParams) -> List[Task]:
    """Case-insensitive substring match on title/description plus equality filters.

    Tasks carry no project id, so ``project_id`` is resolved through the
    task's board. With ``viewer_id`` set, tasks on private projects the
    viewer neither owns nor belongs to are left out. Results are most
    recently updated first.
    """
    stmt = select(Task)

    if params.query:
        pattern = f"%{_escape_like(params.query)}%"
        stmt = stmt.where(or_(
            Task.title.ilike(pattern, escape="\\"),
            Task.description.ilike(pattern, escape="\\"),
        ))
    if params.assignee_id:
        stmt = stmt.where(Task.assignee_id == params.assignee_id)
    if params.reporter_id:
        stmt = stmt.where(Task.reporter_id == params.reporter_id)
    if params.status:
        stmt = stmt.where(Task.status == params.status)
    if params.priority:
        stmt = stmt.where(Task.priority == params.priority)
    if params.type:
        stmt = stmt.where(Task.type == params.type)
    if params.project_id or params.viewer_id:
        stmt = stmt.join(Board, Task.board_id == Board.id)
    if params.project_id:
        stmt = stmt.where(Board.project_id == params.project_id)
    if params.viewer_id:
        stmt = stmt.join(Project, Board.project_id == Project.id).where(project_visible_to(params.viewer_id))

    stmt = (
        stmt.order_by(Task.updated_at.desc(), Task.id.asc())
        .offset(params.offset)
        .limit(params.limit)
    )
    result = await db.execute(stmt)
    tasks = list(result.scalars().all())
    logger.debug("Task search %s matched %d rows", params.model_dump(exclude_none=True), len(tasks))
    return tasks


async def get_tasks_by_user(db: AsyncSession, user_id: str) -> List[Task]:
    """Every task assigned to the user, unpaginated, newest first"""
    stmt = select(Task).where(Task.assignee_id == user_id).order_by(Task.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())

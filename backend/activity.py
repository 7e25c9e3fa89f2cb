# activity.py — Append-only activity feed
"""
Every mutating operation in the core appends one Activity row describing it.

The feed is an observability side channel, not the system of record: writes
happen after the primary mutation has committed and failures are logged and
swallowed so the caller still gets its result.

Activity metadata is a tagged union keyed by the activity type. Each variant
carries only the fields relevant to that event; the row's ``type`` column is
the tag and the remaining fields are stored in the ``metadata`` JSON column.
"""
import logging
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from sqlalchemy import not_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Activity, ActivityType, Project

logger = logging.getLogger("sdg-taskboard.activity")


# ============================================================
# METADATA VARIANTS
# ============================================================

class FieldChange(BaseModel):
    old: Any = None
    new: Any = None


class ProjectCreated(BaseModel):
    kind: Literal["project_created"] = "project_created"
    project_name: str


class ProjectUpdated(BaseModel):
    kind: Literal["project_updated"] = "project_updated"
    project_name: str
    changes: Dict[str, FieldChange] = Field(default_factory=dict)


class ProjectDeleted(BaseModel):
    kind: Literal["project_deleted"] = "project_deleted"
    project_name: str
    boards_deleted: int = 0
    tasks_deleted: int = 0


class BoardCreated(BaseModel):
    kind: Literal["board_created"] = "board_created"
    board_name: str


class BoardUpdated(BaseModel):
    kind: Literal["board_updated"] = "board_updated"
    board_name: str
    changes: Dict[str, FieldChange] = Field(default_factory=dict)


class MemberAdded(BaseModel):
    kind: Literal["member_added"] = "member_added"
    member_user_id: str
    role: str


class MemberRemoved(BaseModel):
    kind: Literal["member_removed"] = "member_removed"
    member_user_id: str


class TaskCreated(BaseModel):
    kind: Literal["task_created"] = "task_created"
    task_title: str


class TaskUpdated(BaseModel):
    kind: Literal["task_updated"] = "task_updated"
    task_title: str
    changes: Dict[str, FieldChange] = Field(default_factory=dict)


class TaskDeleted(BaseModel):
    kind: Literal["task_deleted"] = "task_deleted"
    task_title: str


class TaskAssigned(BaseModel):
    kind: Literal["task_assigned"] = "task_assigned"
    task_title: str
    assignee_id: str
    previous_assignee_id: Optional[str] = None


class TaskUnassigned(BaseModel):
    kind: Literal["task_unassigned"] = "task_unassigned"
    task_title: str
    previous_assignee_id: Optional[str] = None


class TaskCompleted(BaseModel):
    kind: Literal["task_completed"] = "task_completed"
    task_title: str
    points_earned: int
    total_points: int
    level: int


class StatusChanged(BaseModel):
    kind: Literal["status_changed"] = "status_changed"
    old_status: str
    new_status: str
    comment: Optional[str] = None


class LabelsUpdated(BaseModel):
    kind: Literal["labels_updated"] = "labels_updated"
    old_labels: List[str] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)


class CommentAdded(BaseModel):
    kind: Literal["comment_added"] = "comment_added"
    comment_id: str


class CommentUpdated(BaseModel):
    kind: Literal["comment_updated"] = "comment_updated"
    comment_id: str


class CommentDeleted(BaseModel):
    kind: Literal["comment_deleted"] = "comment_deleted"
    comment_id: str


class DependencyCreated(BaseModel):
    kind: Literal["dependency_created"] = "dependency_created"
    dependency_id: str
    depends_on_task_id: str


class TimeLogged(BaseModel):
    kind: Literal["time_logged"] = "time_logged"
    time_spent: float
    description: Optional[str] = None
    date: datetime


class BadgeEarned(BaseModel):
    kind: Literal["badge_earned"] = "badge_earned"
    badge_id: str
    badge_name: str


ActivityMetadata = Annotated[
    Union[
        ProjectCreated, ProjectUpdated, ProjectDeleted,
        BoardCreated, BoardUpdated,
        MemberAdded, MemberRemoved,
        TaskCreated, TaskUpdated, TaskDeleted,
        TaskAssigned, TaskUnassigned, TaskCompleted,
        StatusChanged, LabelsUpdated,
        CommentAdded, CommentUpdated, CommentDeleted,
        DependencyCreated, TimeLogged, BadgeEarned,
    ],
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter = TypeAdapter(ActivityMetadata)


def parse_metadata(activity: Activity) -> Optional[BaseModel]:
    """Rebuild the typed metadata variant of a stored activity.

    Returns None for rows whose type has no variant or whose payload does not
    match it (e.g. rows written by an older release).
    """
    payload = dict(activity.extra_data or {})
    payload["kind"] = activity.type
    try:
        return _metadata_adapter.validate_python(payload)
    except ValidationError:
        return None


# ============================================================
# WRITES
# ============================================================

async def record_activity(
    db: AsyncSession,
    *,
    user_id: str,
    metadata: BaseModel,
    description: str,
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
) -> Optional[Activity]:
    """Append an activity row. Best-effort: failures are logged, not raised.

    The row is written in its own session on the caller's engine so a failed
    insert never rolls back or expires the caller's objects.
    """
    entry = Activity(
        user_id=user_id,
        type=metadata.kind,
        description=description,
        extra_data=metadata.model_dump(mode="json", exclude={"kind"}),
        project_id=project_id,
        task_id=task_id,
    )
    try:
        async with AsyncSession(db.bind, expire_on_commit=False) as feed:
            feed.add(entry)
            await feed.commit()
    except SQLAlchemyError:
        logger.exception(
            "Failed to record %s activity for user %s (task=%s project=%s)",
            metadata.kind, user_id, task_id, project_id,
        )
        return None
    return entry


# ============================================================
# READS
# ============================================================

async def get_activities(
    db: AsyncSession, project_id: Optional[str] = None, limit: int = 50, project_filter=None
) -> List[Activity]:
    """Newest-first feed, optionally scoped to one project.

    ``project_filter`` is a condition on Project; activity of existing
    projects that fail it is left out.
    """
    stmt = select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    if project_id:
        stmt = stmt.where(Activity.project_id == project_id)
    if project_filter is not None:
        hidden = select(Project.id).where(not_(project_filter))
        stmt = stmt.where(or_(Activity.project_id.is_(None), Activity.project_id.not_in(hidden)))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_task_activities(db: AsyncSession, task_id: str) -> List[Activity]:
    stmt = (
        select(Activity)
        .where(Activity.task_id == task_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_task_time_logs(db: AsyncSession, task_id: str) -> List[Dict[str, Any]]:
    """Project time_logged activities back into time-log records, newest first"""
    stmt = (
        select(Activity)
        .where(Activity.task_id == task_id, Activity.type == ActivityType.TIME_LOGGED.value)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
    )
    result = await db.execute(stmt)

    logs = []
    for activity in result.scalars().all():
        meta = parse_metadata(activity)
        logs.append({
            "id": activity.id,
            "task_id": activity.task_id,
            "user_id": activity.user_id,
            "time_spent": meta.time_spent if meta else 0,
            "description": meta.description if meta else None,
            "date": meta.date if meta else activity.created_at,
            "created_at": activity.created_at,
        })
    return logs

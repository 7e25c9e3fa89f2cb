# lifecycle.py — Task lifecycle: CRUD, status transitions, comments, dependencies, time logs
"""
Task status moves along todo -> in_progress -> review -> done. The active
transition policy decides which moves are legal:

- ``free`` (default): any status may move to any other status.
- ``strict``: one step forward or backward at a time.

The policy is checked by ``validate_transition`` and is independent of the
completion award, which fires whenever a status change lands on ``done`` from
any other status and the task has an assignee. Both ``update_task`` and
``transition_task`` go through ``_change_status`` so they award identically.
"""
import logging
import os
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from activity import (
    CommentAdded, CommentDeleted, CommentUpdated, DependencyCreated,
    LabelsUpdated, StatusChanged, TaskAssigned, TaskCompleted, TaskCreated,
    TaskDeleted, TaskUnassigned, TaskUpdated, TimeLogged, FieldChange,
    record_activity,
)
from errors import ConcurrentUpdateError, InvalidTransitionError, ReferentialIntegrityError
from gamification import award_points, is_completion
from models import (
    Activity, ActivityType, Board, Task, TaskComment, TaskDependency,
    TaskStatus, User, utcnow,
)
from storage import apply_changes, require

logger = logging.getLogger("sdg-taskboard.lifecycle")


# ============================================================
# TRANSITION POLICY
# ============================================================

STATUS_ORDER = [TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.REVIEW, TaskStatus.DONE]

FREE_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    s: frozenset(STATUS_ORDER) for s in STATUS_ORDER
}

STRICT_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    s: frozenset(STATUS_ORDER[max(i - 1, 0):i + 2]) for i, s in enumerate(STATUS_ORDER)
}

TRANSITION_POLICIES = {
    "free": FREE_TRANSITIONS,
    "strict": STRICT_TRANSITIONS,
}

TRANSITION_POLICY = os.getenv("TASK_TRANSITION_POLICY", "free").lower()
if TRANSITION_POLICY not in TRANSITION_POLICIES:
    logger.warning("Unknown TASK_TRANSITION_POLICY %r, using 'free'", TRANSITION_POLICY)
    TRANSITION_POLICY = "free"

# Compare-and-set rounds before a status write gives up with 409
STATUS_WRITE_ATTEMPTS = 3


def validate_transition(
    old_status: TaskStatus, new_status: TaskStatus, policy: Optional[str] = None
) -> None:
    """Raise InvalidTransitionError if the move is not allowed under the policy"""
    allowed = TRANSITION_POLICIES[policy or TRANSITION_POLICY]
    if new_status not in allowed[old_status]:
        raise InvalidTransitionError(old_status.value, new_status.value)


# ============================================================
# HELPERS
# ============================================================

async def _project_id_for(db: AsyncSession, task: Task) -> Optional[str]:
    board = await db.get(Board, task.board_id)
    return board.project_id if board else None


async def _change_status(
    db: AsyncSession, task: Task, new_status: TaskStatus
) -> Tuple[Optional[TaskStatus], Optional[User]]:
    """Move a task to a new status inside the caller's transaction.

    The write is a compare-and-set on the status last seen. When another
    writer moved the task first, the current status is re-read and the move
    is retried from there, so the transition rules and the completion check
    always apply to the status actually replaced. Two concurrent completions
    of the same task award its points only once.

    Returns ``(moved_from, assignee)``: the status that was replaced (None if
    the task already had ``new_status``) and the assignee when points were
    credited.
    """
    old_status = task.status
    for _ in range(STATUS_WRITE_ATTEMPTS):
        validate_transition(old_status, new_status)
        if old_status == new_status:
            return None, None

        result = await db.execute(
            update(Task)
            .where(Task.id == task.id, Task.status == old_status)
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            break

        current = await db.scalar(select(Task.status).where(Task.id == task.id))
        if current is None:
            raise ReferentialIntegrityError("Task", task.id)
        logger.info("Task %s moved %s -> %s concurrently; retrying move to %s",
                    task.id, old_status.value, current.value, new_status.value)
        old_status = current
    else:
        raise ConcurrentUpdateError("Task", task.id)

    if is_completion(old_status, new_status) and task.assignee_id:
        return old_status, await award_points(db, task.assignee_id, task.reward_points)
    return old_status, None


async def _record_completion(db: AsyncSession, task: Task, assignee: User, project_id: Optional[str]) -> None:
    await record_activity(
        db,
        user_id=assignee.id,
        metadata=TaskCompleted(
            task_title=task.title,
            points_earned=task.reward_points,
            total_points=assignee.points,
            level=assignee.level,
        ),
        description=f'Completed task "{task.title}" and earned {task.reward_points} points',
        project_id=project_id,
        task_id=task.id,
    )


# ============================================================
# TASKS
# ============================================================

async def get_task(db: AsyncSession, task_id: str) -> Optional[Task]:
    return await db.get(Task, task_id)


async def get_tasks_by_board(db: AsyncSession, board_id: str) -> List[Task]:
    stmt = select(Task).where(Task.board_id == board_id).order_by(Task.created_at.asc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_task(
    db: AsyncSession, board_id: str, data: Dict[str, Any], reporter_id: str
) -> Task:
    """Create a task on a board. The caller becomes its reporter."""
    board = await require(db, Board, board_id, "Board")
    await require(db, User, reporter_id, "User")
    if data.get("assignee_id"):
        await require(db, User, data["assignee_id"], "User")

    task = Task(board_id=board_id, reporter_id=reporter_id, **data)
    db.add(task)
    await db.commit()
    await db.refresh(task)

    await record_activity(
        db,
        user_id=reporter_id,
        metadata=TaskCreated(task_title=task.title),
        description=f'Created task "{task.title}"',
        project_id=board.project_id,
        task_id=task.id,
    )
    return task


async def update_task(
    db: AsyncSession, task_id: str, data: Dict[str, Any], actor_id: str
) -> Optional[Task]:
    """Apply a partial update. A status change in ``data`` awards points on completion."""
    task = await db.get(Task, task_id)
    if not task:
        return None

    data = dict(data)
    new_status = data.pop("status", None)
    if data.get("assignee_id"):
        await require(db, User, data["assignee_id"], "User")

    changes = apply_changes(task, data)

    awarded = None
    if new_status is not None:
        moved_from, awarded = await _change_status(db, task, new_status)
        if moved_from is not None:
            changes["status"] = FieldChange(old=moved_from.value, new=new_status.value)

    await db.commit()
    await db.refresh(task)

    project_id = await _project_id_for(db, task)
    await record_activity(
        db,
        user_id=actor_id,
        metadata=TaskUpdated(task_title=task.title, changes=changes),
        description=f'Updated task "{task.title}"',
        project_id=project_id,
        task_id=task.id,
    )
    if awarded:
        await _record_completion(db, task, awarded, project_id)
    return task


async def transition_task(
    db: AsyncSession,
    task_id: str,
    new_status: TaskStatus,
    actor_id: str,
    comment: Optional[str] = None,
) -> Optional[Task]:
    task = await db.get(Task, task_id)
    if not task:
        return None

    moved_from, awarded = await _change_status(db, task, new_status)
    await db.commit()
    await db.refresh(task)
    if moved_from is None:
        return task

    project_id = await _project_id_for(db, task)
    await record_activity(
        db,
        user_id=actor_id,
        metadata=StatusChanged(old_status=moved_from.value, new_status=new_status.value, comment=comment),
        description=f"Changed task status from {moved_from.value} to {new_status.value}",
        project_id=project_id,
        task_id=task.id,
    )
    if awarded:
        await _record_completion(db, task, awarded, project_id)
    return task


async def assign_task(
    db: AsyncSession, task_id: str, assignee_id: Optional[str], actor_id: str
) -> Optional[Task]:
    task = await db.get(Task, task_id)
    if not task:
        return None
    if assignee_id:
        await require(db, User, assignee_id, "User")

    previous = task.assignee_id
    task.assignee_id = assignee_id
    await db.commit()
    await db.refresh(task)

    project_id = await _project_id_for(db, task)
    if assignee_id:
        metadata = TaskAssigned(task_title=task.title, assignee_id=assignee_id, previous_assignee_id=previous)
        description = f'Assigned task "{task.title}" to user'
    else:
        metadata = TaskUnassigned(task_title=task.title, previous_assignee_id=previous)
        description = f'Unassigned task "{task.title}"'
    await record_activity(
        db, user_id=actor_id, metadata=metadata, description=description,
        project_id=project_id, task_id=task.id,
    )
    return task


async def update_task_labels(
    db: AsyncSession, task_id: str, labels: List[str], actor_id: str
) -> Optional[Task]:
    task = await db.get(Task, task_id)
    if not task:
        return None

    old_labels = list(task.labels or [])
    task.labels = list(labels)
    await db.commit()
    await db.refresh(task)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=LabelsUpdated(old_labels=old_labels, labels=task.labels),
        description="Updated task labels",
        project_id=await _project_id_for(db, task),
        task_id=task.id,
    )
    return task


async def delete_task(db: AsyncSession, task_id: str, actor_id: str) -> bool:
    """Delete a task together with its comments and dependency edges"""
    task = await db.get(Task, task_id)
    if not task:
        return False
    title = task.title
    project_id = await _project_id_for(db, task)

    await db.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
    await db.execute(delete(TaskDependency).where(or_(
        TaskDependency.task_id == task_id,
        TaskDependency.depends_on_task_id == task_id,
    )))
    await db.execute(delete(Task).where(Task.id == task_id))
    await db.commit()

    await record_activity(
        db,
        user_id=actor_id,
        metadata=TaskDeleted(task_title=title),
        description=f'Deleted task "{title}"',
        project_id=project_id,
        task_id=task_id,
    )
    return True


# ============================================================
# COMMENTS
# ============================================================

async def get_task_comments(db: AsyncSession, task_id: str) -> List[TaskComment]:
    stmt = (
        select(TaskComment)
        .where(TaskComment.task_id == task_id)
        .order_by(TaskComment.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_task_comment(db: AsyncSession, comment_id: str) -> Optional[TaskComment]:
    return await db.get(TaskComment, comment_id)


async def create_task_comment(
    db: AsyncSession, task_id: str, user_id: str, content: str
) -> TaskComment:
    task = await require(db, Task, task_id, "Task")
    await require(db, User, user_id, "User")

    comment = TaskComment(task_id=task_id, user_id=user_id, content=content.strip())
    db.add(comment)
    await db.commit()
    await db.refresh(comment)

    await record_activity(
        db,
        user_id=user_id,
        metadata=CommentAdded(comment_id=comment.id),
        description="Added comment to task",
        project_id=await _project_id_for(db, task),
        task_id=task_id,
    )
    return comment


async def update_task_comment(
    db: AsyncSession, comment_id: str, content: str, actor_id: str
) -> Optional[TaskComment]:
    comment = await db.get(TaskComment, comment_id)
    if not comment:
        return None

    comment.content = content.strip()
    await db.commit()
    await db.refresh(comment)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=CommentUpdated(comment_id=comment.id),
        description="Edited a task comment",
        task_id=comment.task_id,
    )
    return comment


async def delete_task_comment(db: AsyncSession, comment_id: str, actor_id: str) -> bool:
    comment = await db.get(TaskComment, comment_id)
    if not comment:
        return False
    task_id = comment.task_id

    await db.delete(comment)
    await db.commit()

    await record_activity(
        db,
        user_id=actor_id,
        metadata=CommentDeleted(comment_id=comment_id),
        description="Deleted a task comment",
        task_id=task_id,
    )
    return True


# ============================================================
# DEPENDENCIES
# ============================================================

async def create_task_dependency(
    db: AsyncSession, task_id: str, depends_on_task_id: str, actor_id: str
) -> TaskDependency:
    """Record that ``task_id`` depends on ``depends_on_task_id``.

    Only existence of both tasks is checked. Self-references, cycles and
    cross-project edges are accepted as-is.
    """
    task = await require(db, Task, task_id, "Task")
    await require(db, Task, depends_on_task_id, "Task")

    dependency = TaskDependency(task_id=task_id, depends_on_task_id=depends_on_task_id)
    db.add(dependency)
    await db.commit()
    await db.refresh(dependency)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=DependencyCreated(dependency_id=dependency.id, depends_on_task_id=depends_on_task_id),
        description="Task dependency created",
        project_id=await _project_id_for(db, task),
        task_id=task_id,
    )
    return dependency


async def get_task_dependencies(db: AsyncSession, task_id: str) -> List[TaskDependency]:
    stmt = (
        select(TaskDependency)
        .where(TaskDependency.task_id == task_id)
        .order_by(TaskDependency.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ============================================================
# TIME TRACKING
# ============================================================

async def log_time(
    db: AsyncSession,
    task_id: str,
    user_id: str,
    time_spent: float,
    description: Optional[str] = None,
    date: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Log hours against a task.

    Time logs live in the activity feed as ``time_logged`` rows, so unlike
    other activity writes this one is the primary record and errors propagate.
    """
    if time_spent <= 0:
        raise ValueError("time_spent must be positive")
    task = await require(db, Task, task_id, "Task")
    await require(db, User, user_id, "User")

    meta = TimeLogged(time_spent=time_spent, description=description, date=date or utcnow())
    entry = Activity(
        user_id=user_id,
        type=ActivityType.TIME_LOGGED.value,
        description=f"Logged {time_spent:g} hours" + (f": {description}" if description else ""),
        extra_data=meta.model_dump(mode="json", exclude={"kind"}),
        project_id=await _project_id_for(db, task),
        task_id=task_id,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    return {
        "id": entry.id,
        "task_id": task_id,
        "user_id": user_id,
        "time_spent": meta.time_spent,
        "description": meta.description,
        "date": meta.date,
        "created_at": entry.created_at,
    }

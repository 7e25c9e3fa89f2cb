# storage.py — Persistence operations for users, projects, boards and members
"""
Reads return ``None`` (or an empty list) when a record does not exist; the
routers turn that into a 404. Writes that reference a missing parent raise
``ReferentialIntegrityError``. Mutations of projects, boards and memberships
append to the activity feed after they commit.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from activity import (
    BoardCreated, BoardUpdated, FieldChange, MemberAdded, MemberRemoved,
    ProjectCreated, ProjectDeleted, ProjectUpdated, record_activity,
)
from errors import DuplicateRecordError, ReferentialIntegrityError
from models import (
    Board, Project, ProjectMember, ProjectVisibility, Task, TaskComment,
    TaskDependency, User, UserRole, default_columns, utcnow,
)

logger = logging.getLogger("sdg-taskboard.storage")

DEFAULT_BOARD_NAME = "Main Board"
DEFAULT_BOARD_DESCRIPTION = "Default project board"


async def require(db: AsyncSession, model, entity_id: Optional[str], entity: str):
    """Load a parent row or raise ReferentialIntegrityError"""
    row = await db.get(model, entity_id) if entity_id else None
    if row is None:
        raise ReferentialIntegrityError(entity, entity_id)
    return row


def _plain(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def apply_changes(obj, data: Dict[str, Any]) -> Dict[str, FieldChange]:
    """Set attributes on an ORM object, returning the fields that changed"""
    changes = {}
    for field, new in data.items():
        old = getattr(obj, field)
        if _plain(old) != _plain(new):
            changes[field] = FieldChange(old=_plain(old), new=_plain(new))
            setattr(obj, field, new)
    if hasattr(obj, "updated_at"):
        obj.updated_at = utcnow()
    return changes


# ============================================================
# USERS
# ============================================================

async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def upsert_user(db: AsyncSession, data: Dict[str, Any]) -> User:
    """Insert a user by id, or update the given fields when it already exists"""
    user = await db.get(User, data["id"])
    if user is None:
        user = User(**data)
        db.add(user)
    else:
        for field, value in data.items():
            setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return user


async def get_all_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def update_user_role(db: AsyncSession, user_id: str, role: UserRole) -> Optional[User]:
    user = await db.get(User, user_id)
    if not user:
        return None
    user.role = role
    await db.commit()
    await db.refresh(user)
    return user


async def update_user_profile(db: AsyncSession, user_id: str, data: Dict[str, Any]) -> Optional[User]:
    user = await db.get(User, user_id)
    if not user:
        return None
    for field, value in data.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return user


# ============================================================
# PROJECTS
# ============================================================

async def get_projects(db: AsyncSession, user_id: str) -> List[Project]:
    """Projects the user owns plus every public project, most recently updated first"""
    stmt = (
        select(Project)
        .where(or_(Project.owner_id == user_id, Project.visibility == ProjectVisibility.PUBLIC))
        .order_by(Project.updated_at.desc(), Project.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_project(db: AsyncSession, project_id: str) -> Optional[Project]:
    return await db.get(Project, project_id)


def project_visible_to(user_id: str):
    """Condition on Project: public, owned by the user, or the user is a member"""
    memberships = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    return or_(
        Project.visibility == ProjectVisibility.PUBLIC,
        Project.owner_id == user_id,
        Project.id.in_(memberships),
    )


async def can_view_project(db: AsyncSession, project: Project, user_id: str) -> bool:
    if project.visibility == ProjectVisibility.PUBLIC or project.owner_id == user_id:
        return True
    found = await db.scalar(
        select(ProjectMember.id).where(ProjectMember.project_id == project.id, ProjectMember.user_id == user_id)
    )
    return found is not None


async def create_project(db: AsyncSession, data: Dict[str, Any], owner_id: str) -> Tuple[Project, Board]:
    """Create a project and its default board in one transaction"""
    await require(db, User, owner_id, "User")

    project = Project(owner_id=owner_id, **data)
    db.add(project)
    await db.flush()

    board = Board(
        name=DEFAULT_BOARD_NAME,
        description=DEFAULT_BOARD_DESCRIPTION,
        project_id=project.id,
        columns=default_columns(),
    )
    db.add(board)
    await db.commit()
    await db.refresh(project)
    await db.refresh(board)

    await record_activity(
        db,
        user_id=owner_id,
        metadata=ProjectCreated(project_name=project.name),
        description=f'Created project "{project.name}"',
        project_id=project.id,
    )
    return project, board


async def update_project(
    db: AsyncSession, project_id: str, data: Dict[str, Any], actor_id: str
) -> Optional[Project]:
    project = await db.get(Project, project_id)
    if not project:
        return None

    changes = apply_changes(project, data)
    await db.commit()
    await db.refresh(project)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=ProjectUpdated(project_name=project.name, changes=changes),
        description=f'Updated project "{project.name}"',
        project_id=project.id,
    )
    return project


async def delete_project(db: AsyncSession, project_id: str, actor_id: str) -> bool:
    """Delete a project with its boards, tasks, comments, dependencies and members.

    Activity rows that reference the project are kept.
    """
    project = await db.get(Project, project_id)
    if not project:
        return False
    project_name = project.name

    board_ids = list((await db.execute(
        select(Board.id).where(Board.project_id == project_id)
    )).scalars().all())
    task_ids = list((await db.execute(
        select(Task.id).where(Task.board_id.in_(board_ids))
    )).scalars().all()) if board_ids else []

    if task_ids:
        await db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
        await db.execute(delete(TaskDependency).where(or_(
            TaskDependency.task_id.in_(task_ids),
            TaskDependency.depends_on_task_id.in_(task_ids),
        )))
        await db.execute(delete(Task).where(Task.id.in_(task_ids)))
    if board_ids:
        await db.execute(delete(Board).where(Board.id.in_(board_ids)))
    await db.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
    await db.execute(delete(Project).where(Project.id == project_id))
    await db.commit()

    logger.info("Deleted project %s (%d boards, %d tasks)", project_id, len(board_ids), len(task_ids))
    await record_activity(
        db,
        user_id=actor_id,
        metadata=ProjectDeleted(
            project_name=project_name,
            boards_deleted=len(board_ids),
            tasks_deleted=len(task_ids),
        ),
        description=f'Deleted project "{project_name}"',
        project_id=project_id,
    )
    return True


# ============================================================
# BOARDS
# ============================================================

async def get_boards_by_project(db: AsyncSession, project_id: str) -> List[Board]:
    stmt = select(Board).where(Board.project_id == project_id).order_by(Board.created_at.asc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_board(db: AsyncSession, board_id: str) -> Optional[Board]:
    return await db.get(Board, board_id)


async def create_board(
    db: AsyncSession, project_id: str, data: Dict[str, Any], actor_id: str
) -> Board:
    await require(db, Project, project_id, "Project")

    board = Board(project_id=project_id, **data)
    if not board.columns:
        board.columns = default_columns()
    db.add(board)
    await db.commit()
    await db.refresh(board)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=BoardCreated(board_name=board.name),
        description=f'Created board "{board.name}"',
        project_id=project_id,
    )
    return board


async def update_board(
    db: AsyncSession, board_id: str, data: Dict[str, Any], actor_id: str
) -> Optional[Board]:
    board = await db.get(Board, board_id)
    if not board:
        return None

    changes = apply_changes(board, data)
    await db.commit()
    await db.refresh(board)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=BoardUpdated(board_name=board.name, changes=changes),
        description=f'Updated board "{board.name}"',
        project_id=board.project_id,
    )
    return board


# ============================================================
# PROJECT MEMBERS
# ============================================================

async def get_project_members(db: AsyncSession, project_id: str) -> List[Tuple[ProjectMember, User]]:
    stmt = (
        select(ProjectMember, User)
        .join(User, ProjectMember.user_id == User.id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at.asc())
    )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def add_project_member(
    db: AsyncSession, project_id: str, user_id: str, actor_id: str, role: str = "member"
) -> ProjectMember:
    await require(db, Project, project_id, "Project")
    await require(db, User, user_id, "User")

    existing = await db.scalar(
        select(ProjectMember.id).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
    )
    if existing is not None:
        raise DuplicateRecordError("ProjectMember", f"{user_id!r} in project {project_id!r}")

    member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
    db.add(member)
    await db.commit()
    await db.refresh(member)

    await record_activity(
        db,
        user_id=actor_id,
        metadata=MemberAdded(member_user_id=user_id, role=role),
        description=f"Added a {role} to the project",
        project_id=project_id,
    )
    return member


async def remove_project_member(
    db: AsyncSession, project_id: str, user_id: str, actor_id: str
) -> bool:
    result = await db.execute(
        delete(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    await db.commit()
    if result.rowcount == 0:
        return False

    await record_activity(
        db,
        user_id=actor_id,
        metadata=MemberRemoved(member_user_id=user_id),
        description="Removed a member from the project",
        project_id=project_id,
    )
    return True

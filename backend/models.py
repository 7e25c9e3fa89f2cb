# models.py — Database models for the SDG Taskboard
# - String UUID primary keys everywhere
# - 5-tier role system (super_admin, admin, project_manager, member, guest)
# - Projects own boards, boards own tasks
# - Gamification: points/level on users, badge catalogue, badge awards
# - Append-only activity feed (weak references to projects/tasks)

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, PyEnum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    MEMBER = "member"
    GUEST = "guest"


class ProjectVisibility(str, PyEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class TaskType(str, PyEnum):
    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    CHALLENGE = "challenge"


class TaskPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, PyEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class ActivityType(str, PyEnum):
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    BOARD_CREATED = "board_created"
    BOARD_UPDATED = "board_updated"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_ASSIGNED = "task_assigned"
    TASK_UNASSIGNED = "task_unassigned"
    TASK_COMPLETED = "task_completed"
    STATUS_CHANGED = "status_changed"
    LABELS_UPDATED = "labels_updated"
    COMMENT_ADDED = "comment_added"
    COMMENT_UPDATED = "comment_updated"
    COMMENT_DELETED = "comment_deleted"
    DEPENDENCY_CREATED = "dependency_created"
    TIME_LOGGED = "time_logged"
    BADGE_EARNED = "badge_earned"


# Ordered status taxonomy used for new boards
DEFAULT_BOARD_COLUMNS = [
    {"id": "todo", "name": "To Do", "order": 0},
    {"id": "in_progress", "name": "In Progress", "order": 1},
    {"id": "review", "name": "Review", "order": 2},
    {"id": "done", "name": "Done", "order": 3},
]


def default_columns():
    return [dict(c) for c in DEFAULT_BOARD_COLUMNS]


# ============================================================
# USERS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)  # Null for dev-stub users
    auth_provider = Column(String, nullable=False, default="local")
    role = Column(SQLEnum(UserRole), default=UserRole.MEMBER, nullable=False, index=True)
    bio = Column(Text, nullable=True)
    country = Column(String, nullable=True)
    sdg_alignment = Column(JSON, nullable=False, default=list)
    points = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    owned_projects = relationship("Project", back_populates="owner")
    badges = relationship("UserBadge", back_populates="user")

    __table_args__ = (
        Index("idx_user_points", "points"),
    )

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or (self.email.split("@")[0] if self.email else self.id)


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ============================================================
# PROJECTS & BOARDS
# ============================================================

class Project(Base):
    """SDG-aligned project owned by a single user"""
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(SQLEnum(ProjectVisibility), default=ProjectVisibility.PUBLIC, nullable=False)
    sdg_tags = Column(JSON, nullable=False, default=list)  # SDG numbers as strings, "1".."17"
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, index=True)

    # Relationships
    owner = relationship("User", back_populates="owned_projects")
    boards = relationship("Board", back_populates="project", order_by="Board.created_at")
    members = relationship("ProjectMember", back_populates="project")

    __table_args__ = (
        Index("idx_project_visibility", "visibility"),
    )


class ProjectMember(Base):
    """Project-scoped membership with its own role string"""
    __tablename__ = "project_members"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default="member")
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )


class Board(Base):
    """Kanban board; its columns are the ordered status buckets for tasks"""
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    columns = Column(JSON, nullable=False, default=default_columns)  # [{id, name, order}]
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="boards")
    tasks = relationship("Task", back_populates="board")


# ============================================================
# TASKS
# ============================================================

class Task(Base):
    """Individual task card on a board"""
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(SQLEnum(TaskType), default=TaskType.TASK, nullable=False)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.TODO, nullable=False, index=True)
    board_id = Column(String, ForeignKey("boards.id"), nullable=False, index=True)

    # Assignment
    assignee_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    reporter_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    # Metadata
    labels = Column(JSON, nullable=False, default=list)
    estimation_hours = Column(Integer, nullable=True)
    reward_points = Column(Integer, nullable=False, default=100)
    due_date = Column(DateTime(timezone=True), nullable=True)
    sdg_link = Column(String, nullable=True)  # Single SDG number, "1".."17"
    progress = Column(Integer, nullable=False, default=0)  # 0-100

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, index=True)

    # Relationships
    board = relationship("Board", back_populates="tasks")
    assignee = relationship("User", foreign_keys=[assignee_id])
    reporter = relationship("User", foreign_keys=[reporter_id])
    comments = relationship("TaskComment", back_populates="task", order_by="TaskComment.created_at")

    __table_args__ = (
        Index("idx_task_board_status", "board_id", "status"),
    )


class TaskDependency(Base):
    """Directed edge: task_id depends on depends_on_task_id"""
    __tablename__ = "task_dependencies"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    depends_on_task_id = Column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TaskComment(Base):
    """Comment on a task; only its author may edit or delete it"""
    __tablename__ = "task_comments"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    task = relationship("Task", back_populates="comments")
    author = relationship("User")


# ============================================================
# GAMIFICATION
# ============================================================

class Badge(Base):
    """Badge catalogue entry. Deleting deactivates; rows are never removed."""
    __tablename__ = "badges"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    criteria = Column(JSON, nullable=True)  # Opaque rule payload, not evaluated
    points_required = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class UserBadge(Base):
    __tablename__ = "user_badges"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    badge_id = Column(String, ForeignKey("badges.id"), nullable=False, index=True)
    earned_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="badges")
    badge = relationship("Badge")


# ============================================================
# ACTIVITY FEED
# ============================================================

class Activity(Base):
    """Append-only domain event. project_id/task_id are weak references."""
    __tablename__ = "activities"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    extra_data = Column("metadata", JSON, nullable=True)
    project_id = Column(String, nullable=True, index=True)
    task_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("idx_activity_task_type", "task_id", "type"),
    )

"""Initial schema: users, projects, boards, tasks, gamification, activity feed

Revision ID: a1f0c3d5e7b9
Revises:
Create Date: 2026-10-17T09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a1f0c3d5e7b9'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names
USER_ROLE = sa.Enum('SUPER_ADMIN', 'ADMIN', 'PROJECT_MANAGER', 'MEMBER', 'GUEST', name='userrole')
VISIBILITY = sa.Enum('PUBLIC', 'PRIVATE', name='projectvisibility')
TASK_TYPE = sa.Enum('TASK', 'BUG', 'FEATURE', 'CHALLENGE', name='tasktype')
TASK_PRIORITY = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='taskpriority')
TASK_STATUS = sa.Enum('TODO', 'IN_PROGRESS', 'REVIEW', 'DONE', name='taskstatus')


def upgrade() -> None:
    # --- users ---
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('profile_image_url', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('auth_provider', sa.String(), nullable=False, server_default='local'),
        sa.Column('role', USER_ROLE, nullable=False, server_default='MEMBER'),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('country', sa.String(), nullable=True),
        sa.Column('sdg_alignment', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])
    op.create_index('idx_user_points', 'users', ['points'])

    # --- revoked_tokens ---
    op.create_table(
        'revoked_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_tokens_jti', 'revoked_tokens', ['jti'], unique=True)

    # --- projects ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('visibility', VISIBILITY, nullable=False, server_default='PUBLIC'),
        sa.Column('sdg_tags', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_owner_id', 'projects', ['owner_id'])
    op.create_index('ix_projects_updated_at', 'projects', ['updated_at'])
    op.create_index('idx_project_visibility', 'projects', ['visibility'])

    # --- project_members ---
    op.create_table(
        'project_members',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'user_id', name='uq_project_member'),
    )
    op.create_index('ix_project_members_project_id', 'project_members', ['project_id'])
    op.create_index('ix_project_members_user_id', 'project_members', ['user_id'])

    # --- boards ---
    op.create_table(
        'boards',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('columns', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_boards_project_id', 'boards', ['project_id'])

    # --- tasks ---
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', TASK_TYPE, nullable=False, server_default='TASK'),
        sa.Column('priority', TASK_PRIORITY, nullable=False, server_default='MEDIUM'),
        sa.Column('status', TASK_STATUS, nullable=False, server_default='TODO'),
        sa.Column('board_id', sa.String(), sa.ForeignKey('boards.id'), nullable=False),
        sa.Column('assignee_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reporter_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('labels', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('estimation_hours', sa.Integer(), nullable=True),
        sa.Column('reward_points', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sdg_link', sa.String(), nullable=True),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_board_id', 'tasks', ['board_id'])
    op.create_index('ix_tasks_assignee_id', 'tasks', ['assignee_id'])
    op.create_index('ix_tasks_reporter_id', 'tasks', ['reporter_id'])
    op.create_index('ix_tasks_updated_at', 'tasks', ['updated_at'])
    op.create_index('idx_task_board_status', 'tasks', ['board_id', 'status'])

    # --- task_dependencies ---
    op.create_table(
        'task_dependencies',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('depends_on_task_id', sa.String(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_dependencies_task_id', 'task_dependencies', ['task_id'])
    op.create_index('ix_task_dependencies_depends_on_task_id', 'task_dependencies', ['depends_on_task_id'])

    # --- task_comments ---
    op.create_table(
        'task_comments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_comments_task_id', 'task_comments', ['task_id'])

    # --- badges ---
    op.create_table(
        'badges',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(), nullable=True),
        sa.Column('criteria', sa.JSON(), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_badges_is_active', 'badges', ['is_active'])

    # --- user_badges ---
    op.create_table(
        'user_badges',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('badge_id', sa.String(), sa.ForeignKey('badges.id'), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_badges_user_id', 'user_badges', ['user_id'])
    op.create_index('ix_user_badges_badge_id', 'user_badges', ['badge_id'])

    # --- activities ---
    op.create_table(
        'activities',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('project_id', sa.String(), nullable=True),
        sa.Column('task_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activities_user_id', 'activities', ['user_id'])
    op.create_index('ix_activities_type', 'activities', ['type'])
    op.create_index('ix_activities_project_id', 'activities', ['project_id'])
    op.create_index('ix_activities_task_id', 'activities', ['task_id'])
    op.create_index('ix_activities_created_at', 'activities', ['created_at'])
    op.create_index('idx_activity_task_type', 'activities', ['task_id', 'type'])


def downgrade() -> None:
    op.drop_table('activities')
    op.drop_table('user_badges')
    op.drop_table('badges')
    op.drop_table('task_comments')
    op.drop_table('task_dependencies')
    op.drop_table('tasks')
    op.drop_table('boards')
    op.drop_table('project_members')
    op.drop_table('projects')
    op.drop_table('revoked_tokens')
    op.drop_table('users')
    op.execute("DROP TYPE IF EXISTS taskstatus")
    op.execute("DROP TYPE IF EXISTS taskpriority")
    op.execute("DROP TYPE IF EXISTS tasktype")
    op.execute("DROP TYPE IF EXISTS projectvisibility")
    op.execute("DROP TYPE IF EXISTS userrole")

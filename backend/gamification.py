# gamification.py — Points, levels, badges and the leaderboard
"""
Gamification rules:

- Completing a task (status moves from anything other than ``done`` to
  ``done``) credits the task's reward points to its assignee, if any.
- A user's level is always ``points // 100 + 1``.
- Badges are awarded explicitly. A badge's ``criteria`` and
  ``points_required`` are descriptive only; nothing evaluates them.

Point changes are applied as a single ``UPDATE users SET points = points + n``
so concurrent awards to the same user never lose an increment.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from activity import BadgeEarned, record_activity
from errors import BadgeInactiveError, ReferentialIntegrityError
from models import (
    Badge, Project, ProjectMember, TaskStatus, User, UserBadge,
)

logger = logging.getLogger("sdg-taskboard.gamification")

POINTS_PER_LEVEL = 100


def compute_level(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


def is_completion(old_status: Optional[TaskStatus], new_status: Optional[TaskStatus]) -> bool:
    """True when a status change moves a task into done from any other status"""
    return new_status == TaskStatus.DONE and old_status != TaskStatus.DONE


async def _reload_user(db: AsyncSession, user_id: str) -> Optional[User]:
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def award_points(db: AsyncSession, user_id: str, delta: int) -> User:
    """Atomically add ``delta`` points to a user and recompute their level.

    Does not commit; the caller owns the transaction so the award lands
    together with the status change that triggered it.
    """
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            points=User.points + delta,
            level=(User.points + delta) // POINTS_PER_LEVEL + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise ReferentialIntegrityError("User", user_id)

    user = await _reload_user(db, user_id)
    logger.info("Awarded %s points to user %s (total=%s level=%s)", delta, user_id, user.points, user.level)
    return user


async def update_user_points(db: AsyncSession, user_id: str, points: int) -> Optional[User]:
    """Administrative override of a user's point total"""
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(points=points, level=compute_level(points))
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        await db.rollback()
        return None
    await db.commit()
    return await _reload_user(db, user_id)


# ============================================================
# BADGES
# ============================================================

async def get_badges(db: AsyncSession) -> List[Badge]:
    """Active badges, by name"""
    stmt = select(Badge).where(Badge.is_active.is_(True)).order_by(Badge.name.asc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_badge(db: AsyncSession, badge_id: str) -> Optional[Badge]:
    return await db.get(Badge, badge_id)


async def create_badge(db: AsyncSession, data: Dict[str, Any]) -> Badge:
    badge = Badge(**data)
    db.add(badge)
    await db.commit()
    await db.refresh(badge)
    return badge


async def update_badge(db: AsyncSession, badge_id: str, data: Dict[str, Any]) -> Optional[Badge]:
    badge = await db.get(Badge, badge_id)
    if not badge:
        return None
    for field, value in data.items():
        setattr(badge, field, value)
    await db.commit()
    await db.refresh(badge)
    return badge


async def delete_badge(db: AsyncSession, badge_id: str) -> Optional[Badge]:
    """Deactivate a badge. The row and existing awards are kept."""
    return await update_badge(db, badge_id, {"is_active": False})


async def get_user_badges(db: AsyncSession, user_id: str) -> List[Tuple[UserBadge, Badge]]:
    """Awards for a user joined with their badge, newest first"""
    stmt = (
        select(UserBadge, Badge)
        .join(Badge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc())
    )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def award_badge(db: AsyncSession, user_id: str, badge_id: str) -> UserBadge:
    user = await db.get(User, user_id)
    if not user:
        raise ReferentialIntegrityError("User", user_id)
    badge = await db.get(Badge, badge_id)
    if not badge:
        raise ReferentialIntegrityError("Badge", badge_id)
    if not badge.is_active:
        raise BadgeInactiveError(badge_id)

    user_badge = UserBadge(user_id=user_id, badge_id=badge_id)
    db.add(user_badge)
    await db.commit()
    await db.refresh(user_badge)

    await record_activity(
        db,
        user_id=user_id,
        metadata=BadgeEarned(badge_id=badge.id, badge_name=badge.name),
        description=f'Earned the "{badge.name}" badge',
    )
    return user_badge


# ============================================================
# LEADERBOARD
# ============================================================

async def get_leaderboard(
    db: AsyncSession, project_id: Optional[str] = None, limit: int = 10
) -> List[User]:
    """Users by points, highest first; ties broken by user id.

    With a project id, only the project's owner and members are ranked.
    """
    stmt = select(User).order_by(User.points.desc(), User.id.asc()).limit(limit)
    if project_id:
        member_ids = select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
        owner_ids = select(Project.owner_id).where(Project.id == project_id)
        stmt = stmt.where(or_(User.id.in_(member_ids), User.id.in_(owner_ids)))
    result = await db.execute(stmt)
    return list(result.scalars().all())

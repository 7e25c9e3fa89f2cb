# routers/gamification.py — Badges, awards and the leaderboard
from datetime import datetime
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin, CurrentUser
from database import get_db_session
from models import Badge, User, UserBadge
import gamification
import storage

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# --- Schemas ---

class BadgeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    criteria: Optional[Dict[str, Any]] = None
    points_required: Optional[int] = Field(None, ge=0)


class BadgeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    criteria: Optional[Dict[str, Any]] = None
    points_required: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class BadgeOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    criteria: Optional[Dict[str, Any]] = None
    points_required: Optional[int] = None
    is_active: bool
    created_at: str


class UserBadgeOut(BaseModel):
    id: str
    user_id: str
    badge: BadgeOut
    earned_at: str


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    profile_image_url: Optional[str] = None
    points: int
    level: int


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _badge_to_out(b: Badge) -> BadgeOut:
    return BadgeOut(
        id=b.id,
        name=b.name,
        description=b.description,
        icon=b.icon,
        criteria=b.criteria,
        points_required=b.points_required,
        is_active=b.is_active,
        created_at=_ts(b.created_at),
    )


def _award_to_out(ub: UserBadge, b: Badge) -> UserBadgeOut:
    return UserBadgeOut(id=ub.id, user_id=ub.user_id, badge=_badge_to_out(b), earned_at=_ts(ub.earned_at))


def _entry(rank: int, u: User) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=rank,
        user_id=u.id,
        display_name=u.display_name,
        profile_image_url=u.profile_image_url,
        points=u.points,
        level=u.level,
    )


# --- Badges ---

@router.get("/badges", response_model=List[BadgeOut])
async def list_badges(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Active badges"""
    return [_badge_to_out(b) for b in await gamification.get_badges(db)]


@router.post("/badges", response_model=BadgeOut, status_code=201)
async def create_badge(
    data: BadgeCreate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return _badge_to_out(await gamification.create_badge(db, data.model_dump()))


@router.patch("/badges/{badge_id}", response_model=BadgeOut)
async def update_badge(
    badge_id: str,
    data: BadgeUpdate,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    badge = await gamification.update_badge(db, badge_id, data.model_dump(exclude_none=True))
    if not badge:
        raise HTTPException(status_code=404, detail="Badge not found")
    return _badge_to_out(badge)


@router.delete("/badges/{badge_id}", response_model=BadgeOut)
async def delete_badge(
    badge_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Deactivate a badge. Existing awards are kept."""
    badge = await gamification.delete_badge(db, badge_id)
    if not badge:
        raise HTTPException(status_code=404, detail="Badge not found")
    return _badge_to_out(badge)


# --- Awards ---

@router.get("/users/{user_id}/badges", response_model=List[UserBadgeOut])
async def list_user_badges(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    if not await storage.get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return [_award_to_out(ub, b) for ub, b in await gamification.get_user_badges(db, user_id)]


@router.post("/users/{user_id}/badges/{badge_id}", response_model=UserBadgeOut, status_code=201)
async def award_badge(
    user_id: str,
    badge_id: str,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Award a badge to a user"""
    award = await gamification.award_badge(db, user_id, badge_id)
    badge = await gamification.get_badge(db, badge_id)
    return _award_to_out(award, badge)


# --- Leaderboard ---

@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def leaderboard(
    project_id: Optional[str] = None,
    limit: int = Query(default=10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Top users by points; ties are ordered by user id"""
    if project_id and not user.is_admin:
        project = await storage.get_project(db, project_id)
        if project is not None and not await storage.can_view_project(db, project, user.id):
            return []
    users = await gamification.get_leaderboard(db, project_id=project_id, limit=limit)
    return [_entry(rank, u) for rank, u in enumerate(users, start=1)]

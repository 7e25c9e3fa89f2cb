# routers/users.py — User profiles and admin user management
import logging
from typing import Optional, List, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin, require_member, CurrentUser, user_to_dict
from database import get_db_session
from models import User, UserRole
from gamification import update_user_points
import storage

router = APIRouter(prefix="/api/v1", tags=["Users"])
logger = logging.getLogger("sdg-taskboard.users")


# --- Schemas ---

class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_image_url: Optional[str] = None
    role: str
    bio: Optional[str] = None
    country: Optional[str] = None
    sdg_alignment: List[str] = []
    points: int
    level: int
    created_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    profile_image_url: Optional[str] = Field(None, max_length=2048)
    bio: Optional[str] = Field(None, max_length=2000)
    country: Optional[str] = Field(None, max_length=100)
    sdg_alignment: Optional[List[Union[int, str]]] = None

    @field_validator("sdg_alignment")
    @classmethod
    def validate_sdg_alignment(cls, v):
        if v is None:
            return None
        out = []
        for item in v:
            n = int(item)
            if not 1 <= n <= 17:
                raise ValueError(f"SDG identifiers range from 1 to 17, got {n}")
            if str(n) not in out:
                out.append(str(n))
        return out


class RoleUpdate(BaseModel):
    role: UserRole = Field(..., description="One of: super_admin, admin, project_manager, member, guest")


class PointsUpdate(BaseModel):
    points: int = Field(..., ge=0)


# --- Helpers ---

def _user_to_out(u: User) -> UserOut:
    return UserOut(**user_to_dict(u))


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    target = await storage.get_user(db, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return target


# --- Profiles ---

@router.get("/users/me", response_model=UserOut)
async def get_my_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _user_to_out(await _get_user_or_404(db, user.id))


@router.patch("/users/me", response_model=UserOut)
async def update_my_profile(
    update: ProfileUpdate,
    user: CurrentUser = Depends(require_member),
    db: AsyncSession = Depends(get_db_session),
):
    """Update the caller's own profile"""
    target = await storage.update_user_profile(db, user.id, update.model_dump(exclude_unset=True))
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_to_out(target)


@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return _user_to_out(await _get_user_or_404(db, user_id))


# --- Admin ---

@router.get("/admin/users", response_model=List[UserOut])
async def list_users(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """All users, newest first"""
    return [_user_to_out(u) for u in await storage.get_all_users(db)]


@router.patch("/admin/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    role_update: RoleUpdate,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Change a user's role (admin+ only)"""
    if role_update.role == UserRole.SUPER_ADMIN and current_user.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=403, detail="Only super_admin can assign super_admin role")

    target = await _get_user_or_404(db, user_id)
    old_role = target.role.value
    target = await storage.update_user_role(db, user_id, role_update.role)
    logger.info("User %s changed role of %s from %s to %s", current_user.id, user_id, old_role, target.role.value)
    return {"user_id": user_id, "old_role": old_role, "new_role": target.role.value}


@router.patch("/admin/users/{user_id}/points", response_model=UserOut)
async def set_user_points(
    user_id: str,
    data: PointsUpdate,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Override a user's point total; the level is recomputed"""
    target = await update_user_points(db, user_id, data.points)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %s set points of %s to %s", current_user.id, user_id, data.points)
    return _user_to_out(target)

# routers/activities.py — Activity feed
from datetime import datetime
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from activity import get_activities
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Activity
from storage import project_visible_to

router = APIRouter(prefix="/api/v1/activities", tags=["Activities"])


class ActivityOut(BaseModel):
    id: str
    user_id: str
    type: str
    description: str
    metadata: Dict[str, Any] = {}
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    created_at: str


def _activity_to_out(a: Activity) -> ActivityOut:
    created = a.created_at
    return ActivityOut(
        id=a.id,
        user_id=a.user_id,
        type=a.type,
        description=a.description,
        metadata=a.extra_data or {},
        project_id=a.project_id,
        task_id=a.task_id,
        created_at=created.isoformat() if isinstance(created, datetime) else str(created),
    )


@router.get("", response_model=List[ActivityOut])
async def list_activities(
    project_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Most recent activity the caller can see, optionally scoped to one project"""
    project_filter = None if user.is_admin else project_visible_to(user.id)
    activities = await get_activities(db, project_id=project_id, limit=limit, project_filter=project_filter)
    return [_activity_to_out(a) for a in activities]

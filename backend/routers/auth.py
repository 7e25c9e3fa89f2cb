# routers/auth.py — Registration, login and token lifecycle
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, UserRegister, UserLogin, TokenResponse, RefreshRequest,
    get_current_user, CurrentUser, security, user_to_dict,
)
from database import get_db_session
from storage import get_user

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])
logger = logging.getLogger("sdg-taskboard.auth")


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(user_data: UserRegister, db: AsyncSession = Depends(get_db_session)):
    """Create a member account and sign it in"""
    user = await AuthService.register_user(user_data, db)
    return AuthService.issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db_session)):
    user = await AuthService.authenticate_user(credentials.email, credentials.password, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthService.issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(refresh_req: RefreshRequest, db: AsyncSession = Depends(get_db_session)):
    """Rotate a refresh token: the presented one is revoked and a new pair issued"""
    claims = AuthService.verify_token(refresh_req.refresh_token, expected_type="refresh")
    if claims.get("jti") and await AuthService.is_token_revoked(claims["jti"], db):
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = await get_user(db, claims.get("sub") or "")
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    if claims.get("jti"):
        await AuthService.revoke_token(claims, db)
    return AuthService.issue_tokens(user)


@router.post("/logout")
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Revoke the access token used for this request"""
    if credentials is not None:
        claims = AuthService.verify_token(credentials.credentials)
        if claims.get("jti"):
            await AuthService.revoke_token(claims, db)
    logger.info("User %s logged out", user.id)
    return {"status": "logged_out"}


@router.get("/me")
async def get_current_user_info(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    user_obj = await get_user(db, user.id)
    if user_obj is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_to_dict(user_obj)

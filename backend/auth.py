# auth.py — Authentication & roles for SDG Taskboard
# Features:
# - JWT access/refresh tokens with JTI for revocation
# - 5-tier role hierarchy (super_admin, admin, project_manager, member, guest)
# - Password rules checked at registration
# - Per-email login throttling
# - Dev-stub mode that auto-provisions a local user

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Any, List, Optional, Tuple

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from models import User, UserRole, RevokedToken
from storage import get_user_by_email, upsert_user

logger = logging.getLogger("sdg-taskboard.auth")

# ============================================================
# CONFIGURATION
# ============================================================

_PLACEHOLDER_SECRET = "change-this-to-a-secure-random-key-in-production"
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if SECRET_KEY in ("", _PLACEHOLDER_SECRET):
    # Tokens signed with this key die with the process
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning("JWT_SECRET_KEY missing or placeholder; signing with an ephemeral key")

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")))
REFRESH_TOKEN_TTL = timedelta(days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")))

AUTH_MODE = os.getenv("AUTH_MODE", "local").lower()
DEV_USER_ID = os.getenv("DEV_USER_ID", "dev-user-123")
DEV_USER_ROLE = os.getenv("DEV_USER_ROLE", UserRole.MEMBER.value)

MIN_PASSWORD_LENGTH = 12
PASSWORD_RULES: List[Tuple[Callable[[str], bool], str]] = [
    (lambda p: len(p) >= MIN_PASSWORD_LENGTH, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"),
    (lambda p: any(c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one digit"),
]

security = HTTPBearer(auto_error=False)


# ============================================================
# ROLE HIERARCHY
# ============================================================

ROLE_HIERARCHY = {
    UserRole.SUPER_ADMIN: 5,
    UserRole.ADMIN: 4,
    UserRole.PROJECT_MANAGER: 3,
    UserRole.MEMBER: 2,
    UserRole.GUEST: 1,
}


def role_level(role) -> int:
    try:
        return ROLE_HIERARCHY.get(UserRole(role), 0)
    except ValueError:
        return 0


# ============================================================
# LOGIN THROTTLE
# ============================================================

class LoginThrottle:
    """Sliding window of failed logins per email, held in process memory"""

    def __init__(self, max_failures: int = 5, window: timedelta = timedelta(minutes=15)):
        self.max_failures = max_failures
        self.window = window
        self._failures: Dict[str, List[datetime]] = {}

    def check(self, email: str) -> None:
        cutoff = datetime.now(timezone.utc) - self.window
        recent = [t for t in self._failures.get(email, []) if t > cutoff]
        self._failures[email] = recent
        if len(recent) >= self.max_failures:
            minutes = int(self.window.total_seconds() // 60)
            raise HTTPException(
                status_code=429,
                detail=f"Too many login attempts. Try again in {minutes} minutes.",
            )

    def fail(self, email: str) -> None:
        self._failures.setdefault(email, []).append(datetime.now(timezone.utc))

    def clear(self, email: Optional[str] = None) -> None:
        if email is None:
            self._failures.clear()
        else:
            self._failures.pop(email, None)


login_throttle = LoginThrottle()


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        for ok, message in PASSWORD_RULES:
            if not ok(v):
                raise ValueError(message)
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: str
    role: str
    points: int = 0
    level: int = 1

    @property
    def is_admin(self) -> bool:
        return role_level(self.role) >= ROLE_HIERARCHY[UserRole.ADMIN]


class RefreshRequest(BaseModel):
    refresh_token: str


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Password hashing, token issue/verify and revocation"""

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()

    @staticmethod
    def verify_password(password: str, password_hash: Optional[str]) -> bool:
        return bool(password_hash) and bcrypt.checkpw(password.encode(), password_hash.encode())

    @staticmethod
    def _sign(claims: Dict[str, Any], token_type: str, ttl: timedelta) -> str:
        issued = datetime.now(timezone.utc)
        body = {**claims, "type": token_type, "jti": uuid.uuid4().hex, "iat": issued, "exp": issued + ttl}
        return jwt.encode(body, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        return AuthService._sign(data, "access", expires_delta or ACCESS_TOKEN_TTL)

    @staticmethod
    def create_refresh_token(data: Dict[str, Any]) -> str:
        return AuthService._sign(data, "refresh", REFRESH_TOKEN_TTL)

    @staticmethod
    def verify_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Token expired")
        except JWTError:
            raise HTTPException(status_code=401, detail="Invalid token")
        if expected_type and payload.get("type") != expected_type:
            raise HTTPException(status_code=401, detail=f"Invalid token type. Expected {expected_type} token.")
        return payload

    @staticmethod
    async def register_user(user_data: UserRegister, db: AsyncSession) -> User:
        if await get_user_by_email(db, user_data.email):
            raise HTTPException(status_code=409, detail="User already exists")

        user = User(
            email=user_data.email,
            first_name=user_data.first_name or user_data.email.split("@")[0],
            last_name=user_data.last_name,
            password_hash=AuthService.hash_password(user_data.password),
            auth_provider="local",
            role=UserRole.MEMBER,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    @staticmethod
    async def authenticate_user(email: str, password: str, db: AsyncSession) -> Optional[User]:
        login_throttle.check(email)

        user = await get_user_by_email(db, email)
        if user is None or not AuthService.verify_password(password, user.password_hash):
            login_throttle.fail(email)
            logger.warning("Failed login for %s", email)
            return None

        login_throttle.clear(email)
        return user

    @staticmethod
    def issue_tokens(user: User) -> TokenResponse:
        return TokenResponse(
            access_token=AuthService.create_access_token({"sub": user.id, "role": user.role.value}),
            refresh_token=AuthService.create_refresh_token({"sub": user.id}),
            expires_in=int(ACCESS_TOKEN_TTL.total_seconds()),
            user=user_to_dict(user),
        )

    @staticmethod
    async def is_token_revoked(jti: str, db: AsyncSession) -> bool:
        found = await db.scalar(select(RevokedToken.jti).where(RevokedToken.jti == jti))
        return found is not None

    @staticmethod
    async def revoke_token(payload: Dict[str, Any], db: AsyncSession) -> None:
        """Store the token's jti until its natural expiry"""
        db.add(RevokedToken(
            jti=payload["jti"],
            user_id=payload["sub"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        ))
        await db.commit()


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "display_name": user.display_name,
        "profile_image_url": user.profile_image_url,
        "role": user.role.value,
        "bio": user.bio,
        "country": user.country,
        "sdg_alignment": user.sdg_alignment or [],
        "points": user.points,
        "level": user.level,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=UserRole(user.role).value,
        points=user.points,
        level=user.level,
    )


async def _dev_user(db: AsyncSession) -> User:
    """Auto-provision the configured dev user on first use"""
    user = await db.get(User, DEV_USER_ID)
    if user:
        return user
    logger.info("Provisioning dev user %s", DEV_USER_ID)
    return await upsert_user(db, {
        "id": DEV_USER_ID,
        "email": f"{DEV_USER_ID}@localhost",
        "first_name": "Dev",
        "last_name": "User",
        "auth_provider": "dev",
        "role": UserRole(DEV_USER_ROLE),
    })


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    if credentials is None:
        if AUTH_MODE == "dev":
            return _to_current_user(await _dev_user(db))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = AuthService.verify_token(credentials.credentials, expected_type="access")
    if claims.get("jti") and await AuthService.is_token_revoked(claims["jti"], db):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    user = await db.get(User, claims["sub"]) if claims.get("sub") else None
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return _to_current_user(user)


def require_min_role(min_role: UserRole):
    """Dependency factory: the caller's role must rank at least min_role"""
    needed = ROLE_HIERARCHY[min_role]

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if role_level(user.role) < needed:
            raise HTTPException(status_code=403, detail="Insufficient role level")
        return user
    return _check


# Mutations are closed to guests
require_member = require_min_role(UserRole.MEMBER)
require_admin = require_min_role(UserRole.ADMIN)

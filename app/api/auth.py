"""Staff authentication API endpoints"""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.auth import RefreshRequest, StaffAccountCreate, StaffAccountResponse, Token

router = APIRouter()
logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

ACCESS = "access"
REFRESH = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode_token(user: User, token_type: str, lifetime: timedelta) -> str:
    payload = {
        "sub": str(user.id),
        "type": token_type,
        "exp": datetime.utcnow() + lifetime,
        "jti": uuid4().hex,
    }
    if token_type == ACCESS:
        payload["role"] = user.role.value
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    return _encode_token(user, ACCESS, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(user: User) -> str:
    return _encode_token(user, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def _token_subject(token: str, expected_type: str) -> UUID:
    """User id carried by a valid token of the expected type, else 401"""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        if payload.get("type") != expected_type:
            raise unauthorized
        return UUID(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise unauthorized


async def _issue_tokens(user: User, db: AsyncSession) -> Token:
    refresh_token = create_refresh_token(user)
    user.refresh_token = refresh_token
    await db.commit()

    return Token(
        access_token=create_access_token(user),
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


async def get_current_staff(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Active staff account behind the bearer token"""
    user_id = _token_subject(token, ACCESS)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_role(required_role: UserRole):
    """Dependency factory for role-based access control"""
    async def role_checker(current_user: User = Depends(get_current_staff)) -> User:
        if not current_user.has_permission(required_role):
            logger.warning(
                "Staff action refused",
                user_id=str(current_user.id),
                required_role=required_role.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return role_checker


require_staff = require_role(UserRole.STAFF)
require_admin = require_role(UserRole.ADMIN)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Password login for dashboard staff; username is the email"""
    result = await db.execute(select(User).where(User.email == form_data.username))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or not verify_password(form_data.password, user.hashed_password):
        logger.info("Staff login failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user.last_login = datetime.utcnow()
    logger.info("Staff logged in", user_id=str(user.id), role=user.role.value)
    return await _issue_tokens(user, db)


@router.post("/refresh", response_model=Token)
async def refresh(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token for a new pair; the old refresh token stops working"""
    user_id = _token_subject(request.refresh_token, REFRESH)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or user.refresh_token != request.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    return await _issue_tokens(user, db)


@router.get("/me", response_model=StaffAccountResponse)
async def me(current_user: User = Depends(get_current_staff)):
    return current_user


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Invalidate the stored refresh token"""
    current_user.refresh_token = None
    await db.commit()
    return {"message": "Successfully logged out"}


@router.post("/staff", response_model=StaffAccountResponse, status_code=201)
async def create_staff_account(
    account: StaffAccountCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Open a dashboard account for a new staff member"""
    result = await db.execute(select(User.id).where(User.email == account.email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=account.email,
        hashed_password=get_password_hash(account.password),
        full_name=account.full_name,
        role=account.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Staff account created", user_id=str(user.id), role=user.role.value, by=str(current_user.id))
    return user

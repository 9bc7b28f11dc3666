"""
Account registration, login and profile routes
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status

from mediassist.config import settings, Environment
from mediassist.core.errors import AuthenticationError
from mediassist.core.logging import get_logger
from mediassist.core.security import (
    get_current_user,
    get_repositories,
    hash_password,
    security_manager,
    verify_password,
)
from mediassist.db import DuplicateKeyError, Repositories
from mediassist.models.documents import UserDocument, UserProfile, UserRole
from mediassist.models.requests import LoginRequest, RegisterRequest
from mediassist.models.responses import TokenResponse, UserPublic

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

DEMO_PASSWORD = "password123"
DEMO_ACCOUNTS = [
    {
        "name": "Dr. Sarah Johnson",
        "email": "doctor@demo.com",
        "role": UserRole.DOCTOR,
        "profile": UserProfile(specialization="Internal Medicine", license_number="MD123456"),
    },
    {
        "name": "John Smith",
        "email": "patient@demo.com",
        "role": UserRole.PATIENT,
        "profile": UserProfile(phone="+1-555-0123"),
    },
]


def _duplicate_email() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="User already exists with this email",
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, repos: Repositories = Depends(get_repositories)):
    if await repos.users.get_by_email(body.email):
        raise _duplicate_email()

    user = UserDocument(
        name=body.name.strip(),
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
    )
    try:
        await repos.users.create(user)
    except DuplicateKeyError:
        raise _duplicate_email()

    logger.info("User registered", user_id=user.id, role=user.role)
    return TokenResponse(access_token=security_manager.create_user_token(user), user=UserPublic.from_document(user))


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, repos: Repositories = Depends(get_repositories)):
    user = await repos.users.get_by_email(body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        logger.warning("Login failed", email=body.email.strip().lower())
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    user.last_login = datetime.utcnow()
    await repos.users.update(user.id, last_login=user.last_login)
    return TokenResponse(access_token=security_manager.create_user_token(user), user=UserPublic.from_document(user))


@router.get("/profile", response_model=UserPublic)
async def profile(user: UserDocument = Depends(get_current_user)):
    return UserPublic.from_document(user)


@router.post("/init-demo")
async def init_demo(repos: Repositories = Depends(get_repositories)):
    """Create the demo doctor and patient accounts (not available in production)"""
    if settings.environment == Environment.PRODUCTION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Demo initialization not available in production",
        )

    created = []
    for account in DEMO_ACCOUNTS:
        if await repos.users.get_by_email(account["email"]):
            continue
        await repos.users.create(UserDocument(password_hash=hash_password(DEMO_PASSWORD), **account))
        created.append(account["email"])

    return {
        "success": True,
        "message": "Demo users created successfully" if created else "Demo users already exist",
        "created": created,
        "credentials": {
            account["role"].value: {"email": account["email"], "password": DEMO_PASSWORD}
            for account in DEMO_ACCOUNTS
        },
    }

"""
Authentication and authorization
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from mediassist.config import settings
from mediassist.core.logging import get_logger
from mediassist.db import Repositories
from mediassist.models.documents import UserDocument

logger = get_logger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class SecurityManager:
    """Token issuing and verification"""

    def __init__(self):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.token_algorithm

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_user_token(self, user: UserDocument) -> str:
        return self.create_access_token({"sub": user.id, "role": user.role})

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Decode a JWT; raises HTTP 401 when it is invalid or expired"""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise _unauthorized("Token expired")
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise _unauthorized("Invalid token")

    def generate_request_id(self) -> str:
        return secrets.token_urlsafe(16)


# Global security manager instance
security_manager = SecurityManager()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_repositories(request: Request) -> Repositories:
    return Repositories(request.app.state.store)


async def get_current_user(
    request: Request,
    repos: Repositories = Depends(get_repositories),
) -> UserDocument:
    """
    Dependency for authenticated requests.
    Resolves the bearer token to an active user account.
    """
    auth_header = request.headers.get("Authorization")
    scheme, credentials = get_authorization_scheme_param(auth_header)
    if not auth_header or scheme.lower() != "bearer" or not credentials:
        raise _unauthorized("Access token is required")

    payload = security_manager.verify_token(credentials)
    user_id = payload.get("sub")
    user = await repos.users.get(user_id) if user_id else None
    if user is None or not user.is_active:
        logger.warning("Authentication failed: unknown or inactive user", user_id=user_id)
        raise _unauthorized("Invalid token or user not found")

    request.state.user_id = user.id
    return user


def require_role(*roles: str):
    """Dependency factory gating a route to the given user roles"""

    async def dependency(user: UserDocument = Depends(get_current_user)) -> UserDocument:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

"""Authentication module for JWT verification.

This module handles:
1. JWT verification, either HS256 with a shared secret or RS256 via JWKS
2. User provisioning on first authentication
3. FastAPI dependency injection for protected routes
"""

import logging
from typing import Optional
from dataclasses import dataclass

import jwt
from jwt import PyJWKClient, PyJWKClientError
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from ..db.database import get_db
from ..db.models import UserModel

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)

DEV_USER_ID = "dev_user"

# Cache for JWKS client
_jwks_client: Optional[PyJWKClient] = None


def get_jwks_client() -> Optional[PyJWKClient]:
    """Get or create the JWKS client."""
    global _jwks_client

    if _jwks_client is not None:
        return _jwks_client

    jwks_url = get_settings().auth_jwks_url
    if not jwks_url:
        return None

    try:
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
        logger.info(f"Initialized JWKS client for {jwks_url}")
        return _jwks_client
    except PyJWKClientError as e:
        logger.error(f"Failed to initialize JWKS client: {e}")
        return None


@dataclass
class AuthUser:
    """Represents an authenticated user."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


def verify_token(token: str) -> Optional[AuthUser]:
    """
    Verify a JWT and extract user information.

    Args:
        token: JWT from the Authorization header

    Returns:
        AuthUser if valid, None otherwise
    """
    settings = get_settings()

    try:
        if settings.auth_jwt_secret:
            key = settings.auth_jwt_secret
            algorithms = ["HS256"]
        else:
            jwks_client = get_jwks_client()
            if not jwks_client:
                return None
            key = jwks_client.get_signing_key_from_jwt(token).key
            algorithms = ["RS256"]

        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            issuer=settings.auth_issuer or None,
            audience=settings.auth_audience or None,
            options={
                "verify_iss": bool(settings.auth_issuer),
                "verify_aud": bool(settings.auth_audience),
            },
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token has expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None
    except PyJWKClientError as e:
        logger.error(f"JWKS client error: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("JWT token missing 'sub' claim")
        return None

    metadata = payload.get("user_metadata") or {}
    display_name = payload.get("name") or metadata.get("full_name") or metadata.get("name")

    return AuthUser(
        id=user_id,
        email=payload.get("email"),
        display_name=display_name,
    )


async def get_or_create_user(
    auth_user: AuthUser,
    db: AsyncSession,
) -> UserModel:
    """
    Get existing user or create new one from token claims.

    Args:
        auth_user: Verified user data
        db: Database session

    Returns:
        UserModel from database
    """
    result = await db.execute(
        select(UserModel).where(UserModel.id == auth_user.id)
    )
    user = result.scalar_one_or_none()

    if user:
        changed = False
        if auth_user.email and user.email != auth_user.email:
            user.email = auth_user.email
            changed = True
        if auth_user.display_name and user.display_name != auth_user.display_name:
            user.display_name = auth_user.display_name
            changed = True

        if changed:
            await db.commit()
            logger.info(f"Updated user {user.id}")

        return user

    user = UserModel(
        id=auth_user.id,
        email=auth_user.email,
        display_name=auth_user.display_name,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created new user {user.id}")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """
    FastAPI dependency to get the current authenticated user.

    Verifies the bearer token and returns the user, creating the user row on
    first authentication. The user ID is also stored on request.state for
    per-user rate limiting.

    Raises:
        HTTPException 401 if not authenticated
    """
    settings = get_settings()

    if not settings.auth_enabled:
        # Development mode: authentication disabled
        logger.warning("Authentication disabled - using development user")
        user = await get_or_create_user(
            AuthUser(id=DEV_USER_ID, email="dev@example.com", display_name="Development User"),
            db,
        )
        request.state.user_id = user.id
        return user

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_user = verify_token(credentials.credentials)

    if not auth_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_or_create_user(auth_user, db)
    request.state.user_id = user.id
    return user

"""
Bearer-token dependencies for route handlers.

Handlers depend on these to:
- Resolve the bearer token in the Authorization header to a user
- Require authentication (401 otherwise)
- Optionally identify the caller on public endpoints
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from models import User

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme (auto_error=False so we can return our own 401)
security = HTTPBearer(auto_error=False)


def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials], db: Session
) -> Optional[User]:
    """
    Resolve bearer credentials to the user currently holding that token.

    Args:
        credentials: Parsed Authorization header, if any
        db: Database session

    Returns:
        The matching user, or None when the header is missing or the token
        is not the active token of any user
    """
    if credentials is None or not credentials.credentials:
        logger.debug("No bearer token provided")
        return None

    user = db.query(User).filter(User.token == credentials.credentials).first()
    if user is None:
        logger.info("Bearer token does not match any active session")
        return None

    logger.debug(f"Authenticated user {user.id}")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Require an authenticated user.

    Raises:
        HTTPException: 401 if the token is missing or not active

    Example:
        @app.post("/articles")
        def create_task(current_user: User = Depends(get_current_user)):
            ...
    """
    user = authenticate(credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Identify the caller when a valid token is sent, otherwise return None.

    Public endpoints use this to compute per-viewer fields such as ``liked``.
    """
    return authenticate(credentials, db)

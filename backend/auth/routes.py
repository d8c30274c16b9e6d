"""
/auth endpoints: account registration and login.

Login is the only place tokens are issued, and issuing one revokes all others.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from models import User
from schemas import RegisterRequest, RegisterResponse, LoginRequest, LoginResponse
from auth.security import hash_password, verify_password, generate_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an account from a username, email and strong password.

    Args:
        request: Registration data (username, email, password)
        db: Database session

    Returns:
        Confirmation message and the public user fields

    Raises:
        HTTPException: 400 if the email or username is already registered
    """
    logger.info(f"Registration attempt for email: {request.email}")

    if db.query(User).filter(User.email == request.email).first():
        logger.info(f"Registration failed: email already exists: {request.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists",
        )

    if db.query(User).filter(User.username == request.username).first():
        logger.info(f"Registration failed: username already exists: {request.username}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists",
        )

    new_user = User(
        username=request.username,
        email=request.email,
        password_hash=hash_password(request.password),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"User registered successfully: {new_user.email} (ID: {new_user.id})")
    return {"message": "User registered successfully", "user": new_user}


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange email and password for a bearer token.

    Issues a new bearer token. Every previously issued token, for every
    user, stops working: only one session is valid at a time.

    Raises:
        HTTPException: 401 if the credentials are invalid
    """
    logger.info(f"Login attempt for email: {request.email}")

    user = db.query(User).filter(User.email == request.email).first()
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info(f"Login failed: invalid credentials for {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token = generate_token()

    # Clear all sessions, then activate the new one; both land in one commit
    cleared = (
        db.query(User)
        .filter(User.token.isnot(None))
        .update({User.token: None}, synchronize_session=False)
    )
    user.token = token
    db.commit()
    db.refresh(user)

    logger.info(f"User logged in successfully: {user.email} (ID: {user.id}), {cleared} session(s) cleared")
    return {"message": "Login successful", "token": token, "user": user}

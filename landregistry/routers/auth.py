"""
Land Registry API - Auth Router
Authentication endpoints: register, login, profile
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from landregistry.database import get_db
from landregistry.models.user import User
from landregistry.schemas import AuthResponse, ErrorResponse, LoginRequest, RegisterRequest, UserProfile
from landregistry.services.auth import create_user_token, get_password_hash, verify_password
from landregistry.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Registers a new user with username/email/password
    """
    existing = db.query(User).filter(
        (User.username == request.username) | (User.email == request.email)
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this username or email already exists"
        )

    user = User(
        username=request.username,
        email=request.email,
        password_hash=get_password_hash(request.password),
        role=request.role,
    )

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this username or email already exists"
        )
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.username, user.role)

    return AuthResponse(
        message="User registered successfully",
        user_id=user.id,
        username=user.username,
        role=user.role,
        token=create_user_token(str(user.id), user.username, user.role),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Login with username/password
    """
    user = db.query(User).filter(User.username == request.username).first()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    return AuthResponse(
        message="Logged in successfully",
        user_id=user.id,
        username=user.username,
        role=user.role,
        token=create_user_token(str(user.id), user.username, user.role),
    )


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)):
    """
    Current user details
    """
    return UserProfile(
        user_id=current_user.id,
        username=current_user.username,
        role=current_user.role,
        email=current_user.email,
        created_at=current_user.created_at,
        updated_at=current_user.updated_at,
    )

"""
Land Registry API - Dependencies
Common dependencies for injection
"""

from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from landregistry.config import settings
from landregistry.database import get_db
from landregistry.models.user import User
from landregistry.repositories.parcels import ParcelRepository
from landregistry.schemas import Actor
from landregistry.services.auth import verify_access_token
from landregistry.services.documents import DocumentManager
from landregistry.services.parcels import ParcelService
from landregistry.services.storage import FileStore, LocalFileStore

# Bearer token security
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Loads the user named by the JWT token.
    Usage: current_user: User = Depends(get_current_user)
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed or expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == _parse_uuid(payload["sub"])).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, user not found",
        )

    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user)
) -> Actor:
    """
    Identity handed to the parcel service on every call
    """
    return Actor(user_id=current_user.id, username=current_user.username, role=current_user.role)


@lru_cache()
def get_file_store() -> FileStore:
    return LocalFileStore(settings.upload_folder)


def get_parcel_service(
    db: Session = Depends(get_db),
    store: FileStore = Depends(get_file_store)
) -> ParcelService:
    repository = ParcelRepository(db)
    return ParcelService(repository, DocumentManager(repository, store))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed or expired",
        ) from None

"""
Land Registry API - Services
"""

from landregistry.services.auth import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_user_token,
    decode_token,
    verify_access_token,
)
from landregistry.services.geometry import validate_polygon
from landregistry.services.storage import FileStore, LocalFileStore
from landregistry.services.documents import DocumentManager, IncomingFile
from landregistry.services.parcels import ParcelService

__all__ = [
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "create_user_token",
    "decode_token",
    "verify_access_token",
    "validate_polygon",
    "FileStore",
    "LocalFileStore",
    "DocumentManager",
    "IncomingFile",
    "ParcelService",
]

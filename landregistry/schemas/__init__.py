"""
Land Registry API - Pydantic Schemas
Input/output validation, camelCase on the wire
"""

from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Literal
from datetime import datetime
from uuid import UUID


Role = Literal["field_officer", "admin", "verifier"]
ParcelStatus = Literal["pending_verification", "verified", "disputed", "registered"]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Actor(BaseModel):
    """Authenticated identity performing an operation"""
    user_id: UUID
    username: str
    role: Role


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "field_officer"


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    message: str
    user_id: UUID
    username: str
    role: Role
    token: str


class UserSummary(CamelModel):
    """Registrant expanded on parcel responses"""
    id: UUID
    username: str
    role: Role
    email: str


class UserProfile(CamelModel):
    """Current user, keyed like the register/login responses"""
    user_id: UUID
    username: str
    role: Role
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# PARCEL SCHEMAS
# ============================================================================

class OwnerDetails(CamelModel):
    owner_name: str = Field(..., min_length=1)
    id_number: str = Field(..., min_length=1)
    contact: Optional[str] = None
    address: Optional[str] = None


class ParcelCreate(CamelModel):
    parcel_id: str = Field(..., min_length=1)
    owner_details: OwnerDetails
    geometry: Any  # GeoJSON Polygon, dict or JSON string
    status: Optional[ParcelStatus] = None


class ParcelUpdate(CamelModel):
    owner_details: Optional[OwnerDetails] = None
    geometry: Optional[Any] = None
    status: Optional[ParcelStatus] = None


class ParcelResponse(CamelModel):
    id: UUID
    parcel_id: str
    owner_details: OwnerDetails
    geometry: dict
    documents: List[str]
    status: ParcelStatus
    registered_by: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# GENERIC RESPONSES
# ============================================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    detail: str
    kind: str

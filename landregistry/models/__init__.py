"""
Land Registry API - SQLAlchemy Models
"""

from landregistry.models.user import User, ROLES
from landregistry.models.parcel import Parcel, STATUSES

__all__ = ["User", "Parcel", "ROLES", "STATUSES"]

"""
Land Registry API - User Model
"""

from sqlalchemy import CheckConstraint, Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from landregistry.database import Base


ROLES = ("field_officer", "admin", "verifier")


class User(Base):
    __tablename__ = "users"

    # Primary key
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Auth
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # One of ROLES, drives every authorization decision
    role = Column(String(50), nullable=False, default="field_officer")

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    parcels = relationship("Parcel", back_populates="registrant")

    __table_args__ = (
        CheckConstraint(
            "role IN ({})".format(", ".join(f"'{r}'" for r in ROLES)),
            name="ck_users_role",
        ),
    )

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"

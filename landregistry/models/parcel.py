"""
Land Registry API - Parcel Model
"""

from geoalchemy2 import Geometry
from sqlalchemy import (
    CheckConstraint, Column, String, Float, DateTime, Integer, ForeignKey, Index, JSON, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from landregistry.config import settings
from landregistry.database import Base


STATUSES = ("pending_verification", "verified", "disputed", "registered")

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Parcel(Base):
    __tablename__ = "parcels"

    # Primary key
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Public identifier, upper-cased; the UNIQUE constraint is the duplicate check
    parcel_id = Column(String(100), unique=True, nullable=False, index=True)

    # Owner
    owner_name = Column(String(255), nullable=False)
    owner_id_number = Column(String(100), nullable=False)
    owner_contact = Column(String(255), nullable=True)
    owner_address = Column(String(500), nullable=True)

    # Boundary: GeoJSON Polygon holding the exterior ring only
    geometry = Column(JSONType, nullable=False)

    # PostGIS copy of the boundary with a GiST index (idx_parcels_boundary)
    if settings.uses_postgis:
        boundary = Column(Geometry("POLYGON", srid=4326, spatial_index=True), nullable=True)

    # Envelope of the ring; bounding-box prefilter when PostGIS is not available
    min_lon = Column(Float, nullable=False)
    min_lat = Column(Float, nullable=False)
    max_lon = Column(Float, nullable=False)
    max_lat = Column(Float, nullable=False)

    # File-store references, append-only
    documents = Column(JSONType, nullable=False, default=list)

    status = Column(String(50), nullable=False, default="pending_verification", index=True)

    # Foreign key
    registered_by = Column(Uuid, ForeignKey("users.id"), nullable=False)

    # Bumped on every write, compared on document appends
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    registrant = relationship("User", back_populates="parcels")

    __table_args__ = (
        Index("ix_parcels_envelope", "min_lon", "max_lon", "min_lat", "max_lat"),
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in STATUSES)),
            name="ck_parcels_status",
        ),
    )

    def __repr__(self):
        return f"<Parcel {self.parcel_id} ({self.status})>"

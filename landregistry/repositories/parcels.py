"""
Land Registry API - Parcel Repository
Persistence of parcel rows, text search and bounding-box lookup
"""

import logging
from typing import List, Optional, Sequence

from geoalchemy2.shape import from_shape
from shapely.geometry import Polygon, box
from shapely.validation import make_valid
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.sql import func

from landregistry.config import settings
from landregistry.exceptions import (
    InvalidQueryError,
    ParcelConflictError,
    ParcelNotFoundError,
    StorageError,
)
from landregistry.models import Parcel

logger = logging.getLogger(__name__)

SRID = 4326


def normalize_parcel_id(parcel_id: str) -> str:
    return parcel_id.strip().upper()


class ParcelRepository:
    """SQLAlchemy-backed parcel storage bound to one request session."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Parcel).options(joinedload(Parcel.registrant))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, parcel_id: str) -> Parcel:
        try:
            parcel = self._query().filter(Parcel.parcel_id == normalize_parcel_id(parcel_id)).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Error fetching parcel: {e}") from e
        if parcel is None:
            raise ParcelNotFoundError(parcel_id)
        return parcel

    def find_all(self, search: Optional[str] = None, status: Optional[str] = None) -> List[Parcel]:
        """
        Lists parcels, newest first.

        ``search`` matches parcel id, owner name and owner ID number as a
        case-insensitive substring (any of the three); ``status`` is exact.
        """
        query = self._query()
        if search:
            query = query.filter(
                or_(
                    Parcel.parcel_id.icontains(search, autoescape=True),
                    Parcel.owner_name.icontains(search, autoescape=True),
                    Parcel.owner_id_number.icontains(search, autoescape=True),
                )
            )
        if status:
            query = query.filter(Parcel.status == status)
        try:
            return query.order_by(Parcel.created_at.desc(), Parcel.parcel_id).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Error fetching parcels: {e}") from e

    def find_within_bbox(
        self,
        min_lon: Optional[float],
        min_lat: Optional[float],
        max_lon: Optional[float],
        max_lat: Optional[float],
        intersects: bool = False,
    ) -> List[Parcel]:
        """
        Parcels lying inside the rectangle (boundary included), or merely
        touching it when ``intersects`` is set.

        On PostGIS the GiST-indexed ``boundary`` column answers the query
        directly. Elsewhere candidates come from the indexed envelope columns
        and only those are tested exactly with shapely.
        """
        bounds = {"minLon": min_lon, "minLat": min_lat, "maxLon": max_lon, "maxLat": max_lat}
        missing = [name for name, value in bounds.items() if value is None]
        if missing:
            raise InvalidQueryError(
                f"Missing bounding box parameters ({', '.join(missing)})"
            )
        if min_lon > max_lon or min_lat > max_lat:
            raise InvalidQueryError(
                "Invalid bounding box: minLon/minLat must not exceed maxLon/maxLat"
            )

        if settings.uses_postgis:
            envelope = func.ST_MakeEnvelope(min_lon, min_lat, max_lon, max_lat, SRID)
            if intersects:
                predicate = func.ST_Intersects(Parcel.boundary, envelope)
            else:
                predicate = func.ST_CoveredBy(Parcel.boundary, envelope)
            try:
                return self._query().filter(predicate).order_by(Parcel.parcel_id).all()
            except SQLAlchemyError as e:
                raise StorageError(f"Error performing spatial query: {e}") from e

        try:
            candidates = (
                self._query()
                .filter(
                    Parcel.min_lon <= max_lon,
                    Parcel.max_lon >= min_lon,
                    Parcel.min_lat <= max_lat,
                    Parcel.max_lat >= min_lat,
                )
                .order_by(Parcel.parcel_id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Error performing spatial query: {e}") from e

        rectangle = box(min_lon, min_lat, max_lon, max_lat)
        result = []
        for parcel in candidates:
            shape = make_valid(Polygon(parcel.geometry["coordinates"][0]))
            if intersects:
                if rectangle.intersects(shape):
                    result.append(parcel)
            elif rectangle.covers(shape):
                result.append(parcel)
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, parcel: Parcel) -> Parcel:
        """
        Inserts a new parcel. The UNIQUE constraint on parcel_id is the only
        duplicate check, so two racing inserts cannot both succeed.
        """
        parcel.parcel_id = normalize_parcel_id(parcel.parcel_id)
        self._index_boundary(parcel)
        self.db.add(parcel)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self._exists(parcel.parcel_id):
                logger.info("Rejected duplicate parcel %s", parcel.parcel_id)
                raise ParcelConflictError(parcel.parcel_id) from e
            raise StorageError(f"Error creating parcel: {e}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Error creating parcel: {e}") from e
        self.db.refresh(parcel)
        return parcel

    def update(self, parcel: Parcel) -> Parcel:
        """
        Persists owner, geometry and status changes (last writer wins).
        The documents list is only written by append_documents.
        """
        self._index_boundary(parcel)
        parcel.version = Parcel.version + 1
        parcel.updated_at = func.now()
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Error updating parcel: {e}") from e
        self.db.refresh(parcel)
        return parcel

    def append_documents(self, parcel_id: str, references: Sequence[str]) -> Parcel:
        """
        Appends file references using compare-and-swap on ``version``.

        A concurrent writer makes the guarded UPDATE match no row; the parcel
        is then re-read and the append retried.
        """
        normalized = normalize_parcel_id(parcel_id)
        for attempt in range(1, settings.append_max_retries + 1):
            try:
                current = self._current(normalized)
                if current is None:
                    raise ParcelNotFoundError(parcel_id)

                documents = list(current.documents or []) + list(references)
                matched = (
                    self.db.query(Parcel)
                    .filter(Parcel.id == current.id, Parcel.version == current.version)
                    .update(
                        {
                            Parcel.documents: documents,
                            Parcel.version: current.version + 1,
                            Parcel.updated_at: func.now(),
                        },
                        synchronize_session=False,
                    )
                )
                if matched == 1:
                    self.db.commit()
                    self.db.refresh(current)
                    return current
                self.db.rollback()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise StorageError(f"Error adding documents: {e}") from e
            logger.info("Concurrent write on parcel %s, retrying document append (attempt %d)", normalized, attempt)

        raise StorageError(
            f"Could not append documents to parcel {normalized} after {settings.append_max_retries} attempts"
        )

    def delete(self, parcel_id: str) -> None:
        parcel = self.get(parcel_id)
        try:
            self.db.delete(parcel)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Error deleting parcel: {e}") from e

    def _exists(self, parcel_id: str) -> bool:
        return (
            self.db.query(Parcel.id).filter(Parcel.parcel_id == parcel_id).first() is not None
        )

    def _current(self, parcel_id: str) -> Optional[Parcel]:
        """Fresh read of a parcel, discarding any state cached in the session"""
        return self._query().filter(Parcel.parcel_id == parcel_id).populate_existing().first()

    @staticmethod
    def _index_boundary(parcel: Parcel) -> None:
        if settings.uses_postgis:
            parcel.boundary = from_shape(Polygon(parcel.geometry["coordinates"][0]), srid=SRID)

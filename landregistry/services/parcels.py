"""
Land Registry API - Parcel Lifecycle
Role, ownership and status rules for every parcel write. Routers only
authenticate; this service is the single place those rules are enforced.
"""

import logging
from typing import List, Optional, Sequence

from landregistry.config import settings
from landregistry.exceptions import ForbiddenError, ValidationError
from landregistry.models import Parcel
from landregistry.repositories.parcels import ParcelRepository, normalize_parcel_id
from landregistry.schemas import Actor, ParcelCreate, ParcelUpdate
from landregistry.services.documents import DocumentManager, IncomingFile
from landregistry.services.geometry import polygon_geojson, ring_bounds, validate_polygon

logger = logging.getLogger(__name__)

CREATE_ROLES = ("field_officer", "admin")
EDIT_ROLES = ("field_officer", "admin", "verifier")
REVIEW_ROLES = ("admin", "verifier")
DELETE_ROLES = ("admin",)

# Statuses only reviewers may set
REVIEW_STATUSES = ("verified", "disputed")


def _require_role(actor: Actor, roles: Sequence[str], action: str) -> None:
    if actor.role not in roles:
        raise ForbiddenError(f"Access denied. Role '{actor.role}' is not authorized to {action}.")


def _require_status_permission(actor: Actor, status: Optional[str]) -> None:
    if status in REVIEW_STATUSES and actor.role not in REVIEW_ROLES:
        raise ForbiddenError(f"Only admin or verifier can change parcel status to '{status}'")


def _apply_geometry(parcel: Parcel, raw) -> None:
    ring = validate_polygon(raw)
    parcel.geometry = polygon_geojson(ring)
    parcel.min_lon, parcel.min_lat, parcel.max_lon, parcel.max_lat = ring_bounds(ring)


class ParcelService:
    def __init__(self, repository: ParcelRepository, documents: DocumentManager):
        self.repository = repository
        self.documents = documents

    # ------------------------------------------------------------------
    # Reads (any authenticated actor)
    # ------------------------------------------------------------------

    def get(self, parcel_id: str) -> Parcel:
        return self.repository.get(parcel_id)

    def list(self, search: Optional[str] = None, status: Optional[str] = None) -> List[Parcel]:
        return self.repository.find_all(search=search, status=status)

    def list_within_bbox(
        self,
        min_lon: Optional[float],
        min_lat: Optional[float],
        max_lon: Optional[float],
        max_lat: Optional[float],
        intersects: bool = False,
    ) -> List[Parcel]:
        return self.repository.find_within_bbox(min_lon, min_lat, max_lon, max_lat, intersects=intersects)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, actor: Actor, data: ParcelCreate, files: Sequence[IncomingFile] = ()) -> Parcel:
        _require_role(actor, CREATE_ROLES, "create parcels")
        if len(files) > settings.max_create_documents:
            raise ValidationError(f"At most {settings.max_create_documents} documents can be uploaded with a parcel")

        parcel_id = normalize_parcel_id(data.parcel_id)
        if not parcel_id:
            raise ValidationError("Parcel ID is required")

        status = data.status or "pending_verification"
        _require_status_permission(actor, data.status)

        parcel = Parcel(
            parcel_id=parcel_id,
            owner_name=data.owner_details.owner_name,
            owner_id_number=data.owner_details.id_number,
            owner_contact=data.owner_details.contact,
            owner_address=data.owner_details.address,
            status=status,
            registered_by=actor.user_id,
            version=1,
        )
        _apply_geometry(parcel, data.geometry)

        created = self.documents.create_with_documents(parcel, files)
        logger.info("Parcel %s registered by %s", created.parcel_id, actor.username)
        return created

    def update(self, actor: Actor, parcel_id: str, patch: ParcelUpdate) -> Parcel:
        _require_role(actor, EDIT_ROLES, "update parcels")
        parcel = self.repository.get(parcel_id)

        if actor.role == "field_officer" and parcel.registered_by != actor.user_id:
            raise ForbiddenError("Not authorized to update this parcel")
        _require_status_permission(actor, patch.status)

        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return parcel

        if patch.geometry is not None:
            _apply_geometry(parcel, patch.geometry)
        if patch.owner_details is not None:
            parcel.owner_name = patch.owner_details.owner_name
            parcel.owner_id_number = patch.owner_details.id_number
            parcel.owner_contact = patch.owner_details.contact
            parcel.owner_address = patch.owner_details.address
        if patch.status is not None:
            parcel.status = patch.status

        updated = self.repository.update(parcel)
        logger.info("Parcel %s updated by %s (%s)", updated.parcel_id, actor.username, ", ".join(sorted(changes)))
        return updated

    def add_documents(self, actor: Actor, parcel_id: str, files: Sequence[IncomingFile]) -> Parcel:
        _require_role(actor, EDIT_ROLES, "add documents")
        if not files:
            raise ValidationError("No documents provided for upload")
        if len(files) > settings.max_added_documents:
            raise ValidationError(f"At most {settings.max_added_documents} documents can be added at once")
        return self.documents.attach_new(parcel_id, files)

    def delete(self, actor: Actor, parcel_id: str) -> None:
        """
        Deletes the parcel after a best-effort removal of its files. A failed
        row delete is reported; removed files are not restored.
        """
        _require_role(actor, DELETE_ROLES, "delete parcels")
        parcel = self.repository.get(parcel_id)
        self.documents.detach_all(parcel)
        self.repository.delete(parcel.parcel_id)
        logger.info("Parcel %s deleted by %s", parcel.parcel_id, actor.username)

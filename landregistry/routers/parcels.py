"""
Land Registry API - Parcels Router
Parcel registration, review, documents and map queries
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from typing import List, Optional
import json

from landregistry.config import settings
from landregistry.dependencies import get_current_actor, get_parcel_service
from landregistry.exceptions import ValidationError
from landregistry.models import Parcel
from landregistry.schemas import (
    Actor, ErrorResponse, MessageResponse, OwnerDetails, ParcelCreate,
    ParcelResponse, ParcelStatus, ParcelUpdate, UserSummary
)
from landregistry.services.documents import IncomingFile
from landregistry.services.parcels import ParcelService

router = APIRouter(
    prefix="/parcels",
    tags=["Parcels"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


def to_response(parcel: Parcel) -> ParcelResponse:
    registrant = parcel.registrant
    return ParcelResponse(
        id=parcel.id,
        parcel_id=parcel.parcel_id,
        owner_details=OwnerDetails(
            owner_name=parcel.owner_name,
            id_number=parcel.owner_id_number,
            contact=parcel.owner_contact,
            address=parcel.owner_address,
        ),
        geometry=parcel.geometry,
        documents=list(parcel.documents or []),
        status=parcel.status,
        registered_by=UserSummary.model_validate(registrant) if registrant else None,
        created_at=parcel.created_at,
        updated_at=parcel.updated_at,
    )


async def read_uploads(uploads: Optional[List[UploadFile]]) -> List[IncomingFile]:
    """
    Reads uploads into memory, at most one byte past the size limit so the
    document policy can reject oversize files without buffering them whole.
    """
    files = []
    for upload in uploads or []:
        if not upload.filename:
            continue
        try:
            data = await upload.read(settings.max_upload_bytes + 1)
        finally:
            await upload.close()
        files.append(
            IncomingFile(filename=upload.filename, content_type=upload.content_type or "", data=data)
        )
    return files


def parse_create_form(
    parcel_id: Optional[str],
    owner_details: Optional[str],
    geometry: Optional[str],
    parcel_status: Optional[str],
) -> ParcelCreate:
    if not parcel_id or not parcel_id.strip():
        raise ValidationError("Parcel ID is required")
    if not owner_details:
        raise ValidationError("Owner details are required")
    if not geometry:
        raise ValidationError("Geometry is required")
    try:
        return ParcelCreate(
            parcel_id=parcel_id,
            owner_details=json.loads(owner_details),
            geometry=geometry,
            status=parcel_status or None,
        )
    except ValueError as e:
        # JSONDecodeError and pydantic's ValidationError both derive from ValueError
        raise ValidationError(f"Invalid parcel fields: {e}") from e


# ============================================================================
# PARCELS
# ============================================================================

@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_id: Optional[str] = Form(None, alias="parcelId"),
    owner_details: Optional[str] = Form(None, alias="ownerDetails"),
    geometry: Optional[str] = Form(None),
    parcel_status: Optional[str] = Form(None, alias="status"),
    documents: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Registers a parcel with its supporting documents (multipart/form-data)
    """
    data = parse_create_form(parcel_id, owner_details, geometry, parcel_status)
    files = await read_uploads(documents)
    parcel = service.create(actor, data, files)
    return to_response(parcel)


@router.get("", response_model=List[ParcelResponse])
async def list_parcels(
    search: Optional[str] = Query(None),
    parcel_status: Optional[ParcelStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Lists parcels, optionally filtered by free-text search and status
    """
    return [to_response(p) for p in service.list(search=search, status=parcel_status)]


@router.get("/spatial/within-bbox", response_model=List[ParcelResponse])
async def list_parcels_within_bbox(
    min_lon: Optional[float] = Query(None, alias="minLon"),
    min_lat: Optional[float] = Query(None, alias="minLat"),
    max_lon: Optional[float] = Query(None, alias="maxLon"),
    max_lat: Optional[float] = Query(None, alias="maxLat"),
    intersects: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Parcels inside the visible map rectangle
    (or touching it with intersects=true)
    """
    parcels = service.list_within_bbox(min_lon, min_lat, max_lon, max_lat, intersects=intersects)
    return [to_response(p) for p in parcels]


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    return to_response(service.get(parcel_id))


@router.put("/{parcel_id}", response_model=ParcelResponse)
async def update_parcel(
    parcel_id: str,
    patch: ParcelUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Updates owner details, geometry and/or status.
    Documents are added through the documents endpoint.
    """
    return to_response(service.update(actor, parcel_id, patch))


@router.delete("/{parcel_id}", response_model=MessageResponse)
async def delete_parcel(
    parcel_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Deletes a parcel and its documents (admin only)
    """
    service.delete(actor, parcel_id)
    return MessageResponse(message="Land parcel and associated documents deleted successfully")


# ============================================================================
# DOCUMENTS
# ============================================================================

@router.post("/{parcel_id}/documents", response_model=ParcelResponse)
async def add_parcel_documents(
    parcel_id: str,
    new_documents: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    service: ParcelService = Depends(get_parcel_service)
):
    """
    Appends documents to an existing parcel
    """
    files = await read_uploads(new_documents)
    return to_response(service.add_documents(actor, parcel_id, files))

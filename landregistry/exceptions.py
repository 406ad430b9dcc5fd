"""
Land Registry API - Exceptions
Domain error taxonomy, mapped to HTTP responses in main.py
"""


class RegistryError(Exception):
    """Base class for every error the registry reports to callers."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistryError):
    """Malformed or missing input."""

    kind = "validation_error"
    status_code = 400


class GeometryError(ValidationError):
    kind = "invalid_geometry"


class InvalidQueryError(ValidationError):
    kind = "invalid_query"


class ParcelConflictError(RegistryError):
    kind = "conflict"
    status_code = 409

    def __init__(self, parcel_id: str):
        super().__init__(f"Parcel with ID '{parcel_id}' already exists")
        self.parcel_id = parcel_id


class ForbiddenError(RegistryError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(RegistryError):
    kind = "not_found"
    status_code = 404


class ParcelNotFoundError(NotFoundError):
    def __init__(self, parcel_id: str):
        super().__init__(f"Land parcel '{parcel_id}' not found")
        self.parcel_id = parcel_id


class StorageError(RegistryError):
    """Repository or file-store failure. Details stay out of non-debug responses."""

    kind = "storage_error"
    status_code = 500

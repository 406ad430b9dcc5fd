"""
Land Registry API - Document Attachment Manager
Keeps the file store and parcel rows consistent without a shared transaction:
files are written first and deleted again if the row write fails.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from landregistry.config import settings
from landregistry.exceptions import StorageError, ValidationError
from landregistry.models import Parcel
from landregistry.repositories.parcels import ParcelRepository
from landregistry.services.storage import FileStore

logger = logging.getLogger(__name__)

# Extension -> accepted content types
ALLOWED_TYPES = {
    ".jpeg": {"image/jpeg", "image/jpg"},
    ".jpg": {"image/jpeg", "image/jpg"},
    ".png": {"image/png"},
    ".pdf": {"application/pdf"},
    ".doc": {"application/msword"},
    ".docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"},
}


@dataclass
class IncomingFile:
    """An uploaded file already read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename or "").suffix.lower()


def check_files(files: Sequence[IncomingFile]) -> None:
    """
    Applies the acceptance policy to every file before anything is written.
    """
    for file in files:
        accepted = ALLOWED_TYPES.get(file.extension)
        content_type = (file.content_type or "").split(";")[0].strip().lower()
        if accepted is None or content_type not in accepted:
            raise ValidationError(
                f"File '{file.filename}' rejected: upload only supports images (jpeg, jpg, png), "
                "PDFs, and Word documents"
            )
        if len(file.data) > settings.max_upload_bytes:
            raise ValidationError(
                f"File '{file.filename}' exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit"
            )
        if not file.data:
            raise ValidationError(f"File '{file.filename}' is empty")


class DocumentManager:
    def __init__(self, repository: ParcelRepository, store: FileStore):
        self.repository = repository
        self.store = store

    def create_with_documents(self, parcel: Parcel, files: Sequence[IncomingFile]) -> Parcel:
        """Inserts ``parcel`` with its documents; written files are removed if the insert fails."""
        check_files(files)
        references = self._write_all(parcel.parcel_id, files)
        try:
            parcel.documents = references
            created = self.repository.insert(parcel)
        except BaseException:
            self._discard(references)
            raise
        logger.info("Stored %d document(s) for new parcel %s", len(references), created.parcel_id)
        return created

    def attach_new(self, parcel_id: str, files: Sequence[IncomingFile]) -> Parcel:
        """Appends documents to an existing parcel; written files are removed if the append fails."""
        check_files(files)
        parcel = self.repository.get(parcel_id)
        references = self._write_all(parcel.parcel_id, files)
        try:
            updated = self.repository.append_documents(parcel.parcel_id, references)
        except BaseException:
            self._discard(references)
            raise
        logger.info("Attached %d document(s) to parcel %s", len(references), updated.parcel_id)
        return updated

    def detach_all(self, parcel: Parcel) -> None:
        """Best-effort removal of every file the parcel references."""
        self._discard(parcel.documents or [])

    def _write_all(self, prefix: str, files: Sequence[IncomingFile]) -> List[str]:
        references: List[str] = []
        try:
            for file in files:
                references.append(self.store.write(f"{prefix}{file.extension}", file.data))
        except OSError as e:
            self._discard(references)
            raise StorageError(f"Error storing document '{file.filename}': {e}") from e
        except BaseException:
            self._discard(references)
            raise
        return references

    def _discard(self, references: Iterable[str]) -> None:
        for reference in references:
            try:
                self.store.delete(reference)
            except OSError as e:
                logger.warning("Failed to delete document %s: %s", reference, e)

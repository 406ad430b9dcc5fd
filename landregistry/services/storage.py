"""
Land Registry API - File Store
Durable storage for uploaded parcel documents
"""

import logging
import re
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import uuid4

logger = logging.getLogger(__name__)


@runtime_checkable
class FileStore(Protocol):
    """
    Storage contract used by the document manager.

    ``write`` must return a reference no other write has returned, whatever
    name the caller suggests; ``delete`` raises OSError when it fails.
    """

    def write(self, name: str, data: bytes) -> str: ...

    def delete(self, reference: str) -> None: ...


def _sanitize_filename(filename: str) -> str:
    candidate = Path(filename or "").name  # strip directories
    candidate = re.sub(r"[^A-Za-z0-9._-]", "_", candidate)
    return candidate or "document"


class LocalFileStore:
    """Stores documents in a flat directory served under a static URL prefix."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, name: str, data: bytes) -> str:
        safe_name = _sanitize_filename(name)
        stem, suffix = Path(safe_name).stem, Path(safe_name).suffix.lower()
        reference = f"{stem}_{uuid4().hex}{suffix}"
        # Exclusive create: never overwrite another upload
        with (self.root / reference).open("xb") as buffer:
            buffer.write(data)
        logger.debug("Stored document %s (%d bytes)", reference, len(data))
        return reference

    def delete(self, reference: str) -> None:
        self._checked(reference).unlink()

    def _checked(self, reference: str) -> Path:
        target = (self.root / reference).resolve()
        try:
            target.relative_to(self.root)
        except ValueError as exc:
            raise FileNotFoundError(f"Reference outside document store: {reference}") from exc
        return target

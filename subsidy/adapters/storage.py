"""Filesystem document storage."""

import hashlib
import logging
import os
import uuid
from pathlib import Path

from subsidy.core.collaborators import StoredObject

logger = logging.getLogger(__name__)


class FilesystemStorage:
    """Stores each upload under a random name inside ``base_dir``.

    References are paths relative to ``base_dir``; the original file name
    only contributes its extension.
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def store(self, data: bytes, filename: str) -> StoredObject:
        ext = os.path.splitext(filename)[1].lower()
        ref = f"{uuid.uuid4().hex}{ext}"
        path = self._path(ref)

        self.base_dir.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            f.write(data)

        content_hash = hashlib.sha256(data).hexdigest()
        logger.debug("Stored %s (%d bytes)", ref, len(data))
        return StoredObject(ref=ref, content_hash=content_hash, size_bytes=len(data))

    def delete(self, ref: str) -> None:
        path = self._path(ref)
        if path.exists():
            path.unlink()
            logger.debug("Deleted %s", ref)

    def exists(self, ref: str) -> bool:
        return self._path(ref).is_file()

    def open(self, ref: str):
        """Binary file handle for streaming a stored object."""
        return self._path(ref).open("rb")

    def full_path(self, ref: str) -> Path:
        return self._path(ref)

    def _path(self, ref: str) -> Path:
        path = (self.base_dir / ref).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Invalid storage reference: {ref}")
        return path

"""In-memory collaborators and a fixed clock for tests."""

import hashlib
import io
from datetime import datetime
from typing import Dict, List

from subsidy.core.collaborators import ProcessSnapshot, RenderedArtifact, StoredObject

FIXED_NOW = datetime(2024, 3, 15, 10, 30, 0)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class MemoryStorage:
    """In-memory DocumentStorage."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_store = False
        self.fail_delete = False
        self._seq = 0

    def store(self, data: bytes, filename: str) -> StoredObject:
        if self.fail_store:
            raise IOError("storage unavailable")
        self._seq += 1
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        ref = f"mem-{self._seq}.{ext}"
        self.objects[ref] = data
        return StoredObject(ref=ref, content_hash=hashlib.sha256(data).hexdigest(), size_bytes=len(data))

    def delete(self, ref: str) -> None:
        if self.fail_delete:
            raise IOError("storage unavailable")
        self.objects.pop(ref, None)
        self.deleted.append(ref)

    def exists(self, ref: str) -> bool:
        return ref in self.objects

    def open(self, ref: str):
        return io.BytesIO(self.objects[ref])


class FakeRenderer:
    """PdfRenderer that records snapshots instead of drawing."""

    def __init__(self):
        self.snapshots: List[ProcessSnapshot] = []

    def render(self, snapshot: ProcessSnapshot) -> RenderedArtifact:
        self.snapshots.append(snapshot)
        digest = hashlib.sha256(f"{snapshot.code}:{snapshot.version}".encode()).hexdigest()
        return RenderedArtifact(artifact_ref=f"pdf/{snapshot.code}_v{snapshot.version}.pdf", content_hash=digest)


class FailingRenderer:
    def render(self, snapshot: ProcessSnapshot) -> RenderedArtifact:
        raise RuntimeError("renderer offline")


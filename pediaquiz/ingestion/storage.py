"""
Local object storage.
Paths are POSIX-style object names ("uploads/<uid>/<file>") resolved under a root directory.
"""

import logging
import re
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from pediaquiz.errors import InvalidArgument, NotFound

log = logging.getLogger(__name__)

UPLOADS_PREFIX = "uploads"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def upload_object_path(owner_id: int, filename: str, now: Optional[datetime] = None) -> str:
    """uploads/<uid>/<timestamp>_<sanitised filename>"""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S_%f")
    safe_name = _UNSAFE_CHARS.sub("_", PurePosixPath(filename).name).strip("._") or "upload"
    return f"{UPLOADS_PREFIX}/{owner_id}/{stamp}_{safe_name}"


def parse_upload_path(path: str) -> Tuple[int, str]:
    """Return (owner_id, filename) from an uploads/<uid>/<filename> object path."""
    parts = PurePosixPath(path).parts
    if len(parts) != 3 or parts[0] != UPLOADS_PREFIX:
        raise InvalidArgument(f"Object path must look like {UPLOADS_PREFIX}/<uid>/<filename>: {path}")
    try:
        owner_id = int(parts[1])
    except ValueError:
        raise InvalidArgument(f"Object path has a non-numeric owner id: {path}")
    return owner_id, parts[2]


class LocalObjectStorage:
    """Filesystem-backed object store used for uploads and OCR intermediates."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise InvalidArgument(f"Object path escapes storage root: {path}")
        return resolved

    def local_path(self, path: str) -> Path:
        return self._resolve(path)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def write_bytes(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def read_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFound(f"Object not found: {path}")
        return target.read_bytes()

    def list(self, prefix: str) -> List[str]:
        """Object names under a prefix directory, sorted."""
        base = self._resolve(prefix)
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*") if p.is_file())

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_file():
            target.unlink()
        parent = target.parent
        # drop now-empty intermediate directories
        while parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent

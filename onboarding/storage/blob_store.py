"""
Blob Store

Uploaded source files on local disk, read and written with aiofiles.
"""

import re
import uuid
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os


class BlobNotFoundError(FileNotFoundError):
    """Requested blob does not exist."""

    pass


@dataclass(frozen=True)
class BlobRef:
    """Location of a stored blob."""

    path: str
    size: int


def _safe_filename(filename: str) -> str:
    name = Path(filename).name
    return re.sub(r"[^A-Za-z0-9._-]+", "_", name) or "upload"


class BlobStore:
    """Stores blobs under a root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if self.root.resolve() not in resolved.parents:
            raise BlobNotFoundError(f"Blob path outside store: {path}")
        return resolved

    async def put(self, data: bytes, filename: str, prefix: str = "uploads") -> BlobRef:
        """Write bytes and return a reference relative to the store root."""
        relative = Path(prefix) / f"{uuid.uuid4().hex[:12]}_{_safe_filename(filename)}"
        target = self.root / relative
        await aiofiles.os.makedirs(target.parent, exist_ok=True)

        async with aiofiles.open(target, "wb") as f:
            await f.write(data)

        return BlobRef(path=relative.as_posix(), size=len(data))

    async def get(self, path: str) -> bytes:
        """Read a blob.

        Raises:
            BlobNotFoundError: If the blob is missing.
        """
        target = self._resolve(path)
        if not await aiofiles.os.path.exists(target):
            raise BlobNotFoundError(f"Blob not found: {path}")

        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        if await aiofiles.os.path.exists(target):
            await aiofiles.os.remove(target)

"""Filesystem storage for uploaded images."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import re

import anyio

from portfolio_cms.errors import InvalidPathError


logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"
IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif"})
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    """Reduce a client-supplied name to a safe basename."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("-", name).strip(".-")
    return name or "image"


class ImageStorage:
    """Stores image blobs under ``root`` and hands out ``/uploads/<name>`` references."""

    def __init__(self, root: Path, *, max_bytes: int | None = None):
        self.root = root.expanduser().resolve(strict=False)
        self.max_bytes = max_bytes

    def ensure_ready(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, reference: str) -> Path:
        """Map a reference (``/uploads/x.png`` or ``x.png``) to a path inside the root.

        Raises:
            InvalidPathError: when the reference escapes the storage root
        """
        relative = reference.removeprefix(PUBLIC_PREFIX).lstrip("/")
        if not relative:
            raise InvalidPathError("Empty image reference")
        target = (self.root / relative).resolve(strict=False)
        if not target.is_relative_to(self.root) or target == self.root:
            raise InvalidPathError(f"Image reference escapes storage root: {reference}")
        return target

    async def save(self, filename: str, data: bytes) -> str:
        """Write ``data`` and return its public reference."""
        name = sanitize_filename(filename)
        if Path(name).suffix.lower() not in IMAGE_SUFFIXES:
            raise InvalidPathError(f"Unsupported image type: {filename}")
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise InvalidPathError(f"Image exceeds {self.max_bytes} bytes")

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
        stored_name = f"{stamp}-{name}"
        target = self.resolve(stored_name)
        await anyio.to_thread.run_sync(self.ensure_ready)
        async with await anyio.open_file(target, "wb") as fp:
            await fp.write(data)
        logger.info("Stored image %s (%d bytes)", stored_name, len(data))
        return PUBLIC_PREFIX + stored_name

    async def list(self) -> list[str]:
        return await anyio.to_thread.run_sync(self._list_sync)

    def _list_sync(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            PUBLIC_PREFIX + entry.name
            for entry in self.root.iterdir()
            if entry.is_file() and entry.suffix.lower() in IMAGE_SUFFIXES
        )

    async def delete(self, reference: str) -> bool:
        """Remove an image; returns False when it did not exist."""
        target = self.resolve(reference)

        def _unlink() -> bool:
            if not target.is_file():
                return False
            target.unlink()
            return True

        deleted = await anyio.to_thread.run_sync(_unlink)
        if deleted:
            logger.info("Deleted image %s", target.name)
        return deleted

"""Media store adapter for resource images and payment evidence.

References handed out by the store are opaque strings to the rest of the
application.  :class:`LocalMediaStore` keeps files under
``settings.media_root`` and returns URLs under ``settings.media_url_prefix``.
"""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from pathlib import Path, PurePosixPath
from typing import Protocol

from fastapi import UploadFile

from stayledger.config import settings

logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".pdf"}


class MediaStore(Protocol):
    async def store(self, files: Sequence[UploadFile], folder: str) -> list[str]:
        """Persist ``files`` and return one reference per stored file."""
        ...

    async def remove(self, reference: str) -> None:
        """Delete the media behind ``reference``; raise on failure."""
        ...


class LocalMediaStore:
    """Filesystem-backed media store."""

    def __init__(self, root: str | Path | None = None, url_prefix: str | None = None) -> None:
        self.root = Path(root or settings.media_root).resolve()
        self.url_prefix = (url_prefix if url_prefix is not None else settings.media_url_prefix).rstrip("/")

    async def store(self, files: Sequence[UploadFile], folder: str) -> list[str]:
        """Store every acceptable upload; unreadable or rejected files are skipped and logged."""
        references: list[str] = []
        for upload in files:
            filename = upload.filename or ""
            suffix = PurePosixPath(filename).suffix.lower()
            if suffix not in ALLOWED_SUFFIXES:
                logger.warning("Skipping upload %r: unsupported file type", filename)
                continue

            name = f"{uuid.uuid4().hex}{suffix}"
            target = self.root / folder / name
            try:
                data = await upload.read()
                await asyncio.to_thread(self._write, target, data)
            except OSError:
                logger.exception("Error storing upload %r", filename)
                continue
            references.append(f"{self.url_prefix}/{folder}/{name}")
            logger.info("Stored media %s/%s (%d bytes)", folder, name, len(data))
        return references

    async def remove(self, reference: str) -> None:
        path = self._path_for(reference)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.warning("Media not found on removal: %s", reference)
            return
        logger.info("Removed media %s", reference)

    def _path_for(self, reference: str) -> Path:
        if not reference.startswith(self.url_prefix + "/"):
            raise ValueError(f"Not a reference issued by this store: {reference!r}")
        relative = reference[len(self.url_prefix) + 1 :]
        path = (self.root / relative).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Reference escapes the media root: {reference!r}")
        return path

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


async def remove_best_effort(media: MediaStore, references: Sequence[str]) -> tuple[list[str], list[str]]:
    """Remove each reference, never raising.

    Returns:
        ``(removed, warnings)``: the references that were removed and one
        warning per reference that could not be.
    """
    removed: list[str] = []
    warnings: list[str] = []
    for reference in references:
        try:
            await media.remove(reference)
        except Exception as exc:
            logger.warning("Failed to remove media %s: %s", reference, exc)
            warnings.append(f"Could not remove media {reference}")
            continue
        removed.append(reference)
    return removed, warnings

"""
Storage for images extracted from tool results.

The orchestrator only needs ``upload(data, mime_type) -> url``; the local
implementation writes files under a directory the app serves statically.
"""

import asyncio
import base64
import binascii
import logging
import mimetypes
import secrets
import string
import time
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


class ImageStore(Protocol):
    async def upload(self, data: str, mime_type: str = "image/webp") -> Optional[str]:
        """Store a base64 image and return its public URL, or None on failure."""
        ...


class LocalImageStore:
    """Writes images to a local directory and returns URLs under ``base_url``."""

    def __init__(self, directory: Path, base_url: str = "/chat-images"):
        self.directory = Path(directory)
        self.base_url = base_url.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _filename(mime_type: str) -> str:
        extension = mimetypes.guess_extension(mime_type.partition(";")[0].strip().lower())
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
        return f"{int(time.time() * 1000)}-{suffix}{extension or '.webp'}"

    async def upload(self, data: str, mime_type: str = "image/webp") -> Optional[str]:
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.error(f"Image payload is not valid base64: {e}")
            return None

        filename = self._filename(mime_type)
        try:
            await asyncio.to_thread((self.directory / filename).write_bytes, raw)
        except OSError as e:
            logger.error(f"Failed to store image {filename}: {e}")
            return None

        logger.debug(f"Stored image {filename} ({len(raw)} bytes)")
        return f"{self.base_url}/{filename}"

"""
Local Media Storage - Filesystem Object Store for Uploads

Implements the MediaStoragePort on the local filesystem. Objects are
stored with integrity metadata (SHA-256 hash) in a JSON sidecar.

Objects are laid out as:
{storage_root}/{folder}/{public_id}.{format}
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from pathlib import Path
from typing import Final, Optional
from urllib.parse import urlencode

from editorial.submission.ports import (
    MediaStoragePort,
    MediaUploadOptions,
    MediaUploadResult,
)
from editorial.submission.schema import ResourceType, utc_now


# =============================================================================
# Storage Configuration
# =============================================================================

DEFAULT_STORAGE_PATH: Final[str] = "data/media"
DEFAULT_BASE_URL: Final[str] = "http://127.0.0.1:8000/media"


# =============================================================================
# Local Media Storage
# =============================================================================


class LocalMediaStorage(MediaStoragePort):
    """
    Filesystem-backed media storage.

    Provider ids are "{folder}/{public_id}". Blocking file IO runs in a
    worker thread.
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        signing_secret: Optional[str] = None,
    ):
        """
        Initialise media storage.

        Args:
            storage_root: Root directory for stored objects.
                         Defaults to data/media.
            base_url: Public URL prefix the storage root is served under
            signing_secret: Key for signed download URLs
        """
        self._storage_root = Path(storage_root or DEFAULT_STORAGE_PATH)
        self._base_url = base_url.rstrip("/")
        self._signing_secret = signing_secret

    @property
    def storage_root(self) -> Path:
        """Get storage root path."""
        return self._storage_root

    @staticmethod
    def _sanitise(part: str) -> str:
        """Sanitise a path segment for safe storage."""
        safe = part.replace("\\", "_").replace("..", "_").strip().strip(".")
        return safe or "file"

    def _object_path(self, provider_id: str) -> Optional[Path]:
        """Locate the stored object for a provider id, whatever its extension."""
        stem = self._storage_root / provider_id
        for candidate in stem.parent.glob(stem.name + ".*"):
            if candidate.suffix != ".json":
                return candidate
        return None

    @staticmethod
    def _calculate_hash(content: bytes) -> str:
        """Calculate SHA-256 hash of file content."""
        return hashlib.sha256(content).hexdigest()

    # =========================================================================
    # MediaStoragePort
    # =========================================================================

    async def upload(self, data: bytes, options: MediaUploadOptions) -> MediaUploadResult:
        segments = [self._sanitise(p) for p in f"{options.folder}/{options.public_id}".split("/") if p]
        provider_id = "/".join(segments)
        fmt = options.format.lower()
        path = self._storage_root / f"{provider_id}.{fmt}"

        await asyncio.to_thread(self._write, path, data, options)

        url = f"{self._base_url}/{provider_id}.{fmt}"
        return MediaUploadResult(
            provider_id=provider_id,
            url=url,
            secure_url=url.replace("http://", "https://", 1),
            bytes=len(data),
            format=fmt,
        )

    def _write(self, path: Path, data: bytes, options: MediaUploadOptions) -> None:
        if path.exists() and not options.overwrite:
            raise FileExistsError(f"Object already exists: {path.name}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        sidecar = {
            "resource_type": options.resource_type.value,
            "tags": list(options.tags),
            "context": dict(options.context),
            "content_hash": self._calculate_hash(data),
            "stored_at": utc_now().isoformat(),
        }
        path.with_suffix(path.suffix + ".json").write_text(json.dumps(sidecar, indent=2))

    async def destroy(self, provider_id: str, resource_type: ResourceType) -> bool:
        return await asyncio.to_thread(self._delete, provider_id)

    def _delete(self, provider_id: str) -> bool:
        path = self._object_path(provider_id)
        if path is None:
            return False
        path.unlink()
        sidecar = path.with_suffix(path.suffix + ".json")
        if sidecar.exists():
            sidecar.unlink()
        return True

    async def signed_url(
        self,
        provider_id: str,
        resource_type: ResourceType,
        ttl_minutes: int = 60,
    ) -> str:
        """
        Time-limited download URL.

        Raises:
            RuntimeError: If no signing secret is configured
            FileNotFoundError: If the object does not exist
        """
        if not self._signing_secret:
            raise RuntimeError("MEDIA_SIGNING_SECRET is not configured")

        path = await asyncio.to_thread(self._object_path, provider_id)
        if path is None:
            raise FileNotFoundError(provider_id)

        expires = int(time.time()) + ttl_minutes * 60
        signature = self.sign(provider_id, expires)
        query = urlencode({"expires": expires, "signature": signature})
        return f"{self._base_url}/{provider_id}{path.suffix}?{query}"

    def sign(self, provider_id: str, expires: int) -> str:
        """HMAC-SHA256 over the provider id and expiry timestamp."""
        message = f"{provider_id}:{expires}".encode("utf-8")
        return hmac.new(self._signing_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

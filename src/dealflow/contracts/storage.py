"""Non-overwriting blob storage for contract documents.

Two backends share the ``BlobStorage`` protocol: a local directory (used in
development and tests) and Supabase Storage over its REST API.  Neither
overwrites: uploading to an existing path fails.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

import httpx
import structlog

from dealflow.domain.errors import DependencyError
from dealflow.resilience.retry import resilient_api_call

logger = structlog.get_logger()


class BlobStorage(Protocol):
    """Write-once object storage with public URLs."""

    def upload(self, path: str, data: bytes, content_type: str) -> None: ...

    def get_public_url(self, path: str) -> str: ...


def _safe_key(path: str) -> str:
    key = PurePosixPath(path)
    if key.is_absolute() or ".." in key.parts or not key.parts:
        raise ValueError(f"Invalid storage path: {path!r}")
    return key.as_posix()


class LocalBlobStorage:
    """Store objects as files under *root*.

    Args:
        root: Directory holding the objects.
        public_base_url: URL prefix the objects are served from.
    """

    def __init__(self, root: Path, public_base_url: str) -> None:
        self._root = root
        self._base_url = public_base_url.rstrip("/")

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Write *data* to *path*.

        Raises:
            DependencyError: If an object already exists at *path*.
        """
        target = self._root / _safe_key(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with target.open("xb") as fh:
                fh.write(data)
        except FileExistsError as exc:
            raise DependencyError("storage", "An object already exists at this path") from exc
        logger.info(
            "Blob stored",
            backend="local",
            path=path,
            size=len(data),
            content_type=content_type,
        )

    def get_public_url(self, path: str) -> str:
        """Return the URL the object at *path* is served from."""
        return f"{self._base_url}/{quote(_safe_key(path))}"

    def read(self, path: str) -> bytes:
        """Return the stored bytes at *path*."""
        return (self._root / _safe_key(path)).read_bytes()


class SupabaseBlobStorage:
    """Store objects in a Supabase Storage bucket.

    Args:
        base_url: Supabase project URL.
        service_key: Service-role key used for uploads.
        bucket: Target bucket (must be public for ``get_public_url``).
        client: Optional preconfigured ``httpx.Client``.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._client = client or httpx.Client(timeout=30.0)
        self._headers = {"Authorization": f"Bearer {service_key}", "apikey": service_key}

    @resilient_api_call("supabase_storage")
    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Upload *data* with ``x-upsert: false``.

        Raises:
            httpx.HTTPStatusError: If the object exists or the upload is rejected.
        """
        key = quote(_safe_key(path))
        response = self._client.post(
            f"{self._base_url}/storage/v1/object/{self._bucket}/{key}",
            content=data,
            headers={**self._headers, "Content-Type": content_type, "x-upsert": "false"},
        )
        response.raise_for_status()
        logger.info("Blob stored", backend="supabase", path=path, size=len(data))

    def get_public_url(self, path: str) -> str:
        """Return the public URL for *path*."""
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(_safe_key(path))}"

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

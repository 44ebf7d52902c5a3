from __future__ import annotations

"""Copy vendor-hosted images into storage we own.

One bad image never aborts the batch: download or upload failures are logged
and the image is left out of the returned list.
"""
import asyncio
import math
import uuid
from typing import List, Optional, Protocol

import requests

from .exceptions import StorageError
from .logger import get_logger
from .utils import epoch_ms

LOGGER = get_logger(__name__)

STORAGE_PREFIX = "products"
DEFAULT_CONTENT_TYPE = "image/jpeg"


class ImageStore(Protocol):
    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at path and return the public URL."""
        ...


class SupabaseImageStore:
    """Image store backed by a Supabase storage bucket."""

    def __init__(
        self,
        url: str,
        key: str,
        bucket: str = "product-images",
        client=None,
        *,
        timeout: float = 20.0,
    ) -> None:
        if client is None:
            from supabase import ClientOptions, create_client

            options = ClientOptions(storage_client_timeout=max(1, math.ceil(timeout)))
            client = create_client(url, key, options=options)
        self._client = client
        self.bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        bucket = self._client.storage.from_(self.bucket)
        try:
            bucket.upload(path, data, {"content-type": content_type, "upsert": "false"})
        except Exception as e:
            raise StorageError(f"Upload of {path} failed: {e}") from e
        public_url = bucket.get_public_url(path)
        if not public_url:
            raise StorageError(f"No public URL for {path}")
        return public_url.rstrip("?")


def extension_for(content_type: str) -> str:
    ct = (content_type or "").lower()
    if "png" in ct:
        return "png"
    if "webp" in ct:
        return "webp"
    return "jpg"


def storage_path(content_type: str) -> str:
    return f"{STORAGE_PREFIX}/{epoch_ms()}-{uuid.uuid4()}.{extension_for(content_type)}"


def rehost_one(
    url: str,
    store: ImageStore,
    *,
    timeout: float = 20.0,
    session: Optional[requests.Session] = None,
) -> Optional[str]:
    """Download one image and upload it; None when anything goes wrong."""
    http = session or requests
    try:
        r = http.get(url, timeout=timeout)
        r.raise_for_status()
        content_type = r.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return store.upload(storage_path(content_type), r.content, content_type)
    except Exception as e:
        LOGGER.warning("Failed to rehost image %s: %s: %s", url, type(e).__name__, e)
        return None


async def rehost_images(
    urls: List[str],
    store: ImageStore,
    *,
    timeout: float = 20.0,
    concurrency: int = 4,
    session: Optional[requests.Session] = None,
) -> List[str]:
    """Rehost every image; order follows the input, failures are dropped."""
    sem = asyncio.Semaphore(max(1, concurrency))

    async def handle(url: str) -> Optional[str]:
        async with sem:
            return await asyncio.to_thread(rehost_one, url, store, timeout=timeout, session=session)

    results = await asyncio.gather(*(handle(u) for u in urls))
    hosted = [u for u in results if u]
    LOGGER.info("Rehosted %d/%d images", len(hosted), len(urls))
    return hosted

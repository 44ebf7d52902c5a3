from __future__ import annotations

import re

import pytest
import requests
import supabase

from aliexpress_importer.exceptions import StorageError
from aliexpress_importer.rehost import SupabaseImageStore, extension_for, rehost_images, storage_path


class FakeBucket:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload(self, path, data, options):
        if self.fail:
            raise RuntimeError("The resource already exists")
        self.uploads.append((path, data, options))

    def get_public_url(self, path):
        return f"https://proj.supabase.co/storage/v1/object/public/product-images/{path}?"


class FakeStorage:
    def __init__(self, bucket):
        self.bucket = bucket
        self.names = []

    def from_(self, name):
        self.names.append(name)
        return self.bucket


class FakeSupabase:
    def __init__(self, bucket):
        self.storage = FakeStorage(bucket)


def test_storage_path_layout():
    assert re.fullmatch(r"products/\d{13}-[0-9a-f-]{36}\.png", storage_path("image/png"))
    assert extension_for("image/webp") == "webp"
    assert extension_for("") == "jpg"


def test_supabase_store_uploads_and_returns_public_url():
    bucket = FakeBucket()
    client = FakeSupabase(bucket)
    store = SupabaseImageStore("https://proj.supabase.co", "key", client=client)
    url = store.upload("products/1-a.jpg", b"data", "image/jpeg")
    assert url == "https://proj.supabase.co/storage/v1/object/public/product-images/products/1-a.jpg"
    assert client.storage.names == ["product-images"]
    assert bucket.uploads[0][2] == {"content-type": "image/jpeg", "upsert": "false"}


def test_supabase_store_wraps_errors():
    store = SupabaseImageStore("https://proj.supabase.co", "key", client=FakeSupabase(FakeBucket(fail=True)))
    with pytest.raises(StorageError):
        store.upload("products/1-a.jpg", b"data", "image/jpeg")


class PickyStore:
    def __init__(self):
        self.count = 0

    def upload(self, path, data, content_type):
        self.count += 1
        if data == b"bad":
            raise StorageError("rejected")
        return f"https://cdn.test/{path}"


@pytest.mark.asyncio
async def test_partial_failures_are_dropped_in_order(fake_session, fake_response):
    def get(url):
        if "down" in url:
            raise requests.ConnectionError("refused")
        if "missing" in url:
            return fake_response(url, status_code=404)
        body = b"bad" if "bad" in url else b"ok"
        return fake_response(url, content=body, headers={"content-type": "image/png"})

    urls = [
        "https://ae01.alicdn.com/kf/S1.jpg",
        "https://ae01.alicdn.com/kf/down.jpg",
        "https://ae01.alicdn.com/kf/missing.jpg",
        "https://ae01.alicdn.com/kf/bad.jpg",
        "https://ae01.alicdn.com/kf/S5.jpg",
    ]
    store = PickyStore()
    hosted = await rehost_images(urls, store, concurrency=2, session=fake_session(get=get))
    assert len(hosted) == 2
    assert all(u.startswith("https://cdn.test/products/") and u.endswith(".png") for u in hosted)
    assert store.count == 3


@pytest.mark.asyncio
async def test_empty_batch():
    assert await rehost_images([], PickyStore()) == []


class FlakyStore:
    def upload(self, path, data, content_type):
        if data == b"boom":
            raise OSError("disk full")
        return f"https://cdn.test/{path}"


@pytest.mark.asyncio
async def test_unexpected_store_errors_only_drop_that_image(fake_session, fake_response):
    def get(url):
        body = b"boom" if "boom" in url else b"ok"
        return fake_response(url, content=body, headers={"content-type": "image/jpeg"})

    urls = ["https://ae01.alicdn.com/kf/S1.jpg", "https://ae01.alicdn.com/kf/boom.jpg", "https://ae01.alicdn.com/kf/S3.jpg"]
    hosted = await rehost_images(urls, FlakyStore(), session=fake_session(get=get))
    assert len(hosted) == 2


def test_supabase_store_client_gets_storage_timeout(monkeypatch):
    seen = {}

    def fake_create_client(url, key, options=None):
        seen["options"] = options
        return FakeSupabase(FakeBucket())

    monkeypatch.setattr(supabase, "create_client", fake_create_client)
    SupabaseImageStore("https://proj.supabase.co", "key", timeout=12.5)
    assert seen["options"].storage_client_timeout == 13

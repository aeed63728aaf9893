"""Tests for presigned read URL issuance."""

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from idolmedia.core.exceptions import SigningError
from idolmedia.uploads.presign import PresignedAccessIssuer


@pytest.fixture
def flaky_backend():
    backend = MagicMock()

    async def sign(key, ttl_seconds):
        if key == "bad":
            raise RuntimeError("signer unavailable")
        return f"https://signed.example/{key}?ttl={ttl_seconds}"

    backend.signed_read_url = AsyncMock(side_effect=sign)
    return backend


@pytest.mark.asyncio
async def test_issue_wraps_failures(flaky_backend):
    issuer = PresignedAccessIssuer(flaky_backend)

    with pytest.raises(SigningError):
        await issuer.issue("bad")


@pytest.mark.asyncio
async def test_issue_uses_default_ttl(flaky_backend):
    issuer = PresignedAccessIssuer(flaky_backend, default_ttl_seconds=600)

    assert await issuer.issue("a") == "https://signed.example/a?ttl=600"
    assert await issuer.issue("a", ttl_seconds=30) == "https://signed.example/a?ttl=30"
    assert await issuer.issue("a", ttl_seconds=0) == "https://signed.example/a?ttl=0"


@pytest.mark.asyncio
async def test_issue_many_nulls_only_failed_keys(flaky_backend):
    issuer = PresignedAccessIssuer(flaky_backend)

    urls = await issuer.issue_many(["a", "bad", "c"])

    assert urls["a"].startswith("https://signed.example/a")
    assert urls["bad"] is None
    assert urls["c"].startswith("https://signed.example/c")


@pytest.mark.asyncio
async def test_attach_sets_signed_url_on_video_and_images(flaky_backend):
    issuer = PresignedAccessIssuer(flaky_backend)
    docs = [
        {"id": "1", "video": {"key": "a"}, "images": []},
        {"id": "2", "video": None, "images": [{"key": "c", "order": 1}, {"key": "bad", "order": 2}]},
    ]

    result = await issuer.attach(docs)

    assert result[0]["video"]["signedUrl"].startswith("https://signed.example/a")
    assert result[1]["images"][0]["signedUrl"].startswith("https://signed.example/c")
    assert result[1]["images"][1]["signedUrl"] is None


@pytest.mark.asyncio
async def test_local_backend_urls_verify(backend):
    issuer = PresignedAccessIssuer(backend, default_ttl_seconds=60)

    url = await issuer.issue("splash/clip.mp4")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.path == "/objects/splash/clip.mp4"
    assert backend.verify_signature(
        "splash/clip.mp4", int(query["expires"][0]), query["signature"][0]
    )

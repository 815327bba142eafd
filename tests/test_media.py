"""Tests for signed media URL issuance."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from botocore.stub import Stubber

import config
from portal.errors import InternalError, InvalidInput, NotConfigured, NotFound
from portal.services.media import (
    MediaUrlIssuer,
    clamp_expiration,
    content_type_for,
    get_media_issuer,
)
from web.api.main import app


def _r2_client():
    return boto3.client(
        "s3",
        endpoint_url="https://account.r2.cloudflarestorage.com",
        aws_access_key_id="test-key",
        aws_secret_access_key="test-secret",
        region_name="auto",
        config=BotoConfig(signature_version="s3v4"),
    )


def _issuer(client=None, **kwargs):
    kwargs.setdefault("default_bucket", "podcasts")
    kwargs.setdefault("allowed_buckets", {"podcasts", "videos"})
    kwargs.setdefault("expires_in", 600)
    return MediaUrlIssuer(client if client is not None else _r2_client(), **kwargs)


def _query(url):
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


@pytest.mark.asyncio
async def test_signed_url_is_inline_and_expires_within_ttl():
    before = datetime.now(timezone.utc).replace(microsecond=0)
    media = await _issuer().issue_media_url("lessons/intro.mp3")
    query = _query(media.url)

    assert media.expires_in == 600
    assert media.filename == "lessons/intro.mp3"
    assert query["response-content-disposition"] == "inline"
    assert query["response-content-type"] == "audio/mpeg"
    assert int(query["X-Amz-Expires"]) == 600
    signed_at = datetime.strptime(query["X-Amz-Date"], "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)
    assert signed_at >= before
    assert signed_at + timedelta(seconds=int(query["X-Amz-Expires"])) <= datetime.now(timezone.utc) + timedelta(seconds=600)
    assert "lessons/intro.mp3" in urlparse(media.url).path


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filename,content_type",
    [
        ("clip.MP4", "video/mp4"),
        ("talk.mov", "video/quicktime"),
        ("cover.jpeg", "image/jpeg"),
        ("badge.webp", "image/webp"),
        ("voice.m4a", "audio/mp4"),
    ],
)
async def test_content_type_follows_extension(filename, content_type):
    media = await _issuer().issue_media_url(filename)
    assert _query(media.url)["response-content-type"] == content_type


def test_unknown_extension_content_type_fallback():
    assert content_type_for("archive.zip") == "application/octet-stream"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filename",
    [
        "",
        None,
        "../secret.mp3",
        "lessons/../../etc/passwd.mp3",
        "lessons\\intro.mp3",
        "/absolute.mp3",
        "notes.txt",
        "script.js",
        "noextension",
    ],
)
async def test_invalid_filename_never_reaches_storage(filename):
    client = MagicMock()
    with pytest.raises(InvalidInput):
        await _issuer(client).issue_media_url(filename)
    client.generate_presigned_url.assert_not_called()
    client.head_object.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_input_checked_before_configuration():
    issuer = MediaUrlIssuer(None, default_bucket="podcasts")
    with pytest.raises(InvalidInput):
        await issuer.issue_media_url("../x.mp3")


@pytest.mark.asyncio
async def test_not_configured():
    issuer = MediaUrlIssuer(None, default_bucket="podcasts")
    assert not issuer.configured
    with pytest.raises(NotConfigured):
        await issuer.issue_media_url("intro.mp3")


@pytest.mark.asyncio
async def test_unknown_bucket_falls_back_to_default():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed.example/url"
    media = await _issuer(client).issue_media_url("intro.mp3", bucket="someone-elses")
    assert media.bucket == "podcasts"
    params = client.generate_presigned_url.call_args.kwargs["Params"]
    assert params["Bucket"] == "podcasts"


@pytest.mark.asyncio
async def test_known_bucket_override():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed.example/url"
    media = await _issuer(client).issue_media_url("intro.mp4", bucket="videos")
    assert media.bucket == "videos"
    assert client.generate_presigned_url.call_args.kwargs["Params"]["Bucket"] == "videos"


@pytest.mark.asyncio
async def test_missing_object_is_not_found_when_verifying():
    client = _r2_client()
    stubber = Stubber(client)
    stubber.add_client_error(
        "head_object",
        service_error_code="404",
        http_status_code=404,
        expected_params={"Bucket": "podcasts", "Key": "missing.mp3"},
    )
    with stubber:
        with pytest.raises(NotFound):
            await _issuer(client, verify_exists=True).issue_media_url("missing.mp3")


@pytest.mark.asyncio
async def test_existing_object_is_signed_when_verifying():
    client = _r2_client()
    stubber = Stubber(client)
    stubber.add_response(
        "head_object",
        {"ContentLength": 10, "ContentType": "audio/mpeg"},
        expected_params={"Bucket": "podcasts", "Key": "intro.mp3"},
    )
    with stubber:
        media = await _issuer(client, verify_exists=True).issue_media_url("intro.mp3")
    assert _query(media.url)["response-content-disposition"] == "inline"


@pytest.mark.asyncio
async def test_provider_fault_is_internal_error():
    client = MagicMock()
    client.generate_presigned_url.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "nope"}}, "GetObject"
    )
    with pytest.raises(InternalError):
        await _issuer(client).issue_media_url("intro.mp3")


@pytest.mark.parametrize("seconds,expected", [(600, 600), (450, 450), (60, 300), (3600, 600)])
def test_clamp_expiration(seconds, expected):
    assert clamp_expiration(seconds) == expected


# --- HTTP surface ---


@pytest.fixture
def stub_issuer():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed.example/podcasts/intro.mp3?X-Amz-Expires=600"
    issuer = _issuer(client)
    app.dependency_overrides[get_media_issuer] = lambda: issuer
    return client


@pytest.mark.asyncio
async def test_get_audio_url(client, stub_issuer):
    r = await client.get("/audio-url", params={"filename": "intro.mp3"})
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "url": "https://signed.example/podcasts/intro.mp3?X-Amz-Expires=600",
        "expiresIn": 600,
        "filename": "intro.mp3",
    }


@pytest.mark.asyncio
async def test_post_audio_url(client, stub_issuer):
    r = await client.post("/audio-url", json={"filename": "intro.mp3"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["expiresIn"] == 600


@pytest.mark.asyncio
async def test_missing_filename_is_400(client, stub_issuer):
    r = await client.get("/audio-url")
    assert r.status_code == 400
    assert r.json()["error"] == "Missing filename"

    r = await client.post("/audio-url", json={})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_post_without_body_is_missing_filename(client, stub_issuer):
    r = await client.post("/audio-url")
    assert r.status_code == 400
    assert r.json() == {"error": "Missing filename"}
    stub_issuer.generate_presigned_url.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"filename": 5}, {"filename": ["intro.mp3"]}, {"filename": "intro.mp3", "bucket": 7}])
async def test_non_string_fields_are_400(client, stub_issuer, body):
    r = await client.post("/audio-url", json=body)
    assert r.status_code == 400
    data = r.json()
    assert data["error"] == "Invalid input"
    assert "detail" not in data
    stub_issuer.generate_presigned_url.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_json_is_400(client, stub_issuer):
    r = await client.post(
        "/audio-url", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid input"


@pytest.mark.asyncio
async def test_invalid_filename_is_400(client, stub_issuer):
    r = await client.get("/audio-url", params={"filename": "../etc/passwd"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid filename"
    stub_issuer.generate_presigned_url.assert_not_called()


@pytest.mark.asyncio
async def test_unconfigured_storage_is_503(client):
    assert not config.r2_configured()
    r = await client.get("/audio-url", params={"filename": "intro.mp3"})
    assert r.status_code == 503
    assert r.json()["error"] == "Storage not configured"


@pytest.mark.asyncio
async def test_missing_object_is_404(client):
    issuer = MagicMock(spec=MediaUrlIssuer)
    issuer.issue_media_url.side_effect = NotFound("The requested media file does not exist", error="File not found")
    app.dependency_overrides[get_media_issuer] = lambda: issuer
    r = await client.get("/audio-url", params={"filename": "missing.mp3"})
    assert r.status_code == 404
    assert r.json()["error"] == "File not found"


@pytest.mark.asyncio
async def test_provider_fault_is_500_without_detail(client):
    client_mock = MagicMock()
    client_mock.generate_presigned_url.side_effect = ClientError(
        {"Error": {"Code": "InternalError", "Message": "secret internal detail"}}, "GetObject"
    )
    issuer = _issuer(client_mock)
    app.dependency_overrides[get_media_issuer] = lambda: issuer
    r = await client.get("/audio-url", params={"filename": "intro.mp3"})
    assert r.status_code == 500
    assert "secret internal detail" not in r.text

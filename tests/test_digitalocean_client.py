import datetime
from unittest import mock

import pytest
import requests
import urllib3

from domain.exceptions import SourceNotFound, SourceUnavailable
from infrastructure.digitalocean_client import BlobStream, DigitalOceanClient


@pytest.fixture
def client():
    return DigitalOceanClient(
        endpoint="https://nyc3.digitaloceanspaces.com",
        region="nyc3",
        access_key="AKIDEXAMPLE",
        secret_key="secret",
        timeout=5
    )


def _response(status_code=200, headers=None, text="", body=b""):
    response = mock.MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    response.text = text
    response.raw = mock.MagicMock()
    chunks = [body[i:i + 4] for i in range(0, len(body), 4)] + [b""]
    response.raw.read.side_effect = lambda amount=None, decode_content=True: chunks.pop(0)
    return response


def test_open_read_stream_pins_the_etag(client) -> None:
    head = _response(headers={"ETag": '"abc123"'})
    get = _response(headers={"Content-Type": "image/png", "Content-Length": "8"}, body=b"pngbytes")

    with mock.patch("requests.head", return_value=head) as head_call, \
            mock.patch("requests.get", return_value=get) as get_call:
        stream = client.open_read_stream("media", "teams/logo 1.png")

    assert head_call.call_args.args[0] == "https://media.nyc3.digitaloceanspaces.com/teams/logo%201.png"
    headers = get_call.call_args.kwargs["headers"]
    assert headers["If-Match"] == '"abc123"'
    assert headers["Host"] == "media.nyc3.digitaloceanspaces.com"
    assert "if-match" in headers["Authorization"]
    assert get_call.call_args.kwargs["stream"] is True
    head.close.assert_called_once()

    assert isinstance(stream, BlobStream)
    assert stream.content_type == "image/png"
    assert stream.content_length == 8
    assert b"".join(stream.iter_chunks(4)) == b"pngbytes"


def test_allow_modifications_skips_the_head(client) -> None:
    get = _response(body=b"data")
    with mock.patch("requests.head") as head_call, mock.patch("requests.get", return_value=get) as get_call:
        client.open_read_stream("media", "a.png", allow_modifications=True)

    head_call.assert_not_called()
    assert "If-Match" not in get_call.call_args.kwargs["headers"]


def test_missing_object_raises_not_found(client) -> None:
    with mock.patch("requests.head", return_value=_response(status_code=404)):
        with pytest.raises(SourceNotFound) as excinfo:
            client.open_read_stream("media", "missing.png")

    assert excinfo.value.container_key == "media"
    assert excinfo.value.object_key == "missing.png"


def test_missing_bucket_on_get_raises_not_found(client) -> None:
    get = _response(status_code=403, text="<Error><Code>NoSuchBucket</Code></Error>")
    with mock.patch("requests.get", return_value=get):
        with pytest.raises(SourceNotFound):
            client.open_read_stream("nope", "a.png", allow_modifications=True)
    get.close.assert_called_once()


@pytest.mark.parametrize("status_code", [403, 412, 500, 503])
def test_failed_get_raises_unavailable(client, status_code) -> None:
    get = _response(status_code=status_code, text="<Error><Code>AccessDenied</Code></Error>")
    with mock.patch("requests.get", return_value=get):
        with pytest.raises(SourceUnavailable):
            client.open_read_stream("media", "a.png", allow_modifications=True)
    get.close.assert_called_once()


def test_connection_errors_raise_unavailable(client) -> None:
    with mock.patch("requests.head", side_effect=requests.exceptions.ConnectionError("refused")):
        with pytest.raises(SourceUnavailable) as excinfo:
            client.open_read_stream("media", "a.png")
    assert "refused" in excinfo.value.reason


def test_signed_headers_are_deterministic(client) -> None:
    now = datetime.datetime(2024, 5, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)
    first = client._signed_headers("GET", "media.nyc3.digitaloceanspaces.com", "/a.png", now=now)
    second = client._signed_headers("GET", "media.nyc3.digitaloceanspaces.com", "/a.png", now=now)

    assert first == second
    assert first["x-amz-date"] == "20240501T120000Z"
    assert first["Authorization"].startswith(
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20240501/nyc3/s3/aws4_request, "
        "SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature="
    )


def test_blob_stream_close_is_idempotent() -> None:
    response = _response(body=b"abc")
    stream = BlobStream(response, "c1", "a.png")

    stream.close()
    stream.close()

    response.close.assert_called_once()
    assert stream.closed
    with pytest.raises(ValueError):
        stream.read()


def test_blob_stream_connection_drop_is_source_unavailable() -> None:
    response = _response(body=b"abc")
    response.raw.read.side_effect = urllib3.exceptions.ProtocolError("Connection broken")
    stream = BlobStream(response, "c1", "a.png")

    with pytest.raises(SourceUnavailable) as exc_info:
        stream.read(1024)

    assert exc_info.value.container_key == "c1"
    assert exc_info.value.object_key == "a.png"
    assert isinstance(exc_info.value.__cause__, urllib3.exceptions.ProtocolError)

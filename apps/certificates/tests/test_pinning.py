import json
from unittest import mock

import pytest
import requests

from apps.certificates.pinning import PinataCredentials, PinningService, build_pinning_service


def _response(status_code=200, payload=None, content=b""):
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.text = json.dumps(payload) if payload is not None else ""
    response.content = content
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def service(session):
    return PinningService(
        PinataCredentials(api_key="key", api_secret="secret"),
        session=session,
        api_url="https://pinata.test",
        gateway_url="https://gateway.pinata.test/ipfs",
        timeout=5,
    )


def test_upload_posts_file_with_credentials(service, session):
    session.post.return_value = _response(payload={"IpfsHash": "bafyimage", "PinSize": 2048})

    pinned = service.upload("<svg/>", "W3V-2026-00001.svg")

    assert pinned.hash == "bafyimage"
    assert pinned.ipfs_url == "ipfs://bafyimage"
    assert pinned.gateway_url == "https://gateway.pinata.test/ipfs/bafyimage"
    assert pinned.size == 2048

    kwargs = session.post.call_args.kwargs
    assert kwargs["url"] == "https://pinata.test/pinning/pinFileToIPFS"
    assert kwargs["headers"] == {
        "pinata_api_key": "key",
        "pinata_secret_api_key": "secret",
    }
    assert kwargs["files"]["file"] == ("W3V-2026-00001.svg", b"<svg/>", "image/svg+xml")
    metadata = json.loads(kwargs["data"]["pinataMetadata"])
    assert metadata["keyvalues"] == {"project": "Web3Versity", "type": "certificate"}
    assert kwargs["timeout"] == 5


def test_upload_json_wraps_content(service, session):
    session.post.return_value = _response(payload={"IpfsHash": "bafymeta"})

    pinned = service.upload_json({"name": "Certificate"}, "W3V-2026-00001-metadata.json")

    assert pinned.ipfs_url == "ipfs://bafymeta"
    body = session.post.call_args.kwargs["json"]
    assert body["pinataContent"] == {"name": "Certificate"}
    assert body["pinataMetadata"]["keyvalues"]["type"] == "metadata"
    assert session.post.call_args.kwargs["url"] == "https://pinata.test/pinning/pinJSONToIPFS"


@pytest.mark.parametrize(
    "outcome",
    [
        requests.ConnectionError("down"),
        _response(status_code=401, payload={"error": "unauthorized"}),
        _response(payload={"unexpected": True}),
        _response(),
    ],
)
def test_pinning_failures_return_none(service, session, outcome):
    if isinstance(outcome, Exception):
        session.post.side_effect = outcome
    else:
        session.post.return_value = outcome

    assert service.upload("<svg/>", "a.svg") is None


def test_disabled_service_skips_requests(session):
    service = PinningService(None, session=session)

    assert service.enabled is False
    assert service.upload("<svg/>", "a.svg") is None
    assert service.upload_json({}, "a.json") is None
    assert service.test_authentication() is False
    session.post.assert_not_called()


def test_fetch_reads_gateway(service, session):
    session.get.return_value = _response(content=b'{"ok": true}')

    assert service.fetch("bafymeta") == b'{"ok": true}'
    session.get.assert_called_once_with("https://gateway.pinata.test/ipfs/bafymeta", timeout=5)


def test_fetch_failures_return_none(service, session):
    session.get.return_value = _response(status_code=504)
    assert service.fetch("bafymeta") is None

    session.get.side_effect = requests.Timeout("slow")
    assert service.fetch("bafymeta") is None

    assert service.fetch("") is None


def test_authentication_check(service, session):
    session.get.return_value = _response(status_code=200, payload={"message": "ok"})
    assert service.test_authentication() is True

    session.get.return_value = _response(status_code=401, payload={})
    assert service.test_authentication() is False


def test_builder_requires_both_credentials(settings):
    settings.PINATA_API_KEY = "key"
    settings.PINATA_API_SECRET = ""

    assert build_pinning_service().enabled is False

    settings.PINATA_API_SECRET = "secret"
    assert build_pinning_service().enabled is True

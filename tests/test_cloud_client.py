import json

import pytest
import responses

from vagrantbox.cloud_client import (
    Box,
    CloudProvider,
    Upload,
    VagrantCloudClient,
    VagrantCloudError,
    VagrantCloudErrors,
    Version,
    connect,
)

BASE = "https://cloud.example.com/api/v1"


@pytest.fixture
def mocked():
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.mark.parametrize(
    "body, expected",
    [
        ('{"Status":"422 Unprocessable Entity", "StatusCode":422, "errors":[]}', ""),
        ('{"Status":"404 Artifact not found", "StatusCode":404, "errors":["error1", "error2"]}', "error1. error2"),
        ('{"StatusCode":403, "errors":[{"message":"Bad credentials"}]}', "message Bad credentials"),
        ('{"StatusCode":500, "errors":[["error in unexpected format"]]}', "[error in unexpected format]"),
    ],
)
def test_format_errors(body, expected):
    assert VagrantCloudErrors.from_json(body).format_errors() == expected


def test_format_errors_missing_key_is_empty():
    assert VagrantCloudErrors.from_json("{}").format_errors() == ""


def test_connect_sends_bearer_token(mocked):
    mocked.add(responses.GET, f"{BASE}/authenticate", status=200)
    client = connect(BASE, "token")
    assert client.access_token == "token"
    request = mocked.calls[0].request
    assert request.headers["Authorization"] == "Bearer token"
    assert request.headers["Content-Type"] == "application/json"


def test_connect_refused_raises(mocked):
    mocked.add(responses.GET, f"{BASE}/authenticate", status=401)
    with pytest.raises(VagrantCloudError, match="401"):
        connect(BASE, "token")


def test_connect_without_token_sends_no_authorization(mocked):
    mocked.add(responses.GET, f"{BASE}/authenticate", status=200)
    client = connect(BASE, "")
    assert client.access_token == ""
    assert "Authorization" not in mocked.calls[0].request.headers


def test_connect_insecure_disables_verification(mocked):
    mocked.add(responses.GET, f"{BASE}/authenticate", status=200)
    client = connect(BASE, "token", True)
    assert client.session.verify is False


def test_post_encodes_json_body(mocked):
    mocked.add(responses.POST, f"{BASE}/box/hashicorp/precise64/versions", status=200, body="{}")
    client = VagrantCloudClient(BASE, "token")
    version = Version("0.5", "bar")
    response = client.post("box/hashicorp/precise64/versions", {"version": version.to_dict()})
    assert response.status_code == 200
    sent = json.loads(mocked.calls[0].request.body)
    assert sent == {"version": {"version": "0.5", "description": "bar"}}


def test_delete_and_put_use_methods(mocked):
    mocked.add(responses.DELETE, f"{BASE}/box/a/version/1/provider/vb", status=200)
    mocked.add(responses.PUT, f"{BASE}/box/a/version/1/release", status=200)
    client = VagrantCloudClient(BASE, "token")
    assert client.delete("box/a/version/1/provider/vb").status_code == 200
    assert client.put("box/a/version/1/release").status_code == 200
    assert [call.request.method for call in mocked.calls] == ["DELETE", "PUT"]


def test_upload_sends_file_with_headers(mocked, tmp_path):
    box = tmp_path / "test.box"
    box.write_bytes(b"hello")
    mocked.add(responses.PUT, "https://storage.example.com/up", status=200)
    client = VagrantCloudClient(BASE, "token")
    assert client.upload(str(box), "https://storage.example.com/up").status_code == 200
    request = mocked.calls[0].request
    assert request.headers["Content-Length"] == "5"
    assert request.headers["Authorization"] == "Bearer token"


def test_direct_upload_has_no_api_headers(mocked, tmp_path):
    box = tmp_path / "test.box"
    box.write_bytes(b"abc")
    mocked.add(responses.PUT, "https://storage.example.com/direct", status=200)
    client = VagrantCloudClient(BASE, "token")
    response = client.direct_upload(str(box), "https://storage.example.com/direct")
    assert response.status_code == 200
    request = mocked.calls[0].request
    assert "Authorization" not in request.headers
    assert request.headers["Content-Length"] == "3"


def test_upload_missing_file_raises(tmp_path):
    client = VagrantCloudClient(BASE, "token")
    with pytest.raises(VagrantCloudError, match="Error opening file for upload"):
        client.upload(str(tmp_path / "missing.box"), "https://storage.example.com/up")


def test_callback_puts_to_url(mocked):
    mocked.add(responses.PUT, f"{BASE}/box-upload-complete", status=200)
    client = VagrantCloudClient(BASE, "token")
    assert client.callback(f"{BASE}/box-upload-complete").status_code == 200
    assert mocked.calls[0].request.method == "PUT"


def test_box_has_version():
    box = Box.from_dict({"tag": "hashicorp/precise64", "versions": [{"version": "0.4"}, {"version": "0.5"}]})
    assert box.tag == "hashicorp/precise64"
    assert box.has_version("0.5") == Version("0.5")
    assert box.has_version("0.6") is None


def test_provider_to_dict_omits_empty_fields():
    assert CloudProvider("virtualbox").to_dict() == {"name": "virtualbox"}
    assert CloudProvider("virtualbox", url="https://example.com/b.box").to_dict() == {
        "name": "virtualbox",
        "url": "https://example.com/b.box",
    }


def test_upload_from_dict():
    upload = Upload.from_dict({"upload_path": "https://example.com/up", "callback": "https://example.com/cb"})
    assert upload == Upload("https://example.com/up", "https://example.com/cb")
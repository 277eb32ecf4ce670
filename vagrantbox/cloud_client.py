"""HTTP client and data types for the Vagrant Cloud box registry API."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

import requests

log = logging.getLogger(__name__)

# Boxes larger than this cannot be sent with a direct upload.
DIRECT_UPLOAD_LIMIT = 5368709120


class VagrantCloudError(Exception):
    """Raised when a request to Vagrant Cloud cannot be made or is refused."""


def _go_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def _go_string(value: Any) -> str:
    """Render a decoded JSON value the way a ``%s`` verb would."""
    if isinstance(value, str):
        return value
    if value is None:
        return "%!s(<nil>)"
    if isinstance(value, bool):
        return f"%!s(bool={'true' if value else 'false'})"
    if isinstance(value, (int, float)):
        return f"%!s(float64={_go_number(value)})"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_go_string(item) for item in value) + "]"
    if isinstance(value, Mapping):
        items = " ".join(f"{key}:{_go_string(value[key])}" for key in sorted(value))
        return f"map[{items}]"
    return str(value)


@dataclass
class VagrantCloudErrors:
    """The ``errors`` list of an API error response."""

    errors: list[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VagrantCloudErrors:
        return cls(list(data.get("errors") or []))

    @classmethod
    def from_json(cls, text: str) -> VagrantCloudErrors:
        data = json.loads(text)
        if not isinstance(data, Mapping):
            raise ValueError("error response is not a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_response(cls, response: requests.Response) -> VagrantCloudErrors:
        return cls.from_json(response.text)

    def format_errors(self) -> str:
        """Join all errors into one readable message."""
        parts: list[str] = []
        for error in self.errors:
            if isinstance(error, str):
                parts.append(error)
            elif isinstance(error, Mapping):
                parts.extend(f"{key} {_go_string(value)}" for key, value in error.items())
            else:
                parts.append(_go_string(error))
        return ". ".join(parts)


@dataclass
class Version:
    """A version of a box."""

    version: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Version:
        return cls(str(data.get("version", "")), str(data.get("description") or ""))

    def to_dict(self) -> dict[str, str]:
        result = {"version": self.version}
        if self.description:
            result["description"] = self.description
        return result


@dataclass
class CloudProvider:
    """A provider entry of a box version."""

    name: str
    url: str = ""
    hosted_token: str = ""
    upload_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CloudProvider:
        return cls(
            str(data.get("name", "")),
            str(data.get("url") or ""),
            str(data.get("hosted_token") or ""),
            str(data.get("upload_url") or ""),
        )

    def to_dict(self) -> dict[str, str]:
        result = {"name": self.name}
        for key, value in (
            ("url", self.url),
            ("hosted_token", self.hosted_token),
            ("upload_url", self.upload_url),
        ):
            if value:
                result[key] = value
        return result


@dataclass
class Box:
    """A box and the versions it already has."""

    tag: str
    versions: list[Version] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Box:
        versions = [Version.from_dict(item) for item in data.get("versions") or []]
        return cls(str(data.get("tag", "")), versions)

    def has_version(self, version: str) -> Version | None:
        """The version named ``version``, or None if the box lacks it."""
        return next((v for v in self.versions if v.version == version), None)


@dataclass
class Upload:
    """Where to send a box file and which URL confirms the upload."""

    upload_path: str = ""
    callback: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Upload:
        return cls(str(data.get("upload_path") or ""), str(data.get("callback") or ""))


class VagrantCloudClient:
    """Sends authenticated requests to the Vagrant Cloud API."""

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.access_token = access_token
        self.session = session if session is not None else requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        response = self.session.request(method, url, **kwargs)
        log.debug("Vagrant Cloud API response: %s %s", response.status_code, response.reason)
        return response

    def validate_authentication(self) -> None:
        """Check the access token; raise VagrantCloudError if it is refused."""
        response = self.get("authenticate")
        try:
            if response.status_code != 200:
                raise VagrantCloudError(f"{response.status_code} {response.reason or ''}".strip())
        finally:
            response.close()

    def get(self, path: str) -> requests.Response:
        url = self._url(path)
        log.debug("Vagrant Cloud API GET: %s", url)
        return self._send("GET", url, headers=self._headers())

    def delete(self, path: str) -> requests.Response:
        url = self._url(path)
        scrubbed = url.replace(self.access_token, "ACCESS_TOKEN") if self.access_token else url
        log.debug("Vagrant Cloud API DELETE: %s", scrubbed)
        return self._send("DELETE", url, headers=self._headers())

    def _put_file(self, path: str, url: str, headers: dict[str, str]) -> requests.Response:
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise VagrantCloudError(f"Error opening file for upload: {exc}") from exc
        with handle:
            try:
                size = os.fstat(handle.fileno()).st_size
            except OSError as exc:
                raise VagrantCloudError(f"Error stating file for upload: {exc}") from exc
            headers = {**headers, "Content-Length": str(size)}
            return self._send("PUT", url, data=handle, headers=headers)

    def upload(self, path: str, url: str) -> requests.Response:
        """Upload the file at ``path`` to ``url`` with the API headers."""
        log.debug("Vagrant Cloud API Upload: %s %s", path, url)
        return self._put_file(path, url, self._headers())

    def direct_upload(self, path: str, url: str) -> requests.Response:
        """Upload the file at ``path`` straight to storage, without API headers."""
        log.debug("Vagrant Cloud API Direct Upload: %s %s", path, url)
        return self._put_file(path, url, {})

    def callback(self, url: str) -> requests.Response:
        """Confirm that a direct upload has completed."""
        log.debug("Vagrant Cloud API Direct Upload Callback: %s", url)
        return self._send("PUT", url, headers=self._headers())

    def post(self, path: str, body: Any) -> requests.Response:
        url = self._url(path)
        try:
            encoded = json.dumps(body) + "\n"
        except (TypeError, ValueError) as exc:
            raise VagrantCloudError(f"Error encoding body for request: {exc}") from exc
        log.debug("Vagrant Cloud API POST: %s. Body: %s", url, encoded)
        return self._send("POST", url, data=encoded.encode("utf-8"), headers=self._headers())

    def put(self, path: str) -> requests.Response:
        url = self._url(path)
        log.debug("Vagrant Cloud API PUT: %s", url)
        return self._send("PUT", url, headers=self._headers())


def connect(
    base_url: str,
    token: str = "",
    insecure_skip_tls_verify: bool = False,
) -> VagrantCloudClient:
    """Create a client and check that the API accepts its access token."""
    session = requests.Session()
    if insecure_skip_tls_verify:
        session.verify = False
    client = VagrantCloudClient(base_url, token, session)
    client.validate_authentication()
    return client
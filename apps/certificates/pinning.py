"""Best-effort secondary publishing to the Pinata IPFS pinning service.

Every public method swallows pinning failures after logging them: secondary
storage must never block or fail an issuance.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import requests
from django.conf import settings

from .exceptions import PinningError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.pinata.cloud"
DEFAULT_GATEWAY_URL = "https://gateway.pinata.cloud/ipfs"
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class PinataCredentials:
    api_key: str
    api_secret: str

    @classmethod
    def from_settings(cls) -> Optional["PinataCredentials"]:
        api_key = getattr(settings, "PINATA_API_KEY", "")
        api_secret = getattr(settings, "PINATA_API_SECRET", "")
        if not api_key or not api_secret:
            return None
        return cls(api_key=api_key, api_secret=api_secret)

    def headers(self) -> dict[str, str]:
        return {
            "pinata_api_key": self.api_key,
            "pinata_secret_api_key": self.api_secret,
        }


@dataclass(frozen=True)
class PinnedContent:
    hash: str
    ipfs_url: str
    gateway_url: str
    size: int


class PinningService:
    def __init__(
        self,
        credentials: Optional[PinataCredentials] = None,
        *,
        session: Optional[requests.Session] = None,
        api_url: Optional[str] = None,
        gateway_url: Optional[str] = None,
        timeout: Optional[float] = None,
        project: str = "Web3Versity",
    ):
        self.credentials = credentials
        self.session = session or requests.Session()
        self.api_url = (api_url or getattr(settings, "PINATA_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.gateway_url = (
            gateway_url or getattr(settings, "PINATA_GATEWAY_URL", DEFAULT_GATEWAY_URL)
        ).rstrip("/")
        self.timeout = timeout or getattr(settings, "LEDGER_HTTP_TIMEOUT", DEFAULT_TIMEOUT)
        self.project = project

    @property
    def enabled(self) -> bool:
        return self.credentials is not None

    def _metadata(self, name: str, kind: str) -> dict[str, Any]:
        return {"name": name, "keyvalues": {"project": self.project, "type": kind}}

    def _pinned(self, response: requests.Response) -> PinnedContent:
        if response.status_code >= 400:
            raise PinningError(f"Pinata returned HTTP {response.status_code}: {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise PinningError("Pinata returned a non-JSON response") from exc
        ipfs_hash = payload.get("IpfsHash")
        if not ipfs_hash:
            raise PinningError("Pinata response did not include an IpfsHash")
        return PinnedContent(
            hash=ipfs_hash,
            ipfs_url=f"ipfs://{ipfs_hash}",
            gateway_url=f"{self.gateway_url}/{ipfs_hash}",
            size=int(payload.get("PinSize") or 0),
        )

    def _post(self, name: str, **kwargs) -> Optional[PinnedContent]:
        if not self.enabled:
            logger.info("Pinata credentials not configured; skipping pin of %s", name)
            return None
        try:
            response = self.session.post(
                headers=self.credentials.headers(),
                timeout=self.timeout,
                **kwargs,
            )
            pinned = self._pinned(response)
        except (requests.RequestException, PinningError) as exc:
            logger.warning(
                "Pinning %s failed; continuing without secondary copy",
                name,
                extra={"context": {"error": str(exc)}},
            )
            return None

        logger.info(
            "Pinned %s as %s",
            name,
            pinned.hash,
            extra={"context": {"size": pinned.size}},
        )
        return pinned

    def upload(
        self,
        content: Union[bytes, str],
        name: str,
        *,
        content_type: str = "image/svg+xml",
    ) -> Optional[PinnedContent]:
        """Pin a file; return ``None`` when pinning is disabled or fails."""

        if isinstance(content, str):
            content = content.encode("utf-8")
        return self._post(
            name,
            url=f"{self.api_url}/pinning/pinFileToIPFS",
            files={"file": (name, content, content_type)},
            data={
                "pinataMetadata": json.dumps(self._metadata(name, "certificate")),
                "pinataOptions": json.dumps({"cidVersion": 1}),
            },
        )

    def upload_json(self, data: Mapping[str, Any], name: str) -> Optional[PinnedContent]:
        """Pin a JSON document; return ``None`` when pinning is disabled or fails."""

        return self._post(
            name,
            url=f"{self.api_url}/pinning/pinJSONToIPFS",
            json={
                "pinataContent": dict(data),
                "pinataMetadata": self._metadata(name, "metadata"),
                "pinataOptions": {"cidVersion": 1},
            },
        )

    def fetch(self, ipfs_hash: str) -> Optional[bytes]:
        """Read pinned content through the public gateway."""

        if not ipfs_hash:
            return None
        try:
            response = self.session.get(f"{self.gateway_url}/{ipfs_hash}", timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning(
                "Gateway read of %s failed", ipfs_hash, extra={"context": {"error": str(exc)}}
            )
            return None
        if response.status_code >= 400:
            logger.warning(
                "Gateway read of %s returned HTTP %s", ipfs_hash, response.status_code
            )
            return None
        return response.content

    def test_authentication(self) -> bool:
        """Return ``True`` when Pinata accepts the configured credentials."""

        if not self.enabled:
            return False
        try:
            response = self.session.get(
                f"{self.api_url}/data/testAuthentication",
                headers=self.credentials.headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Pinata authentication check failed: %s", exc)
            return False
        return response.status_code == 200


def build_pinning_service() -> PinningService:
    return PinningService(PinataCredentials.from_settings())


__all__ = [
    "PinataCredentials",
    "PinnedContent",
    "PinningService",
    "build_pinning_service",
]

"""Read-only client for the ledger's public mirror node REST API."""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests
from django.conf import settings

from .exceptions import IndexerError, IndexerNotFound

logger = logging.getLogger(__name__)

DEFAULT_MIRROR_NODE_URL = "https://testnet.mirrornode.hedera.com"
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class NftInfo:
    token_id: str
    serial_number: int
    account_id: Optional[str]
    metadata: bytes
    deleted: bool
    created_timestamp: Optional[str] = None
    modified_timestamp: Optional[str] = None

    @property
    def metadata_text(self) -> str:
        return self.metadata.decode("utf-8", errors="replace")


def _decode_base64(value: Optional[str], *, field: str) -> bytes:
    if not value:
        return b""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise IndexerError(f"Mirror node returned invalid base64 in {field}") from exc


class MirrorNodeClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (
            base_url or getattr(settings, "LEDGER_MIRROR_NODE_URL", DEFAULT_MIRROR_NODE_URL)
        ).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or getattr(settings, "LEDGER_HTTP_TIMEOUT", DEFAULT_TIMEOUT)

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        url = f"{self.base_url}/api/v1/{path.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise IndexerError(f"Mirror node request failed: {exc}") from exc

        if response.status_code == 404:
            raise IndexerNotFound(f"Mirror node has no record at {path}")
        if response.status_code >= 400:
            raise IndexerError(f"Mirror node returned HTTP {response.status_code} for {path}")
        try:
            return response.json()
        except ValueError as exc:
            raise IndexerError(f"Mirror node returned a non-JSON body for {path}") from exc

    def get_file(self, file_id: str) -> bytes:
        payload = self._get(f"files/{file_id}")
        if "file_data" not in payload:
            raise IndexerNotFound(f"File {file_id} has no contents on the mirror node yet")
        return _decode_base64(payload.get("file_data"), field="file_data")

    def get_nft(self, token_id: str, serial_number: int) -> NftInfo:
        payload = self._get(f"tokens/{token_id}/nfts/{serial_number}")
        return NftInfo(
            token_id=token_id,
            serial_number=int(serial_number),
            account_id=payload.get("account_id"),
            metadata=_decode_base64(payload.get("metadata"), field="metadata"),
            deleted=bool(payload.get("deleted", False)),
            created_timestamp=payload.get("created_timestamp"),
            modified_timestamp=payload.get("modified_timestamp"),
        )

    def get_nft_transactions(self, token_id: str, serial_number: int) -> list[dict[str, Any]]:
        payload = self._get(
            f"tokens/{token_id}/nfts/{serial_number}/transactions", params={"order": "desc"}
        )
        return list(payload.get("transactions") or [])

    def find_transfer_to(
        self, token_id: str, serial_number: int, account_id: str
    ) -> Optional[str]:
        """Return the id of the latest transaction delivering the unit to ``account_id``."""

        for entry in self.get_nft_transactions(token_id, serial_number):
            if entry.get("receiver_account_id") == account_id and entry.get("transaction_id"):
                return str(entry["transaction_id"])
        return None


__all__ = ["MirrorNodeClient", "NftInfo"]

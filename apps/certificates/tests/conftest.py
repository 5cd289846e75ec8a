"""In-memory stand-ins for the ledger, its indexer and the pinning service."""
from __future__ import annotations

import json
from typing import Optional

import pytest

from apps.certificates.exceptions import IndexerNotFound, LedgerError, TokenNotAssociatedError
from apps.certificates.file_storage import LedgerFileStore
from apps.certificates.ledger import SUCCESS, TOKEN_NOT_ASSOCIATED, LedgerReceipt, MintReceipt
from apps.certificates.mirror import NftInfo
from apps.certificates.pinning import PinnedContent
from apps.certificates.services.issuance import CertificateIssuer

TREASURY = "0.0.1001"
COLLECTION = "0.0.5005"


class FakeLedger:
    def __init__(self):
        self.treasury_account_id = TREASURY
        self.files: dict[str, bytes] = {}
        self.nfts: dict[tuple[str, int], dict] = {}
        self.transfers: list[dict] = []
        self.appends: list[tuple[str, int]] = []
        self.associated: set[str] = {"0.0.7007"}
        self.create_status = SUCCESS
        self.append_statuses: dict[int, str] = {}
        self.mint_error: Optional[Exception] = None
        self.transfer_error: Optional[Exception] = None
        self._counter = 0

    def _tx(self) -> str:
        self._counter += 1
        return f"{TREASURY}@1700000000.{self._counter:09d}"

    def create_file(self, contents: bytes, *, memo: str = "") -> LedgerReceipt:
        if self.create_status != SUCCESS:
            return LedgerReceipt(status=self.create_status, transaction_id=self._tx())
        file_id = f"0.0.{9000 + len(self.files)}"
        self.files[file_id] = bytes(contents)
        self.appends.append((file_id, 0))
        return LedgerReceipt(status=SUCCESS, transaction_id=self._tx(), file_id=file_id)

    def append_file(self, file_id: str, contents: bytes) -> LedgerReceipt:
        index = sum(1 for appended, _ in self.appends if appended == file_id)
        self.appends.append((file_id, index))
        status = self.append_statuses.get(index, SUCCESS)
        if status == SUCCESS:
            self.files[file_id] += bytes(contents)
        return LedgerReceipt(status=status, transaction_id=self._tx(), file_id=file_id)

    def mint_nft(self, token_id: str, metadata: bytes) -> MintReceipt:
        if self.mint_error is not None:
            raise self.mint_error
        serial = sum(1 for token, _ in self.nfts if token == token_id) + 1
        self.nfts[(token_id, serial)] = {"account_id": TREASURY, "metadata": bytes(metadata)}
        return MintReceipt(serial_number=serial, transaction_id=self._tx())

    def transfer_nft(self, token_id, serial_number, recipient_account_id, *, memo=""):
        if self.transfer_error is not None:
            raise self.transfer_error
        if recipient_account_id not in self.associated:
            raise TokenNotAssociatedError(
                f"{recipient_account_id} is not associated", status=TOKEN_NOT_ASSOCIATED
            )
        nft = self.nfts[(token_id, serial_number)]
        if nft["account_id"] != TREASURY:
            raise LedgerError("SENDER_DOES_NOT_OWN_NFT_SERIAL_NO")
        nft["account_id"] = recipient_account_id
        transaction_id = self._tx()
        self.transfers.append(
            {
                "token_id": token_id,
                "serial_number": serial_number,
                "receiver_account_id": recipient_account_id,
                "transaction_id": transaction_id,
                "memo": memo,
            }
        )
        return transaction_id

    def account_balance(self, account_id=None) -> str:
        return "100 ℏ"


class FakeMirror:
    """Serves the fake ledger's state the way the public indexer would."""

    def __init__(self, ledger: FakeLedger):
        self.ledger = ledger
        self.file_reads = 0
        self.hidden_files: set[str] = set()

    def get_file(self, file_id: str) -> bytes:
        self.file_reads += 1
        if file_id in self.hidden_files or file_id not in self.ledger.files:
            raise IndexerNotFound(file_id)
        return self.ledger.files[file_id]

    def get_nft(self, token_id: str, serial_number: int) -> NftInfo:
        try:
            nft = self.ledger.nfts[(token_id, serial_number)]
        except KeyError:
            raise IndexerNotFound(f"{token_id}/{serial_number}") from None
        return NftInfo(
            token_id=token_id,
            serial_number=serial_number,
            account_id=nft["account_id"],
            metadata=nft["metadata"],
            deleted=nft.get("deleted", False),
        )

    def find_transfer_to(self, token_id, serial_number, account_id):
        for entry in reversed(self.ledger.transfers):
            if (
                entry["token_id"] == token_id
                and entry["serial_number"] == serial_number
                and entry["receiver_account_id"] == account_id
            ):
                return entry["transaction_id"]
        return None


class FakePinning:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.pinned: dict[str, bytes] = {}

    def _pin(self, name: str, content: bytes) -> Optional[PinnedContent]:
        if not self.enabled:
            return None
        ipfs_hash = f"bafy{len(self.pinned):04d}{name.replace('.', '')}"[:46]
        self.pinned[ipfs_hash] = content
        return PinnedContent(
            hash=ipfs_hash,
            ipfs_url=f"ipfs://{ipfs_hash}",
            gateway_url=f"https://gateway.pinata.test/ipfs/{ipfs_hash}",
            size=len(content),
        )

    def upload(self, content, name, *, content_type="image/svg+xml"):
        if isinstance(content, str):
            content = content.encode("utf-8")
        return self._pin(name, content)

    def upload_json(self, data, name):
        return self._pin(name, json.dumps(dict(data)).encode("utf-8"))

    def fetch(self, ipfs_hash):
        return self.pinned.get(ipfs_hash)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def mirror(ledger):
    return FakeMirror(ledger)


@pytest.fixture
def pinning():
    return FakePinning()


@pytest.fixture
def disabled_pinning():
    return FakePinning(enabled=False)


@pytest.fixture
def file_store(ledger, mirror):
    return LedgerFileStore(ledger, mirror, retry_attempts=3, retry_initial_delay=0)


@pytest.fixture
def issuer(ledger, file_store, pinning):
    return CertificateIssuer(
        ledger=ledger,
        file_store=file_store,
        pinning=pinning,
        collection_id=COLLECTION,
        secret="test-hmac-secret",
    )

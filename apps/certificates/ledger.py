"""Adapter between the issuance pipeline and the Hedera ledger SDK.

The pipeline talks to :class:`LedgerGateway`; :class:`HieroLedgerGateway`
implements it with ``hiero-sdk-python``. Tests substitute an in-memory fake.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Protocol

from django.conf import settings

from .exceptions import CertificateConfigurationError, LedgerError, TokenNotAssociatedError

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
TOKEN_NOT_ASSOCIATED = "TOKEN_NOT_ASSOCIATED_TO_ACCOUNT"


@dataclass(frozen=True)
class LedgerReceipt:
    status: str
    transaction_id: str = ""
    file_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS


@dataclass(frozen=True)
class MintReceipt:
    serial_number: int
    transaction_id: str


class LedgerGateway(Protocol):
    treasury_account_id: str

    def create_file(self, contents: bytes, *, memo: str = "") -> LedgerReceipt:
        ...

    def append_file(self, file_id: str, contents: bytes) -> LedgerReceipt:
        ...

    def mint_nft(self, token_id: str, metadata: bytes) -> MintReceipt:
        ...

    def transfer_nft(
        self, token_id: str, serial_number: int, recipient_account_id: str, *, memo: str = ""
    ) -> str:
        ...

    def account_balance(self, account_id: Optional[str] = None) -> str:
        ...


class HieroLedgerGateway:
    """Submit file, mint and transfer transactions with the operator account."""

    def __init__(self, *, network: str, operator_id: str, operator_key: str):
        if not operator_id or not operator_key:
            raise CertificateConfigurationError(
                "LEDGER_OPERATOR_ID and LEDGER_OPERATOR_KEY must be configured."
            )
        self.network = network
        self.treasury_account_id = operator_id
        self._operator_key_value = operator_key
        self._client = None
        self._operator_key = None

    def _sdk(self):
        try:
            import hiero_sdk_python
        except ImportError as exc:
            raise CertificateConfigurationError("hiero-sdk-python is not installed.") from exc
        return hiero_sdk_python

    def _parse_private_key(self):
        sdk = self._sdk()
        value = self._operator_key_value
        if value.startswith("302"):
            return sdk.PrivateKey.from_string_der(value)
        try:
            return sdk.PrivateKey.from_string_ecdsa(value)
        except ValueError:
            return sdk.PrivateKey.from_string_ed25519(value)

    @property
    def client(self):
        if self._client is None:
            sdk = self._sdk()
            client = sdk.Client(sdk.Network(network=self.network))
            client.set_operator(
                sdk.AccountId.from_string(self.treasury_account_id), self.operator_key
            )
            self._client = client
        return self._client

    @property
    def operator_key(self):
        if self._operator_key is None:
            self._operator_key = self._parse_private_key()
        return self._operator_key

    @contextmanager
    def _submitting(self, description: str):
        """Report anything the SDK raises as a :class:`LedgerError`.

        Covers building the client and parsing the operator key as well as the
        transaction itself. A missing SDK stays a configuration error.
        """

        try:
            yield
        except (LedgerError, CertificateConfigurationError):
            raise
        except Exception as exc:
            message = str(exc)
            logger.warning(
                "Ledger rejected %s", description, extra={"context": {"error": message}}
            )
            if TOKEN_NOT_ASSOCIATED in message:
                raise TokenNotAssociatedError(message, status=TOKEN_NOT_ASSOCIATED) from exc
            raise LedgerError(message) from exc

    def _status_name(self, receipt) -> str:
        sdk = self._sdk()
        try:
            return sdk.ResponseCode(receipt.status).name
        except ValueError:
            return str(receipt.status)

    def _execute(self, transaction):
        client = self.client
        transaction.freeze_with(client)
        transaction.sign(self.operator_key)
        receipt = transaction.execute(client)
        return receipt, str(transaction.transaction_id)

    def create_file(self, contents: bytes, *, memo: str = "") -> LedgerReceipt:
        with self._submitting("file create"):
            sdk = self._sdk()
            transaction = (
                sdk.FileCreateTransaction()
                .set_keys([self.operator_key.public_key()])
                .set_contents(contents)
                .set_file_memo(memo)
            )
            receipt, transaction_id = self._execute(transaction)
            file_id = getattr(receipt, "file_id", None)
            return LedgerReceipt(
                status=self._status_name(receipt),
                transaction_id=transaction_id,
                file_id=str(file_id) if file_id else None,
            )

    def append_file(self, file_id: str, contents: bytes) -> LedgerReceipt:
        with self._submitting("file append"):
            sdk = self._sdk()
            transaction = (
                sdk.FileAppendTransaction()
                .set_file_id(sdk.FileId.from_string(file_id))
                .set_contents(contents)
            )
            receipt, transaction_id = self._execute(transaction)
            return LedgerReceipt(
                status=self._status_name(receipt),
                transaction_id=transaction_id,
                file_id=file_id,
            )

    def mint_nft(self, token_id: str, metadata: bytes) -> MintReceipt:
        with self._submitting("mint"):
            sdk = self._sdk()
            transaction = (
                sdk.TokenMintTransaction()
                .set_token_id(sdk.TokenId.from_string(token_id))
                .set_metadata([metadata])
            )
            receipt, transaction_id = self._execute(transaction)
            status = self._status_name(receipt)
        if status != SUCCESS:
            raise LedgerError(f"Mint failed with status {status}", status=status, transaction_id=transaction_id)
        serials = list(getattr(receipt, "serial_numbers", None) or [])
        if not serials:
            raise LedgerError("Mint receipt carried no serial number", status=status, transaction_id=transaction_id)
        return MintReceipt(serial_number=int(serials[0]), transaction_id=transaction_id)

    def transfer_nft(
        self, token_id: str, serial_number: int, recipient_account_id: str, *, memo: str = ""
    ) -> str:
        with self._submitting("transfer"):
            sdk = self._sdk()
            nft_id = sdk.NftId(sdk.TokenId.from_string(token_id), serial_number)
            transaction = sdk.TransferTransaction().add_nft_transfer(
                nft_id,
                sdk.AccountId.from_string(self.treasury_account_id),
                sdk.AccountId.from_string(recipient_account_id),
            )
            if memo:
                transaction.set_transaction_memo(memo)
            receipt, transaction_id = self._execute(transaction)
            status = self._status_name(receipt)
        if status == TOKEN_NOT_ASSOCIATED:
            raise TokenNotAssociatedError(
                f"{recipient_account_id} is not associated with {token_id}",
                status=status,
                transaction_id=transaction_id,
            )
        if status != SUCCESS:
            raise LedgerError(f"Transfer failed with status {status}", status=status, transaction_id=transaction_id)
        return transaction_id

    def account_balance(self, account_id: Optional[str] = None) -> str:
        with self._submitting("balance query"):
            sdk = self._sdk()
            query = sdk.CryptoGetAccountBalanceQuery().set_account_id(
                sdk.AccountId.from_string(account_id or self.treasury_account_id)
            )
            balance = query.execute(self.client)
            return str(balance.hbars)


def build_ledger_gateway() -> HieroLedgerGateway:
    """Return a gateway configured from Django settings."""

    return HieroLedgerGateway(
        network=getattr(settings, "LEDGER_NETWORK", "testnet"),
        operator_id=getattr(settings, "LEDGER_OPERATOR_ID", ""),
        operator_key=getattr(settings, "LEDGER_OPERATOR_KEY", ""),
    )


__all__ = [
    "HieroLedgerGateway",
    "LedgerGateway",
    "LedgerReceipt",
    "MintReceipt",
    "SUCCESS",
    "TOKEN_NOT_ASSOCIATED",
    "build_ledger_gateway",
]

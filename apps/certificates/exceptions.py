"""Exceptions raised by the certificate issuance and verification pipeline."""

from __future__ import annotations


class LedgerError(Exception):
    """A ledger transaction was rejected or could not be submitted."""

    def __init__(self, message: str, *, status: str | None = None, transaction_id: str | None = None):
        super().__init__(message)
        self.status = status
        self.transaction_id = transaction_id


class TokenNotAssociatedError(LedgerError):
    """The recipient account has not associated the credential collection."""


class FileUploadError(Exception):
    """A write to ledger file storage returned a non-success status."""

    def __init__(self, message: str, *, status: str | None = None, chunk_index: int | None = None):
        super().__init__(message)
        self.status = status
        self.chunk_index = chunk_index


class IndexerError(Exception):
    """The public ledger indexer could not answer a query."""


class IndexerNotFound(IndexerError):
    """The indexer has no record of the requested entity (yet)."""


class PinningError(Exception):
    """The pinning service rejected a request or returned an unusable response."""


class SigningConfigurationError(Exception):
    """The platform signing secret is missing."""


class CertificateIssuanceError(Exception):
    """Base class for failures while issuing a certificate."""

    stage: str = ""

    def __init__(self, message: str, *, certificate_number: str | None = None):
        super().__init__(message)
        self.certificate_number = certificate_number


class CertificateConfigurationError(CertificateIssuanceError):
    """Required ledger or signing configuration is missing."""


class CertificateUploadError(CertificateIssuanceError):
    """The certificate image or metadata could not be stored."""

    stage = "upload"


class OnChainMetadataTooLarge(CertificateIssuanceError):
    """The metadata pointer does not fit in the on-chain metadata field."""

    stage = "upload"


class CertificateMintError(CertificateIssuanceError):
    """Minting the credential unit failed or its outcome is unknown."""

    stage = "mint"


class CertificateTransferError(CertificateIssuanceError):
    """The minted unit could not be transferred to the recipient."""

    stage = "transfer"


__all__ = [
    "CertificateConfigurationError",
    "CertificateIssuanceError",
    "CertificateMintError",
    "CertificateTransferError",
    "CertificateUploadError",
    "FileUploadError",
    "IndexerError",
    "IndexerNotFound",
    "LedgerError",
    "OnChainMetadataTooLarge",
    "PinningError",
    "SigningConfigurationError",
    "TokenNotAssociatedError",
]

"""Certificate issuance, verification and reconciliation services."""

from .issuance import (
    AssociationInstructions,
    CertificateIssuer,
    IssuanceDenial,
    IssuanceResult,
    build_certificate_issuer,
)
from .numbering import allocate_certificate_number
from .reconciliation import ReconciliationSummary, reconcile_minted_certificates
from .verification import CertificateVerifier, VerificationReport, build_certificate_verifier

__all__ = [
    "AssociationInstructions",
    "CertificateIssuer",
    "CertificateVerifier",
    "IssuanceDenial",
    "IssuanceResult",
    "ReconciliationSummary",
    "VerificationReport",
    "allocate_certificate_number",
    "build_certificate_issuer",
    "build_certificate_verifier",
    "reconcile_minted_certificates",
]

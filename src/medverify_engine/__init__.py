"""MedVerify-Engine: pharmaceutical product verification against a registry and ledger."""

from medverify_engine.client import VerificationClient
from medverify_engine.qr.codec import compute_token_hash, encode_payload, is_valid_hash, parse_payload
from medverify_engine.verification.verdict import Confidence, VerificationStatus

__all__ = [
    "VerificationClient",
    "compute_token_hash",
    "encode_payload",
    "is_valid_hash",
    "parse_payload",
    "Confidence",
    "VerificationStatus",
]
__version__ = "0.1.0"

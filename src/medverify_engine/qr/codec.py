"""
QR payload codec and token hash helpers.

The payload encoded into a QR image is deliberately minimal:

    {"h": <token hash>, "p": <product id>, "t": <issued-at epoch millis>}

No name, manufacturer or batch data ever goes into the image, so a
photographed label leaks nothing useful for building a fake. The older
verbose form ``{"qrHash", "productId", "timestamp"}`` is still accepted
on input but is never produced.
"""

import hashlib
import json
import logging
import re
import secrets
from dataclasses import dataclass

from medverify_engine.common.exceptions import InvalidQrFormatError

logger = logging.getLogger(__name__)

TOKEN_HASH_PATTERN = re.compile(r"^[a-f0-9]{64}$")
NONCE_BYTES = 16
MAX_PAYLOAD_LEN = 1024


@dataclass(frozen=True)
class QrPayload:
    """Fields carried by a scanned QR code."""

    token_hash: str
    product_id: str
    timestamp: int  # issued-at, epoch millis; informational only
    legacy: bool = False


def is_valid_hash(value: object) -> bool:
    """Check a token hash against the 64-lowercase-hex format."""
    return isinstance(value, str) and TOKEN_HASH_PATTERN.match(value) is not None


def new_nonce() -> str:
    return secrets.token_hex(NONCE_BYTES)


def compute_token_hash(product_id: str, nonce: str, issued_at_ms: int) -> str:
    """SHA-256 over product_id || nonce || issued-at millis, as lowercase hex."""
    message = f"{product_id}{nonce}{issued_at_ms}".encode()
    return hashlib.sha256(message).hexdigest()


def encode_payload(token_hash: str, product_id: str, issued_at_ms: int) -> str:
    """Render the compact JSON string that goes into the QR image."""
    return json.dumps(
        {"h": token_hash, "p": product_id, "t": issued_at_ms},
        separators=(",", ":"),
    )


def parse_payload(raw: str) -> QrPayload:
    """
    Parse a scanned QR string into its fields.

    Only structure is checked here; the hash format check is a separate
    step so callers can reject garbage before touching any store.

    Raises:
        InvalidQrFormatError: on anything that is not a well-formed payload
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidQrFormatError("QR data is empty")
    if len(raw) > MAX_PAYLOAD_LEN:
        raise InvalidQrFormatError("QR data is too long")

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise InvalidQrFormatError("QR data is not a recognised format") from exc
    if not isinstance(data, dict):
        raise InvalidQrFormatError("QR data is not a recognised format")

    legacy = False
    if "h" in data:
        token_hash, product_id, timestamp = data.get("h"), data.get("p"), data.get("t")
    elif "qrHash" in data:
        token_hash = data.get("qrHash")
        product_id = data.get("productId")
        timestamp = data.get("timestamp")
        legacy = True
        logger.info("Accepted legacy verbose QR payload")
    else:
        raise InvalidQrFormatError("QR data is missing the token hash")

    if not isinstance(token_hash, str):
        raise InvalidQrFormatError("QR data is missing the token hash")
    if not isinstance(product_id, str) or not product_id.strip():
        raise InvalidQrFormatError("QR data is missing the product ID")
    # bool is an int subclass; reject it explicitly
    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
        raise InvalidQrFormatError("QR data has an invalid timestamp")

    return QrPayload(
        token_hash=token_hash,
        product_id=product_id.strip(),
        timestamp=timestamp,
        legacy=legacy,
    )

"""
Webhook signature verification for monobank acquiring (X-Sign header)

monobank signs the raw webhook body with ECDSA over SHA-256; the signature is
ASN.1 DER, base64-encoded. The public key is a PEM container, distributed
base64-encoded by GET /api/merchant/pubkey.
"""

import base64
import binascii
import hashlib

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from ..models.errors import DecodeError, InvalidSignatureError, ValidationError

SIGNATURE_HEADER = "X-Sign"


def decode_base64(value: str, op: str, what: str) -> bytes:
    """
    Strictly decode standard base64

    Args:
        value: Base64 text
        op: Operation name for error context
        what: Description of the decoded value for error context

    Returns:
        Decoded bytes

    Raises:
        DecodeError: If value is not valid base64
    """
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(op=op, message=f"base64 decode {what}", cause=e) from e


def load_ecdsa_public_key(pem: bytes, op: str = "pubkey") -> ec.EllipticCurvePublicKey:
    """
    Parse a PEM (SubjectPublicKeyInfo) container into an EC public key

    Args:
        pem: PEM-encoded public key
        op: Operation name for error context

    Returns:
        Elliptic-curve public key

    Raises:
        DecodeError: If the container is malformed or holds a non-EC key
    """
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise DecodeError(op=op, message="parse PEM public key", cause=e) from e

    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise DecodeError(
            op=op,
            message=f"unexpected public key type {type(key).__name__} (expected ECDSA)",
        )
    return key


def verify_signature(
    public_key: ec.EllipticCurvePublicKey, body: bytes, signature: bytes
) -> bool:
    """Check a DER-encoded ECDSA signature over the SHA-256 digest of body"""
    digest = hashlib.sha256(body).digest()
    try:
        public_key.verify(signature, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        return False
    return True


def require_webhook_input(body: bytes, x_sign: str) -> str:
    """
    Validate verification inputs before any key resolution

    Returns:
        The signature header with surrounding whitespace removed
    """
    if not body:
        raise ValidationError(op="verify", message="body is empty")
    x_sign = (x_sign or "").strip()
    if not x_sign:
        raise ValidationError(op="verify", message=f"{SIGNATURE_HEADER} header is empty")
    return x_sign


def verify_webhook_signature(
    public_key: ec.EllipticCurvePublicKey, body: bytes, x_sign: str
) -> None:
    """
    Verify X-Sign against the exact raw body bytes

    Args:
        public_key: Resolved monobank EC public key
        body: Raw request body as received (never re-serialized)
        x_sign: X-Sign header value

    Raises:
        ValidationError: Empty body or header
        DecodeError: Header is not valid base64
        InvalidSignatureError: Signature does not match
    """
    x_sign = require_webhook_input(body, x_sign)
    signature = decode_base64(x_sign, op="verify", what=SIGNATURE_HEADER)
    if not verify_signature(public_key, body, signature):
        raise InvalidSignatureError(op="verify", message="invalid signature")

"""RS256 compact signatures over canonical JSON payloads.

Signing input is ``b64url(stable_json(header)) + "." + b64url(payload)`` where
both parts are base64url without padding. The signature is RSA PKCS#1 v1.5 with
SHA-256 over the UTF-8 bytes of that input, again base64url without padding.

Keys are loaded for a single call and never cached.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Dict, Mapping, Tuple, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import SigningError, VerificationFailure

logger = logging.getLogger(__name__)

RS256 = "RS256"
RSA_KEY_SIZE = 2048

KeyInput = Union[str, bytes, rsa.RSAPrivateKey, rsa.RSAPublicKey]

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def default_header() -> Dict[str, str]:
    return {"alg": RS256, "typ": "JWS"}


def stable_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def b64url_encode(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    if not isinstance(value, str) or _B64URL_RE.fullmatch(value.rstrip("=")) is None:
        raise ValueError("value must be base64url")
    value = value.rstrip("=")
    pad = "=" * ((4 - len(value) % 4) % 4)
    try:
        return base64.urlsafe_b64decode((value + pad).encode("ascii"))
    except Exception as exc:
        raise ValueError("value must be base64url") from exc


def signing_input(header: Mapping[str, Any], payload: str) -> bytes:
    return (b64url_encode(stable_json(dict(header))) + "." + b64url_encode(payload)).encode("utf-8")


def _as_bytes(key: Union[str, bytes]) -> bytes:
    return key.encode("utf-8") if isinstance(key, str) else bytes(key)


def _load_private_key(key: KeyInput) -> rsa.RSAPrivateKey:
    if isinstance(key, rsa.RSAPrivateKey):
        return key
    if not isinstance(key, (str, bytes, bytearray)):
        raise TypeError("private key must be PEM text or an RSA private key")
    loaded = serialization.load_pem_private_key(_as_bytes(key), password=None)
    if not isinstance(loaded, rsa.RSAPrivateKey):
        raise TypeError("private key must be an RSA key")
    return loaded


def _load_public_key(key: KeyInput) -> rsa.RSAPublicKey:
    if isinstance(key, rsa.RSAPublicKey):
        return key
    if isinstance(key, rsa.RSAPrivateKey):
        return key.public_key()
    if not isinstance(key, (str, bytes, bytearray)):
        raise TypeError("public key must be PEM text or an RSA public key")
    loaded = serialization.load_pem_public_key(_as_bytes(key))
    if not isinstance(loaded, rsa.RSAPublicKey):
        raise TypeError("public key must be an RSA key")
    return loaded


def sign_compact(header: Mapping[str, Any], payload: str, private_key: KeyInput) -> str:
    """Return the base64url RS256 signature of ``header``/``payload``.

    Raises :class:`SigningError` if the header does not ask for RS256 or the key
    cannot be used.
    """
    if header.get("alg") != RS256:
        raise SigningError(f"unsupported signature algorithm: {header.get('alg')}")
    try:
        key = _load_private_key(private_key)
        raw = key.sign(signing_input(header, payload), padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"failed to sign payload: {exc}") from exc
    return b64url_encode(raw)


def verify_compact(header: Mapping[str, Any], payload: str, signature: str, public_key: KeyInput) -> None:
    """Check an RS256 signature, raising :class:`VerificationFailure` on any mismatch."""
    if not isinstance(header, Mapping) or header.get("alg") != RS256:
        alg = header.get("alg") if isinstance(header, Mapping) else None
        raise VerificationFailure(f"unsupported signature algorithm: {alg}")
    try:
        key = _load_public_key(public_key)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise VerificationFailure(f"unusable public key: {exc}") from exc
    try:
        raw = b64url_decode(signature)
    except ValueError as exc:
        raise VerificationFailure("invalid signature encoding") from exc
    try:
        key.verify(raw, signing_input(header, payload), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature as exc:
        raise VerificationFailure("signature mismatch") from exc


def generate_key_pair() -> Tuple[str, str]:
    """Generate a 2048-bit RSA key pair as PKCS#1 PEM strings ``(private, public)``."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.PKCS1,
    ).decode("ascii")
    logger.info("generated %d-bit RSA key pair", RSA_KEY_SIZE)
    return private_pem, public_pem

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time


SECRET_PREFIX = "whsec_"


def _decode_secret(secret: str) -> bytes | None:
    raw = secret[len(SECRET_PREFIX):] if secret.startswith(SECRET_PREFIX) else secret
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return None


def _parse_signature_header(signature_header: str) -> list[str]:
    signatures: list[str] = []
    for part in signature_header.split():
        if "," not in part:
            continue
        version, value = part.split(",", 1)
        if version.strip() == "v1" and value.strip():
            signatures.append(value.strip())
    return signatures


def sign_svix_payload(secret: str, message_id: str, timestamp: str, raw_body: bytes) -> str:
    key = _decode_secret(secret)
    if key is None:
        raise ValueError("Webhook secret is not valid base64")
    payload = f"{message_id}.{timestamp}.".encode("utf-8") + raw_body
    digest = hmac.new(key, payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_svix_signature(
    raw_body: bytes,
    message_id: str | None,
    timestamp: str | None,
    signature_header: str | None,
    secret: str,
    tolerance_seconds: int = 300,
    now_ts: int | None = None,
) -> bool:
    """Verify a Svix-signed webhook as sent by the organization auth provider."""
    if not secret or not message_id or not timestamp or not signature_header:
        return False

    try:
        ts_int = int(timestamp)
    except ValueError:
        return False

    current = now_ts if now_ts is not None else int(time.time())
    if abs(current - ts_int) > tolerance_seconds:
        return False

    try:
        expected = sign_svix_payload(secret, message_id, timestamp, raw_body)
    except ValueError:
        return False

    return any(
        hmac.compare_digest(expected, candidate)
        for candidate in _parse_signature_header(signature_header)
    )

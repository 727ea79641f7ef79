from __future__ import annotations

import base64

from services.webhook_security import sign_svix_payload, verify_svix_signature


SECRET = "whsec_" + base64.b64encode(b"super-secret-signing-key").decode("ascii")


def _header(message_id: str, timestamp: int, body: bytes) -> str:
    return f"v1,{sign_svix_payload(SECRET, message_id, str(timestamp), body)}"


def test_verify_signature_valid() -> None:
    body = b'{"type":"organization.created"}'
    timestamp = 1_700_000_000

    assert verify_svix_signature(
        raw_body=body,
        message_id="msg_1",
        timestamp=str(timestamp),
        signature_header=_header("msg_1", timestamp, body),
        secret=SECRET,
        tolerance_seconds=300,
        now_ts=timestamp + 60,
    )


def test_verify_signature_accepts_any_listed_signature() -> None:
    body = b"{}"
    timestamp = 1_700_000_000
    header = f"v1,bm90LXRoaXMtb25l {_header('msg_1', timestamp, body)}"

    assert verify_svix_signature(
        raw_body=body,
        message_id="msg_1",
        timestamp=str(timestamp),
        signature_header=header,
        secret=SECRET,
        now_ts=timestamp,
    )


def test_verify_signature_rejects_tampered_body() -> None:
    timestamp = 1_700_000_000
    header = _header("msg_1", timestamp, b'{"name":"Acme"}')

    assert not verify_svix_signature(
        raw_body=b'{"name":"Evil"}',
        message_id="msg_1",
        timestamp=str(timestamp),
        signature_header=header,
        secret=SECRET,
        now_ts=timestamp,
    )


def test_verify_signature_rejects_old_timestamp() -> None:
    body = b"{}"
    timestamp = 1_700_000_000

    assert not verify_svix_signature(
        raw_body=body,
        message_id="msg_1",
        timestamp=str(timestamp),
        signature_header=_header("msg_1", timestamp, body),
        secret=SECRET,
        tolerance_seconds=300,
        now_ts=timestamp + 301,
    )


def test_verify_signature_requires_secret_and_headers() -> None:
    body = b"{}"
    timestamp = 1_700_000_000
    header = _header("msg_1", timestamp, body)

    assert not verify_svix_signature(body, "msg_1", str(timestamp), header, secret="", now_ts=timestamp)
    assert not verify_svix_signature(body, None, str(timestamp), header, secret=SECRET, now_ts=timestamp)
    assert not verify_svix_signature(body, "msg_1", "not-a-number", header, secret=SECRET)

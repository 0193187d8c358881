"""
Signature helpers for payment gateway traffic.

Midtrans signs notifications with a plain SHA-512 over
order_id + status_code + gross_amount + server_key.

DOKU signs both directions with HMAC-SHA256 over a newline-joined header
block; the body is bound in through a base64 SHA-256 ``Digest`` line.
"""

import base64
import hashlib
import hmac


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def midtrans_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_midtrans_signature(payload: dict, server_key: str) -> bool:
    if not server_key:
        return False
    expected = midtrans_signature(
        str(payload.get("order_id") or ""),
        str(payload.get("status_code") or ""),
        str(payload.get("gross_amount") or ""),
        server_key,
    )
    return constant_time_compare(expected, str(payload.get("signature_key") or ""))


def doku_digest(body: str) -> str:
    clean = (body or "").replace("\r", "")
    if not clean:
        return ""
    return base64.b64encode(hashlib.sha256(clean.encode("utf-8")).digest()).decode("utf-8")


def doku_signature(client_id: str, request_id: str, timestamp: str, target: str,
                   secret_key: str, body: str = "") -> str:
    lines = [
        f"Client-Id:{client_id}",
        f"Request-Id:{request_id}",
        f"Request-Timestamp:{timestamp}",
        f"Request-Target:{target}",
    ]
    digest = doku_digest(body)
    if digest:
        lines.append(f"Digest:{digest}")
    mac = hmac.new(secret_key.encode("utf-8"), "\n".join(lines).encode("utf-8"), hashlib.sha256)
    return "HMACSHA256=" + base64.b64encode(mac.digest()).decode("utf-8")


def verify_doku_signature(headers, body: str, target: str, client_id: str, secret_key: str) -> bool:
    if not client_id or not secret_key:
        return False
    supplied = headers.get("Signature") or ""
    expected = doku_signature(
        headers.get("Client-Id") or client_id,
        headers.get("Request-Id") or "",
        headers.get("Request-Timestamp") or "",
        target,
        secret_key,
        body,
    )
    if (headers.get("Client-Id") or client_id) != client_id:
        return False
    return constant_time_compare(expected, supplied)

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

SHA256_PREFIX = "sha256="
DEFAULT_TIMESTAMP_TOLERANCE_SECONDS = 300

class SignatureScheme(str, Enum):
    # "sha256=<hex>", prefix mandatory (source-control host style)
    github = "github"
    # "<hex>" or "sha256=<hex>" (email provider style)
    hmac_sha256 = "hmac_sha256"
    # "t=<unix>,v1=<hex>[,v1=...]" over "<t>.<body>" (payment provider style)
    timestamped = "timestamped"

def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

def _digest_matches(expected_hex: str, supplied: str) -> bool:
    # both sides as bytes, compare_digest handles unequal lengths without leaking where they differ
    try:
        supplied_b = supplied.strip().encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected_hex.encode("ascii"), supplied_b)

def verify_github(body: bytes, signature: str | None, secret: str, **_: object) -> bool:
    if not secret or not signature:
        return False
    if not signature.startswith(SHA256_PREFIX):
        return False
    return _digest_matches(_hmac_hex(secret, body), signature[len(SHA256_PREFIX):])

def verify_hmac_sha256(body: bytes, signature: str | None, secret: str, **_: object) -> bool:
    if not secret or not signature:
        return False
    sig = signature[len(SHA256_PREFIX):] if signature.startswith(SHA256_PREFIX) else signature
    return _digest_matches(_hmac_hex(secret, body), sig)

def parse_timestamped_header(signature: str) -> dict[str, list[str]]:
    parts: dict[str, list[str]] = {}
    for item in signature.split(","):
        if "=" not in item:
            continue
        k, v = item.split("=", 1)
        parts.setdefault(k.strip(), []).append(v.strip())
    return parts

def verify_timestamped(
    body: bytes,
    signature: str | None,
    secret: str,
    *,
    tolerance_seconds: int = DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
    now: float | None = None,
    **_: object,
) -> bool:
    if not secret or not signature:
        return False

    parts = parse_timestamped_header(signature)
    ts_list = parts.get("t") or []
    v1_list = parts.get("v1") or []
    if not ts_list or not v1_list:
        return False

    try:
        ts = int(ts_list[0])
    except ValueError:
        return False

    if tolerance_seconds > 0:
        current = time.time() if now is None else now
        if abs(current - ts) > tolerance_seconds:
            logger.warning("timestamped signature outside tolerance: t=%s", ts)
            return False

    expected = _hmac_hex(secret, f"{ts}.".encode("ascii") + body)

    # no early exit, every candidate is compared
    matched = False
    for cand in v1_list:
        if _digest_matches(expected, cand):
            matched = True
    return matched

Verifier = Callable[..., bool]

VERIFIERS: dict[SignatureScheme, Verifier] = {
    SignatureScheme.github: verify_github,
    SignatureScheme.hmac_sha256: verify_hmac_sha256,
    SignatureScheme.timestamped: verify_timestamped,
}

def verify_signature(
    scheme: SignatureScheme,
    body: bytes,
    signature: str | None,
    secret: str,
    **options: object,
) -> bool:
    verifier = VERIFIERS.get(scheme)
    if verifier is None:
        logger.warning("unknown signature scheme: %s", scheme)
        return False
    try:
        return verifier(body, signature, secret, **options)
    except Exception:
        # malformed input must reject, not escape the boundary
        logger.warning("signature verification raised for scheme=%s", scheme.value, exc_info=True)
        return False

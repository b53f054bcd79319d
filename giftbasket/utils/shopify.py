import base64
import hashlib
import hmac
import re
from typing import Mapping

SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)+$")

# Keys the platform excludes from the signed install message.
_UNSIGNED_KEYS = ("hmac", "signature")

def _as_bytes(value) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")

def parse_raw_query(query_string: str) -> dict[str, str]:
    """
    Split a query string into key/value pairs WITHOUT percent-decoding.
    The install signature is computed over values exactly as received.
    """
    params: dict[str, str] = {}
    for part in (query_string or "").split("&"):
        if not part:
            continue
        key, _, value = part.partition("=")
        params[key] = value
    return params

def install_message(params: Mapping[str, str]) -> str:
    items = [(str(k), str(v)) for k, v in params.items() if k not in _UNSIGNED_KEYS]
    items.sort(key=lambda x: x[0])
    return "&".join(f"{k}={v}" for k, v in items)

def verify_install(params: Mapping[str, str], provided_hmac: str | None, secret) -> bool:
    """
    Verify the install/OAuth callback HMAC.
    Sorted `key=value` pairs (minus hmac/signature) joined by '&', HMAC-SHA256, hex.
    """
    try:
        if not secret or not provided_hmac:
            return False
        msg = install_message(params).encode("utf-8")
        digest = hmac.new(_as_bytes(secret), msg, hashlib.sha256).hexdigest()
        return hmac.compare_digest(digest.encode("ascii"), _as_bytes(provided_hmac).lower())
    except (TypeError, ValueError, AttributeError):
        return False

def verify_webhook(body: bytes, provided_hmac_b64: str | None, secret) -> bool:
    """HMAC-SHA256 over the raw body, base64; timing-safe compare."""
    try:
        if not secret or not provided_hmac_b64:
            return False
        digest = hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).digest()
        expected = base64.b64encode(digest)
        return hmac.compare_digest(expected, _as_bytes(provided_hmac_b64))
    except (TypeError, ValueError, AttributeError):
        return False

def normalize_shop_domain(shop: str | None) -> str:
    s = (shop or "").strip().lower()
    if not SHOP_DOMAIN_RE.match(s):
        raise ValueError(f"Invalid shop domain: {s!r}")
    return s

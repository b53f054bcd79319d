# tests/test_security.py
import base64
import hashlib
import hmac

import pytest
from hypothesis import given, strategies as st

from giftbasket.utils.shopify import (
    normalize_shop_domain,
    parse_raw_query,
    verify_install,
    verify_webhook,
)
from conftest import SECRET, sign_install, sign_webhook

KEY = SECRET.encode()

_keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_[]", min_size=1, max_size=12)
_values = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=30)

def test_install_hmac_ok():
    params = {"code": "abc", "shop": "acme.example", "timestamp": "1710000000"}
    assert verify_install(params, sign_install(params), KEY)

def test_install_hmac_ignores_hmac_and_signature_keys():
    params = {"code": "abc", "shop": "acme.example"}
    digest = sign_install(params)
    params_with_extras = dict(params, hmac=digest, signature="whatever")
    assert verify_install(params_with_extras, digest, KEY)

def test_install_hmac_accepts_uppercase_hex():
    params = {"shop": "acme.example", "code": "abc"}
    assert verify_install(params, sign_install(params).upper(), KEY)

def test_install_hmac_bad():
    params = {"code": "abc", "shop": "acme.example"}
    assert not verify_install(params, "0" * 64, KEY)
    assert not verify_install(params, "bad", KEY)

def test_install_hmac_rejects_padded_digest():
    params = {"code": "abc", "shop": "acme.example"}
    digest = sign_install(params)
    assert not verify_install(params, f" {digest}", KEY)
    assert not verify_install(params, f"{digest}\n", KEY)

def test_install_hmac_uses_values_as_received():
    raw = parse_raw_query("shop=acme.example&state=a%20b&code=x")
    assert raw["state"] == "a%20b"
    assert verify_install(raw, sign_install({"shop": "acme.example", "state": "a%20b", "code": "x"}), KEY)
    assert not verify_install(raw, sign_install({"shop": "acme.example", "state": "a b", "code": "x"}), KEY)

@pytest.mark.parametrize("provided", [None, "", "é" * 64, 12345, b"\xff\xfe"])
def test_install_hmac_malformed_input_is_false_not_error(provided):
    assert verify_install({"shop": "acme.example"}, provided, KEY) is False

def test_install_hmac_missing_secret_rejects():
    params = {"shop": "acme.example"}
    assert verify_install(params, sign_install(params), b"") is False

@given(st.dictionaries(_keys, _values, max_size=6))
def test_install_signature_matches_sorted_stripped_message(params):
    expected = sign_install(params)
    assert verify_install(params, expected, KEY)
    # key order of the incoming mapping never matters
    assert verify_install(dict(reversed(list(params.items()))), expected, KEY)

@given(st.dictionaries(_keys, _values, min_size=1, max_size=6), st.data())
def test_install_signature_rejects_any_changed_value(params, data):
    key = data.draw(st.sampled_from(sorted(k for k in params)))
    if key in ("hmac", "signature"):
        return
    expected = sign_install(params)
    tampered = dict(params)
    tampered[key] = params[key] + "x"
    assert not verify_install(tampered, expected, KEY)

def test_webhook_hmac_ok():
    body = b'{"a":1}'
    sig = base64.b64encode(hmac.new(KEY, body, hashlib.sha256).digest()).decode()
    assert verify_webhook(body, sig, KEY)

def test_webhook_hmac_bad():
    assert not verify_webhook(b"{}", "bad", KEY)
    assert not verify_webhook(b"{}", None, KEY)
    assert not verify_webhook(b"{}", sign_webhook(b"{}", "other-secret"), KEY)
    assert not verify_webhook(b"{}", sign_webhook(b"{}") + " ", KEY)

@given(st.binary(min_size=1, max_size=256), st.data())
def test_webhook_any_single_byte_mutation_fails(body, data):
    sig = sign_webhook(body)
    assert verify_webhook(body, sig, KEY)
    idx = data.draw(st.integers(min_value=0, max_value=len(body) - 1))
    flip = data.draw(st.integers(min_value=1, max_value=255))
    mutated = bytearray(body)
    mutated[idx] ^= flip
    assert not verify_webhook(bytes(mutated), sig, KEY)

def test_parse_raw_query_keeps_escapes_and_blank_values():
    assert parse_raw_query("a=1&b=&c=%2F&&d") == {"a": "1", "b": "", "c": "%2F", "d": ""}
    assert parse_raw_query("") == {}

@pytest.mark.parametrize("shop,expected", [
    (" Acme.Example ", "acme.example"),
    ("my-store.myshopify.com", "my-store.myshopify.com"),
])
def test_normalize_shop_domain_accepts(shop, expected):
    assert normalize_shop_domain(shop) == expected

@pytest.mark.parametrize("shop", ["", None, "acme", "evil.com/path", "https://acme.example", "a b.com", "-x.com"])
def test_normalize_shop_domain_rejects(shop):
    with pytest.raises(ValueError):
        normalize_shop_domain(shop)

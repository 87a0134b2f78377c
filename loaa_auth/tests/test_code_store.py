"""Tests for the authorization code store: single use, expiry, binding, PKCE, cleanup."""
import threading
from datetime import datetime, timedelta, timezone

import pytest

from loaa_auth.code_store import (
    REASON_CLIENT_MISMATCH,
    REASON_EXPIRED,
    REASON_INVALID_VERIFIER,
    REASON_REDIRECT_MISMATCH,
    REASON_UNKNOWN_CODE,
    AuthorizationCodeStore,
    CodeExchangeError,
    TokenMintParams,
)
from loaa_auth.pkce import s256_challenge
from loaa_auth.tokens import JWTCodec

ISS = "https://loaa.example"
AUD = "loaa-mcp"
T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
REDIRECT = "https://x/cb"


@pytest.fixture
def codec():
    return JWTCodec("store-test-secret-0123456789abcdef0123456789")


@pytest.fixture
def mint_params(codec):
    return TokenMintParams(codec=codec, issuer=ISS, audience=AUD)


@pytest.fixture
def store():
    return AuthorizationCodeStore()


def _create(store, verifier="abc", method="S256", now=T0):
    challenge = s256_challenge(verifier) if method == "S256" else verifier
    return store.create("c1", REDIRECT, "mcp:tools:read", challenge, method, "u1", now)


def _minutes(n):
    return T0 + timedelta(minutes=n)


def test_create_returns_unique_codes(store):
    codes = {_create(store) for _ in range(100)}
    assert len(codes) == 100
    assert len(store) == 100


def test_scenario_exchange_then_replay(store, codec, mint_params):
    code = _create(store)
    token, expires_in = store.exchange(code, "c1", "abc", REDIRECT, _minutes(5), mint_params)
    assert expires_in == 86400
    claims = codec.validate(token, ISS, AUD, _minutes(5))
    assert claims.subject == "u1"
    assert claims.scope == "mcp:tools:read"

    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c1", "abc", REDIRECT, _minutes(6), mint_params)
    assert excinfo.value.reason == REASON_UNKNOWN_CODE
    assert excinfo.value.error == "invalid_grant"


def test_scenario_expired_code_is_purged(store, mint_params):
    code = _create(store)
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c1", "abc", REDIRECT, _minutes(11), mint_params)
    assert excinfo.value.reason == REASON_EXPIRED
    assert excinfo.value.error == "invalid_grant"
    assert code not in store


def test_code_valid_at_exact_ttl(store, mint_params):
    code = _create(store)
    token, _ = store.exchange(code, "c1", "abc", REDIRECT, _minutes(10), mint_params)
    assert token


def test_scenario_wrong_verifier_keeps_code(store, mint_params):
    code = _create(store)
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c1", "wrong", REDIRECT, _minutes(1), mint_params)
    assert excinfo.value.reason == REASON_INVALID_VERIFIER
    assert excinfo.value.error == "invalid_verifier"
    assert code in store

    token, _ = store.exchange(code, "c1", "abc", REDIRECT, _minutes(2), mint_params)
    assert token


def test_client_binding(store, mint_params):
    code = _create(store)
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c2", "abc", REDIRECT, _minutes(1), mint_params)
    assert excinfo.value.reason == REASON_CLIENT_MISMATCH
    assert excinfo.value.error == "invalid_client"
    assert code in store


def test_redirect_binding(store, mint_params):
    code = _create(store)
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c1", "abc", "https://x/other", _minutes(1), mint_params)
    assert excinfo.value.reason == REASON_REDIRECT_MISMATCH
    assert excinfo.value.error == "invalid_grant"


def test_expiry_checked_before_binding(store, mint_params):
    code = _create(store)
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange(code, "c2", "wrong", "https://x/other", _minutes(30), mint_params)
    assert excinfo.value.reason == REASON_EXPIRED


def test_plain_method(store, mint_params):
    code = _create(store, verifier="plain-verifier", method="plain")
    token, _ = store.exchange(code, "c1", "plain-verifier", REDIRECT, _minutes(1), mint_params)
    assert token


def test_unknown_code(store, mint_params):
    with pytest.raises(CodeExchangeError) as excinfo:
        store.exchange("nope", "c1", "abc", REDIRECT, T0, mint_params)
    assert excinfo.value.reason == REASON_UNKNOWN_CODE


def test_cleanup_removes_only_expired(store):
    old = _create(store, now=T0)
    fresh = _create(store, now=_minutes(5))
    assert store.cleanup(_minutes(10)) == 1
    assert old not in store
    assert fresh in store
    assert store.cleanup(_minutes(10)) == 0


def test_concurrent_exchange_succeeds_once(store, mint_params):
    code = _create(store)
    results = []
    barrier = threading.Barrier(8)

    def redeem():
        barrier.wait()
        try:
            store.exchange(code, "c1", "abc", REDIRECT, _minutes(1), mint_params)
            results.append("ok")
        except CodeExchangeError as e:
            results.append(e.reason)

    threads = [threading.Thread(target=redeem) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count("ok") == 1
    assert results.count(REASON_UNKNOWN_CODE) == 7

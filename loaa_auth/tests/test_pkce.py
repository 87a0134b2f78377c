"""Tests for PKCE challenge verification."""
import hashlib
import secrets
from base64 import urlsafe_b64encode

from loaa_auth.pkce import s256_challenge, verify_code_challenge


def test_s256_challenge_matches_rfc7636_example():
    # RFC 7636 Appendix B
    verifier = "dBjftJeZ4CVP-mJ92IZ1ErRB6VmhV7G6m6TtjkCMrTI"
    assert s256_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_s256_challenge_has_no_padding():
    challenge = s256_challenge("abc")
    assert "=" not in challenge
    assert len(challenge) == 43
    expected = urlsafe_b64encode(hashlib.sha256(b"abc").digest()).rstrip(b"=").decode("ascii")
    assert challenge == expected


def test_s256_round_trip():
    verifier = secrets.token_urlsafe(32)
    assert verify_code_challenge(verifier, s256_challenge(verifier), "S256") is True


def test_s256_rejects_other_verifier():
    verifier = secrets.token_urlsafe(32)
    other = secrets.token_urlsafe(32)
    assert verify_code_challenge(other, s256_challenge(verifier), "S256") is False


def test_s256_rejects_raw_verifier_as_challenge():
    """With S256 the verifier itself is not an acceptable challenge."""
    assert verify_code_challenge("abc", "abc", "S256") is False


def test_plain_compares_directly():
    assert verify_code_challenge("abc", "abc", "plain") is True
    assert verify_code_challenge("abc", "abd", "plain") is False


def test_unknown_method_behaves_like_plain():
    assert verify_code_challenge("abc", "abc", "S512") is True
    assert verify_code_challenge("abc", s256_challenge("abc"), None) is False


def test_distinct_verifiers_give_distinct_challenges():
    verifiers = {secrets.token_urlsafe(32) for _ in range(50)}
    challenges = {s256_challenge(v) for v in verifiers}
    assert len(challenges) == len(verifiers)

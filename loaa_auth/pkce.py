"""
PKCE (RFC 7636) verification for the token endpoint.
"""
import hashlib
import hmac
from base64 import urlsafe_b64encode

S256 = "S256"
PLAIN = "plain"


def s256_challenge(code_verifier: str) -> str:
    """base64url(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_code_challenge(code_verifier: str, code_challenge: str, code_challenge_method: str | None) -> bool:
    """
    True if the verifier matches the challenge recorded at authorization time.
    S256 hashes the verifier; any other method (plain, unknown) compares it as-is.
    """
    if code_challenge_method == S256:
        computed = s256_challenge(code_verifier)
    else:
        computed = code_verifier
    return hmac.compare_digest(computed.encode("utf-8"), (code_challenge or "").encode("utf-8"))

"""
Access tokens: HS256 JWTs that carry sub, iss, aud, iat, exp and scope.
Validation needs only the shared secret, so the resource server never calls back here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from fastapi import Request

from loaa_auth.config import ACCESS_TOKEN_EXPIRES
from loaa_auth.errors import INVALID_TOKEN, OAuthError, ServerError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "iss", "aud", "iat", "exp"]


class InvalidTokenError(OAuthError):
    """
    Any decode, signature or claim failure. Callers see only invalid_token;
    `reason` is for server-side logs.
    """

    status_code = 401

    def __init__(self, reason: str):
        super().__init__(INVALID_TOKEN, "Invalid or expired token")
        self.reason = reason


@dataclass(frozen=True)
class AccessTokenClaims:
    subject: str
    issuer: str
    audience: str
    scope: str
    issued_at: datetime
    expires_at: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(now: datetime | None) -> int:
    return int((now or _utc_now()).timestamp())


class JWTCodec:
    """Mints and validates access tokens with one process-wide secret."""

    def __init__(self, secret: str, *, ttl_seconds: int = ACCESS_TOKEN_EXPIRES, algorithm: str = JWT_ALGORITHM):
        if not secret:
            raise ValueError("JWT signing secret must not be empty")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm

    def __repr__(self) -> str:
        return f"JWTCodec(algorithm={self.algorithm!r}, ttl_seconds={self.ttl_seconds})"

    def mint(
        self,
        subject: str,
        issuer: str,
        audience: str,
        scope: str,
        now: datetime | None = None,
    ) -> tuple[str, int]:
        """Return (token, expires_in_seconds)."""
        issued_at = _timestamp(now)
        payload = {
            "sub": subject,
            "iss": issuer,
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "scope": scope,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm, headers={"typ": "JWT"})
        return token, self.ttl_seconds

    def validate(
        self,
        token: str,
        expected_issuer: str,
        expected_audience: str,
        now: datetime | None = None,
    ) -> AccessTokenClaims:
        """
        Verify signature, issuer and audience, and reject now > exp.
        Expiry is checked against `now` rather than the wall clock so callers control time.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=expected_audience,
                issuer=expected_issuer,
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"{type(e).__name__}: {e}") from e

        try:
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
        except (TypeError, ValueError) as e:
            raise InvalidTokenError("non-numeric iat/exp") from e
        if _timestamp(now) > expires_at:
            raise InvalidTokenError("token expired")

        # PyJWT accepts a list containing the expected audience; only an exact match is valid
        if payload["aud"] != expected_audience:
            raise InvalidTokenError("audience mismatch")
        return AccessTokenClaims(
            subject=str(payload["sub"]),
            issuer=payload["iss"],
            audience=payload["aud"],
            scope=str(payload.get("scope") or ""),
            issued_at=datetime.fromtimestamp(issued_at, timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, timezone.utc),
        )


def get_jwt_codec(request: Request) -> JWTCodec:
    """Dependency: the codec built at startup."""
    codec = getattr(request.app.state, "jwt_codec", None)
    if codec is None:
        raise ServerError("JWT codec not initialised (LOAA_JWT_SECRET missing?)")
    return codec

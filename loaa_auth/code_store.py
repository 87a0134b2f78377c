"""
In-memory authorization code store. Codes are single-use and expire after CODE_TTL_SECONDS.
All access to the map goes through one lock so a code can never be redeemed twice.
"""
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Request

from loaa_auth.config import CODE_TTL_SECONDS
from loaa_auth.errors import INVALID_CLIENT, INVALID_GRANT, INVALID_VERIFIER, OAuthError, ServerError
from loaa_auth.pkce import verify_code_challenge
from loaa_auth.tokens import JWTCodec

logger = logging.getLogger(__name__)

REASON_UNKNOWN_CODE = "invalid_grant"
REASON_EXPIRED = "expired"
REASON_CLIENT_MISMATCH = "client_mismatch"
REASON_REDIRECT_MISMATCH = "redirect_mismatch"
REASON_INVALID_VERIFIER = "invalid_verifier"

# reason -> (wire error code, description)
_REASON_ERRORS = {
    REASON_UNKNOWN_CODE: (INVALID_GRANT, "Invalid authorization code"),
    REASON_EXPIRED: (INVALID_GRANT, "Authorization code expired"),
    REASON_CLIENT_MISMATCH: (INVALID_CLIENT, "Client ID mismatch"),
    REASON_REDIRECT_MISMATCH: (INVALID_GRANT, "Redirect URI mismatch"),
    REASON_INVALID_VERIFIER: (INVALID_VERIFIER, "Invalid code verifier"),
}


class CodeExchangeError(OAuthError):
    """Exchange rejected. `reason` is one of the REASON_* constants."""

    def __init__(self, reason: str):
        error, description = _REASON_ERRORS[reason]
        super().__init__(error, description)
        self.reason = reason


@dataclass(frozen=True)
class AuthorizationCode:
    code: str
    client_id: str
    redirect_uri: str
    scope: str
    code_challenge: str
    code_challenge_method: str
    subject_id: str
    issued_at: datetime
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class TokenMintParams:
    """What exchange() needs to mint the access token."""

    codec: JWTCodec
    issuer: str
    audience: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationCodeStore:
    def __init__(self, ttl_seconds: int = CODE_TTL_SECONDS):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._codes: dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._codes

    def create(
        self,
        client_id: str,
        redirect_uri: str,
        scope: str,
        code_challenge: str,
        code_challenge_method: str,
        subject_id: str,
        now: datetime | None = None,
    ) -> str:
        """Issue a new code bound to the client, redirect URI, PKCE challenge and subject."""
        now = now or _utc_now()
        with self._lock:
            code = secrets.token_urlsafe(32)
            while code in self._codes:
                code = secrets.token_urlsafe(32)
            self._codes[code] = AuthorizationCode(
                code=code,
                client_id=client_id,
                redirect_uri=redirect_uri,
                scope=scope,
                code_challenge=code_challenge,
                code_challenge_method=code_challenge_method,
                subject_id=subject_id,
                issued_at=now,
                expires_at=now + self.ttl,
            )
        return code

    def exchange(
        self,
        code: str,
        client_id: str,
        code_verifier: str,
        redirect_uri: str,
        now: datetime | None,
        mint_params: TokenMintParams,
    ) -> tuple[str, int]:
        """
        Redeem a code for (access_token, expires_in). Raises CodeExchangeError.
        Only success or expiry removes the code; a bad verifier leaves it redeemable.
        """
        now = now or _utc_now()
        with self._lock:
            auth_code = self._codes.get(code)
            if auth_code is None:
                raise CodeExchangeError(REASON_UNKNOWN_CODE)
            if auth_code.expired(now):
                del self._codes[code]
                raise CodeExchangeError(REASON_EXPIRED)
            if auth_code.client_id != client_id:
                raise CodeExchangeError(REASON_CLIENT_MISMATCH)
            if auth_code.redirect_uri != redirect_uri:
                raise CodeExchangeError(REASON_REDIRECT_MISMATCH)
            if not verify_code_challenge(code_verifier, auth_code.code_challenge, auth_code.code_challenge_method):
                raise CodeExchangeError(REASON_INVALID_VERIFIER)
            del self._codes[code]

        return mint_params.codec.mint(
            auth_code.subject_id,
            mint_params.issuer,
            mint_params.audience,
            auth_code.scope,
            now,
        )

    def cleanup(self, now: datetime | None = None) -> int:
        """Drop codes with expires_at <= now. Returns how many were removed."""
        now = now or _utc_now()
        with self._lock:
            stale = [c for c, entry in self._codes.items() if entry.expires_at <= now]
            for c in stale:
                del self._codes[c]
        if stale:
            logger.debug("Removed %d expired authorization code(s)", len(stale))
        return len(stale)


def get_code_store(request: Request) -> AuthorizationCodeStore:
    """Dependency: the store created at startup."""
    store = getattr(request.app.state, "code_store", None)
    if store is None:
        raise ServerError("authorization code store not initialised")
    return store

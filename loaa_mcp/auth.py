"""
Bearer token gate for the MCP resource. Tokens are validated locally with the
shared JWT codec; the authorization server is never contacted.
"""
import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from loaa_auth.tokens import InvalidTokenError, get_jwt_codec
from loaa_mcp.config import API_AUDIENCE, ISSUER, RESOURCE_METADATA_URL, SCOPES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Identity of an authorized request, from the validated token."""

    subject: str
    scope: str

    @property
    def scopes(self) -> set[str]:
        return set(self.scope.split())


def challenge_header() -> dict[str, str]:
    return {"WWW-Authenticate": f'Bearer resource_metadata="{RESOURCE_METADATA_URL}", scope="{SCOPES}"'}


def _unauthorized(error: str, description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "error_description": description},
        headers=challenge_header(),
    )


def get_bearer_token(request: Request) -> str:
    """Extract the token from `Authorization: Bearer <token>`. 401 if missing or malformed."""
    authorization = request.headers.get("Authorization")
    if not authorization:
        logger.info("[AUTH] Request rejected: no Authorization header")
        raise _unauthorized("invalid_request", "Authorization header missing")
    scheme, token = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not token or " " in token:
        logger.info("[AUTH] Request rejected: Authorization header is not 'Bearer <token>'")
        raise _unauthorized("invalid_request", "Bearer token required")
    return token


def require_caller(request: Request) -> Caller:
    """
    Dependency for protected routes. Validates the bearer JWT and exposes the
    caller on request.state.caller. Validation details are logged, not returned.
    """
    token = get_bearer_token(request)
    codec = get_jwt_codec(request)
    try:
        claims = codec.validate(token, ISSUER, API_AUDIENCE)
    except InvalidTokenError as e:
        logger.info("[AUTH] Request rejected: %s", e.reason)
        raise _unauthorized("invalid_token", "Invalid or expired token")
    caller = Caller(subject=claims.subject, scope=claims.scope)
    request.state.caller = caller
    return caller

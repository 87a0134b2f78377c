"""
Token endpoint (POST /oauth/token). Authorization code grant with PKCE only;
the client proves itself with the code_verifier, not a client secret.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from loaa_auth import rate_limit
from loaa_auth.audit import (
    EVENT_TOKEN_DENIED,
    EVENT_TOKEN_ISSUED,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    get_client_ip,
    log_audit,
)
from loaa_auth.code_store import AuthorizationCodeStore, CodeExchangeError, TokenMintParams, get_code_store
from loaa_auth.config import API_AUDIENCE, ISSUER, RATE_LIMIT_TOKEN_PER_MINUTE
from loaa_auth.database import get_db
from loaa_auth.errors import INVALID_REQUEST, UNSUPPORTED_GRANT_TYPE, OAuthError
from loaa_auth.tokens import JWTCodec, get_jwt_codec

logger = logging.getLogger(__name__)
router = APIRouter()

GRANT_AUTHORIZATION_CODE = "authorization_code"


@router.post("/oauth/token")
def token(
    request: Request,
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    client_id: str | None = Form(None),
    code_verifier: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    store: AuthorizationCodeStore = Depends(get_code_store),
    codec: JWTCodec = Depends(get_jwt_codec),
    db: Session = Depends(get_db),
):
    """Exchange an authorization code for a Bearer access token."""
    rate_limit.enforce(request, "token", RATE_LIMIT_TOKEN_PER_MINUTE)

    if grant_type != GRANT_AUTHORIZATION_CODE:
        raise OAuthError(UNSUPPORTED_GRANT_TYPE, "Only authorization_code is supported")
    missing = [
        name
        for name, value in (
            ("code", code),
            ("client_id", client_id),
            ("code_verifier", code_verifier),
            ("redirect_uri", redirect_uri),
        )
        if not value
    ]
    if missing:
        raise OAuthError(INVALID_REQUEST, f"Missing required parameter(s): {', '.join(missing)}")

    try:
        access_token, expires_in = store.exchange(
            code,
            client_id,
            code_verifier,
            redirect_uri,
            datetime.now(timezone.utc),
            TokenMintParams(codec=codec, issuer=ISSUER, audience=API_AUDIENCE),
        )
    except CodeExchangeError as e:
        logger.info("token: exchange rejected for client_id=%s reason=%s", client_id, e.reason)
        log_audit(db, EVENT_TOKEN_DENIED, client_id=client_id, ip=get_client_ip(request), outcome=OUTCOME_FAIL)
        raise

    log_audit(db, EVENT_TOKEN_ISSUED, client_id=client_id, ip=get_client_ip(request), outcome=OUTCOME_SUCCESS)
    logger.info("token: access token issued for client_id=%s", client_id)
    return {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": expires_in,
    }

"""
Authorization endpoint (GET /oauth/authorize).
No session subject: park the request in the session and send the browser to /login.
Session subject present: issue a code and redirect to the client with code and state.
There is no consent screen; an authenticated user approves every request implicitly.
"""
import html
import logging
from datetime import datetime, timezone
from urllib.parse import urlencode, urlparse

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from loaa_auth import config
from loaa_auth.audit import EVENT_CODE_ISSUED, OUTCOME_SUCCESS, get_client_ip, log_audit
from loaa_auth.code_store import AuthorizationCodeStore, get_code_store
from loaa_auth.database import get_db
from loaa_auth.errors import INVALID_CLIENT, INVALID_REQUEST, UNSUPPORTED_RESPONSE_TYPE, ServerError
from loaa_auth.session import (
    SESSION_USER_KEY,
    AuthorizationRequest,
    BrowserSession,
    SessionError,
    clear_pending_request,
    get_browser_session,
    save_pending_request,
)

logger = logging.getLogger(__name__)
router = APIRouter()

_REQUIRED_PARAMS = ("client_id", "redirect_uri", "scope", "state", "code_challenge", "code_challenge_method")


def _invalid(error: str, message: str) -> HTMLResponse:
    return HTMLResponse(
        f"<h1>Invalid request</h1><p>{html.escape(error)}: {html.escape(message)}</p>",
        status_code=400,
    )


def _is_absolute_http_url(uri: str) -> bool:
    parsed = urlparse(uri)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and not parsed.fragment


def _redirect_with_code(redirect_uri: str, code: str, state: str) -> RedirectResponse:
    separator = "&" if urlparse(redirect_uri).query else "?"
    params = urlencode({"code": code, "state": state})
    return RedirectResponse(url=f"{redirect_uri}{separator}{params}", status_code=302)


def validate_authorize_params(params: dict[str, str | None], response_type: str | None) -> HTMLResponse | None:
    """Return a 400 response for malformed requests, None if the request is usable."""
    if response_type is not None and response_type != "code":
        return _invalid(UNSUPPORTED_RESPONSE_TYPE, "response_type must be 'code'.")
    missing = [name for name in _REQUIRED_PARAMS if not (params.get(name) or "").strip()]
    if missing:
        return _invalid(INVALID_REQUEST, f"Missing required parameter(s): {', '.join(missing)}.")
    if not _is_absolute_http_url(params["redirect_uri"]):
        return _invalid(INVALID_REQUEST, "redirect_uri must be an absolute http(s) URL without a fragment.")
    if config.OAUTH_CLIENT_ID and params["client_id"] != config.OAUTH_CLIENT_ID:
        return _invalid(INVALID_CLIENT, "Unknown client_id.")
    return None


@router.get("/oauth/authorize")
async def authorize(
    request: Request,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    scope: str | None = None,
    state: str | None = None,
    code_challenge: str | None = None,
    code_challenge_method: str | None = None,
    response_type: str | None = None,
    session: BrowserSession = Depends(get_browser_session),
    store: AuthorizationCodeStore = Depends(get_code_store),
    db: Session = Depends(get_db),
):
    """
    OAuth 2.1 authorization endpoint. All parameters are validated before the
    session or the code store is touched.
    """
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": code_challenge_method,
    }
    error_response = validate_authorize_params(params, response_type)
    if error_response is not None:
        return error_response
    auth_request = AuthorizationRequest(**params)

    try:
        subject = await session.get(SESSION_USER_KEY)
        if not subject:
            await save_pending_request(session, auth_request)
            logger.info("authorize: no session user, parked request for client_id=%s", client_id)
            return RedirectResponse(url=config.LOGIN_PATH, status_code=302)
        await clear_pending_request(session)
    except SessionError as e:
        raise ServerError(f"session store failure: {e}") from e

    code = store.create(
        client_id=auth_request.client_id,
        redirect_uri=auth_request.redirect_uri,
        scope=auth_request.scope,
        code_challenge=auth_request.code_challenge,
        code_challenge_method=auth_request.code_challenge_method,
        subject_id=str(subject),
        now=datetime.now(timezone.utc),
    )
    await run_in_threadpool(
        log_audit,
        db,
        EVENT_CODE_ISSUED,
        client_id=auth_request.client_id,
        subject=str(subject),
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    logger.info("authorize: code issued for client_id=%s sub=%s", client_id, subject)
    return _redirect_with_code(auth_request.redirect_uri, code, auth_request.state)

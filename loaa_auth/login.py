"""
Login surface that completes the browser half of the flow.
POST /login authenticates, stores the subject in the session and, when an
/oauth/authorize request is parked there, sends the browser back to it.
"""
import html
import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from loaa_auth import rate_limit
from loaa_auth.audit import EVENT_LOGIN_FAIL, EVENT_LOGIN_OK, OUTCOME_FAIL, OUTCOME_SUCCESS, get_client_ip, log_audit
from loaa_auth.config import RATE_LIMIT_LOGIN_PER_MINUTE
from loaa_auth.database import get_db
from loaa_auth.errors import ServerError
from loaa_auth.seed import verify_credentials
from loaa_auth.session import (
    SESSION_ACCOUNT_TYPE_KEY,
    SESSION_USER_KEY,
    BrowserSession,
    SessionError,
    get_browser_session,
    load_pending_request,
)

logger = logging.getLogger(__name__)
router = APIRouter()

AUTHORIZE_PATH = "/oauth/authorize"


def _login_page(error: str = "", username: str = "", status_code: int = 200) -> HTMLResponse:
    error_html = f'<p style="color:red;">{html.escape(error)}</p>' if error else ""
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Log in</title></head>
<body>
  <h1>Log in</h1>
  {error_html}
  <form method="post" action="/login">
    <label>Username: <input type="text" name="username" value="{html.escape(username)}" required/></label><br/>
    <label>Password: <input type="password" name="password" required/></label><br/>
    <button type="submit">Log in</button>
  </form>
</body>
</html>"""
    return HTMLResponse(body, status_code=status_code)


async def pending_authorize_url(session: BrowserSession) -> str | None:
    """URL that resumes the parked /oauth/authorize request, if any."""
    pending = await load_pending_request(session)
    if pending is None:
        return None
    return f"{AUTHORIZE_PATH}?{pending.to_query()}"


@router.get("/login", response_class=HTMLResponse)
def login_page():
    return _login_page()


@router.post("/login")
async def login_submit(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    session: BrowserSession = Depends(get_browser_session),
    db: Session = Depends(get_db),
):
    """
    Verify credentials. Success: remember the subject and resume the pending
    authorization (303 to /oauth/authorize), or go home. Failure: 401 with the form.
    """
    rate_limit.enforce(request, "login", RATE_LIMIT_LOGIN_PER_MINUTE)
    ip = get_client_ip(request)

    account = await run_in_threadpool(verify_credentials, db, username, password)
    if account is None:
        await run_in_threadpool(log_audit, db, EVENT_LOGIN_FAIL, ip=ip, outcome=OUTCOME_FAIL)
        logger.info("login: failed for username=%s", username)
        return _login_page("Invalid username or password.", username=username, status_code=401)

    try:
        await session.set(SESSION_USER_KEY, account.subject)
        await session.set(SESSION_ACCOUNT_TYPE_KEY, account.account_type)
        resume_url = await pending_authorize_url(session)
    except SessionError as e:
        raise ServerError(f"session store failure: {e}") from e

    await run_in_threadpool(log_audit, db, EVENT_LOGIN_OK, subject=account.subject, ip=ip, outcome=OUTCOME_SUCCESS)
    logger.info("login: sub=%s authenticated (resume_oauth=%s)", account.subject, resume_url is not None)
    return RedirectResponse(url=resume_url or "/", status_code=303)


@router.get("/login/pending")
async def login_pending(session: BrowserSession = Depends(get_browser_session)):
    """Where the login UI should send the browser after login, or null."""
    try:
        return {"authorize_url": await pending_authorize_url(session)}
    except SessionError as e:
        raise ServerError(f"session store failure: {e}") from e


@router.post("/logout")
async def logout(session: BrowserSession = Depends(get_browser_session)):
    try:
        await session.delete()
    except SessionError as e:
        raise ServerError(f"session store failure: {e}") from e
    return {"status": "logged_out"}

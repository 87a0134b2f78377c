"""
Authorization Server: OAuth 2.1 authorization code + PKCE for MCP clients.
Discovery, /oauth/authorize, /oauth/token, login surface.
Port 3000 per the deployment defaults; set LOAA_INCLUDE_MCP to serve /mcp here as well.
"""
import asyncio
import contextlib
import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from loaa_auth import config
from loaa_auth.authorize import router as authorize_router
from loaa_auth.code_store import AuthorizationCodeStore
from loaa_auth.database import SessionLocal, init_db
from loaa_auth.errors import OAuthError, oauth_error_handler
from loaa_auth.login import router as login_router
from loaa_auth.seed import seed_from_env
from loaa_auth.token_endpoint import router as token_router
from loaa_auth.tokens import JWTCodec
from loaa_auth.well_known import router as well_known_router

logger = logging.getLogger(__name__)


async def sweep_expired_codes(store: AuthorizationCodeStore, interval: float) -> None:
    """Periodically drop expired codes. Bounds memory; exchange() rejects them regardless."""
    while True:
        await asyncio.sleep(interval)
        removed = store.cleanup()
        if removed:
            logger.info("Expired authorization codes removed: %d", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fail fast on missing secret; build codec and code store; create tables and seed."""
    app.state.jwt_codec = JWTCodec(config.require_jwt_secret())
    app.state.code_store = AuthorizationCodeStore(config.CODE_TTL_SECONDS)
    init_db()
    db = SessionLocal()
    try:
        seed_from_env(db)
    finally:
        db.close()
    logger.info("OAuth base URL: %s", config.BASE_URL)

    sweeper = None
    if config.CODE_CLEANUP_INTERVAL > 0:
        sweeper = asyncio.create_task(sweep_expired_codes(app.state.code_store, config.CODE_CLEANUP_INTERVAL))
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper


def _session_secret() -> str:
    if config.SESSION_SECRET:
        return config.SESSION_SECRET
    logger.warning("LOAA_SESSION_SECRET not set; using a per-process key (sessions end on restart)")
    return secrets.token_urlsafe(32)


app = FastAPI(title="Loa'a Auth Server", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=_session_secret(),
    session_cookie="loaa_session",
    max_age=config.SESSION_MAX_AGE,
    https_only=config.SESSION_HTTPS_ONLY,
)
app.add_exception_handler(OAuthError, oauth_error_handler)
app.include_router(well_known_router, tags=["well-known"])
app.include_router(authorize_router, tags=["authorize"])
app.include_router(token_router, tags=["token"])
app.include_router(login_router, tags=["login"])

if config.INCLUDE_MCP:
    from loaa_mcp.main import router as mcp_router

    app.include_router(mcp_router)
    logger.info("All-in-one mode: serving /mcp from the authorization server")


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "loaa_auth"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "loaa_auth.main:app",
        host="127.0.0.1",
        port=3000,
    )

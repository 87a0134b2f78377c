"""
Resource Server for MCP tool calls. Every /mcp route requires a Bearer JWT
issued by loaa_auth; the repositories behind the tools live elsewhere.
Port 3001 when run standalone.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI

from loaa_auth.config import require_jwt_secret
from loaa_auth.errors import OAuthError, oauth_error_handler
from loaa_auth.tokens import JWTCodec
from loaa_auth.well_known import protected_resource_metadata
from loaa_mcp.auth import Caller, require_caller
from loaa_mcp.config import HOST, ISSUER, PORT, RESOURCE_URL

logger = logging.getLogger(__name__)

# Protected routes; loaa_auth includes this router too when LOAA_INCLUDE_MCP is set
router = APIRouter(prefix="/mcp", dependencies=[Depends(require_caller)], tags=["mcp"])


@router.get("")
def mcp_root(caller: Caller = Depends(require_caller)):
    """Identity of the authenticated tool caller."""
    return {"message": "Authenticated", "sub": caller.subject, "scope": caller.scope}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the token codec; refuse to start without a signing secret."""
    app.state.jwt_codec = JWTCodec(require_jwt_secret())
    logger.info("MCP resource server ready (issuer=%s)", ISSUER)
    yield


app = FastAPI(title="Loa'a MCP", version="0.1.0", lifespan=lifespan)
app.add_exception_handler(OAuthError, oauth_error_handler)
app.include_router(router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "loaa_mcp"}


@app.get("/.well-known/oauth-protected-resource")
def oauth_protected_resource():
    return protected_resource_metadata(resource=RESOURCE_URL, issuer=ISSUER)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "loaa_mcp.main:app",
        host=HOST,
        port=PORT,
    )

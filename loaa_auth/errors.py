"""
OAuth error taxonomy and the JSON error response shared by both services.
Client-caused errors carry a machine-readable code; server errors are opaque.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

INVALID_REQUEST = "invalid_request"
INVALID_GRANT = "invalid_grant"
INVALID_CLIENT = "invalid_client"
INVALID_VERIFIER = "invalid_verifier"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
INVALID_TOKEN = "invalid_token"
SERVER_ERROR = "server_error"


class OAuthError(Exception):
    """An OAuth protocol error returned to the caller as {error, error_description}."""

    status_code = 400

    def __init__(self, error: str, description: str = "", status_code: int | None = None):
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class ServerError(OAuthError):
    """Missing configuration or collaborator failure. Detail is logged, never returned."""

    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(SERVER_ERROR, "")
        self.detail = detail


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    if isinstance(exc, ServerError):
        logger.error("server_error on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)

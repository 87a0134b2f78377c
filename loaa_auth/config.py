"""
Authorization Server configuration, read once from the environment.
The signing secret and base URL are supplied by the deployment, never generated here.
"""
import os

# Externally visible base URL; doubles as the token issuer and discovery root
BASE_URL = os.environ.get("LOAA_BASE_URL", "http://127.0.0.1:3000").rstrip("/")
ISSUER = BASE_URL

# HMAC secret for access tokens. Checked at startup by require_jwt_secret().
JWT_SECRET = os.environ.get("LOAA_JWT_SECRET") or None

# Audience of access tokens: the protected MCP resource
API_AUDIENCE = os.environ.get("LOAA_API_AUDIENCE", "loaa-mcp")

# Protected resource served by loaa_mcp
RESOURCE_URL = f"{BASE_URL}/mcp"
PROTECTED_RESOURCE_METADATA_URL = f"{BASE_URL}/.well-known/oauth-protected-resource"

SCOPES_SUPPORTED = ["mcp:tools:read", "mcp:tools:write"]

# Authorization codes are replayable credentials: keep them short-lived
CODE_TTL_SECONDS = 10 * 60
ACCESS_TOKEN_EXPIRES = 24 * 60 * 60

# Seconds between background sweeps of expired codes
CODE_CLEANUP_INTERVAL = int(os.environ.get("LOAA_CODE_CLEANUP_INTERVAL", "300"))

# Pre-shared client identifier. Unset = accept any client_id.
OAUTH_CLIENT_ID = os.environ.get("LOAA_OAUTH_CLIENT_ID", "").strip() or None

# Browser sessions (signed cookie). Unset = per-process random key; sessions end on restart.
SESSION_SECRET = os.environ.get("LOAA_SESSION_SECRET") or None
SESSION_MAX_AGE = 24 * 60 * 60
SESSION_HTTPS_ONLY = os.environ.get("LOAA_SESSION_HTTPS_ONLY", "").lower() in ("1", "true", "yes")

# Where unauthenticated browsers are sent from /oauth/authorize
LOGIN_PATH = "/login"

# Built-in admin account (username "admin"); unset disables it
ADMIN_PASSWORD = os.environ.get("LOAA_ADMIN_PASSWORD") or None

DATABASE_URL = os.environ.get("LOAA_DATABASE_URL", "sqlite:///./loaa_auth.db")

# Serve the protected /mcp routes from this process as well
INCLUDE_MCP = os.environ.get("LOAA_INCLUDE_MCP", "").lower() in ("1", "true", "yes")

# Per-IP, per minute
RATE_LIMIT_LOGIN_PER_MINUTE = int(os.environ.get("LOAA_RATE_LIMIT_LOGIN_PER_MINUTE", "20"))
RATE_LIMIT_TOKEN_PER_MINUTE = int(os.environ.get("LOAA_RATE_LIMIT_TOKEN_PER_MINUTE", "60"))


class ConfigurationError(RuntimeError):
    """Required configuration is missing; the server must not start."""


def require_jwt_secret() -> str:
    """Return the signing secret or raise ConfigurationError if it is not configured."""
    if not JWT_SECRET:
        raise ConfigurationError(
            "LOAA_JWT_SECRET is not set. Generate one with: openssl rand -base64 32"
        )
    return JWT_SECRET

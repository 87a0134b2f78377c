"""
Resource server configuration. Issuer and audience are public identifiers;
the signing secret (LOAA_JWT_SECRET) is shared with the authorization server
and read through loaa_auth.config.require_jwt_secret.
"""
import os

# Authorization Server base URL: expected `iss` and the discovery root
ISSUER = os.environ.get("LOAA_BASE_URL", "http://127.0.0.1:3000").rstrip("/")

# Access tokens must carry this `aud`
API_AUDIENCE = os.environ.get("LOAA_API_AUDIENCE", "loaa-mcp")

RESOURCE_URL = f"{ISSUER}/mcp"
RESOURCE_METADATA_URL = f"{ISSUER}/.well-known/oauth-protected-resource"

# Advertised in WWW-Authenticate challenges
SCOPES = "mcp:tools:read mcp:tools:write"

# Standalone listener (LOAA_MCP_HOST / LOAA_MCP_PORT)
HOST = os.environ.get("LOAA_MCP_HOST", "127.0.0.1")
PORT = int(os.environ.get("LOAA_MCP_PORT", "3001"))

"""
Well-known discovery endpoints: authorization server metadata (RFC 8414)
and protected resource metadata (RFC 9728).
"""
from fastapi import APIRouter

from loaa_auth.config import ISSUER, RESOURCE_URL, SCOPES_SUPPORTED

router = APIRouter()


def authorization_server_metadata(issuer: str = ISSUER) -> dict:
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/oauth/authorize",
        "token_endpoint": f"{issuer}/oauth/token",
        "code_challenge_methods_supported": ["S256"],
        "grant_types_supported": ["authorization_code"],
        "response_types_supported": ["code"],
        "scopes_supported": list(SCOPES_SUPPORTED),
    }


def protected_resource_metadata(resource: str = RESOURCE_URL, issuer: str = ISSUER) -> dict:
    return {
        "resource": resource,
        "authorization_servers": [issuer],
    }


@router.get("/.well-known/oauth-authorization-server")
def oauth_authorization_server():
    """OAuth 2.0 Authorization Server Metadata."""
    return authorization_server_metadata()


@router.get("/.well-known/oauth-protected-resource")
def oauth_protected_resource():
    """Protected Resource Metadata; lets MCP clients find this authorization server."""
    return protected_resource_metadata()

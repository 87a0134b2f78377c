"""
Pytest configuration for loaa_auth. Environment is set before the app is imported:
in-memory SQLite, fixed secrets, and rate limits high enough not to interfere.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["LOAA_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOAA_BASE_URL"] = "http://testserver"
os.environ["LOAA_JWT_SECRET"] = "test-signing-secret-0123456789abcdef0123456789"
os.environ["LOAA_SESSION_SECRET"] = "test-session-secret"
os.environ["LOAA_ADMIN_PASSWORD"] = "admin-pass"
os.environ["LOAA_RATE_LIMIT_LOGIN_PER_MINUTE"] = "1000"
os.environ["LOAA_RATE_LIMIT_TOKEN_PER_MINUTE"] = "1000"
for name in ("LOAA_SEED_USER", "LOAA_SEED_PASSWORD", "LOAA_OAUTH_CLIENT_ID", "LOAA_INCLUDE_MCP", "LOAA_API_AUDIENCE"):
    os.environ.pop(name, None)

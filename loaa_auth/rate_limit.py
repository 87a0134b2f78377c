"""
Rate limiting. In-memory sliding window per key (e.g. "token:<ip>").
Used for POST /login and POST /oauth/token to slow credential and code guessing.
"""
import math
import threading
import time

from fastapi import HTTPException, Request

from loaa_auth.audit import get_client_ip

_store: dict[str, list[float]] = {}
_lock = threading.Lock()
_WINDOW_SECONDS = 60


def check_and_consume(
    key: str,
    limit: int,
    window_seconds: int = _WINDOW_SECONDS,
) -> tuple[bool, int | None]:
    """
    Check if the key is under the limit for the sliding window; if so, record this request.
    Returns (allowed, retry_after_seconds). When not allowed, retry_after_seconds is the
    suggested Retry-After value (>= 1).
    """
    if limit <= 0:
        return True, None
    now = time.monotonic()
    with _lock:
        cutoff = now - window_seconds
        # Forget callers with nothing left in the window
        for stale in [k for k, ts in _store.items() if not ts or ts[-1] <= cutoff]:
            del _store[stale]
        timestamps = _store.setdefault(key, [])
        timestamps[:] = [t for t in timestamps if t > cutoff]
        if len(timestamps) >= limit:
            oldest = min(timestamps)
            retry_after = max(1, math.ceil(window_seconds - (now - oldest)))
            return False, retry_after
        timestamps.append(now)
        return True, None


def enforce(request: Request, bucket: str, limit: int) -> None:
    """Raise 429 with Retry-After when the caller's IP is over `limit` for `bucket`."""
    key = f"{bucket}:{get_client_ip(request) or 'unknown'}"
    allowed, retry_after = check_and_consume(key, limit)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail={"error": "slow_down", "error_description": "Too many requests"},
            headers={"Retry-After": str(retry_after)},
        )


def reset() -> None:
    """Forget all recorded requests."""
    with _lock:
        _store.clear()

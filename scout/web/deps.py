# web/deps.py – Dépendances FastAPI : identité, rate limiting

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request

from scout.errors import RateLimitExceeded

_UNSET = object()


async def optional_user(request: Request) -> Optional[str]:
    """Resolve the caller once per request; None when unauthenticated."""
    cached = getattr(request.state, "user_id", _UNSET)
    if cached is not _UNSET:
        return cached
    user_id = await request.app.state.identity.identify(request)
    request.state.user_id = user_id
    return user_id


async def require_user(user_id: Optional[str] = Depends(optional_user)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def rate_limit(name: str) -> Callable:
    """
    Dependency checking the named limiter before the endpoint runs.

    Every ticket taken is remembered on ``request.state`` so the outcome
    middleware can report the final status code back to its limiter.
    """
    async def dependency(request: Request, _user: Optional[str] = Depends(optional_user)) -> None:
        limiter = request.app.state.limiters[name]
        key = limiter.key_for(request)
        decision = limiter.check_and_record(key)
        if not decision.allowed:
            raise RateLimitExceeded(
                decision.retry_after_seconds,
                limit=decision.limit,
                window_seconds=limiter.window,
                message=limiter.message,
            )

        taken = getattr(request.state, "rate_limits", None)
        if taken is None:
            taken = []
            request.state.rate_limits = taken
        taken.append((limiter, key, decision))

    dependency.__name__ = f"rate_limit_{name}"
    return dependency

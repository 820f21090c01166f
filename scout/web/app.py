# scout/web/app.py
# Steam Scout API — FastAPI
# Lancement :
#   python -m uvicorn scout.web.app:app --host 0.0.0.0 --port 8000

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scout.auth import ClerkIdentityProvider
from scout.cache import TTLCache
from scout.config import Settings, settings as default_settings
from scout.database import SessionLocal, init_db
from scout.errors import RateLimitExceeded, UpstreamNotFound, UpstreamUnavailable
from scout.ratelimit.registry import RateLimiterRegistry
from scout.steam.client import SteamClient
from scout.steam.proxy import SteamAggregationProxy
from scout.web import auth_routes, health, lead_routes, steam_routes, webhook_routes

log = logging.getLogger(__name__)

APP_TITLE = "Steam Scout API"


def _rate_limit_headers(decision) -> dict:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_after_seconds),
    }


def create_app(
    cfg: Optional[Settings] = None,
    *,
    steam_client: Optional[SteamClient] = None,
    identity=None,
    limiters: Optional[RateLimiterRegistry] = None,
    cache: Optional[TTLCache] = None,
    session_factory=None,
) -> FastAPI:
    """Build the app; collaborators can be injected (tests, custom wiring)."""
    cfg = cfg or default_settings

    client = steam_client or SteamClient(
        store_url=cfg.STEAM_STORE_URL,
        web_api_url=cfg.STEAM_WEB_API_URL,
        timeout=cfg.STEAM_TIMEOUT_SECONDS,
        max_retries=cfg.STEAM_MAX_RETRIES,
        quota_window=cfg.STEAM_QUOTA_WINDOW,
        quota_max=cfg.STEAM_QUOTA_MAX,
    )
    identity = identity or ClerkIdentityProvider(cfg.CLERK_SECRET_KEY, cfg.CLERK_API_URL)
    limiters = limiters or RateLimiterRegistry(sweep_interval=cfg.RATE_LIMIT_SWEEP_SECONDS)
    session_factory = session_factory or SessionLocal
    proxy = SteamAggregationProxy(
        client,
        cache if cache is not None else TTLCache(ttl_seconds=cfg.CACHE_TTL_SECONDS),
        cfg.TOP_GAME_IDS,
        fetch_timeout=cfg.STEAM_TIMEOUT_SECONDS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(session_factory.kw.get("bind"))
        limiters.start()
        log.info("Steam Scout ready: tracking %d apps", len(proxy.game_ids))
        try:
            yield
        finally:
            await limiters.stop()
            await client.close()
            close = getattr(identity, "close", None)
            if close is not None:
                await close()

    app = FastAPI(title=APP_TITLE, lifespan=lifespan)
    app.state.settings = cfg
    app.state.started_at = time.time()
    app.state.proxy = proxy
    app.state.identity = identity
    app.state.limiters = limiters
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Clerk-Session-Id",
                       "svix-id", "svix-timestamp", "svix-signature"],
    )

    @app.middleware("http")
    async def rate_limit_outcome(request: Request, call_next):
        """Report each request's outcome to the limiters it was counted by."""
        try:
            response = await call_next(request)
        except Exception:
            for limiter, key, decision in getattr(request.state, "rate_limits", None) or []:
                limiter.report(key, decision.ticket, 500)
            raise

        taken = getattr(request.state, "rate_limits", None) or []
        for limiter, key, decision in taken:
            limiter.report(key, decision.ticket, response.status_code)
        if taken:
            # Headers du limiter le plus proche de sa limite
            tightest = min((d for _, _, d in taken), key=lambda d: d.remaining)
            response.headers.update(_rate_limit_headers(tightest))
        return response

    @app.exception_handler(RateLimitExceeded)
    async def on_rate_limited(request: Request, exc: RateLimitExceeded):
        headers = {
            "Retry-After": str(exc.retry_after_seconds),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.retry_after_seconds),
        }
        return JSONResponse(
            status_code=429,
            headers=headers,
            content={
                "message": exc.message,
                "code": "RATE_LIMIT_EXCEEDED",
                "retryAfter": exc.retry_after_seconds,
                "limit": exc.limit,
                "window": exc.window_seconds,
            },
        )

    @app.exception_handler(UpstreamNotFound)
    async def on_not_found(request: Request, exc: UpstreamNotFound):
        return JSONResponse(status_code=404, content={"message": "App not found on Steam"})

    @app.exception_handler(UpstreamUnavailable)
    async def on_unavailable(request: Request, exc: UpstreamUnavailable):
        log.error(f"Steam proxy error on {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"message": "Failed to fetch from Steam"})

    @app.exception_handler(HTTPException)
    async def on_http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content={"message": exc.detail},
        )

    app.include_router(health.router)
    app.include_router(auth_routes.router)
    app.include_router(steam_routes.router)
    app.include_router(lead_routes.router)
    app.include_router(webhook_routes.router)
    return app


app = create_app()

# auth.py – Identité déléguée à Clerk (vérification de session côté backend)

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

log = logging.getLogger(__name__)

SESSION_COOKIE = "__session"
SESSION_ID_HEADER = "x-clerk-session-id"


class ClerkIdentityProvider:
    """
    Resolves the caller of a request to a Clerk user id.

    The session token comes from ``Authorization: Bearer`` (or the
    ``__session`` cookie) and is verified against Clerk's backend API.
    Any failure means "unauthenticated", never an exception.
    """

    def __init__(self, secret_key: Optional[str], api_url: str = "https://api.clerk.com/v1",
                 timeout: float = 5.0):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def session_token(request: Any) -> Optional[str]:
        auth = request.headers.get("authorization") or ""
        if auth.lower().startswith("bearer "):
            token = auth[7:].strip()
            if token:
                return token
        return request.cookies.get(SESSION_COOKIE) or None

    async def identify(self, request: Any) -> Optional[str]:
        """Authenticated user id, or None."""
        if not self.secret_key:
            return None

        token = self.session_token(request)
        session_id = request.headers.get(SESSION_ID_HEADER)
        if not token or not session_id:
            return None

        try:
            session = await self._get_session()
            url = f"{self.api_url}/sessions/{session_id}/verify"
            async with session.post(url, json={"token": token}) as resp:
                if resp.status != 200:
                    log.debug(f"Clerk rejected session {session_id}: HTTP {resp.status}")
                    return None
                data = await resp.json()
        except (aiohttp.ClientError, ValueError) as e:
            log.error(f"Authentication error: {e!r}")
            return None
        except asyncio.TimeoutError as e:
            log.error(f"Authentication timed out: {e!r}")
            return None

        if data.get("status") != "active":
            return None
        return data.get("user_id")

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Clerk profile of ``user_id`` mapped to local user fields, or None."""
        if not self.secret_key:
            return None
        try:
            session = await self._get_session()
            async with session.get(f"{self.api_url}/users/{user_id}") as resp:
                if resp.status != 200:
                    log.warning(f"Clerk user lookup failed for {user_id}: HTTP {resp.status}")
                    return None
                data = await resp.json()
        except (aiohttp.ClientError, ValueError, asyncio.TimeoutError) as e:
            log.error(f"Clerk user lookup error: {e!r}")
            return None

        emails = data.get("email_addresses") or []
        return {
            "email": emails[0].get("email_address") if emails else None,
            "first_name": data.get("first_name"),
            "last_name": data.get("last_name"),
            "profile_image_url": data.get("image_url"),
        }

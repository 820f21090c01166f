# steam/client.py

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from scout.ratelimit.limiter import SlidingWindowRateLimiter

log = logging.getLogger(__name__)

STORE_URL = "https://store.steampowered.com"
WEB_API_URL = "https://api.steampowered.com"

# Clé unique : tout le trafic sortant partage le même quota
OUTBOUND_KEY = "outbound"


class RateLimitError(Exception):
    """Raised when Steam keeps answering 429 after all retries."""
    pass


class SteamAPIError(Exception):
    """Base exception for Steam API errors (HTTP, network, malformed payload)."""
    pass


class SteamClient:
    """Async Steam Store / Web API client with outbound throttling and retries."""

    def __init__(
        self,
        store_url: str = STORE_URL,
        web_api_url: str = WEB_API_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        quota_window: float = 300.0,
        quota_max: int = 100,
    ):
        self.store_url = store_url.rstrip("/")
        self.web_api_url = web_api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._session: Optional[aiohttp.ClientSession] = None

        # Quota sortant vers Steam (fenêtre glissante)
        self._quota = SlidingWindowRateLimiter(
            "steam-outbound", window_seconds=quota_window, max_requests=quota_max,
        )
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": "SteamScout/1.0"},
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _throttle(self):
        """Outbound rate limiting - keeps us under the Steam quota."""
        async with self._lock:
            decision = self._quota.check_and_record(OUTBOUND_KEY)
            if not decision.allowed:
                # On attend que la plus vieille req sorte de la fenêtre
                log.warning(f"Steam quota reached, waiting {decision.retry_after_seconds}s")
                await asyncio.sleep(decision.retry_after_seconds)
                self._quota.check_and_record(OUTBOUND_KEY)

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None,
                       max_retries: Optional[int] = None) -> Any:
        """
        Make an async HTTP GET with retry logic.

        Args:
            url: The full URL to request
            params: Query string parameters
            max_retries: Maximum number of attempts (defaults to the client setting)

        Returns:
            Decoded JSON, or None on 404

        Raises:
            RateLimitError: When Steam still answers 429 after retries
            SteamAPIError: For HTTP errors, network errors and malformed JSON
        """
        attempts = max_retries or self.max_retries
        await self._throttle()
        session = await self._get_session()

        for attempt in range(attempts):
            try:
                async with session.get(url, params=params) as resp:
                    if resp.status == 429:
                        retry_after = int(resp.headers.get("Retry-After", "1")) + 1
                        if attempt < attempts - 1:
                            log.warning(f"429 from Steam, retrying after {retry_after}s (attempt {attempt + 1}/{attempts})")
                            await asyncio.sleep(retry_after)
                            continue
                        raise RateLimitError(f"Steam rate limit exceeded after {attempts} attempts")

                    if resp.status == 404:
                        log.debug(f"404 Not Found: {url}")
                        return None

                    resp.raise_for_status()
                    try:
                        return await resp.json(content_type=None)
                    except ValueError as e:
                        raise SteamAPIError(f"Malformed JSON from {url}") from e

            except aiohttp.ClientResponseError as e:
                if e.status >= 500 and attempt < attempts - 1:
                    wait = 2 ** attempt  # Exponential backoff
                    log.warning(f"Steam server error {e.status}, retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise SteamAPIError(f"API error {e.status}: {e.message}") from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < attempts - 1:
                    wait = 2 ** attempt
                    log.warning(f"Network error, retrying in {wait}s: {e!r}")
                    await asyncio.sleep(wait)
                    continue
                raise SteamAPIError(f"Network error on {url}: {e!r}") from e

        raise SteamAPIError(f"Failed after {attempts} attempts")

    async def get_app_details(self, appid: int) -> Optional[Dict[str, Any]]:
        """
        Store metadata for one app (name, header image, developers, genres…).

        Returns None when Steam reports the app as unknown.
        """
        url = f"{self.store_url}/api/appdetails"
        result = await self._request(url, {"appids": str(appid)})
        if result is None:
            return None
        if not isinstance(result, dict):
            raise SteamAPIError(f"Unexpected appdetails payload for {appid}")

        app = result.get(str(appid))
        if not app:
            return None
        if not isinstance(app, dict):
            raise SteamAPIError(f"Unexpected appdetails entry for {appid}")
        if not app.get("success"):
            return None
        data = app.get("data")
        if not isinstance(data, dict):
            raise SteamAPIError(f"appdetails for {appid} has no data")
        return data

    async def get_current_players(self, appid: int) -> int:
        """Live player count. Unknown apps count as 0."""
        url = f"{self.web_api_url}/ISteamUserStats/GetNumberOfCurrentPlayers/v1/"
        result = await self._request(url, {"appid": str(appid)})
        if result is None:
            return 0
        if not isinstance(result, dict):
            raise SteamAPIError(f"Unexpected player count payload for {appid}")
        response = result.get("response") or {}
        if not isinstance(response, dict):
            raise SteamAPIError(f"Unexpected player count payload for {appid}")

        count = response.get("player_count") or 0
        try:
            return max(0, int(count))
        except (TypeError, ValueError) as e:
            raise SteamAPIError(f"Invalid player count for {appid}: {count!r}") from e

    async def search_store(self, term: str) -> List[Dict[str, Any]]:
        """Free-text store search (unofficial storesearch endpoint)."""
        url = f"{self.store_url}/api/storesearch/"
        result = await self._request(url, {"term": term, "l": "english", "cc": "US"})
        if result is None:
            return []
        if not isinstance(result, dict):
            raise SteamAPIError(f"Unexpected search payload for {term!r}")

        items = result.get("items") or []
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise SteamAPIError(f"Unexpected search items for {term!r}")
        return items

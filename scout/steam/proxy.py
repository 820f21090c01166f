# steam/proxy.py
# ============================================================================
# Proxy Steam : fan-out concurrent, tolérance aux pannes partielles, cache TTL
# ============================================================================

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, List, Sequence, Type, TypeVar

import aiohttp

from scout.cache import TTLCache
from scout.errors import UpstreamNotFound, UpstreamUnavailable
from scout.services.studios import build_studio_rollup
from scout.steam.client import RateLimitError, SteamAPIError, SteamClient
from scout.steam.models import GameDetails, GameRecord, GameSearchResult, TopGames

log = logging.getLogger(__name__)

TOP_GAMES_KEY = "top-games"

R = TypeVar("R", bound=GameRecord)

_UPSTREAM_ERRORS = (SteamAPIError, RateLimitError, aiohttp.ClientError, asyncio.TimeoutError)

# Champs imbriqués de la mauvaise forme (ex : genres en liste de str)
_PAYLOAD_ERRORS = (AttributeError, TypeError, ValueError)


class SteamAggregationProxy:
    """Leaderboard, studio rollup, search and details on top of the Steam APIs."""

    def __init__(self, client: SteamClient, cache: TTLCache,
                 game_ids: Sequence[int], fetch_timeout: float = 8.0):
        self.client = client
        self.cache = cache
        self.game_ids = list(game_ids)
        self.fetch_timeout = fetch_timeout

    async def _call(self, resource: str, awaitable: Awaitable[Any]) -> Any:
        """Await one upstream fetch, bounded by ``fetch_timeout``."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(resource, f"timed out after {self.fetch_timeout}s") from e
        except _UPSTREAM_ERRORS as e:
            raise UpstreamUnavailable(resource, str(e)) from e

    def _from_cache(self, key: str) -> Any:
        # Copie : un appelant qui modifie le résultat ne touche pas au cache
        cached = self.cache.get(key)
        return copy.deepcopy(cached) if cached is not None else None

    def _remember(self, key: str, value: Any) -> Any:
        self.cache.set(key, value)
        return copy.deepcopy(value)

    async def _player_count(self, appid: int) -> int:
        """Live player count, 0 when the lookup fails."""
        try:
            return await self._call(f"players:{appid}", self.client.get_current_players(appid))
        except UpstreamUnavailable as e:
            log.warning("Player count unavailable, defaulting to 0: %s", e)
            return 0

    async def _fetch_record(self, appid: int, record_cls: Type[R] = GameRecord) -> R:
        """
        Merge metadata and player count for one app.

        Raises:
            UpstreamNotFound: Steam does not know ``appid``
            UpstreamUnavailable: the metadata lookup failed
        """
        resource = f"app:{appid}"
        # Les deux lookups partent en même temps
        details_task = asyncio.ensure_future(self._call(resource, self.client.get_app_details(appid)))
        players_task = asyncio.ensure_future(self._player_count(appid))
        try:
            app_data = await details_task
        except BaseException:
            players_task.cancel()
            raise
        if app_data is None:
            players_task.cancel()
            raise UpstreamNotFound(resource)

        player_count = await players_task
        try:
            return record_cls.from_app_data(app_data, appid, player_count)
        except _PAYLOAD_ERRORS as e:
            raise UpstreamUnavailable(resource, f"malformed app data: {e}") from e

    async def get_top_games(self) -> TopGames:
        """
        Leaderboard of the configured apps by live player count, plus the
        studio rollup. Served from cache while fresh.

        Raises:
            UpstreamUnavailable: no app could be fetched at all
        """
        cached = self._from_cache(TOP_GAMES_KEY)
        if cached is not None:
            return cached

        results = await asyncio.gather(
            *(self._fetch_record(appid) for appid in self.game_ids),
            return_exceptions=True,
        )

        games: List[GameRecord] = []
        unavailable = 0
        for appid, result in zip(self.game_ids, results):
            if isinstance(result, GameRecord):
                games.append(result)
            elif isinstance(result, UpstreamNotFound):
                log.info("Dropping app %s: not found on Steam", appid)
            elif isinstance(result, Exception):
                unavailable += 1
                log.warning("Dropping app %s: %s", appid, result)
            else:
                raise result

        if not games and unavailable:
            raise UpstreamUnavailable(TOP_GAMES_KEY, f"all {unavailable} lookups failed")

        games.sort(key=lambda g: g.player_count, reverse=True)
        top = TopGames(games=games, studios=build_studio_rollup(games))

        log.info("Top games refreshed: %d/%d apps, %d studios",
                 len(games), len(self.game_ids), len(top.studios))
        return self._remember(TOP_GAMES_KEY, top)

    async def search_games(self, term: str) -> List[GameSearchResult]:
        """
        Raises:
            UpstreamUnavailable: the search call itself failed
        """
        key = f"search:{term}"
        cached = self._from_cache(key)
        if cached is not None:
            return cached

        items = await self._call(key, self.client.search_store(term))
        try:
            results = [GameSearchResult.from_item(item) for item in items if item.get("id") is not None]
        except _PAYLOAD_ERRORS as e:
            raise UpstreamUnavailable(key, f"malformed search results: {e}") from e
        return self._remember(key, results)

    async def get_game_details(self, appid: int) -> GameDetails:
        """
        Raises:
            UpstreamNotFound: the app does not exist on Steam
            UpstreamUnavailable: transient failure, worth retrying
        """
        key = f"details:{appid}"
        cached = self._from_cache(key)
        if cached is not None:
            return cached

        details = await self._fetch_record(appid, GameDetails)
        return self._remember(key, details)


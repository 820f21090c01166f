"""Shared fixtures: in-memory database, fake Steam client, fake identity."""

import os

# Avant tout import de scout : base SQLite en mémoire, pas de Clerk
os.environ["DB_URL"] = "sqlite://"
os.environ.pop("CLERK_SECRET_KEY", None)
os.environ.pop("CLERK_WEBHOOK_SECRET", None)

import asyncio
from collections import Counter
from typing import Any, Dict, Iterable, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from scout.database import make_engine
from scout.steam.client import SteamAPIError


class FakeClock:
    """Manually advanced clock for limiter and cache tests."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def app_data(appid: int, name: str, developers, **extra) -> Dict[str, Any]:
    """Minimal Steam appdetails ``data`` object."""
    data = {
        "steam_appid": appid,
        "name": name,
        "header_image": f"https://cdn.example/{appid}/header.jpg",
        "developers": list(developers),
        "publishers": ["Pub"],
        "genres": [{"id": "1", "description": "Action"}],
        "release_date": {"coming_soon": False, "date": "1 Jan, 2020"},
        "metacritic": {"score": 80},
        "recommendations": {"total": 1000},
    }
    data.update(extra)
    return data


class FakeSteamClient:
    """In-memory stand-in for SteamClient, counting upstream calls."""

    def __init__(
        self,
        apps: Optional[Dict[int, Dict[str, Any]]] = None,
        players: Optional[Dict[int, int]] = None,
        failing_details: Iterable[int] = (),
        failing_players: Iterable[int] = (),
        search_items: Optional[Dict[str, list]] = None,
        failing_search: bool = False,
        players_delay: float = 0.0,
        details_delay: float = 0.0,
    ):
        self.apps = apps or {}
        self.players = players or {}
        self.failing_details = set(failing_details)
        self.failing_players = set(failing_players)
        self.search_items = search_items or {}
        self.failing_search = failing_search
        self.players_delay = players_delay
        self.details_delay = details_delay
        self.calls = Counter()
        self.closed = False

    async def get_app_details(self, appid: int):
        self.calls["details"] += 1
        if self.details_delay:
            await asyncio.sleep(self.details_delay)
        if appid in self.failing_details:
            raise SteamAPIError(f"appdetails failed for {appid}")
        return self.apps.get(appid)

    async def get_current_players(self, appid: int) -> int:
        self.calls["players"] += 1
        if self.players_delay:
            await asyncio.sleep(self.players_delay)
        if appid in self.failing_players:
            raise SteamAPIError(f"player count failed for {appid}")
        return self.players.get(appid, 0)

    async def search_store(self, term: str):
        self.calls["search"] += 1
        if self.failing_search:
            raise SteamAPIError("storesearch failed")
        return self.search_items.get(term, [])

    async def close(self):
        self.closed = True


class FakeIdentity:
    """``Authorization: Bearer <user id>`` is trusted as is."""

    def __init__(self):
        self.lookups = Counter()

    async def identify(self, request) -> Optional[str]:
        auth = request.headers.get("authorization") or ""
        if auth.startswith("Bearer "):
            return auth[7:] or None
        return None

    async def get_user(self, user_id: str):
        self.lookups[user_id] += 1
        return {"email": f"{user_id}@studio.test", "first_name": user_id.title()}

    async def close(self):
        pass


@pytest.fixture
def isolated_db():
    """Session factory on its own in-memory database."""
    engine = make_engine("sqlite://")
    yield sessionmaker(bind=engine, future=True, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def steam_apps():
    return {
        730: app_data(730, "Counter-Strike 2", ["Valve"]),
        570: app_data(570, "Dota 2", ["Valve"]),
        413150: app_data(413150, "Stardew Valley", ["ConcernedApe"]),
    }


@pytest.fixture
def fake_steam(steam_apps):
    return FakeSteamClient(
        apps=steam_apps,
        players={730: 900_000, 570: 600_000, 413150: 40_000},
        search_items={"stardew": [
            {"id": 413150, "name": "Stardew Valley", "tiny_image": "https://cdn.example/413150/tiny.jpg"},
        ]},
    )

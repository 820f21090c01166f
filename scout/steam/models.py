# steam/models.py
# ============================================================================
# Structures éphémères construites depuis Steam (aucune écriture en base)
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class GameRecord:
    """Store metadata merged with the live player count of one app."""
    external_id: int
    name: str
    header_image: Optional[str] = None
    developers: List[str] = field(default_factory=list)
    publishers: List[str] = field(default_factory=list)
    player_count: int = 0
    review_score: Optional[int] = None
    total_reviews: Optional[int] = None
    release_date: Optional[str] = None
    genres: Optional[List[str]] = None

    @staticmethod
    def _fields_from(app_data: Dict[str, Any], external_id: int, player_count: int) -> Dict[str, Any]:
        genres = app_data.get("genres")
        return {
            "external_id": app_data.get("steam_appid") or external_id,
            "name": app_data.get("name") or "",
            "header_image": app_data.get("header_image"),
            "developers": list(app_data.get("developers") or []),
            "publishers": list(app_data.get("publishers") or []),
            "player_count": max(0, player_count),
            "review_score": (app_data.get("metacritic") or {}).get("score"),
            "total_reviews": (app_data.get("recommendations") or {}).get("total"),
            "release_date": (app_data.get("release_date") or {}).get("date"),
            "genres": [g.get("description") for g in genres if g.get("description")] if genres else None,
        }

    @classmethod
    def from_app_data(cls, app_data: Dict[str, Any], external_id: int,
                      player_count: int = 0) -> "GameRecord":
        return cls(**cls._fields_from(app_data, external_id, player_count))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "name": self.name,
            "headerImage": self.header_image,
            "developers": self.developers,
            "publishers": self.publishers,
            "playerCount": self.player_count,
            "reviewScore": self.review_score,
            "totalReviews": self.total_reviews,
            "releaseDate": self.release_date,
            "genres": self.genres,
        }


@dataclass
class GameDetails(GameRecord):
    """Single-app view: adds the store blurb, website and price."""
    short_description: Optional[str] = None
    website: Optional[str] = None
    price: Optional[str] = None

    @classmethod
    def from_app_data(cls, app_data: Dict[str, Any], external_id: int,
                      player_count: int = 0) -> "GameDetails":
        return cls(
            **cls._fields_from(app_data, external_id, player_count),
            short_description=app_data.get("short_description"),
            website=app_data.get("website"),
            price=(app_data.get("price_overview") or {}).get("final_formatted"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "shortDescription": self.short_description,
            "website": self.website,
            "price": self.price,
        })
        return data


@dataclass
class StudioRollup:
    """Games grouped under one developer name."""
    name: str
    games_count: int = 0
    total_players: int = 0
    top_game: str = ""
    top_player_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "gamesCount": self.games_count,
            "totalPlayers": self.total_players,
            "topGame": self.top_game,
        }


@dataclass
class GameSearchResult:
    external_id: int
    name: str
    image_url: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "GameSearchResult":
        return cls(
            external_id=item.get("id"),
            name=item.get("name") or "",
            image_url=item.get("tiny_image"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"externalId": self.external_id, "name": self.name, "imageUrl": self.image_url}


@dataclass
class TopGames:
    games: List[GameRecord] = field(default_factory=list)
    studios: List[StudioRollup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games": [g.to_dict() for g in self.games],
            "studios": [s.to_dict() for s in self.studios],
        }

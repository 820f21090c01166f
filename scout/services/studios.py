# scout/services/studios.py
# ============================================================================
# Agrégation des jeux par studio (developer)
# ============================================================================

from __future__ import annotations
from typing import Dict, Iterable, List

from scout.steam.models import GameRecord, StudioRollup


def build_studio_rollup(games: Iterable[GameRecord]) -> List[StudioRollup]:
    """
    Group games by developer name.

    A game with several developers counts for each of them. The top game of a
    studio is its highest player count, ties going to the first one seen.

    Returns:
        list[StudioRollup]: studios sorted by total players, descending
    """
    studios: Dict[str, StudioRollup] = {}

    for game in games:
        # Un même dev listé deux fois ne compte qu'une fois
        for dev in dict.fromkeys(game.developers):
            studio = studios.get(dev)
            if studio is None:
                studios[dev] = StudioRollup(
                    name=dev,
                    games_count=1,
                    total_players=game.player_count,
                    top_game=game.name,
                    top_player_count=game.player_count,
                )
                continue

            studio.games_count += 1
            studio.total_players += game.player_count
            if game.player_count > studio.top_player_count:
                studio.top_player_count = game.player_count
                studio.top_game = game.name

    return sorted(studios.values(), key=lambda s: s.total_players, reverse=True)

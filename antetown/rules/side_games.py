"""
Side games: wagers that ride along with poker hands but settle outside the pot.

A side game is a small bundle of hooks, like a variant. The table looks the
enabled games up in a SideGameRegistry, asks each one for payer -> payee
claims when a hand completes, and settles the claims as a separate pass
against table stakes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..deck import Card
from ..errors import ConfigError

# (payer, payee, amount in cents)
Claim = Tuple[str, str, int]

OPTED_IN = 'side_games'


@dataclass
class SideGameContext:
    table_id: str
    round_id: Optional[str]
    winner_id: str
    winner_cards: List[Card]
    community: List[Card]
    participants: List[str]
    config: Any = None


@dataclass(frozen=True)
class SideGame:
    key: str
    name: str
    description: str = ''
    # optional games only include seats that opted in
    optional: bool = True
    min_participants: int = 2
    on_hand_complete: Optional[Callable[[SideGameContext], List[Claim]]] = None

    def participants(self, seats: Sequence[Any]) -> List[str]:
        if not self.optional:
            return [s.participant_id for s in seats]
        return [s.participant_id for s in seats if self.key in s.extras.get(OPTED_IN, ())]


class SideGameRegistry:
    """Side game lookup table, built once and handed to every poker table."""

    def __init__(self):
        self._games: Dict[str, SideGame] = {}

    def register(self, game: SideGame) -> SideGame:
        if game.key in self._games:
            raise ValueError(f"Side game already registered: {game.key}")
        self._games[game.key] = game
        return game

    def get(self, key: str) -> SideGame:
        game = self._games.get(key)
        if game is None:
            raise ConfigError(f"Unknown side game '{key}'", side_game=key, known=sorted(self._games))
        return game

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._games)

    def optional(self) -> List[SideGame]:
        return [g for g in self._games.values() if g.optional]

    def __contains__(self, key: str) -> bool:
        return key in self._games


def is_seven_two(cards: Sequence[Card], require_offsuit: bool = True) -> bool:
    if len(cards) != 2:
        return False
    (rank_a, suit_a), (rank_b, suit_b) = cards
    if sorted((rank_a, rank_b)) != [2, 7]:
        return False
    return suit_a != suit_b or not require_offsuit


def seven_two_claims(ctx: SideGameContext) -> List[Claim]:
    """Winning a hand holding 7-2 collects the contribution from every other participant."""
    settings = getattr(ctx.config, 'side_games', None)
    contribution = settings.seven_two_contribution if settings is not None else 100
    offsuit = settings.seven_two_offsuit if settings is not None else True
    if ctx.winner_id not in ctx.participants or not is_seven_two(ctx.winner_cards, offsuit):
        return []
    claims = [(pid, ctx.winner_id, contribution) for pid in ctx.participants if pid != ctx.winner_id]
    logging.info(f"[{ctx.table_id}] 7-2 game: {ctx.winner_id} collects {contribution} from {len(claims)} players")
    return claims


SEVEN_TWO = SideGame(
    key='seven-two-game',
    name='7-2 Game',
    description='Win a hand with 7-2 offsuit and collect from every participant',
    on_hand_complete=seven_two_claims,
)


def build_default_side_games() -> SideGameRegistry:
    registry = SideGameRegistry()
    registry.register(SEVEN_TWO)
    return registry

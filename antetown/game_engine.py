"""
Per-hand poker state for antetown.
Deck, dealing by variant hook counts, and chip accounting for one hand.
"""

from typing import Any, Callable, Dict, List, Optional, Set

from .deck import Card, card_str, create_shuffled_deck, deal_cards
from .rules.base import RulesHooks, call_hook


class HandEngine:
    """Deck, dealing and contributions for one hand. Players are Seat objects in dealing order."""

    def __init__(self, players: List[Any], rng: Callable[[], float], hooks: RulesHooks):
        self.players = list(players)
        self.hooks = hooks
        self.deck: List[Card] = create_shuffled_deck(rng)
        self.community: List[Card] = []
        self.hole: Dict[str, List[Card]] = {p.participant_id: [] for p in self.players}
        self.pot = 0
        self.bets: Dict[str, int] = {p.participant_id: 0 for p in self.players}  # Total bets across all streets
        self.round_bets: Dict[str, int] = {p.participant_id: 0 for p in self.players}  # Current street only
        self.folded: Set[str] = set()
        self.all_in: Set[str] = set()
        self.street = 'preflop'
        self.action_history: List[str] = []

    def seat(self, participant_id: str):
        return next(p for p in self.players if p.participant_id == participant_id)

    def ids(self) -> List[str]:
        return [p.participant_id for p in self.players]

    def draw(self, n=1) -> List[Card]:
        return deal_cards(self.deck, n)

    def deal_hole_cards(self):
        count = call_hook(self.hooks, 'hole_card_count', default=2)
        for _ in range(count):
            for p in self.players:
                self.hole[p.participant_id].append(self.draw(1)[0])

    def deal_street(self, street: str) -> List[Card]:
        """Burn one and deal the variant's board count for this street."""
        n = call_hook(self.hooks, 'community_card_count', street, default=0)
        self.street = street
        if not n:
            return []
        self.draw(1)
        cards = self.draw(n)
        self.community.extend(cards)
        return cards

    def contribute(self, participant_id: str, amount: int) -> int:
        """Move up to `amount` from the seat into the pot. Returns what was actually paid."""
        seat = self.seat(participant_id)
        pay = max(0, min(amount, seat.stack))
        seat.stack -= pay
        self.bets[participant_id] += pay
        self.round_bets[participant_id] += pay
        self.pot += pay
        if seat.stack == 0 and participant_id not in self.folded:
            self.all_in.add(participant_id)
        return pay

    def reset_round_bets(self):
        self.round_bets = {pid: 0 for pid in self.round_bets}

    def contenders(self) -> List[str]:
        return [pid for pid in self.ids() if pid not in self.folded]

    def can_act(self) -> List[str]:
        return [pid for pid in self.contenders() if pid not in self.all_in]

    def get_public_state(self, include_all_hands=False, current_player: Optional[str] = None) -> Dict[str, Any]:
        state = {
            'street': self.street,
            'community': [card_str(c) for c in self.community],
            'bets': dict(self.bets),
            'round_bets': dict(self.round_bets),
            'pot': self.pot,
            'players': [(p.participant_id, p.name, p.stack, p.participant_id in self.folded,
                         p.participant_id in self.all_in) for p in self.players],
            'action_history': list(self.action_history),
            'current_player': current_player,
        }
        if include_all_hands:
            state['all_hands'] = {pid: [card_str(c) for c in cards] for pid, cards in self.hole.items()}
        return state

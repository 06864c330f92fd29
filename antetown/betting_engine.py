"""
Betting logic for antetown poker tables.

One street at a time: the table hands each incoming action to apply(), which
either raises (no state change) or moves chips and updates who still has to
act. The street is over when nobody is left to act.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidAction, UnauthorizedActor
from .game_engine import HandEngine
from .rules.base import BettingRules, call_hook

ACTIONS = ('fold', 'check', 'call', 'bet', 'raise', 'all_in')


class BettingEngine:
    """Validates and applies one betting action at a time."""

    def __init__(self, hand: HandEngine, big_blind: int, rules: Optional[BettingRules] = None):
        self.hand = hand
        self.big_blind = big_blind
        self.rules = rules or BettingRules()
        self.to_act: List[str] = []
        self.last_raise = big_blind

    def post_blind(self, participant_id: str, amount: int, label: str) -> int:
        paid = self.hand.contribute(participant_id, amount)
        name = self.hand.seat(participant_id).name
        self.hand.action_history.append(f"{name} posts {label} {paid}")
        return paid

    def start_street(self, order: List[str], reset_bets: bool = True):
        """Open a betting street. `order` lists participants first-to-act to last."""
        if reset_bets:
            self.hand.reset_round_bets()
            self.last_raise = self.big_blind
        able = set(self.hand.can_act())
        self.to_act = [pid for pid in order if pid in able]
        # nobody to bet against: only one player can still act and owes nothing
        if len(self.to_act) == 1 and self.to_call(self.to_act[0]) == 0 and len(self.hand.contenders()) > 1:
            self.to_act = []

    def current_bet(self) -> int:
        return max(self.hand.round_bets.values()) if self.hand.round_bets else 0

    def to_call(self, participant_id: str) -> int:
        return max(self.current_bet() - self.hand.round_bets[participant_id], 0)

    def next_actor(self) -> Optional[str]:
        return self.to_act[0] if self.to_act else None

    def round_complete(self) -> bool:
        return not self.to_act or len(self.hand.contenders()) <= 1

    def max_raise_to(self, participant_id: str) -> int:
        seat = self.hand.seat(participant_id)
        all_in_to = self.hand.round_bets[participant_id] + seat.stack
        if self.rules.limit == 'pot_limit':
            pot_after_call = self.hand.pot + self.to_call(participant_id)
            return min(all_in_to, self.current_bet() + pot_after_call)
        return all_in_to

    def min_raise_to(self) -> int:
        minimum = self.rules.min_raise or self.last_raise
        return self.current_bet() + minimum

    def actor_state(self, participant_id: str) -> Dict[str, Any]:
        seat = self.hand.seat(participant_id)
        return {
            'to_call': self.to_call(participant_id),
            'stack': seat.stack,
            'current_bet': self.current_bet(),
            'min_raise_to': self.min_raise_to(),
            'max_raise_to': self.max_raise_to(participant_id),
        }

    def valid_actions(self, participant_id: str) -> List[str]:
        return call_hook(self.hand.hooks, 'valid_actions', self.actor_state(participant_id), default=list(ACTIONS))

    def _reopen(self, participant_id: str):
        """Everyone else who can still act must respond to an aggressive action."""
        ids = self.hand.ids()
        start = ids.index(participant_id)
        rotated = ids[start + 1:] + ids[:start]
        able = set(self.hand.can_act())
        self.to_act = [pid for pid in rotated if pid in able]

    def apply(self, participant_id: str, action: str, amount: int = 0) -> int:
        """Apply one action. Returns chips paid into the pot. Raises without side effects."""
        if participant_id != self.next_actor():
            raise UnauthorizedActor("Not your turn", to_act=self.next_actor())
        if action not in ACTIONS:
            raise InvalidAction(f"Unknown betting action '{action}'")
        if action not in self.valid_actions(participant_id):
            raise InvalidAction(f"'{action}' is not allowed right now", action=action)

        hand = self.hand
        seat = hand.seat(participant_id)
        to_call = self.to_call(participant_id)
        current = self.current_bet()
        mine = hand.round_bets[participant_id]

        if action == 'fold':
            hand.folded.add(participant_id)
            self.to_act.remove(participant_id)
            hand.action_history.append(f"{seat.name} folded")
            return 0

        if action == 'check':
            if to_call > 0:
                raise InvalidAction("Cannot check facing a bet", to_call=to_call)
            self.to_act.remove(participant_id)
            hand.action_history.append(f"{seat.name} checked")
            return 0

        if action == 'call':
            if to_call == 0:
                raise InvalidAction("Nothing to call; check instead")
            paid = hand.contribute(participant_id, to_call)
            self.to_act.remove(participant_id)
            suffix = " (all-in)" if participant_id in hand.all_in else ""
            hand.action_history.append(f"{seat.name} called {paid}{suffix}")
            return paid

        if action == 'all_in':
            target = mine + seat.stack
            if self.rules.limit == 'pot_limit':
                target = min(target, self.max_raise_to(participant_id))
            return self._raise_to(participant_id, target, forced=True)

        if action == 'bet' and current > 0:
            raise InvalidAction("There is already a bet; raise instead")
        if action == 'raise' and current == 0:
            raise InvalidAction("Nothing to raise; bet instead")
        try:
            amount = int(amount)
        except (TypeError, ValueError):
            raise InvalidAction("Amount must be a whole number")
        return self._raise_to(participant_id, amount, forced=False)

    def _raise_to(self, participant_id: str, target: int, forced: bool) -> int:
        hand = self.hand
        seat = hand.seat(participant_id)
        mine = hand.round_bets[participant_id]
        current = self.current_bet()
        all_in_to = mine + seat.stack
        if target > self.max_raise_to(participant_id):
            raise InvalidAction(f"Maximum is {self.max_raise_to(participant_id)}", amount=target)
        if not forced and target < self.min_raise_to() and target != all_in_to:
            raise InvalidAction(f"Minimum raise is to {self.min_raise_to()}", amount=target)
        if target <= mine:
            raise InvalidAction("Raise must add chips", amount=target)

        paid = hand.contribute(participant_id, target - mine)
        new_total = hand.round_bets[participant_id]
        if new_total > current:
            raise_by = new_total - current
            full_raise = raise_by >= self.last_raise
            if full_raise:
                self.last_raise = raise_by
            verb = 'bet' if current == 0 else 'raised to'
            hand.action_history.append(f"{seat.name} {verb} {new_total}" + (" (all-in)" if participant_id in hand.all_in else ""))
            self._reopen(participant_id)
        else:
            # an all-in that does not exceed the current bet is a call
            self.to_act.remove(participant_id)
            hand.action_history.append(f"{seat.name} called {paid} (all-in)")
        logging.debug(f"Betting: {seat.name} to {new_total} (paid {paid}), to_act={self.to_act}")
        return paid

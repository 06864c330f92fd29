"""
Showdown and pot distribution for antetown poker tables.
Side pots are built from recorded contributions; the variant's hooks rank hands.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .game_engine import HandEngine
from .hand_evaluation import hand_description
from .rules.base import RulesHooks, call_hook
from .settlement import SettlementRecord, build_pot_record, split_evenly

SidePot = Tuple[int, List[str]]


class ShowdownEngine:
    """Evaluates contenders and settles every side pot into one SettlementRecord."""

    def __init__(self, hand: HandEngine, hooks: RulesHooks):
        self.hand = hand
        self.hooks = hooks

    def side_pots(self) -> List[SidePot]:
        """(amount, eligible contenders) layers, smallest contribution first."""
        remaining = {pid: amt for pid, amt in self.hand.bets.items() if amt > 0}
        contenders = set(self.hand.contenders())
        pots: List[SidePot] = []
        while remaining:
            layer = min(remaining.values())
            contributors = list(remaining)
            eligible = [pid for pid in contributors if pid in contenders]
            # everyone who put chips in this layer folded: it goes to whoever is still in
            if not eligible:
                eligible = [pid for pid in self.hand.ids() if pid in contenders]
            pots.append((layer * len(contributors), eligible))
            remaining = {pid: amt - layer for pid, amt in remaining.items() if amt - layer > 0}
        return pots

    def evaluate(self, participant_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        ids = participant_ids if participant_ids is not None else self.hand.contenders()
        board = self.hand.community
        results = {}
        for pid in ids:
            hole = self.hand.hole.get(pid, [])
            if not hole or len(hole) + len(board) < 5:
                continue
            results[pid] = call_hook(self.hooks, 'evaluate_hand', hole, board)
        return results

    def best_of(self, eligible: List[str], results: Dict[str, Any]) -> List[str]:
        best = None
        winners: List[str] = []
        for pid in eligible:
            value = results.get(pid)
            if value is None:
                continue
            if best is None:
                best, winners = value, [pid]
                continue
            cmp = call_hook(self.hooks, 'compare_hands', value, best, default=(value > best) - (value < best))
            if cmp > 0:
                best, winners = value, [pid]
            elif cmp == 0:
                winners.append(pid)
        return winners

    def settle(self, round_id: str, rake_percentage: float = 0, rake_cap: Optional[int] = None) -> Dict[str, Any]:
        """Award every side pot. Returns the record, per-pot winners and hand descriptions."""
        contenders = self.hand.contenders()
        uncontested = len(contenders) == 1
        results = {} if uncontested else self.evaluate()
        gross: Dict[str, int] = {}
        house_remainder = 0
        awarded: List[Dict[str, Any]] = []
        for amount, eligible in self.side_pots():
            winners = eligible if uncontested else self.best_of(eligible, results)
            if not winners:
                winners = eligible
            share, remainder = split_evenly(amount, len(winners))
            for pid in winners:
                gross[pid] = gross.get(pid, 0) + share
            house_remainder += remainder
            awarded.append({'amount': amount, 'eligible': eligible, 'winners': winners})

        contributions = {pid: amt for pid, amt in self.hand.bets.items()}
        record = build_pot_record(round_id, contributions, gross, house_remainder,
                                  rake_percentage, rake_cap, win_reason='won pot', loss_reason='lost hand')
        main_winners = awarded[0]['winners'] if awarded else []
        descriptions = {pid: hand_description(*value) for pid, value in results.items()}
        logging.info(f"Showdown: {len(awarded)} pot(s), main pot to {main_winners}, "
                     f"house remainder {house_remainder}")
        return {
            'record': record,
            'pots': awarded,
            'winners': main_winners,
            'pot_winners': sorted(gross),
            'hands': descriptions,
            'uncontested': uncontested,
        }

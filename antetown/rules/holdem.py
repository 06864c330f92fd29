"""Texas Hold'em: the base bundle every other variant copies."""

from typing import Any, Dict, List

from ..hand_evaluation import best_holdem_hand, compare_hands
from .base import STREETS, BettingRules, RulesHooks, Variant

_BOARD_CARDS = {'flop': 3, 'turn': 1, 'river': 1}


def next_street(street: str) -> str:
    index = STREETS.index(street)
    return STREETS[min(index + 1, len(STREETS) - 1)]


def valid_actions(state: Dict[str, Any]) -> List[str]:
    """Legal actions for the player to act, given to_call / stack / current_bet."""
    to_call = state.get('to_call', 0)
    stack = state.get('stack', 0)
    if stack <= 0:
        return []
    actions = ['fold']
    if to_call == 0:
        actions.append('check')
        actions.append('bet' if state.get('current_bet', 0) == 0 else 'raise')
    else:
        actions.append('call')
        if stack > to_call:
            actions.append('raise')
    actions.append('all_in')
    return actions


HOLDEM_HOOKS = RulesHooks(
    evaluate_hand=best_holdem_hand,
    compare_hands=compare_hands,
    hole_card_count=lambda: 2,
    community_card_count=lambda street: _BOARD_CARDS.get(street, 0),
    next_street=next_street,
    valid_actions=valid_actions,
    betting_rules=lambda: BettingRules(limit='no_limit'),
)

HOLDEM = Variant(key='holdem', name="Texas Hold'em", hooks=HOLDEM_HOOKS,
                 description='Two hole cards, best five of seven.')

"""Pot-limit Omaha: four hole cards, exactly two of them play."""

from dataclasses import replace

from ..hand_evaluation import best_omaha_hand
from .base import BettingRules, Variant
from .holdem import HOLDEM_HOOKS

OMAHA_HOOKS = replace(
    HOLDEM_HOOKS,
    evaluate_hand=best_omaha_hand,
    hole_card_count=lambda: 4,
    betting_rules=lambda: BettingRules(limit='pot_limit'),
)

OMAHA = Variant(key='omaha', name='Omaha', hooks=OMAHA_HOOKS, max_participants=8,
                description='Four hole cards; use exactly two with three from the board.')

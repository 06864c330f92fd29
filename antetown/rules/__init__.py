"""
Poker variants and the registry tables use to look them up.
"""

from .base import (
    STREETS,
    BettingRules,
    HookContext,
    PotWinResult,
    RoundEndResult,
    RoundStartResult,
    RulesHooks,
    RulesRegistry,
    Variant,
    call_hook,
)
from .holdem import HOLDEM, HOLDEM_HOOKS
from .omaha import OMAHA, OMAHA_HOOKS
from .squidz import SQUIDZ, SQUIDZ_HOOKS
from .side_games import SEVEN_TWO, SideGame, SideGameContext, SideGameRegistry, build_default_side_games


def build_default_registry() -> RulesRegistry:
    """Registry with every built-in variant. Build once at startup and pass it around."""
    registry = RulesRegistry(default_key=HOLDEM.key)
    for variant in (HOLDEM, SQUIDZ, OMAHA):
        registry.register(variant)
    return registry


__all__ = [
    'STREETS', 'BettingRules', 'HookContext', 'PotWinResult', 'RoundEndResult', 'RoundStartResult',
    'RulesHooks', 'RulesRegistry', 'Variant', 'call_hook', 'build_default_registry',
    'HOLDEM', 'HOLDEM_HOOKS', 'OMAHA', 'OMAHA_HOOKS', 'SQUIDZ', 'SQUIDZ_HOOKS',
    'SEVEN_TWO', 'SideGame', 'SideGameContext', 'SideGameRegistry', 'build_default_side_games',
]

"""
Rules/variant hook layer.

A variant is a flat bundle of optional hook functions. The poker table calls
them at fixed lifecycle points; a missing hook is a no-op. Variants are built
by copying the base bundle with dataclasses.replace and overriding only what
changes, and are looked up through an explicit RulesRegistry that the
process builds once and hands to every table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..deck import Card
from ..errors import ConfigError

STREETS = ('preflop', 'flop', 'turn', 'river', 'showdown')


@dataclass
class HookContext:
    """What a hook may look at. `variant_state` is table-level and survives hands."""
    table_id: str
    round_id: Optional[str]
    hand_number: int
    seats: List[Any]
    variant_state: Dict[str, Any]
    config: Any = None

    def seat(self, participant_id: str):
        return next((s for s in self.seats if s.participant_id == participant_id), None)


@dataclass
class RoundStartResult:
    lock_table: bool = False
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PotWinResult:
    reveal_hands: bool = False
    end_round: bool = False
    message: Optional[str] = None
    awards: Dict[str, int] = field(default_factory=dict)


@dataclass
class RoundEndResult:
    delay: Optional[float] = None
    reset_table: bool = False
    message: Optional[str] = None
    # a side-settlement record produced by the variant (e.g. bounties)
    settlement: Any = None


@dataclass(frozen=True)
class BettingRules:
    limit: str = 'no_limit'
    min_raise: Optional[int] = None


@dataclass(frozen=True)
class RulesHooks:
    evaluate_hand: Optional[Callable[[Sequence[Card], Sequence[Card]], Any]] = None
    compare_hands: Optional[Callable[[Any, Any], int]] = None
    is_wild_card: Optional[Callable[[Card], bool]] = None
    hole_card_count: Optional[Callable[[], int]] = None
    community_card_count: Optional[Callable[[str], int]] = None
    next_street: Optional[Callable[[str], str]] = None
    should_skip_street: Optional[Callable[[str, HookContext], bool]] = None
    valid_actions: Optional[Callable[[Dict[str, Any]], List[str]]] = None
    betting_rules: Optional[Callable[[], BettingRules]] = None
    on_round_start: Optional[Callable[[HookContext], RoundStartResult]] = None
    on_pot_win: Optional[Callable[[HookContext, str], PotWinResult]] = None
    on_round_end: Optional[Callable[[HookContext], RoundEndResult]] = None
    # returns None when the join is allowed, otherwise the reason
    can_join: Optional[Callable[[HookContext, str], Optional[str]]] = None
    should_lock_table: Optional[Callable[[HookContext], bool]] = None


def call_hook(hooks: RulesHooks, name: str, *args, default: Any = None) -> Any:
    """Invoke a hook if the bundle defines it, otherwise return `default`."""
    fn = getattr(hooks, name)
    if fn is None:
        return default
    result = fn(*args)
    return default if result is None else result


@dataclass(frozen=True)
class Variant:
    key: str
    name: str
    hooks: RulesHooks
    min_participants: Optional[int] = None
    max_participants: Optional[int] = None
    description: str = ''


class RulesRegistry:
    """Variant lookup table. Looking up an unregistered key is a config error."""

    def __init__(self, default_key: str = 'holdem'):
        self.default_key = default_key
        self._variants: Dict[str, Variant] = {}

    def register(self, variant: Variant) -> Variant:
        if variant.key in self._variants:
            raise ValueError(f"Variant already registered: {variant.key}")
        self._variants[variant.key] = variant
        return variant

    def get(self, key: Optional[str] = None) -> Variant:
        """Variant for `key`, or the registry default when no key is given."""
        if key is None:
            key = self.default_key
        variant = self._variants.get(key)
        if variant is None:
            raise ConfigError(f"Unknown variant '{key}'", variant=key, known=sorted(self._variants))
        return variant

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._variants)

    def __contains__(self, key: str) -> bool:
        return key in self._variants

    def __len__(self):
        return len(self._variants)

"""
Per-table game configuration.

Configs are frozen pydantic models. Construction validates, and every
validation failure surfaces as ConfigError so a table is never built from an
invalid config. Numeric fields are strict: a string where money or a
probability is expected is rejected instead of coerced.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError


class AdvanceMode(str, Enum):
    TIMED = 'timed'
    CONSENSUS = 'consensus'


def _describe(cls_name: str, error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        where = '.'.join(str(part) for part in item['loc']) or cls_name
        problems.append(f"{where}: {item['msg']}")
    return f"Invalid {cls_name}: " + '; '.join(problems)


class ConfigModel(BaseModel):
    """Base for every table config: immutable, unknown keys rejected."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigError(_describe(type(self).__name__, e)) from e

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None):
        """Build and validate a config from plain (e.g. JSON) data."""
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise ConfigError(f"Invalid {cls.__name__}: expected a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigError(_describe(cls.__name__, e)) from e

    def validate(self):
        """Re-check a config, including one assembled with model_construct."""
        type(self).from_mapping(self.model_dump())
        return self


def _check_rake(percentage: float, cap: Optional[int]):
    if not 0 <= percentage <= 100:
        raise ValueError(f"rake_percentage must be within [0, 100], got {percentage}")
    if cap is not None and cap < 0:
        raise ValueError("rake_cap must be non-negative")


class LobbyTiming(ConfigModel):
    """Shared lobby behaviour for every table type."""
    min_participants: int = Field(2, ge=1, strict=True)
    max_participants: int = Field(8, ge=1, strict=True)
    lobby_countdown: float = Field(10.0, ge=0, strict=True)
    auto_start_participants: Optional[int] = Field(None, strict=True)
    inactivity_timeout: float = Field(60.0, gt=0, strict=True)

    @model_validator(mode='after')
    def check_seat_limits(self):
        if self.max_participants < self.min_participants:
            raise ValueError("max_participants must be >= min_participants")
        auto = self.auto_start_participants
        if auto is not None and not self.min_participants <= auto <= self.max_participants:
            raise ValueError("auto_start_participants must be between min and max participants")
        return self


class FlipConfig(ConfigModel):
    """Coin flip table."""
    ante: int = Field(500, gt=0, strict=True)
    rake_percentage: float = Field(5, strict=True)
    rake_cap: Optional[int] = Field(None, strict=True)
    min_buy_in_multiplier: int = Field(5, ge=1, strict=True)
    lobby: LobbyTiming = Field(default_factory=LobbyTiming)
    ante_delay: float = Field(1.0, ge=0, strict=True)
    decision_timeout: float = Field(5.0, ge=0, strict=True)
    bot_decision_delay: float = Field(1.0, ge=0, strict=True)
    reveal_delay: float = Field(3.0, ge=0, strict=True)
    settlement_display: float = Field(5.0, ge=0, strict=True)
    hand_end_delay: float = Field(5.0, ge=0, strict=True)

    @model_validator(mode='after')
    def check_rake(self):
        _check_rake(self.rake_percentage, self.rake_cap)
        return self

    @property
    def min_buy_in(self) -> int:
        return self.ante * self.min_buy_in_multiplier


class CardFlipConfig(FlipConfig):
    """Card flip table: heads-up only, three cards per hand."""
    ante: int = Field(100, gt=0, strict=True)
    rake_percentage: float = Field(0, strict=True)
    lobby: LobbyTiming = Field(default_factory=lambda: LobbyTiming(min_participants=2, max_participants=2))
    cards_per_hand: int = Field(3, ge=1, strict=True)
    card_reveal_delay: float = Field(2.0, ge=0, strict=True)

    @field_validator('cards_per_hand')
    @classmethod
    def odd_card_count(cls, value):
        if value % 2 == 0:
            raise ValueError("cards_per_hand must be odd so a colour always wins")
        return value

    @model_validator(mode='after')
    def heads_up(self):
        if self.lobby.max_participants != 2:
            raise ValueError("card flip is heads-up only")
        return self


class DescentStart(ConfigModel):
    oxygen: float = Field(100.0, gt=0, strict=True)
    suit: float = Field(1.0, gt=0, strict=True)
    multiplier: float = Field(1.00, gt=0, strict=True)


class DescentCosts(ConfigModel):
    oxygen_base: float = Field(5.0, ge=0, strict=True)
    oxygen_per_corruption: float = Field(1.0, ge=0, strict=True)
    suit_decay_min: float = Field(0.01, ge=0, strict=True)
    suit_decay_max: float = Field(0.03, ge=0, strict=True)

    @model_validator(mode='after')
    def ordered(self):
        if self.suit_decay_min > self.suit_decay_max:
            raise ValueError("suit decay range is inverted")
        return self


class DescentRewards(ConfigModel):
    mu_min: float = Field(0.008, ge=0, strict=True)
    mu_max: float = Field(0.018, ge=0, strict=True)
    corruption_boost: float = Field(0.008, ge=0, strict=True)
    surge_probability: float = Field(0.12, ge=0, le=1, strict=True)
    surge_min: float = Field(0.18, ge=0, strict=True)
    surge_max: float = Field(0.30, ge=0, strict=True)

    @model_validator(mode='after')
    def ordered(self):
        if self.mu_min > self.mu_max:
            raise ValueError("reward gain range is inverted")
        if self.surge_min > self.surge_max:
            raise ValueError("surge gain range is inverted")
        return self


class DescentHazard(ConfigModel):
    base: float = Field(0.02, ge=0, le=1, strict=True)
    per_depth: float = Field(0.010, ge=0, strict=True)
    per_corruption: float = Field(0.020, ge=0, strict=True)
    cap: float = Field(0.95, ge=0, le=0.95, strict=True)


class DescentEvents(ConfigModel):
    leak_probability: float = Field(0.10, ge=0, le=1, strict=True)
    canister_probability: float = Field(0.07, ge=0, le=1, strict=True)
    canister_oxygen: float = Field(20.0, ge=0, strict=True)
    canister_multiplier: float = Field(0.10, ge=0, strict=True)
    stabilize_probability: float = Field(0.05, ge=0, le=1, strict=True)
    stabilize_suit: float = Field(0.05, ge=0, strict=True)


class DescentConfig(ConfigModel):
    """Shared descent run."""
    start: DescentStart = Field(default_factory=DescentStart)
    costs: DescentCosts = Field(default_factory=DescentCosts)
    rewards: DescentRewards = Field(default_factory=DescentRewards)
    hazard: DescentHazard = Field(default_factory=DescentHazard)
    events: DescentEvents = Field(default_factory=DescentEvents)
    lobby: LobbyTiming = Field(default_factory=lambda: LobbyTiming(min_participants=1, max_participants=16))
    mode: AdvanceMode = AdvanceMode.TIMED
    min_bid: int = Field(100, gt=0, strict=True)
    max_bid: int = Field(100000, gt=0, strict=True)
    advance_interval: float = Field(3.0, gt=0, strict=True)
    decision_timeout: Optional[float] = Field(15.0, gt=0, strict=True)
    completion_display: float = Field(5.0, ge=0, strict=True)
    rake_percentage: float = Field(0, strict=True)
    rake_cap: Optional[int] = Field(None, strict=True)
    max_depth: int = Field(500, ge=1, strict=True)

    @model_validator(mode='after')
    def check_limits(self):
        if self.min_bid > self.max_bid:
            raise ValueError("bid limits must satisfy min_bid <= max_bid")
        _check_rake(self.rake_percentage, self.rake_cap)
        return self


class SquidzConfig(ConfigModel):
    """Bounty variant values, in cents."""
    base_value: int = Field(500, gt=0, strict=True)
    bonus_at_3: int = Field(500, ge=0, strict=True)
    bonus_at_5: int = Field(1000, ge=0, strict=True)
    extra_tokens: int = Field(3, ge=1, strict=True)
    reveal_at: Tuple[int, ...] = (1, 3, 5)
    next_round_delay: float = Field(5.0, ge=0, strict=True)
    min_players: int = Field(4, ge=2, strict=True)
    max_players: int = Field(8, ge=2, strict=True)

    @model_validator(mode='after')
    def check_players(self):
        if self.min_players > self.max_players:
            raise ValueError("squidz player limits are inverted")
        return self


class SideGamesConfig(ConfigModel):
    """Side games enabled on a poker table and their stakes, in cents."""
    enabled: Tuple[str, ...] = ()
    seven_two_contribution: int = Field(100, gt=0, strict=True)
    seven_two_offsuit: bool = True

    @field_validator('enabled')
    @classmethod
    def no_duplicates(cls, value):
        if len(set(value)) != len(value):
            raise ValueError("a side game may only be enabled once")
        return value


class PokerConfig(ConfigModel):
    variant: str = 'holdem'
    small_blind: int = Field(50, gt=0, strict=True)
    big_blind: int = Field(100, gt=0, strict=True)
    min_buy_in_blinds: int = Field(20, gt=0, strict=True)
    max_buy_in_blinds: int = Field(100, gt=0, strict=True)
    lobby: LobbyTiming = Field(default_factory=LobbyTiming)
    turn_timeout: float = Field(30.0, gt=0, strict=True)
    bot_decision_delay: float = Field(1.0, ge=0, strict=True)
    settlement_display: float = Field(3.0, ge=0, strict=True)
    rake_percentage: float = Field(0, strict=True)
    rake_cap: Optional[int] = Field(None, strict=True)
    squidz: SquidzConfig = Field(default_factory=SquidzConfig)
    side_games: SideGamesConfig = Field(default_factory=SideGamesConfig)

    @model_validator(mode='after')
    def check_stakes(self):
        if self.small_blind > self.big_blind:
            raise ValueError("blinds must satisfy small <= big")
        if self.min_buy_in_blinds > self.max_buy_in_blinds:
            raise ValueError("buy-in limits are inverted")
        _check_rake(self.rake_percentage, self.rake_cap)
        return self

    @property
    def min_buy_in(self) -> int:
        return self.big_blind * self.min_buy_in_blinds

    @property
    def max_buy_in(self) -> int:
        return self.big_blind * self.max_buy_in_blinds


def config_to_dict(config: ConfigModel) -> Dict[str, Any]:
    """Plain-dict view of a config, for state broadcasts."""
    return config.model_dump(mode='json')

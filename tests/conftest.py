from collections import deque
from typing import Callable, Iterable, Optional

import pytest

from antetown.config import CardFlipConfig, DescentConfig, FlipConfig, LobbyTiming, PokerConfig
from antetown.descent import SharedDescentEngine
from antetown.events import RecordingEmitter
from antetown.flip import CardFlipTable, CoinFlipTable
from antetown.poker_table import PokerTable
from antetown.scheduler import ManualClock


class ScriptedRNG:
    """Callable helper which returns predetermined draws and counts them like DeterministicRNG."""

    def __init__(self, values: Iterable[float]):
        self._queue = deque(values)
        self.calls = 0

    def __call__(self) -> float:
        if not self._queue:
            raise RuntimeError("No more scripted draws available")
        self.calls += 1
        return self._queue.popleft()

    def random(self) -> float:
        return self()

    def remaining(self) -> int:
        return len(self._queue)


@pytest.fixture
def scripted_rng() -> Callable[[Iterable[float]], ScriptedRNG]:
    return ScriptedRNG


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000.0)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def coin_table(clock, emitter) -> Callable[..., CoinFlipTable]:
    """Factory for coin flip tables on the manual clock."""

    def _factory(config: Optional[FlipConfig] = None, **kwargs) -> CoinFlipTable:
        config = config or FlipConfig(ante=500, rake_percentage=5)
        return CoinFlipTable('coin-test', config, emitter=emitter, clock=clock, secret='test-secret', **kwargs)

    return _factory


@pytest.fixture
def card_table(clock, emitter) -> Callable[..., CardFlipTable]:
    def _factory(config: Optional[CardFlipConfig] = None, **kwargs) -> CardFlipTable:
        return CardFlipTable('card-test', config or CardFlipConfig(), emitter=emitter, clock=clock,
                             secret='test-secret', **kwargs)

    return _factory


@pytest.fixture
def descent_table(clock, emitter) -> Callable[..., SharedDescentEngine]:
    def _factory(config: Optional[DescentConfig] = None, **kwargs) -> SharedDescentEngine:
        return SharedDescentEngine('descent-test', config or DescentConfig(), emitter=emitter, clock=clock,
                                   secret='test-secret', **kwargs)

    return _factory


@pytest.fixture
def poker_table(clock, emitter) -> Callable[..., PokerTable]:
    def _factory(config: Optional[PokerConfig] = None, **kwargs) -> PokerTable:
        config = config or PokerConfig(lobby=LobbyTiming(min_participants=2, max_participants=8))
        return PokerTable('poker-test', config, emitter=emitter, clock=clock, secret='test-secret', **kwargs)

    return _factory

"""
Shared descent engine.

Every participant in a run experiences the same deterministic sequence of
rooms. The environment (oxygen, suit integrity, corruption, reward
multiplier) is shared; participants differ only in when they choose to exit.
Exiting at depth k locks in floor(bid * multiplier_k). Staying until a hazard
or depletion pays nothing.

The run keeps descending after everyone has exited, until something ends
it, so the table can watch what they would have faced.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from .config import AdvanceMode, DescentConfig
from .errors import InvalidAction, JoinRejected, UnauthorizedActor
from .events import DECISION_MADE, PARTICIPANT_ELIMINATED, SETTLEMENT_COMPUTED, STEP_ADVANCED
from .participant import ExitReason, ParticipantState, Seat
from .rng import DeterministicRNG, random_bool, random_in_range
from .round_machine import RoundStateMachine
from .settlement import multiplier_payout, settle_house


class DescentPhase(str, Enum):
    LOBBY = 'lobby'
    DESCENDING = 'descending'
    COMPLETED = 'completed'


@dataclass
class Environment:
    oxygen: float
    suit: float
    corruption: int
    multiplier: float
    depth: int = 0

    @classmethod
    def initial(cls, config: DescentConfig) -> 'Environment':
        return cls(oxygen=config.start.oxygen, suit=config.start.suit, corruption=0,
                   multiplier=config.start.multiplier, depth=0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RoomEvent:
    kind: str
    effects: Dict[str, float] = field(default_factory=dict)


@dataclass
class StepOutcome:
    depth: int
    surge: bool
    surge_gain: float
    events: List[RoomEvent]
    base_gain: float
    oxygen_cost: float
    suit_decay: float
    hazard_chance: float
    hazard: bool
    depleted: Optional[str]
    draws: int
    environment: Environment

    @property
    def terminal(self) -> bool:
        return self.hazard or self.depleted is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def hazard_chance(depth: int, corruption: int, config: DescentConfig) -> float:
    """Hazard probability for a step at `depth`, clamped to [0, cap]."""
    h = config.hazard
    chance = h.base + h.per_depth * depth + h.per_corruption * corruption
    return max(0.0, min(h.cap, chance))


def advance_environment(env: Environment, rng: Callable[[], float], config: DescentConfig) -> StepOutcome:
    """Advance the shared environment by one room, mutating `env` in place.

    Draw order: surge, surge gain (surge only), leak, canister, stabilize,
    base gain, suit decay, hazard. Seven draws, eight with a surge.
    """
    start_calls = getattr(rng, 'calls', 0)
    rewards, costs, events_cfg = config.rewards, config.costs, config.events
    env.depth += 1

    surge = random_bool(rng, rewards.surge_probability)
    surge_gain = 0.0
    if surge:
        surge_gain = random_in_range(rng, rewards.surge_min, rewards.surge_max)
        env.multiplier += surge_gain
        env.corruption += 1

    events: List[RoomEvent] = []
    if random_bool(rng, events_cfg.leak_probability):
        env.corruption += 1
        events.append(RoomEvent('leak', {'corruption': 1}))
    if random_bool(rng, events_cfg.canister_probability):
        env.oxygen += events_cfg.canister_oxygen
        env.multiplier += events_cfg.canister_multiplier
        env.corruption += 1
        events.append(RoomEvent('canister', {'oxygen': events_cfg.canister_oxygen,
                                             'multiplier': events_cfg.canister_multiplier,
                                             'corruption': 1}))
    if random_bool(rng, events_cfg.stabilize_probability):
        env.suit = min(config.start.suit, env.suit + events_cfg.stabilize_suit)
        events.append(RoomEvent('stabilize', {'suit': events_cfg.stabilize_suit}))

    base_gain = random_in_range(rng, rewards.mu_min, rewards.mu_max) + rewards.corruption_boost * env.corruption
    env.multiplier += base_gain

    oxygen_cost = costs.oxygen_base + costs.oxygen_per_corruption * env.corruption
    env.oxygen = max(0.0, env.oxygen - oxygen_cost)
    suit_decay = random_in_range(rng, costs.suit_decay_min, costs.suit_decay_max)
    env.suit = max(0.0, min(config.start.suit, env.suit - suit_decay))

    chance = hazard_chance(env.depth, env.corruption, config)
    hazard = random_bool(rng, chance)

    depleted = None
    if env.oxygen <= 0:
        depleted = 'oxygen'
    elif env.suit <= 0:
        depleted = 'suit'

    return StepOutcome(
        depth=env.depth,
        surge=surge,
        surge_gain=surge_gain,
        events=events,
        base_gain=base_gain,
        oxygen_cost=oxygen_cost,
        suit_decay=suit_decay,
        hazard_chance=chance,
        hazard=hazard,
        depleted=depleted,
        draws=getattr(rng, 'calls', 0) - start_calls,
        environment=Environment(**asdict(env)),
    )


def replay(seed: int, config: Optional[DescentConfig] = None, bids: Optional[Mapping[str, int]] = None,
           exits: Optional[Mapping[str, int]] = None, max_steps: Optional[int] = None) -> Dict[str, Any]:
    """Rebuild a run from its seed.

    `exits` maps participant id to the depth at which they exited (0 means
    before the first room). Anyone without an exit, or with an exit past the
    terminal room, pays nothing.
    """
    config = config or DescentConfig()
    bids = dict(bids or {})
    exits = dict(exits or {})
    rng = DeterministicRNG(seed)
    env = Environment.initial(config)
    multipliers = {0: env.multiplier}
    steps: List[Dict[str, Any]] = []
    limit = min(max_steps or config.max_depth, config.max_depth)
    terminal_depth = None
    while env.depth < limit:
        outcome = advance_environment(env, rng, config)
        steps.append(outcome.to_dict())
        multipliers[outcome.depth] = outcome.environment.multiplier
        if outcome.terminal:
            terminal_depth = outcome.depth
            break
    payouts = {}
    for pid, bid in bids.items():
        depth = exits.get(pid)
        if depth is None or (terminal_depth is not None and depth >= terminal_depth) or depth not in multipliers:
            payouts[pid] = 0
        else:
            payouts[pid] = multiplier_payout(bid, multipliers[depth])
    return {
        'seed': seed,
        'steps': steps,
        'terminal_depth': terminal_depth,
        'rng_calls': rng.calls,
        'payouts': payouts,
    }


class SharedDescentEngine(RoundStateMachine):
    """Lobby -> descending -> completed, with timed or consensus advancement."""

    game_type = 'shared_descent'
    lobby_phase = DescentPhase.LOBBY
    live_phases = (DescentPhase.DESCENDING,)
    actions = {
        'bid': ((DescentPhase.LOBBY,), '_on_bid'),
        'ready': ((DescentPhase.LOBBY,), '_on_ready'),
        'start': ((DescentPhase.LOBBY,), '_on_start'),
        'exit': ((DescentPhase.DESCENDING,), '_on_exit'),
        'advance': ((DescentPhase.DESCENDING,), '_on_advance'),
        'leave': (None, '_on_leave'),
    }

    def __init__(self, table_id: str, config: Optional[DescentConfig] = None, **kwargs):
        super().__init__(table_id, config or DescentConfig(), **kwargs)
        self.environment: Optional[Environment] = None
        self.history: List[StepOutcome] = []
        self.awaiting: Set[str] = set()

    @property
    def consensus(self) -> bool:
        return self.config.mode == AdvanceMode.CONSENSUS

    def check_join(self, name: str, stack: int):
        if stack < self.config.min_bid:
            raise JoinRejected(f"Need at least {self.config.min_bid} to join", min_bid=self.config.min_bid)

    # -- lobby --------------------------------------------------------------

    def lobby_candidates(self) -> List[Seat]:
        if self.round is None:
            return []
        return [s for s in self.eligible_seats() if s.participant_id in self.round.participants]

    def _on_bid(self, participant_id: str, payload: Dict[str, Any]):
        seat = self.seats.require(participant_id)
        try:
            amount = int(payload.get('amount', self.config.min_bid))
        except (TypeError, ValueError):
            raise InvalidAction("Bid must be a whole number of cents")
        if not self.config.min_bid <= amount <= self.config.max_bid:
            raise InvalidAction(f"Bid must be between {self.config.min_bid} and {self.config.max_bid}",
                                amount=amount)
        if amount > seat.stack:
            raise InvalidAction("Bid exceeds available stake", amount=amount, stack=seat.stack)
        if self.round is None:
            self.new_round([])
        if participant_id in self.round.participants:
            raise InvalidAction("Already in this run")
        state = ParticipantState(participant_id)
        self.round.participants[participant_id] = state
        seat.stack -= amount
        state.commit(amount)
        self.round.pot += amount
        logging.info(f"[{self.table_id}] {seat.name} bid {amount} on run {self.round.round_id}")
        self.broadcast(DECISION_MADE, {'participant_id': participant_id, 'decision': 'bid', 'amount': amount,
                                       'round_id': self.round.round_id})
        self.arm_lobby_countdown()
        self.check_lobby()

    def _on_start(self, participant_id: str, payload: Dict[str, Any]):
        if self.round is None or participant_id not in self.round.participants:
            raise UnauthorizedActor("Place a bid before starting the run")
        self.start_round()

    def start_round(self):
        self.transition(DescentPhase.DESCENDING)

    def remove_seat(self, participant_id: str, reason: str) -> Seat:
        # a lobby bid goes back to the seat before it is refunded
        if self.phase == self.lobby_phase and self.round is not None:
            state = self.round.participants.pop(participant_id, None)
            seat = self.seats.get(participant_id)
            if state is not None and seat is not None:
                seat.stack += state.stake
                self.round.pot -= state.stake
        return super().remove_seat(participant_id, reason)

    # -- descending ---------------------------------------------------------

    def enter_descending(self):
        self.environment = Environment.initial(self.config)
        self.history = []
        self.round.data['environment'] = self.environment.to_dict()
        self.round.data['mode'] = self.config.mode.value
        logging.info(f"[{self.table_id}] Run {self.round.round_id} descending with "
                     f"{len(self.round.participants)} divers ({self.config.mode.value})")
        self.schedule_next_step()

    def schedule_next_step(self):
        active = self.round.active_ids()
        if not self.consensus or not active:
            self.arm_timer(self.config.advance_interval, self.advance, 'advance')
            return
        self.awaiting = set(active)
        if self.config.decision_timeout:
            self.arm_timer(self.config.decision_timeout, self._decisions_timed_out, 'decision')
        self._consult_bots()

    def _consult_bots(self):
        if self.bot_policy is None:
            return
        depth = self.environment.depth
        for pid in list(self.awaiting):
            seat = self.seats.get(pid)
            if seat is None or not seat.is_ai:
                continue
            choice = self.bot_policy(self.snapshot(), ['advance', 'exit'])
            if choice == 'exit':
                self.exit(pid)
            else:
                self._mark_decided(pid, 'advance')
            # the last decision may already have advanced the run
            if self.phase != DescentPhase.DESCENDING or self.environment.depth != depth:
                return

    def next_hazard_chance(self) -> float:
        """Hazard chance of the next room. Consumes no draws."""
        if self.environment is None:
            return hazard_chance(1, 0, self.config)
        return hazard_chance(self.environment.depth + 1, self.environment.corruption, self.config)

    def advance(self) -> StepOutcome:
        rnd = self.round
        self.timer.cancel()
        self.awaiting = set()
        outcome = advance_environment(self.environment, rnd.rng, self.config)
        rnd.step = outcome.depth
        rnd.data['environment'] = self.environment.to_dict()
        self.history.append(outcome)
        self.broadcast(STEP_ADVANCED, {
            **outcome.to_dict(),
            'round_id': rnd.round_id,
            'active': rnd.active_ids(),
            'next_hazard_chance': self.next_hazard_chance(),
        })
        if outcome.terminal:
            reason = ExitReason.HAZARD if outcome.hazard else ExitReason.DEPLETED
            detail = 'hazard' if outcome.hazard else outcome.depleted
            for state in rnd.active():
                state.exit(reason, outcome.depth, payout=0, detail=detail)
                self.broadcast(PARTICIPANT_ELIMINATED, {'participant_id': state.participant_id,
                                                         'reason': reason.value, 'detail': detail,
                                                         'depth': outcome.depth})
            self.transition(DescentPhase.COMPLETED)
        elif outcome.depth >= self.config.max_depth:
            for state in rnd.active():
                self._cash_out(state, ExitReason.OPTED_OUT, 'max_depth')
            self.transition(DescentPhase.COMPLETED)
        else:
            self.schedule_next_step()
        return outcome

    def _cash_out(self, state: ParticipantState, reason: ExitReason, source: str) -> int:
        env = self.environment
        payout = multiplier_payout(state.stake, env.multiplier)
        state.exit(reason, env.depth, payout=payout, detail=source)
        self.awaiting.discard(state.participant_id)
        self.broadcast(DECISION_MADE, {'participant_id': state.participant_id, 'decision': 'exit',
                                       'source': source, 'depth': env.depth,
                                       'multiplier': env.multiplier, 'payout': payout})
        return payout

    def exit(self, participant_id: str) -> int:
        state = self.round.state(participant_id)
        if state is None or not state.active:
            raise UnauthorizedActor("Not an active diver in this run")
        payout = self._cash_out(state, ExitReason.OPTED_OUT, 'player')
        logging.info(f"[{self.table_id}] {participant_id} exited at depth {self.environment.depth} for {payout}")
        if self.consensus:
            self._advance_if_decided()
        return payout

    def _on_exit(self, participant_id: str, payload: Dict[str, Any]):
        self.exit(participant_id)

    def _on_advance(self, participant_id: str, payload: Dict[str, Any]):
        if not self.consensus:
            raise InvalidAction("This run advances on a timer")
        state = self.round.state(participant_id)
        if state is None or not state.active:
            raise UnauthorizedActor("Not an active diver in this run")
        if participant_id not in self.awaiting:
            raise InvalidAction("Already decided for this room")
        self._mark_decided(participant_id, 'advance')

    def _mark_decided(self, participant_id: str, decision: str):
        self.awaiting.discard(participant_id)
        self.broadcast(DECISION_MADE, {'participant_id': participant_id, 'decision': decision,
                                       'depth': self.environment.depth})
        self._advance_if_decided()

    def _advance_if_decided(self):
        if self.phase == DescentPhase.DESCENDING and not self.awaiting:
            self.advance()

    def _decisions_timed_out(self):
        for pid in list(self.awaiting):
            state = self.round.state(pid)
            if state is not None and state.active:
                self._cash_out(state, ExitReason.TIMEOUT_DEFAULT, ExitReason.TIMEOUT_DEFAULT.value)
        self.awaiting = set()
        self.advance()

    # -- completed ----------------------------------------------------------

    def enter_completed(self):
        rnd = self.round
        stakes = {pid: s.stake for pid, s in rnd.participants.items()}
        payouts = {pid: s.payout or 0 for pid, s in rnd.participants.items()}
        reasons = {pid: (s.exit_reason.value if s.exit_reason else 'settled') for pid, s in rnd.participants.items()}
        record = settle_house(rnd.round_id, stakes, payouts, reasons,
                              self.config.rake_percentage, self.config.rake_cap).verify()
        for entry in record.entries:
            seat = self.seats.get(entry.participant_id)
            if seat is not None:
                seat.stack += entry.net
        rnd.pot = 0
        rnd.settlements.append(record)
        self.broadcast(SETTLEMENT_COMPUTED, record.to_dict())
        last = self.history[-1] if self.history else None
        outcome = 'hazard' if last and last.hazard else (last.depleted if last and last.depleted else 'surfaced')
        self.complete_round({
            'outcome': outcome,
            'depth': self.environment.depth,
            'environment': self.environment.to_dict(),
            'history': [o.to_dict() for o in self.history],
            'payouts': payouts,
        })
        self.arm_timer(self.config.completion_display, self._back_to_lobby, 'completion_display')

    def _back_to_lobby(self):
        self.process_stand_ups()
        self.round = None
        self.environment = None
        self.awaiting = set()
        self.transition(DescentPhase.LOBBY)

    def refundable(self, state: ParticipantState) -> bool:
        # a void run returns every bid, including ones already cashed out or eliminated
        return state.stake > 0

    def force_end(self, reason: str):
        super().force_end(reason)
        self.round = None
        self.environment = None
        self.awaiting = set()

    def snapshot(self) -> Dict[str, Any]:
        state = super().snapshot()
        state['environment'] = self.environment.to_dict() if self.environment else None
        state['mode'] = self.config.mode.value
        state['awaiting'] = sorted(self.awaiting)
        state['next_hazard_chance'] = self.next_hazard_chance()
        return state

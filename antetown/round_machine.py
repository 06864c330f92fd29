"""
Generic round/phase state machine shared by every antetown table.

Subclasses (coin flip, card flip, poker, shared descent) declare their
action table and phase enter-handlers; this module owns the parts that must
behave identically everywhere:

* one serialized dispatch for player actions and timer firings,
* at most one live phase timer, cancelled on every transition,
* rejection of wrong-phase, unseated and stale-round actions,
* lobby start triggers, queued stand-ups, inactivity sweeps and forced ends.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import GameError, InvalidTransition, StaleRound, UnknownAction
from .events import (
    ACTION_REJECTED,
    DECISION_MADE,
    PARTICIPANT_JOINED,
    PARTICIPANT_LEFT,
    PARTICIPANT_RECONNECTED,
    PHASE_CHANGED,
    ROUND_COMPLETED,
    ROUND_CREATED,
    SETTLEMENT_COMPUTED,
    Emitter,
)
from .participant import ParticipantManager, ParticipantState, Seat
from .rng import DeterministicRNG, generate_seed, random_choice
from .scheduler import ActionMessage, LoopClock, PhaseTimer, TimerFired
from .settlement import settle_refund
from .settings import DEFAULT_SECRET


class Phase(str, Enum):
    LOBBY = 'lobby'
    SETUP = 'setup'
    DECISION = 'decision'
    RESOLUTION = 'resolution'
    SETTLEMENT = 'settlement'
    END = 'end'


class Round:
    """One playthrough: identity, seed, RNG position, pot and participant states."""

    def __init__(self, round_id: str, seed: int, participant_ids: Iterable[str],
                 created_at: float = 0.0, calls: int = 0):
        self.round_id = round_id
        self.seed = seed
        # the only generator for this round; every draw goes through it
        self.rng = DeterministicRNG(seed, calls=calls)
        self.step = 0
        self.pot = 0
        self.created_at = created_at
        self.participants: Dict[str, ParticipantState] = {pid: ParticipantState(pid) for pid in participant_ids}
        self.data: Dict[str, Any] = {}
        self.settlements: List[Any] = []
        self.completed = False

    def state(self, participant_id: str) -> Optional[ParticipantState]:
        return self.participants.get(participant_id)

    def active(self) -> List[ParticipantState]:
        return [p for p in self.participants.values() if p.active]

    def active_ids(self) -> List[str]:
        return [p.participant_id for p in self.participants.values() if p.active]

    def seed_commitment(self) -> str:
        return hashlib.sha256(str(self.seed).encode('utf-8')).hexdigest()

    def to_dict(self, reveal_seed: bool = False) -> Dict[str, Any]:
        data = {
            'round_id': self.round_id,
            'step': self.step,
            'pot': self.pot,
            'rng_calls': self.rng.calls,
            'seed_commitment': self.seed_commitment(),
            'participants': {pid: p.to_dict() for pid, p in self.participants.items()},
            'data': dict(self.data),
            'completed': self.completed,
        }
        if reveal_seed or self.completed:
            data['seed'] = self.seed
        return data


ActionTable = Dict[str, Tuple[Optional[Tuple[Enum, ...]], str]]


class RoundStateMachine:
    """Base table. Subclasses extend `actions` and define `enter_<phase>` handlers."""

    game_type = 'round'
    lobby_phase: Enum = Phase.LOBBY
    # phases where a seat leaving would corrupt the hand; stand-ups are queued instead
    live_phases: Tuple[Enum, ...] = (Phase.SETUP, Phase.DECISION, Phase.RESOLUTION, Phase.SETTLEMENT)
    # action name -> (phases that accept it or None for any phase, handler method name)
    actions: ActionTable = {
        'ready': ((Phase.LOBBY,), '_on_ready'),
        'leave': (None, '_on_leave'),
    }

    def __init__(self, table_id: str, config, *, emitter: Optional[Emitter] = None, clock=None,
                 secret: str = DEFAULT_SECRET,
                 bot_policy: Optional[Callable[[Dict[str, Any], List[str]], str]] = None):
        config.validate()
        self.table_id = table_id
        self.config = config
        self.emitter = emitter or Emitter()
        self.clock = clock or LoopClock()
        self.secret = secret
        self.bot_policy = bot_policy
        self.seats = ParticipantManager(table_id, max_seats=config.lobby.max_participants)
        self.phase: Enum = self.lobby_phase
        self.round: Optional[Round] = None
        self.hand_number = 0
        self._inbox: Callable[[Any], Any] = self.dispatch
        self.timer = PhaseTimer(self.clock, self._deliver)
        self._countdown_armed = False

    # -- dispatch -----------------------------------------------------------

    def set_inbox(self, inbox: Callable[[Any], Any]):
        """Route timer firings through an external queue instead of dispatching inline."""
        self._inbox = inbox

    def _deliver(self, message: TimerFired):
        self._inbox(message)

    def dispatch(self, message) -> bool:
        if isinstance(message, TimerFired):
            return self._on_timer(message)
        if isinstance(message, ActionMessage):
            return self.handle_action(message.participant_id, message.action, message.payload)
        raise TypeError(f"Unsupported message: {message!r}")

    def _on_timer(self, message: TimerFired) -> bool:
        callback = self.timer.claim(message.token)
        if callback is None:
            logging.debug(f"[{self.table_id}] Ignoring stale timer {message.label} (token {message.token})")
            return False
        logging.debug(f"[{self.table_id}] Timer fired: {message.label} in phase {self.phase.value}")
        callback()
        return True

    def handle_action(self, participant_id: str, action: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Validate and apply one participant action. Rejections are reported, never raised."""
        payload = payload or {}
        try:
            entry = self.actions.get(action)
            if entry is None:
                raise UnknownAction(f"Unknown action '{action}'", action=action)
            phases, handler = entry
            self.seats.require(participant_id)
            if phases is not None and self.phase not in phases:
                raise InvalidTransition(f"'{action}' is not accepted during {self.phase.value}",
                                        action=action, phase=self.phase.value)
            round_id = payload.get('round_id')
            if round_id is not None and (self.round is None or round_id != self.round.round_id):
                raise StaleRound("Action references a stale round", round_id=round_id)
            self.seats.touch(participant_id, self.clock.now())
            getattr(self, handler)(participant_id, payload)
            return True
        except GameError as e:
            self.reject(participant_id, action, e)
            return False

    def reject(self, participant_id: str, action: str, error: GameError):
        logging.info(f"[{self.table_id}] Rejected {action} from {participant_id}: {error.code} ({error.message})")
        self.emitter.send(participant_id, ACTION_REJECTED, {'action': action, **error.to_payload()})

    def broadcast(self, event: str, payload: Dict[str, Any]):
        self.emitter.broadcast(self.table_id, event, payload)

    def send(self, participant_id: str, event: str, payload: Dict[str, Any]):
        self.emitter.send(participant_id, event, payload)

    # -- phases and timers --------------------------------------------------

    def transition(self, phase: Enum):
        """Leave the current phase: cancel its timer, broadcast, then enter the next."""
        previous = self.phase
        self.timer.cancel()
        self.phase = phase
        logging.debug(f"[{self.table_id}] {previous.value} -> {phase.value}")
        self.broadcast(PHASE_CHANGED, {'from': previous.value, 'to': phase.value, 'state': self.snapshot()})
        handler = getattr(self, f"enter_{phase.value}", None)
        if handler is not None:
            handler()

    def arm_timer(self, delay: float, callback: Callable[[], None], label: str) -> int:
        return self.timer.arm(delay, callback, label)

    # -- seats --------------------------------------------------------------

    def check_join(self, name: str, stack: int):
        """Raise JoinRejected if this seat may not join. Subclasses add rules."""

    def join(self, name: str, stack: int, is_ai: bool = False, session_id: Optional[str] = None) -> Seat:
        self.check_join(name, stack)
        seat = self.seats.join(name, stack, is_ai=is_ai, session_id=session_id, now=self.clock.now())
        logging.info(f"[{self.table_id}] {name} joined with {stack}")
        self.broadcast(PARTICIPANT_JOINED, {'participant': seat.to_dict(), 'seats': len(self.seats)})
        self.after_join(seat)
        return seat

    def after_join(self, seat: Seat):
        self.check_lobby()

    def eligible_seats(self) -> List[Seat]:
        return [s for s in self.seats.ordered() if not s.standing_up]

    def in_live_round(self, participant_id: str) -> bool:
        if self.phase not in self.live_phases or self.round is None:
            return False
        state = self.round.state(participant_id)
        return state is not None

    def leave(self, participant_id: str) -> bool:
        """Stand up now, or queue it until the hand ends. Returns True if removed now."""
        seat = self.seats.require(participant_id)
        if self.in_live_round(participant_id):
            seat.standing_up = True
            logging.debug(f"[{self.table_id}] {seat.name} will stand up after this hand")
            self.send(participant_id, DECISION_MADE, {'participant_id': participant_id, 'decision': 'stand_up_queued'})
            return False
        self.remove_seat(participant_id, 'left')
        return True

    def _on_leave(self, participant_id: str, payload: Dict[str, Any]):
        self.leave(participant_id)

    def remove_seat(self, participant_id: str, reason: str) -> Seat:
        seat = self.seats.leave(participant_id)
        logging.info(f"[{self.table_id}] {seat.name} removed ({reason}), refunding {seat.stack}")
        self.broadcast(PARTICIPANT_LEFT, {
            'participant_id': participant_id,
            'name': seat.name,
            'reason': reason,
            'refund': seat.stack,
        })
        self.after_leave(seat)
        return seat

    def after_leave(self, seat: Seat):
        if self.phase == self.lobby_phase:
            self.check_lobby()

    def process_stand_ups(self):
        for seat in [s for s in self.seats.ordered() if s.standing_up]:
            self.remove_seat(seat.participant_id, 'stood_up')

    def disconnect(self, participant_id: str):
        """Keep the seat as a placeholder; only the lobby sweep removes it."""
        seat = self.seats.mark_disconnected(participant_id)
        logging.info(f"[{self.table_id}] {seat.name} disconnected; seat kept")
        self.broadcast(PARTICIPANT_LEFT, {'participant_id': participant_id, 'name': seat.name,
                                          'reason': 'disconnected', 'seat_kept': True})

    def reconnect(self, session_id: str, participant_id: str) -> Seat:
        seat = self.seats.reconnect(session_id, participant_id, now=self.clock.now())
        logging.info(f"[{self.table_id}] {seat.name} reconnected on session {session_id}")
        self.broadcast(PARTICIPANT_RECONNECTED, {'participant_id': participant_id, 'name': seat.name})
        self.send(participant_id, PHASE_CHANGED, {'from': self.phase.value, 'to': self.phase.value,
                                                  'state': self.snapshot()})
        return seat

    def sweep_inactive(self, now: Optional[float] = None) -> List[Seat]:
        """Reap idle seats. Acts only in the lobby, never mid-round."""
        if self.phase != self.lobby_phase:
            return []
        now = self.clock.now() if now is None else now
        removed = []
        for seat in self.seats.inactive_since(now, self.config.lobby.inactivity_timeout):
            removed.append(self.remove_seat(seat.participant_id, 'inactive'))
        return removed

    # -- lobby --------------------------------------------------------------

    def _on_ready(self, participant_id: str, payload: Dict[str, Any]):
        seat = self.seats.require(participant_id)
        seat.ready = bool(payload.get('ready', True))
        self.broadcast(DECISION_MADE, {'participant_id': participant_id, 'decision': 'ready', 'value': seat.ready})
        self.check_lobby()

    def lobby_candidates(self) -> List[Seat]:
        return self.eligible_seats()

    def min_participants(self) -> int:
        return self.config.lobby.min_participants

    def check_lobby(self):
        """Start when the threshold or all-ready is met; arm the countdown only once."""
        if self.phase != self.lobby_phase:
            return
        lobby = self.config.lobby
        candidates = self.lobby_candidates()
        count = len(candidates)
        if count >= self.min_participants():
            if lobby.auto_start_participants and count >= lobby.auto_start_participants:
                self.start_round()
                return
            if all(s.ready for s in candidates):
                self.start_round()
                return
        if any(s.ready for s in candidates):
            self.arm_lobby_countdown()

    def arm_lobby_countdown(self):
        if self._countdown_armed:
            return
        self._countdown_armed = True
        self.arm_timer(self.config.lobby.lobby_countdown, self._lobby_countdown_elapsed, 'lobby_countdown')

    def _lobby_countdown_elapsed(self):
        self._countdown_armed = False
        if len(self.lobby_candidates()) >= self.min_participants():
            self.start_round()
        else:
            logging.debug(f"[{self.table_id}] Lobby countdown elapsed without enough participants")

    def enter_lobby(self):
        self._countdown_armed = False
        self.seats.reset_ready()

    # -- rounds -------------------------------------------------------------

    def new_round(self, participant_ids: Iterable[str]) -> Round:
        self.hand_number += 1
        now = self.clock.now()
        round_id = uuid.uuid4().hex
        seed = generate_seed(self.secret, f"{self.table_id}:{round_id}", int(now * 1000), self.hand_number)
        self.round = Round(round_id, seed, participant_ids, created_at=now)
        logging.info(f"[{self.table_id}] Round {round_id} created (hand {self.hand_number})")
        self.broadcast(ROUND_CREATED, {
            'round_id': round_id,
            'hand_number': self.hand_number,
            'seed_commitment': self.round.seed_commitment(),
            'participants': list(self.round.participants),
        })
        return self.round

    def start_round(self):
        """Leave the lobby (or end) for a fresh round."""
        self.transition(Phase.SETUP)

    def loop_or_lobby(self):
        """After a round: start another if enough seats remain, otherwise wait in the lobby."""
        if len(self.eligible_seats()) >= self.min_participants():
            self.start_round()
        else:
            self.transition(self.lobby_phase)

    def complete_round(self, outcome: Dict[str, Any]):
        if self.round is None:
            return
        self.round.completed = True
        self.broadcast(ROUND_COMPLETED, {'round': self.round.to_dict(reveal_seed=True), **outcome})

    def refundable(self, state: ParticipantState) -> bool:
        """Whether a voided round hands this participant's stake back."""
        return state.stake > 0 and state.payout is None

    def refund_round(self):
        """Return committed stakes of an unfinished round to the seats as a refund record."""
        if self.round is None or self.round.completed:
            return
        rnd = self.round
        stakes = {pid: s.stake for pid, s in rnd.participants.items() if self.refundable(s)}
        record = settle_refund(rnd.round_id, stakes).verify()
        for entry in record.entries:
            seat = self.seats.get(entry.participant_id)
            if seat is not None:
                seat.stack += entry.net
            rnd.participants[entry.participant_id].record_refund(entry.net)
        rnd.pot = 0
        rnd.settlements.append(record)
        if record.entries:
            self.broadcast(SETTLEMENT_COMPUTED, record.to_dict())

    def force_end(self, reason: str):
        """Abort the current round, clearing its timer and refunding stakes."""
        logging.warning(f"[{self.table_id}] Forcing end of round: {reason}")
        self.timer.cancel()
        if self.round is not None and not self.round.completed:
            self.refund_round()
            self.complete_round({'aborted': True, 'reason': reason})
        self.process_stand_ups()
        self.transition(self.lobby_phase)

    def choose_for_bot(self, options: List[str]) -> str:
        if self.bot_policy is not None:
            return self.bot_policy(self.snapshot(), list(options))
        return random_choice(self.round.rng, options)

    # -- state --------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            'table_id': self.table_id,
            'game_type': self.game_type,
            'phase': self.phase.value,
            'hand_number': self.hand_number,
            'seats': [s.to_dict() for s in self.seats.ordered()],
            'round': self.round.to_dict() if self.round else None,
            'timer': {'label': self.timer.label, 'remaining': self.timer.remaining()} if self.timer.armed else None,
        }

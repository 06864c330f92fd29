"""
Seat and participant state for antetown tables.

A Seat is the table-level identity of a player: it survives reconnects and
spans rounds. ParticipantState is owned by exactly one Round and is thrown
away with it.

Participant ids are assigned at join time and never derived from a transport
session. Sessions are mapped to participants through a separate lookup table
that is rebuilt on reconnect.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidTransition, JoinRejected, UnauthorizedActor


class ExitReason(str, Enum):
    OPTED_OUT = 'opted_out'
    DEPLETED = 'depleted'
    HAZARD = 'hazard'
    TIMEOUT_DEFAULT = 'timeout_default'
    INSUFFICIENT_FUNDS = 'insufficient_funds'


class Seat:
    def __init__(self, name: str, stack: int, is_ai: bool = False,
                 participant_id: Optional[str] = None, now: float = 0.0):
        self.participant_id = participant_id or uuid.uuid4().hex
        self.name = name
        self.is_ai = is_ai
        self.stack = stack
        self.ready = False
        self.connected = True
        self.standing_up = False
        self.last_activity = now
        # variant data that outlives a single hand (bounty tokens etc.)
        self.extras: Dict[str, Any] = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'participant_id': self.participant_id,
            'name': self.name,
            'is_ai': self.is_ai,
            'stack': self.stack,
            'ready': self.ready,
            'connected': self.connected,
            'standing_up': self.standing_up,
            'extras': dict(self.extras),
        }

    def __repr__(self):
        return f"Seat({self.name!r}, stack={self.stack}, id={self.participant_id[:8]})"


class ParticipantState:
    """Per-round state. Frozen once the participant is no longer active."""

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        self.side: Optional[str] = None
        self.stake = 0
        self.active = True
        self.exit_reason: Optional[ExitReason] = None
        self.exit_step: Optional[int] = None
        self.detail: Optional[str] = None
        self.payout: Optional[int] = None
        # stake returned when the round was voided; kept apart from the payout
        self.refunded: Optional[int] = None

    def _require_active(self, what: str):
        if not self.active:
            raise InvalidTransition(f"Participant already exited; cannot {what}",
                                    participant_id=self.participant_id)

    def decide(self, side: str):
        self._require_active('decide')
        self.side = side

    def commit(self, amount: int):
        self._require_active('commit stake')
        if amount < 0:
            raise ValueError("stake commitment must be non-negative")
        self.stake += amount

    def exit(self, reason: ExitReason, step: int, payout: Optional[int] = None,
             detail: Optional[str] = None):
        self._require_active('exit')
        self.active = False
        self.exit_reason = reason
        self.exit_step = step
        self.detail = detail
        if payout is not None:
            self.payout = payout

    def record_payout(self, amount: int):
        if self.payout is not None:
            raise InvalidTransition("Payout already recorded", participant_id=self.participant_id)
        self.payout = amount

    def record_refund(self, amount: int):
        if self.refunded is not None:
            raise InvalidTransition("Refund already recorded", participant_id=self.participant_id)
        self.refunded = amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'participant_id': self.participant_id,
            'side': self.side,
            'stake': self.stake,
            'active': self.active,
            'exit_reason': self.exit_reason.value if self.exit_reason else None,
            'exit_step': self.exit_step,
            'detail': self.detail,
            'payout': self.payout,
            'refunded': self.refunded,
        }


class ParticipantManager:
    def __init__(self, table_id: str = "default", max_seats: int = 8):
        self.table_id = table_id
        self.max_seats = max_seats
        self.seats: Dict[str, Seat] = {}
        # transport session id -> participant id
        self.sessions: Dict[str, str] = {}

    def __len__(self):
        return len(self.seats)

    def __contains__(self, participant_id: str) -> bool:
        return participant_id in self.seats

    def join(self, name: str, stack: int, is_ai: bool = False, session_id: Optional[str] = None,
             now: float = 0.0) -> Seat:
        logging.debug(f"ParticipantManager.join: table={self.table_id}, name={name}, stack={stack}, is_ai={is_ai}")
        if len(self.seats) >= self.max_seats:
            raise JoinRejected("Table is full", table_id=self.table_id)
        if stack < 0:
            raise JoinRejected("Stack must be non-negative")
        seat = Seat(name, stack, is_ai=is_ai, now=now)
        self.seats[seat.participant_id] = seat
        if session_id is not None:
            self.bind_session(session_id, seat.participant_id)
        logging.debug(f"Seat {seat.participant_id} created for {name}. Total seats: {len(self.seats)}")
        return seat

    def leave(self, participant_id: str) -> Seat:
        seat = self.require(participant_id)
        del self.seats[participant_id]
        for session_id in [s for s, pid in self.sessions.items() if pid == participant_id]:
            del self.sessions[session_id]
        return seat

    def get(self, participant_id: str) -> Optional[Seat]:
        return self.seats.get(participant_id)

    def require(self, participant_id: str) -> Seat:
        seat = self.seats.get(participant_id)
        if seat is None:
            raise UnauthorizedActor("Not seated at this table", participant_id=participant_id)
        return seat

    def ordered(self) -> List[Seat]:
        return list(self.seats.values())

    def ids(self) -> List[str]:
        return list(self.seats.keys())

    def bind_session(self, session_id: str, participant_id: str):
        self.require(participant_id)
        self.sessions[session_id] = participant_id

    def resolve_session(self, session_id: str) -> Optional[str]:
        return self.sessions.get(session_id)

    def mark_disconnected(self, participant_id: str) -> Seat:
        """Keep the seat as a placeholder; the inactivity sweep reaps it later."""
        seat = self.require(participant_id)
        seat.connected = False
        for session_id in [s for s, pid in self.sessions.items() if pid == participant_id]:
            del self.sessions[session_id]
        return seat

    def reconnect(self, session_id: str, participant_id: str, now: float = 0.0) -> Seat:
        seat = self.require(participant_id)
        self.bind_session(session_id, participant_id)
        seat.connected = True
        seat.last_activity = now
        return seat

    def touch(self, participant_id: str, now: float):
        seat = self.seats.get(participant_id)
        if seat is not None:
            seat.last_activity = now

    def inactive_since(self, now: float, timeout: float) -> List[Seat]:
        return [s for s in self.seats.values() if now - s.last_activity >= timeout]

    def reset_ready(self):
        for seat in self.seats.values():
            seat.ready = False

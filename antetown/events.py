"""
Event names emitted by round engines, and the emitter seam used by transports.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

ROUND_CREATED = 'round_created'
PHASE_CHANGED = 'phase_changed'
PARTICIPANT_JOINED = 'participant_joined'
PARTICIPANT_LEFT = 'participant_left'
PARTICIPANT_RECONNECTED = 'participant_reconnected'
DECISION_MADE = 'decision_made'
STEP_ADVANCED = 'step_advanced'
PARTICIPANT_ELIMINATED = 'participant_eliminated'
ROUND_COMPLETED = 'round_completed'
SETTLEMENT_COMPUTED = 'settlement_computed'
HANDS_REVEALED = 'hands_revealed'
ACTION_REJECTED = 'action_rejected'


class Emitter:
    """Transport seam. Subclasses deliver events; the base drops them."""

    def broadcast(self, table_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Deliver to every participant of the table, spectators included."""

    def send(self, participant_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Deliver to one participant."""


class RecordingEmitter(Emitter):
    """Keeps every emitted event in order. Used by tests and the replay CLI."""

    def __init__(self):
        # (target, event, payload); target is '*' for broadcasts
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def broadcast(self, table_id, event, payload):
        self.events.append(('*', event, payload))

    def send(self, participant_id, event, payload):
        self.events.append((participant_id, event, payload))

    def names(self) -> List[str]:
        return [event for _, event, _ in self.events]

    def of(self, event: str) -> List[Dict[str, Any]]:
        return [payload for _, name, payload in self.events if name == event]

    def last(self, event: str) -> Optional[Dict[str, Any]]:
        found = self.of(event)
        return found[-1] if found else None

    def sent_to(self, participant_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(event, payload) for target, event, payload in self.events if target == participant_id]

    def clear(self):
        self.events = []


class LoggingEmitter(Emitter):
    """Writes every event to the log. Used by `main.py serve` when no transport is attached."""

    def broadcast(self, table_id, event, payload):
        logging.debug(f"[{table_id}] broadcast {event}: {sorted(payload)}")

    def send(self, participant_id, event, payload):
        logging.debug(f"send {event} to {participant_id}: {sorted(payload)}")

"""
Exceptions raised by antetown round engines.

Per-action errors (everything except ConfigError and SettlementError) are
caught by the round dispatcher and reported to the acting participant only.
"""

from typing import Any, Dict


class GameError(Exception):
    """Base class for errors reported back to a participant."""

    code = 'game_error'

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_payload(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message, **self.details}


class InvalidTransition(GameError):
    """The current phase does not accept this action."""
    code = 'invalid_transition'


class UnauthorizedActor(GameError):
    """The participant is not entitled to act right now."""
    code = 'unauthorized_actor'


class StaleRound(GameError):
    """The action references a round that is no longer current."""
    code = 'stale_round'


class UnknownAction(GameError):
    code = 'unknown_action'


class InvalidAction(GameError):
    """The action is known and in phase, but its payload is not legal."""
    code = 'invalid_action'


class InsufficientFunds(GameError):
    code = 'insufficient_funds'


class JoinRejected(GameError):
    code = 'join_rejected'


class ConfigError(GameError, ValueError):
    """Configuration failed validation; the table is never constructed."""
    code = 'config_invalid'


class SettlementError(GameError):
    """A settlement record does not balance. Always a programming error."""
    code = 'settlement_inconsistent'

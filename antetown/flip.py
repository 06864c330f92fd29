"""
Coin flip and card flip tables.

Both run the generic phase loop:
lobby -> setup (ante) -> decision (pick a side) -> resolution (flip)
-> settlement -> end -> setup | lobby.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import CardFlipConfig, FlipConfig
from .deck import card_colour, card_str, draw_flip_card
from .errors import InvalidAction, JoinRejected, UnauthorizedActor
from .events import DECISION_MADE, SETTLEMENT_COMPUTED, STEP_ADVANCED
from .participant import ExitReason
from .round_machine import Phase, RoundStateMachine
from .rng import random_choice
from .settlement import SettlementRecord, card_count_value, settle_pot, settle_transfer


class FlipTable(RoundStateMachine):
    """Shared ante/decision/end handling for the flip games."""

    sides: Tuple[str, str] = ('heads', 'tails')

    def __init__(self, table_id: str, config: Optional[FlipConfig] = None, **kwargs):
        super().__init__(table_id, config or FlipConfig(), **kwargs)
        self.decider_index = -1
        self.decider_id: Optional[str] = None

    def check_join(self, name: str, stack: int):
        if stack < self.config.min_buy_in:
            raise JoinRejected(f"Buy-in must be at least {self.config.min_buy_in}",
                               min_buy_in=self.config.min_buy_in)

    def exposure(self) -> int:
        """What each participant must put up to play one hand."""
        return self.config.ante

    # -- setup --------------------------------------------------------------

    def enter_setup(self):
        required = self.exposure()
        for seat in self.eligible_seats():
            if seat.stack < required:
                logging.info(f"[{self.table_id}] {seat.name} cannot cover {required}; standing up")
                self.remove_seat(seat.participant_id, ExitReason.INSUFFICIENT_FUNDS.value)
        players = self.eligible_seats()[:self.config.lobby.max_participants]
        if len(players) < self.min_participants():
            logging.info(f"[{self.table_id}] Not enough participants after antes; ending hand")
            self.round = None
            self.transition(Phase.END)
            return
        rnd = self.new_round([s.participant_id for s in players])
        for seat in players:
            seat.stack -= required
            rnd.participants[seat.participant_id].commit(required)
            rnd.pot += required
        self.broadcast(STEP_ADVANCED, {'step': 'ante', 'pot': rnd.pot, 'ante': required})
        self.arm_timer(self.config.ante_delay, lambda: self.transition(Phase.DECISION), 'ante')

    # -- decision -----------------------------------------------------------

    def enter_decision(self):
        ids = self.round.active_ids()
        self.decider_index = (self.decider_index + 1) % len(ids)
        self.decider_id = ids[self.decider_index]
        self.round.data['decider'] = self.decider_id
        seat = self.seats.get(self.decider_id)
        self.broadcast(STEP_ADVANCED, {'step': 'decider', 'participant_id': self.decider_id,
                                       'options': list(self.sides),
                                       'timeout': self.config.decision_timeout})
        if seat is not None and seat.is_ai:
            self.arm_timer(self.config.bot_decision_delay, self._bot_decides, 'bot_decision')
        else:
            self.arm_timer(self.config.decision_timeout, self._decision_timed_out, 'decision')

    def _on_choose_side(self, participant_id: str, payload: Dict[str, Any]):
        if participant_id != self.decider_id:
            raise UnauthorizedActor("Not your turn to choose", decider=self.decider_id)
        side = payload.get('side')
        if side not in self.sides:
            raise InvalidAction(f"Side must be one of {', '.join(self.sides)}", side=side)
        self.apply_decision(side, 'player')

    def _decision_timed_out(self):
        side = random_choice(self.round.rng, self.sides)
        logging.info(f"[{self.table_id}] Decision timed out; defaulting to {side}")
        self.apply_decision(side, ExitReason.TIMEOUT_DEFAULT.value)

    def _bot_decides(self):
        self.apply_decision(self.choose_for_bot(list(self.sides)), 'bot')

    def apply_decision(self, side: str, source: str):
        # a real choice must kill the pending default before anything else
        self.timer.cancel()
        self.round.participants[self.decider_id].decide(side)
        self.record_other_sides(side)
        self.broadcast(DECISION_MADE, {'participant_id': self.decider_id, 'decision': side, 'source': source})
        self.transition(Phase.RESOLUTION)

    def record_other_sides(self, side: str):
        """Hook for games where the non-deciders take the opposite side."""

    # -- settlement / end ---------------------------------------------------

    def publish_settlement(self, record: SettlementRecord, outcome: Dict[str, Any]):
        record.verify()
        self.round.settlements.append(record)
        self.broadcast(SETTLEMENT_COMPUTED, record.to_dict())
        self.complete_round(outcome)
        self.arm_timer(self.config.settlement_display, lambda: self.transition(Phase.END), 'settlement_display')

    def enter_end(self):
        self.process_stand_ups()
        self.arm_timer(self.config.hand_end_delay, self.loop_or_lobby, 'hand_end')


class CoinFlipTable(FlipTable):
    """Rotating caller calls heads or tails; a wrong call hands the pot to everyone else."""

    game_type = 'coin_flip'
    sides = ('heads', 'tails')
    actions = {**RoundStateMachine.actions, 'call_side': ((Phase.DECISION,), '_on_choose_side')}

    def enter_resolution(self):
        result = random_choice(self.round.rng, self.sides)
        self.round.data['result'] = result
        self.round.step += 1
        self.broadcast(STEP_ADVANCED, {'step': 'flip', 'result': result})
        self.arm_timer(self.config.reveal_delay, lambda: self.transition(Phase.SETTLEMENT), 'reveal')

    def enter_settlement(self):
        rnd = self.round
        caller = self.decider_id
        called = rnd.participants[caller].side
        result = rnd.data['result']
        contributions = {pid: state.stake for pid, state in rnd.participants.items()}
        if called == result:
            winners = [caller]
            reason = 'called the flip'
        else:
            winners = [pid for pid in contributions if pid != caller]
            reason = 'caller missed'
        record = settle_pot(rnd.round_id, contributions, winners,
                            self.config.rake_percentage, self.config.rake_cap,
                            win_reason=reason, loss_reason='lost the flip')
        for entry in record.entries:
            seat = self.seats.get(entry.participant_id)
            if seat is not None:
                seat.stack += entry.net
            rnd.participants[entry.participant_id].record_payout(entry.net)
        rnd.pot = 0
        logging.info(f"[{self.table_id}] Coin landed {result}; caller called {called}; winners {winners}")
        self.publish_settlement(record, {'result': result, 'called': called, 'caller': caller,
                                         'winners': winners})


class CardFlipTable(FlipTable):
    """Heads-up: picker takes red or black, three cards decide a count-differential transfer."""

    game_type = 'card_flip'
    sides = ('red', 'black')
    actions = {**RoundStateMachine.actions, 'pick_side': ((Phase.DECISION,), '_on_choose_side')}

    def __init__(self, table_id: str, config: Optional[CardFlipConfig] = None, **kwargs):
        super().__init__(table_id, config or CardFlipConfig(), **kwargs)

    def exposure(self) -> int:
        # worst case: every card goes against you at the doubled value
        return self.config.ante * self.config.cards_per_hand * 2

    def check_join(self, name: str, stack: int):
        minimum = max(self.config.min_buy_in, self.exposure())
        if stack < minimum:
            raise JoinRejected(f"Buy-in must be at least {minimum}", min_buy_in=minimum)

    def record_other_sides(self, side: str):
        other = self.sides[1] if side == self.sides[0] else self.sides[0]
        for pid, state in self.round.participants.items():
            if pid != self.decider_id:
                state.decide(other)

    def enter_resolution(self):
        self.round.data.setdefault('cards', [])
        self._flip_next_card()

    def _flip_next_card(self):
        rnd = self.round
        card = draw_flip_card(rnd.rng)
        rnd.step += 1
        rnd.data['cards'].append({'card': card_str(card), 'colour': card_colour(card)})
        self.broadcast(STEP_ADVANCED, {'step': 'card', 'index': rnd.step, 'card': card_str(card),
                                       'colour': card_colour(card)})
        if rnd.step < self.config.cards_per_hand:
            self.arm_timer(self.config.card_reveal_delay, self._flip_next_card, f'card_{rnd.step + 1}')
        else:
            self.arm_timer(self.config.card_reveal_delay, lambda: self.transition(Phase.SETTLEMENT), 'reveal')

    def enter_settlement(self):
        rnd = self.round
        colours: List[str] = [c['colour'] for c in rnd.data['cards']]
        winning_colour, amount = card_count_value(colours, self.config.ante)
        winner = next(pid for pid, s in rnd.participants.items() if s.side == winning_colour)
        loser = next(pid for pid, s in rnd.participants.items() if s.side != winning_colour)
        record = settle_transfer(rnd.round_id, winner, loser, amount, rnd.participants[loser].stake,
                                 self.config.rake_percentage, self.config.rake_cap)
        # escrow goes back to both seats along with the transfer
        for pid, state in rnd.participants.items():
            payback = state.stake + record.amount_for(pid)
            seat = self.seats.get(pid)
            if seat is not None:
                seat.stack += payback
            state.record_payout(payback)
        rnd.pot = 0
        logging.info(f"[{self.table_id}] Cards {colours}: {winning_colour} wins {amount}")
        self.publish_settlement(record, {'cards': rnd.data['cards'], 'winning_colour': winning_colour,
                                         'winner': winner, 'amount': amount})

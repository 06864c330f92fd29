"""
Squidz: a Hold'em bounty variant played as a multi-hand round.

* the round starts with players + 3 tokens in play and locks the table
* every pot winner takes one token; hands are revealed at 1, 3 and 5 tokens
* the round ends when all tokens are out or only one seated player has none
* at round end every player without a token pays every holder a tiered
  bounty straight from their table stake
"""

import logging
from dataclasses import replace
from typing import Dict, List

from ..config import SquidzConfig
from ..settlement import bounty_value, settle_bounties
from .base import HookContext, PotWinResult, RoundEndResult, RoundStartResult, Variant
from .holdem import HOLDEM_HOOKS

TOKENS = 'squidz'
REVEALED = 'hands_revealed'


def _config(ctx: HookContext) -> SquidzConfig:
    squidz = getattr(ctx.config, 'squidz', None)
    return squidz if squidz is not None else SquidzConfig()


def squid_value(tokens: int, config: SquidzConfig) -> int:
    """Bounty a holder of `tokens` collects from each player without one."""
    return bounty_value(tokens, config.base_value, config.bonus_at_3, config.bonus_at_5)


def total_tokens(player_count: int, config: SquidzConfig) -> int:
    return player_count + config.extra_tokens


def token_counts(ctx: HookContext) -> Dict[str, int]:
    return {s.participant_id: s.extras.get(TOKENS, 0) for s in ctx.seats}


def round_should_end(counts: List[int], distributed: int, total: int) -> bool:
    if distributed >= total:
        return True
    without = [c for c in counts if c == 0]
    return len(counts) > 1 and len(without) <= 1


def on_round_start(ctx: HookContext) -> RoundStartResult:
    state = ctx.variant_state
    if state.get('active'):
        return RoundStartResult(lock_table=True)
    config = _config(ctx)
    total = total_tokens(len(ctx.seats), config)
    for seat in ctx.seats:
        seat.extras[TOKENS] = 0
        seat.extras[REVEALED] = False
    state.update(active=True, total=total, distributed=0)
    logging.info(f"[{ctx.table_id}] Squidz round starting with {len(ctx.seats)} players, {total} squidz in play")
    return RoundStartResult(lock_table=True, data={'total_squidz': total})


def on_pot_win(ctx: HookContext, winner_id: str) -> PotWinResult:
    state = ctx.variant_state
    if not state.get('active'):
        return PotWinResult()
    config = _config(ctx)
    winner = ctx.seat(winner_id)
    if winner is None:
        return PotWinResult()
    tokens = winner.extras.get(TOKENS, 0) + 1
    winner.extras[TOKENS] = tokens
    state['distributed'] = state.get('distributed', 0) + 1
    reveal = tokens in config.reveal_at
    if reveal:
        winner.extras[REVEALED] = True
    logging.info(f"[{ctx.table_id}] {winner.name} wins a squid ({tokens} held, "
                 f"{state['distributed']}/{state['total']} distributed)")
    counts = [s.extras.get(TOKENS, 0) for s in ctx.seats if s.stack > 0 or s.extras.get(TOKENS, 0) > 0]
    end = round_should_end(counts, state['distributed'], state['total'])
    message = None
    if end:
        message = ('All squidz have been distributed' if state['distributed'] >= state['total']
                   else 'Only one player is left without a squid')
    return PotWinResult(reveal_hands=reveal, end_round=end, message=message, awards={winner_id: 1})


def on_round_end(ctx: HookContext) -> RoundEndResult:
    state = ctx.variant_state
    if not state.get('active'):
        return RoundEndResult()
    config = _config(ctx)
    holdings = token_counts(ctx)
    stacks = {s.participant_id: s.stack for s in ctx.seats}
    record = settle_bounties(ctx.round_id or '', holdings, stacks, lambda n: squid_value(n, config))
    for seat in ctx.seats:
        seat.extras.pop(TOKENS, None)
        seat.extras.pop(REVEALED, None)
    state.clear()
    return RoundEndResult(delay=config.next_round_delay, reset_table=True, settlement=record,
                          message='Squidz round complete - starting new round')


def can_join(ctx: HookContext, name: str):
    if ctx.variant_state.get('active'):
        return 'Cannot join during an active Squidz round. Please wait for the round to finish.'
    return None


def should_lock_table(ctx: HookContext) -> bool:
    return bool(ctx.variant_state.get('active'))


SQUIDZ_HOOKS = replace(
    HOLDEM_HOOKS,
    on_round_start=on_round_start,
    on_pot_win=on_pot_win,
    on_round_end=on_round_end,
    can_join=can_join,
    should_lock_table=should_lock_table,
)

SQUIDZ = Variant(key='squidz-game', name='Squidz Game', hooks=SQUIDZ_HOOKS,
                 min_participants=4, max_participants=8,
                 description="Hold'em with bounty tokens paid out at round end.")

"""
Entry point for antetown
Serves idle tables behind the health endpoint, and offers audit helpers
for replaying a descent run and deriving round seeds.
"""

import argparse
import asyncio
import json
import logging
from typing import Dict, List

from antetown.config import DescentConfig, PokerConfig
from antetown.descent import SharedDescentEngine, replay
from antetown.dispatcher import TableRunner
from antetown.events import LoggingEmitter
from antetown.flip import CardFlipTable, CoinFlipTable
from antetown.healthcheck import HealthcheckService
from antetown.poker_table import PokerTable
from antetown.rng import generate_seed
from antetown.rules import build_default_registry
from antetown.settings import load_settings


def build_tables(settings, registry) -> List:
    emitter = LoggingEmitter()
    common = dict(emitter=emitter, secret=settings.secret)
    tables = [
        CoinFlipTable('coin-1', **common),
        CardFlipTable('card-1', **common),
        SharedDescentEngine('descent-1', **common),
    ]
    for key in registry.keys():
        tables.append(PokerTable(f'poker-{key}', PokerConfig(variant=key), registry=registry, **common))
    return tables


async def serve(env_file: str):
    settings = load_settings(env_file)
    print(f"🏠 Starting {settings.server_name} ({settings.server_env})")
    print("=" * 50)

    registry = build_default_registry()
    health = HealthcheckService(settings)
    runners = [TableRunner(table) for table in build_tables(settings, registry)]
    tasks = []
    for runner in runners:
        health.register(runner)
        tasks.append(asyncio.create_task(runner.run()))
        tasks.append(asyncio.create_task(runner.sweep_loop(settings.sweep_interval)))
        print(f"🎲 Table {runner.table_id} ({runner.machine.game_type}) is open")

    await health.start()
    try:
        await asyncio.gather(*tasks)
    finally:
        for runner in runners:
            runner.stop()
        await health.stop()


def _parse_pairs(values: List[str], what: str) -> Dict[str, int]:
    out = {}
    for value in values or []:
        if '=' not in value:
            raise SystemExit(f"Expected name=amount for {what}, got '{value}'")
        name, amount = value.split('=', 1)
        out[name.strip()] = int(amount)
    return out


def run_replay(args):
    config = DescentConfig()
    if args.config:
        with open(args.config, 'r') as f:
            config = DescentConfig.from_mapping(json.load(f))
    result = replay(args.seed, config, bids=_parse_pairs(args.bid, '--bid'),
                    exits=_parse_pairs(args.exit, '--exit'), max_steps=args.max_steps)
    if args.json:
        print(json.dumps(result, indent=2))
        return
    print(f"Seed {result['seed']}")
    for step in result['steps']:
        env = step['environment']
        events = ','.join(e['kind'] for e in step['events']) or '-'
        flags = ' HAZARD' if step['hazard'] else (f" DEPLETED({step['depleted']})" if step['depleted'] else '')
        print(f"  depth {step['depth']:>3}  x{env['multiplier']:.4f}  O2 {env['oxygen']:6.1f}  "
              f"suit {env['suit']:.3f}  corruption {env['corruption']:>2}  hazard {step['hazard_chance']:.3f}  "
              f"events {events}  draws {step['draws']}{flags}")
    print(f"Terminal depth: {result['terminal_depth']}  RNG calls: {result['rng_calls']}")
    for pid, amount in result['payouts'].items():
        print(f"  {pid}: {amount}")


def run_seed(args):
    settings = load_settings(args.env_file)
    secret = args.secret or settings.secret
    seed = generate_seed(secret, args.context, args.timestamp, args.nonce)
    print(seed)


def main(argv=None):
    parser = argparse.ArgumentParser(description="antetown round engines")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", default=".env", help="Settings file to load")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run idle tables and the health endpoint")

    rp = sub.add_parser("replay", help="Replay a shared descent run from its seed")
    rp.add_argument("seed", type=int)
    rp.add_argument("--bid", action="append", help="participant=amount (cents)")
    rp.add_argument("--exit", action="append", help="participant=depth")
    rp.add_argument("--max-steps", type=int, default=None)
    rp.add_argument("--config", default=None, help="JSON file with descent config overrides")
    rp.add_argument("--json", action="store_true", help="Print the raw replay result")

    sp = sub.add_parser("seed", help="Derive a round seed")
    sp.add_argument("context")
    sp.add_argument("timestamp", type=int)
    sp.add_argument("--nonce", type=int, default=0)
    sp.add_argument("--secret", default=None)

    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    if args.command == "replay":
        run_replay(args)
    elif args.command == "seed":
        run_seed(args)
    else:
        try:
            asyncio.run(serve(args.env_file))
        except KeyboardInterrupt:
            print("\n👋 Server shutting down...")


if __name__ == "__main__":
    main()

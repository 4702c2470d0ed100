#!/usr/bin/env python3
"""Play a local table against randomly behaved websocket clients.

This script spins up the table host in-process (with its house players) and
connects a handful of toy clients that pick random legal actions, so the
engine and the protocol get exercised end to end.

Example:
    python scripts/table_sim.py --players 3 --house-bots 2 --hands 50
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import websockets
from websockets.asyncio.client import connect

from host.server import TableHost
from holdem.models import TableConfig

LOGGER = logging.getLogger("table_sim")


@dataclass
class ClientProfile:
    name: str
    rng: random.Random


def choose_action(valid: Dict[str, Any], rng: random.Random) -> Tuple[str, Optional[int]]:
    """Pick a random legal action from an ``act`` frame's ``valid`` block."""
    legal = [action for action in valid.get("legal", []) if action != "fold"]
    if not legal or rng.random() < 0.1:
        return "fold", None

    choice = rng.choice(legal)
    if choice == "bet":
        return "bet", rng.randint(valid["min_bet"], valid["max_bet"])
    if choice == "raise":
        return "raise", rng.randint(valid["min_raise"], valid["max_raise"])
    return choice, None


def safe_action(valid: Dict[str, Any]) -> Tuple[str, Optional[int]]:
    if valid.get("can_check"):
        return "check", None
    return "fold", None


async def run_client(profile: ClientProfile, url: str, stop_event: asyncio.Event, hand_limit: int) -> None:
    """Connect a single random client until the match ends or enough hands were played."""
    hands_seen = 0
    try:
        async with connect(url) as ws:
            await ws.send(json.dumps({"type": "hello", "v": 1, "name": profile.name}))

            pending: Optional[Dict[str, Any]] = None
            while not stop_event.is_set():
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                except websockets.ConnectionClosed:
                    break

                message = json.loads(raw)
                msg_type = message.get("type")

                if msg_type == "act":
                    action, amount = choose_action(message["valid"], profile.rng)
                    await ws.send(json.dumps(_action_frame(message["hand_id"], action, amount)))
                    pending = message

                elif msg_type == "end_hand":
                    hands_seen += 1
                    LOGGER.debug("%s saw hand %s end: %s", profile.name, message["hand_id"], message["description"])
                    if hand_limit and hands_seen >= hand_limit:
                        stop_event.set()

                elif msg_type == "match_end":
                    LOGGER.info("%s received match_end: winner=%s", profile.name, message.get("winner"))
                    stop_event.set()

                elif msg_type == "error" and pending:
                    LOGGER.warning("%s received error %s; sending safe fallback", profile.name, message)
                    action, amount = safe_action(pending["valid"])
                    await ws.send(json.dumps(_action_frame(pending["hand_id"], action, amount)))
                    pending = None

    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Client %s crashed: %s", profile.name, exc)


def _action_frame(hand_id: str, action: str, amount: Optional[int]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": "action", "v": 1, "hand_id": hand_id, "action": action}
    if amount is not None:
        payload["amount"] = int(amount)
    return payload


async def run_simulation(args: argparse.Namespace) -> None:
    config = TableConfig(
        seats=args.players + args.house_bots,
        starting_stack=args.starting_stack,
        sb=args.sb,
        bb=args.bb,
        move_time_ms=args.move_time,
        house_bots=args.house_bots,
        bot_style=args.bot_style,
    )
    table = TableHost(config, bot_seed=args.seed)

    server_task = asyncio.create_task(table.start(args.host, args.port))
    await asyncio.sleep(0.5)  # give the socket time to bind

    stop_event = asyncio.Event()
    profiles = [ClientProfile(name=f"SimClient{i}", rng=random.Random(args.seed + i)) for i in range(args.players)]
    client_tasks = [
        asyncio.create_task(run_client(profile, f"ws://{args.host}:{args.port}/", stop_event, args.hands))
        for profile in profiles
    ]

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=args.timeout)
    except asyncio.TimeoutError:
        LOGGER.warning("Simulation timed out; stopping clients")
    finally:
        stop_event.set()
        for task in client_tasks:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*client_tasks, return_exceptions=True)
        server_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server_task

    LOGGER.info("Played %s hands; stacks=%s", table.hands_played, table.match_result_payload()["stacks"])


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a local table simulation with random clients")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9001)
    parser.add_argument("--players", type=int, default=2)
    parser.add_argument("--house-bots", type=int, default=1)
    parser.add_argument("--bot-style", choices=["passive", "neutral", "aggressive"], default="neutral")
    parser.add_argument("--starting-stack", type=int, default=5_000)
    parser.add_argument("--sb", type=int, default=25)
    parser.add_argument("--bb", type=int, default=50)
    parser.add_argument("--move-time", type=int, default=5_000)
    parser.add_argument("--hands", type=int, default=50, help="stop after this many hands (0 plays to the end)")
    parser.add_argument("--timeout", type=float, default=60.0, help="max seconds to run before stopping")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        asyncio.run(run_simulation(args))
    except KeyboardInterrupt:
        LOGGER.info("Simulation interrupted; shutting down")


if __name__ == "__main__":
    main()

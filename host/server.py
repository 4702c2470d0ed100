from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Tuple

import websockets
from websockets.asyncio.server import ServerConnection, serve

from holdem.bots import Bot, create_bot
from holdem.cards import cards_to_labels
from holdem.game import GameEngine, state_payload, valid_payload
from holdem.models import Event, PlayerAction, TableConfig

LOGGER = logging.getLogger("table_host")

# TableHost glues the hand engine to WebSocket clients. Every network concern
# lives here; the engine stays synchronous and never sees a socket.


class TableServerError(Exception):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


@dataclass
class ClientSession:
    player_id: str
    name: str
    websocket: Any


@dataclass
class PendingAction:
    player_id: str
    hand_id: str
    timer_task: Optional[asyncio.Task] = None


def _config_payload(config: TableConfig) -> Dict[str, Any]:
    return {
        "seats": config.seats,
        "starting_stack": config.starting_stack,
        "sb": config.sb,
        "bb": config.bb,
        "move_time_ms": config.move_time_ms,
    }


class TableHost:
    def __init__(self, config: TableConfig, bot_seed: Optional[int] = None) -> None:
        self.config = config
        self.engine = GameEngine(config)
        self.table_id = config.table_id
        self.sessions: Dict[str, ClientSession] = {}
        self.waiting: Dict[str, ClientSession] = {}
        self.house_bots: Dict[str, Bot] = {}
        self.pending_action: Optional[PendingAction] = None
        self.lock = asyncio.Lock()
        self.hands_played = 0
        self.last_finished: Optional[str] = None

        for idx in range(config.house_bots):
            player_id = f"HOUSE-{idx + 1}"
            seed = None if bot_seed is None else bot_seed + idx
            self.engine.add_player(player_id, name=f"House {idx + 1}")
            self.house_bots[player_id] = create_bot(config.bot_style, seed)

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with serve(self._handle_connection, host, port, process_request=_process_request):
            LOGGER.info("Table %s listening on %s:%s", self.table_id, host, port)
            await asyncio.Future()

    # Connections -----------------------------------------------------

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, "BAD_HELLO", "Expected hello")
            await websocket.close()
            return

        name_raw = hello.get("name")
        name = name_raw.strip() if isinstance(name_raw, str) else ""
        if not name:
            await self._send_error(websocket, "BAD_SCHEMA", "name required")
            await websocket.close()
            return

        try:
            session = await self._join(name, websocket)
        except TableServerError as exc:
            await self._send_error(websocket, exc.code, exc.msg)
            await websocket.close()
            return

        try:
            async for raw in websocket:
                message = self._decode(raw)
                if message.get("type") == "action":
                    await self._handle_action(session, message)
                else:
                    await self._send_error(websocket, "BAD_SCHEMA", "Unsupported message type")
        except websockets.ConnectionClosed:
            pass
        finally:
            await self._leave(session)

    async def _join(self, name: str, websocket: Any) -> ClientSession:
        if name in self.house_bots:
            raise TableServerError("BAD_HELLO", "Name is reserved for a house player")

        previous: Optional[ClientSession] = None
        resend: Optional[Dict[str, Any]] = None
        async with self.lock:
            session = ClientSession(player_id=name, name=name, websocket=websocket)
            seated = self.engine.player(name)
            if seated is not None:
                previous = self.sessions.get(name)
                self.sessions[name] = session
                if self.pending_action and self.pending_action.player_id == name:
                    resend = self._act_payload_locked(name)
            elif self.engine.hand_in_progress():
                if len(self.engine.players) + len(self.waiting) >= self.config.seats:
                    raise TableServerError("TABLE_FULL", "No seats available")
                self.waiting[name] = session
            else:
                try:
                    seated = self.engine.add_player(name)
                except RuntimeError as exc:
                    raise TableServerError("TABLE_FULL", "No seats available") from exc
                except ValueError as exc:
                    raise TableServerError("BAD_SCHEMA", str(exc)) from exc
                self.sessions[name] = session
            seat = seated.seat if seated is not None else None

        if previous is not None:
            await previous.websocket.close(code=4000, reason="Replaced by new connection")
        LOGGER.info("%s joined table %s (seat %s)", name, self.table_id, seat)
        await self._send_json(websocket, "welcome", {
            "table_id": self.table_id,
            "seat": seat,
            "config": _config_payload(self.config),
        })
        if resend is not None:
            await self._send_json(websocket, "act", resend)
        else:
            await self._maybe_start_hand()
        return session

    async def _leave(self, session: ClientSession) -> None:
        timed_out = False
        async with self.lock:
            if self.sessions.get(session.player_id) is session:
                self.sessions.pop(session.player_id, None)
            if self.waiting.get(session.player_id) is session:
                self.waiting.pop(session.player_id, None)
            pending = self.pending_action
            if pending and pending.player_id == session.player_id and session.player_id not in self.sessions:
                self._clear_pending_locked()
                self.engine.apply_timeout(session.player_id)
                timed_out = True
        LOGGER.info("%s disconnected from table %s", session.player_id, self.table_id)
        if timed_out:
            await self._advance_table()

    # Hand flow -------------------------------------------------------

    async def _maybe_start_hand(self) -> None:
        async with self.lock:
            if self.engine.hand_in_progress():
                return
            for name in list(self.waiting):
                try:
                    self.engine.add_player(name)
                except (RuntimeError, ValueError):
                    continue
                self.sessions[name] = self.waiting.pop(name)
            if not self._remote_in_play_locked() or not self.engine.can_start_hand():
                return
            ctx = self.engine.start_hand()
            state = ctx.state
            start_payload = {
                "hand_id": ctx.hand_id,
                "hand_number": state.hand_number,
                "dealer": state.players[state.dealer_index].id,
                "stacks": {player.id: player.stack for player in self.engine.players},
            }
            holes = {
                player.id: cards_to_labels(player.hole_cards)
                for player in state.players
                if player.id in self.sessions
            }
        LOGGER.info("Hand %s started on table %s", ctx.hand_id, self.table_id)
        for player_id, session in list(self.sessions.items()):
            await self._send_json(session.websocket, "start_hand", {**start_payload, "hole": holes.get(player_id, [])})
        await self._advance_table()

    async def _advance_table(self) -> None:
        """Broadcast new events, let house seats act, and stop at the next remote decision."""
        while True:
            prompt: Optional[Tuple[ClientSession, Dict[str, Any]]] = None
            moved = False
            async with self.lock:
                events = self.engine.consume_events()
                finished = not self.engine.hand_in_progress()
                if not finished and self.pending_action is None:
                    actor = self.engine.current_player()
                    assert actor is not None
                    bot = self.house_bots.get(actor.id)
                    session = self.sessions.get(actor.id)
                    if bot is not None:
                        self._play_house_locked(actor.id, bot)
                        moved = True
                    elif session is None:
                        LOGGER.info("%s is not connected; applying fallback", actor.id)
                        self.engine.apply_timeout(actor.id)
                        moved = True
                    else:
                        prompt = (session, self._act_payload_locked(actor.id))
                        self._set_pending_action_locked(actor.id)

            await self._broadcast_events(events)
            if moved:
                continue
            if prompt is not None:
                await self._send_json(prompt[0].websocket, "act", prompt[1])
            elif finished:
                await self._finish_hand()
            return

    def _play_house_locked(self, player_id: str, bot: Bot) -> None:
        state = self.engine.state
        assert state is not None
        result = self.engine.process_action(player_id, bot(state))
        if not result.success:
            LOGGER.warning("House action for %s rejected (%s); using fallback", player_id, result.error)
            self.engine.apply_timeout(player_id)

    async def _handle_action(self, session: ClientSession, message: Dict[str, Any]) -> None:
        hand_id = message.get("hand_id")
        amount = message.get("amount")

        async with self.lock:
            ctx = self.engine.hand
            if ctx is None or not self.engine.hand_in_progress() or hand_id != ctx.hand_id:
                await self._send_error(session.websocket, "ACTION_TOO_LATE", "Hand no longer active")
                return
            if not self.pending_action or self.pending_action.player_id != session.player_id:
                await self._send_error(session.websocket, "OUT_OF_TURN", "Not your turn")
                return

            try:
                action = PlayerAction.from_payload({"type": message.get("action"), "amount": amount})
            except ValueError as exc:
                code = "BAD_SCHEMA" if "amount" in str(exc) else "INVALID_ACTION"
                await self._send_error(session.websocket, code, str(exc))
                return

            result = self.engine.process_action(session.player_id, action)
            if not result.success:
                LOGGER.warning(
                    "Rejected action player=%s action=%s amount=%s reason=%s",
                    session.player_id,
                    action.type.value,
                    amount,
                    result.error,
                )
                await self._send_error(session.websocket, "INVALID_ACTION", result.error or "Invalid action")
                return
            self._clear_pending_locked()

        LOGGER.debug("Applied action hand=%s player=%s action=%s", hand_id, session.player_id, action.type.value)
        await self._advance_table()

    async def _finish_hand(self) -> None:
        async with self.lock:
            result = self.engine.hand_result()
            if result is None or result.hand_id == self.last_finished:
                return
            self.last_finished = result.hand_id
            self.hands_played += 1
            state = self.engine.state
            board = cards_to_labels(state.community_cards) if state is not None else []
            end_payload = {
                "hand_id": result.hand_id,
                "reason": result.reason,
                "winners": list(result.winner_ids),
                "amounts": result.amounts,
                "description": result.description,
                "board": board,
                "stacks": result.final_stacks,
            }
            match_over = self.engine.is_match_over()

        LOGGER.info("Hand %s finished (%s); stacks=%s", result.hand_id, result.reason, result.final_stacks)
        await self._broadcast("end_hand", end_payload)
        if match_over:
            await self._broadcast("match_end", self.match_result_payload())
            LOGGER.info("Match over on table %s", self.table_id)
            return
        await self._maybe_start_hand()

    def match_result_payload(self) -> Dict[str, Any]:
        standings = sorted(self.engine.players, key=lambda player: player.stack, reverse=True)
        winner = standings[0].id if standings and standings[0].stack > 0 else None
        return {
            "winner": winner,
            "hands": self.hands_played,
            "stacks": {player.id: player.stack for player in standings},
        }

    def _remote_in_play_locked(self) -> bool:
        return any(
            player.stack > 0 for player in self.engine.players if player.id in self.sessions
        )

    # Move timer ------------------------------------------------------

    def _set_pending_action_locked(self, player_id: str) -> None:
        ctx = self.engine.hand
        assert ctx is not None
        pending = PendingAction(player_id=player_id, hand_id=ctx.hand_id)
        if self.config.move_time_ms > 0:
            pending.timer_task = asyncio.create_task(
                self._run_timer(player_id, ctx.hand_id, self.config.move_time_ms / 1000)
            )
        self.pending_action = pending

    def _clear_pending_locked(self) -> None:
        pending, self.pending_action = self.pending_action, None
        if pending and pending.timer_task:
            pending.timer_task.cancel()

    async def _run_timer(self, player_id: str, hand_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._timer_expired(player_id, hand_id)

    async def _timer_expired(self, player_id: str, hand_id: str) -> None:
        async with self.lock:
            pending = self.pending_action
            if pending is None or pending.player_id != player_id or pending.hand_id != hand_id:
                return
            # Called from the timer task itself, so it is dropped rather than cancelled.
            self.pending_action = None
            self.engine.apply_timeout(player_id)
        await self._advance_table()

    # Payloads and sockets --------------------------------------------

    def _act_payload_locked(self, player_id: str) -> Dict[str, Any]:
        ctx = self.engine.hand
        assert ctx is not None
        return {
            "hand_id": ctx.hand_id,
            "state": state_payload(ctx.state, viewer_id=player_id),
            "valid": valid_payload(self.engine.valid_actions()),
            "time_ms": self.config.move_time_ms,
        }

    async def _broadcast(self, msg_type: str, payload: Dict[str, Any]) -> None:
        async with self.lock:
            targets = [session.websocket for session in self.sessions.values()]
            targets.extend(session.websocket for session in self.waiting.values())
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _broadcast_events(self, events: List[Event]) -> None:
        for event in events:
            await self._broadcast("event", event.as_dict())

    async def _send_json(self, websocket: Any, msg_type: str, payload: Dict[str, Any]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: Any, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, Any]) -> str:
        body: Dict[str, Any] = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: Any) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Any) -> Dict[str, Any]:
        try:
            message = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return {}
        return message if isinstance(message, dict) else {}


def _process_request(connection: ServerConnection, request: Any) -> Any:
    """Answer plain HTTP health probes; let WebSocket upgrades through."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None
    if request.path in {"/", "/health", "/healthz"}:
        return connection.respond(HTTPStatus.OK, "table host running\n")
    return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")


async def run_server(host: str, port: int, config: TableConfig, bot_seed: Optional[int] = None) -> None:
    table = TableHost(config, bot_seed=bot_seed)
    await table.start(host=host, port=port)

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import websockets
from websockets.asyncio.server import ServerConnection, serve

from holdem.errors import EmptyDeck, EngineError, IllegalAction, InsufficientPlayers
from holdem.game import GameEngine
from holdem.models import Player, TableConfig, TablePhase

LOGGER = logging.getLogger("table_server")

DEFAULT_TABLE_ID = "T-1"

# TableServer glues the engine to WebSocket clients. Each table is a TableActor
# that owns one GameEngine and applies queued commands one at a time.


@dataclass
class ClientSession:
    player_id: str
    table_id: str
    websocket: ServerConnection


@dataclass
class TableCommand:
    kind: str
    player_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    reply: Optional[asyncio.Future] = None


def envelope(msg_type: str, payload: Dict[str, object]) -> str:
    body: Dict[str, object] = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
    body.update(payload)
    return json.dumps(body)


async def send_json(websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
    try:
        await websocket.send(envelope(msg_type, payload))
    except websockets.ConnectionClosed:
        pass


async def send_error(websocket: ServerConnection, code: str, msg: str) -> None:
    await send_json(websocket, "error", {"code": code, "msg": msg})


def decode(raw: object) -> Dict[str, Any]:
    try:
        message = json.loads(raw)  # type: ignore[arg-type]
    except (TypeError, json.JSONDecodeError):
        return {}
    return message if isinstance(message, dict) else {}


class TableActor:
    """Single owner of one table's engine; every mutation goes through its queue."""

    def __init__(self, table_id: str, config: TableConfig) -> None:
        self.table_id = table_id
        self.engine = GameEngine(config)
        self.sessions: Dict[str, ClientSession] = {}
        self.queue: asyncio.Queue[TableCommand] = asyncio.Queue()
        self.worker: Optional[asyncio.Task] = None
        self.reset_task: Optional[asyncio.Task] = None
        # Bumped on every cancel so a deal the timer already queued is dropped.
        self.reset_generation = 0

    # Lifecycle --------------------------------------------------------

    def start(self) -> None:
        if self.worker is None or self.worker.done():
            self.worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._cancel_reset()
        if self.worker is not None:
            self.worker.cancel()
            try:
                await self.worker
            except asyncio.CancelledError:
                pass
            self.worker = None

    async def drain(self) -> None:
        await self.queue.join()

    # Inbound API (any task) ---------------------------------------------

    async def join(self, session: ClientSession, name: Optional[str] = None) -> Player:
        reply = asyncio.get_running_loop().create_future()
        await self.queue.put(
            TableCommand("join", session.player_id, {"session": session, "name": name}, reply)
        )
        return await reply

    async def leave(self, player_id: str) -> None:
        await self.queue.put(TableCommand("leave", player_id))

    async def act(self, player_id: str, action: object, amount: object = None) -> None:
        await self.queue.put(TableCommand("action", player_id, {"action": action, "amount": amount}))

    # Worker -------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            command = await self.queue.get()
            try:
                await self._dispatch(command)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Table %s failed on %s command", self.table_id, command.kind)
                if command.reply is not None and not command.reply.done():
                    command.reply.set_exception(exc)
            finally:
                self.queue.task_done()

    async def _dispatch(self, command: TableCommand) -> None:
        if command.kind == "join":
            await self._handle_join(command)
        elif command.kind == "leave":
            await self._handle_leave(command.player_id)
        elif command.kind == "action":
            await self._handle_action(command.player_id, command.data["action"], command.data.get("amount"))
        elif command.kind == "deal":
            await self._handle_deal_timer(command.data.get("generation"))
        else:
            raise ValueError(f"Unknown table command {command.kind}")

    async def _handle_join(self, command: TableCommand) -> None:
        session: ClientSession = command.data["session"]
        assert command.reply is not None
        try:
            player = self.engine.seat_player(session.player_id, command.data.get("name"))
        except EngineError as exc:
            command.reply.set_exception(exc)
            return

        self.sessions[player.player_id] = session
        LOGGER.info(
            "Table %s: %s seated as %s (stack=%s)",
            self.table_id,
            player.player_id,
            player.name,
            player.stack,
        )
        command.reply.set_result(player)
        await send_json(session.websocket, "welcome", {
            "table_id": self.table_id,
            "player_id": player.player_id,
            "seat": self.engine.players.index(player),
            "config": asdict(self.engine.config),
        })

        if self.engine.phase == TablePhase.WAITING and self.reset_task is None:
            if self.engine.can_start_round():
                await self._deal()
                return
            await self._broadcast("message", {"msg": "Waiting for more players"})
        await self._broadcast_state()

    async def _handle_leave(self, player_id: Optional[str]) -> None:
        if player_id is None or self.engine.find_player(player_id) is None:
            self.sessions.pop(player_id or "", None)
            return
        self.sessions.pop(player_id, None)
        try:
            events = self.engine.remove_player(player_id)
        except EmptyDeck:
            LOGGER.exception("Table %s ran out of cards after %s left", self.table_id, player_id)
            self.engine.abort_round("deck exhausted")
            events = []
        LOGGER.info("Table %s: %s left (%s)", self.table_id, player_id, events[:1])

        if self.engine.is_round_complete() and self.reset_task is None:
            # This departure ended the round.
            await self._broadcast_state()
            await self._finish_round()
            return
        if not self.engine.can_start_round():
            self._cancel_reset()
            if self.engine.phase == TablePhase.PAYOUT:
                self.engine.reset_round()
            if self.engine.phase == TablePhase.WAITING:
                await self._broadcast("message", {"msg": "Waiting for more players"})
        await self._broadcast_state()

    async def _handle_action(self, player_id: Optional[str], action: object, amount: object) -> None:
        session = self.sessions.get(player_id or "")
        try:
            self.engine.handle_action(player_id or "", action, amount)  # type: ignore[arg-type]
        except IllegalAction as exc:
            LOGGER.warning(
                "Rejected action table=%s player=%s action=%s amount=%s reason=%s",
                self.table_id,
                player_id,
                action,
                amount,
                exc,
            )
            if session is not None:
                await send_error(session.websocket, exc.code, exc.msg)
            return
        except EmptyDeck:
            LOGGER.exception("Table %s ran out of cards; aborting round", self.table_id)
            self.engine.abort_round("deck exhausted")
            await self._broadcast_state()
            return

        await self._broadcast_state()
        if self.engine.is_round_complete():
            await self._finish_round()

    async def _handle_deal_timer(self, generation: Optional[int]) -> None:
        stale = generation != self.reset_generation
        if stale or self.engine.phase not in (TablePhase.WAITING, TablePhase.PAYOUT):
            LOGGER.debug("Table %s: dropping stale deal (generation %s)", self.table_id, generation)
            return
        self.reset_task = None
        if self.engine.can_start_round():
            await self._deal()
            return
        self.engine.reset_round()
        await self._broadcast("message", {"msg": "Waiting for more players"})
        await self._broadcast_state()

    # Round pacing -------------------------------------------------------

    async def _deal(self) -> None:
        try:
            ctx = self.engine.start_round()
        except InsufficientPlayers:
            return
        except EmptyDeck:
            LOGGER.exception("Table %s ran out of cards while dealing", self.table_id)
            self.engine.abort_round("deck exhausted")
            await self._broadcast_state()
            return
        LOGGER.info("Table %s: round %s started", self.table_id, ctx.round_id)
        LOGGER.debug("Table %s: opening events %s", self.table_id, self.engine.consume_pre_events())
        await self._broadcast("message", {"msg": "New round started"})
        await self._broadcast_state()
        if self.engine.is_round_complete():
            await self._finish_round()

    async def _finish_round(self) -> None:
        ctx = self.engine.round
        assert ctx is not None and ctx.result is not None
        result = {key: value for key, value in ctx.result.items() if key != "ev"}
        await self._broadcast("showdown", result)
        totals: Dict[str, int] = {}
        for award in result["awards"]:  # type: ignore[union-attr]
            totals[award["player_id"]] = totals.get(award["player_id"], 0) + award["amount"]
        for player_id, amount in totals.items():
            player = self.engine.find_player(player_id)
            name = player.name if player else player_id
            await self._broadcast("message", {"msg": f"{name} won {amount}"})
        self._schedule_reset()

    def _schedule_reset(self) -> None:
        self._cancel_reset()
        delay = max(self.engine.config.reset_delay_ms, 0) / 1000
        self.reset_task = asyncio.create_task(self._deal_after(delay, self.reset_generation))

    async def _deal_after(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        await self.queue.put(TableCommand("deal", data={"generation": generation}))

    def _cancel_reset(self) -> None:
        self.reset_generation += 1
        if self.reset_task is not None:
            self.reset_task.cancel()
            self.reset_task = None

    # Outbound -----------------------------------------------------------

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        targets = [session.websocket for session in self.sessions.values()]
        if not targets:
            return
        message = envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _broadcast_state(self) -> None:
        # Each seat gets its own redacted view.
        sends = [
            send_json(session.websocket, "state", self.engine.snapshot(player_id))
            for player_id, session in self.sessions.items()
        ]
        if sends:
            await asyncio.gather(*sends, return_exceptions=True)


class TableRegistry:
    """Maps table ids to actors. Tables share nothing, so they run independently."""

    def __init__(self, config: TableConfig) -> None:
        self.config = config
        self.tables: Dict[str, TableActor] = {}

    def get_or_create(self, table_id: str) -> TableActor:
        actor = self.tables.get(table_id)
        if actor is None:
            actor = TableActor(table_id, self.config)
            self.tables[table_id] = actor
            LOGGER.info("Opened table %s", table_id)
        actor.start()
        return actor

    async def release(self, table_id: str) -> None:
        actor = self.tables.get(table_id)
        if actor is None:
            return
        await actor.drain()
        if not actor.engine.players and not actor.sessions:
            self.tables.pop(table_id, None)
            await actor.stop()
            LOGGER.info("Closed empty table %s", table_id)

    async def shutdown(self) -> None:
        actors: List[TableActor] = list(self.tables.values())
        self.tables.clear()
        for actor in actors:
            await actor.stop()


class TableServer:
    def __init__(self, config: TableConfig) -> None:
        self.config = config
        self.registry = TableRegistry(config)

    async def start(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Table server listening on %s:%s", host, port)
            try:
                await asyncio.Future()
            finally:
                await self.registry.shutdown()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        # First message must be "hello" so we know which table to seat them at.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return

        table_raw = hello.get("table")
        table_id = table_raw.strip() if isinstance(table_raw, str) and table_raw.strip() else DEFAULT_TABLE_ID
        name_raw = hello.get("name")
        name = name_raw if isinstance(name_raw, str) else None

        player_id = f"P-{uuid.uuid4().hex[:8]}"
        actor = self.registry.get_or_create(table_id)
        session = ClientSession(player_id=player_id, table_id=table_id, websocket=websocket)
        try:
            await actor.join(session, name)
        except EngineError as exc:
            await send_error(websocket, code=exc.code, msg=exc.msg)
            await websocket.close()
            await self.registry.release(table_id)
            return

        try:
            async for raw in websocket:
                message = decode(raw)
                if message.get("type") == "action":
                    await actor.act(player_id, message.get("action"), message.get("amount"))
                else:
                    await send_error(websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
        except websockets.ConnectionClosed:
            pass
        finally:
            await actor.leave(player_id)
            LOGGER.info("%s disconnected from %s", player_id, table_id)
            await self.registry.release(table_id)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return decode(raw)

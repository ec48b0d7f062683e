"""One player's view of one game.

The authoritative game lives in the ledger. A GameSession keeps the last observed
state, derives the local flags from it, and runs the keepalive heartbeat that lets
the opponent notice when this client goes away.

State reaches the session through two producers:
  - polling: `refresh()` reads the account and calls `reconcile()`
  - push: the store's change subscription, handed over to the event loop thread

Both end up in `reconcile()`, which overwrites everything it derives, so applying
the same raw state any number of times gives the same flags.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

import redis

from tictactoe.api.models import GamePhase, GameState, Role
from tictactoe.codec import RawState, decode_game_state
from tictactoe.errors import AccountNotFound, CreationFailed, LedgerError, MalformedState, SubmissionFailed
from tictactoe.fsm import KeepAliveFSM
from tictactoe.ledger import LedgerStore, Subscription, require_game_state
from tictactoe.timer import RepeatingTimer
from tictactoe.transactions import InitGame, JoinGame, KeepAlive, Move

logger = logging.getLogger(__name__)


# Ledger ticks (10/s) between the two keepalive counters before the peer counts as gone.
PEER_TIMEOUT_TICKS = 100
KEEP_ALIVE_INTERVAL = 2.0
MAX_KEEP_ALIVE_FAILURES = 3

ChangeListener = Callable[[], None]


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    store: LedgerStore
    dashboard_id: str
    game_id: str
    role: Role
    player: str


@dataclass(frozen=True, slots=True)
class PhaseFlags:
    in_progress: bool = False
    my_turn: bool = False
    draw: bool = False
    winner: bool = False


def flags_for(phase: GamePhase, role: Role) -> PhaseFlags:
    if phase == GamePhase.waiting:
        return PhaseFlags()
    if phase == GamePhase.x_to_move:
        return PhaseFlags(in_progress=True, my_turn=role == Role.x)
    if phase == GamePhase.o_to_move:
        return PhaseFlags(in_progress=True, my_turn=role == Role.o)
    if phase == GamePhase.draw:
        return PhaseFlags(draw=True)
    if phase == GamePhase.x_won:
        return PhaseFlags(winner=role == Role.x)
    if phase == GamePhase.o_won:
        return PhaseFlags(winner=role == Role.o)
    raise MalformedState(f"Unhandled game phase: {phase}")


class GameSession:
    def __init__(self, identity: SessionIdentity, *, keep_alive_interval: float = KEEP_ALIVE_INTERVAL) -> None:
        self.identity = identity

        # Derived from the ledger on every reconcile.
        self.state = GameState(player_x=identity.player if identity.role == Role.x else None)
        self.in_progress = False
        self.my_turn = False
        self.draw = False
        self.winner = False

        # Local only.
        self.abandoned = False
        self.disconnected = False
        self.keep_alive_failures = 0

        self._listeners: dict[ChangeListener, ChangeListener] = {}
        self._subscription: Subscription | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._keep_alive_fsm = KeepAliveFSM()
        self._keep_alive_timer = RepeatingTimer(
            keep_alive_interval,
            self._keep_alive_tick,
            name=f"keep-alive:{identity.game_id}",
        )

    @property
    def store(self) -> LedgerStore:
        return self.identity.store

    @property
    def game_id(self) -> str:
        return self.identity.game_id

    @property
    def role(self) -> Role:
        return self.identity.role

    @property
    def is_x(self) -> bool:
        return self.identity.role == Role.x

    @property
    def player(self) -> str:
        return self.identity.player

    @classmethod
    async def create(
        cls,
        store: LedgerStore,
        dashboard_id: str,
        player: str,
        *,
        keep_alive_interval: float = KEEP_ALIVE_INTERVAL,
    ) -> GameSession:
        """Allocate a new game with `player` as X and start its keepalive."""

        game_id = uuid4().hex
        tx = InitGame(dashboard_id=dashboard_id, game_id=game_id, player=player)
        try:
            await asyncio.to_thread(store.submit, tx)
        except SubmissionFailed as e:
            raise CreationFailed(f"Unable to create game: {e.reason}") from e

        session = cls(
            SessionIdentity(store=store, dashboard_id=dashboard_id, game_id=game_id, role=Role.x, player=player),
            keep_alive_interval=keep_alive_interval,
        )
        logger.info("created game %s", game_id)
        await session._schedule_keep_alive()
        return session

    @classmethod
    async def join(
        cls,
        store: LedgerStore,
        dashboard_id: str,
        player: str,
        game_id: str,
        *,
        keep_alive_interval: float = KEEP_ALIVE_INTERVAL,
    ) -> GameSession | None:
        """Join `game_id` as O.

        Returns None when the game turns out not to be joinable, most commonly because
        another client won the race for the O slot. A rejected join transaction raises
        SubmissionFailed.
        """

        session = cls(
            SessionIdentity(store=store, dashboard_id=dashboard_id, game_id=game_id, role=Role.o, player=player),
            keep_alive_interval=keep_alive_interval,
        )
        await asyncio.to_thread(
            store.submit,
            JoinGame(dashboard_id=dashboard_id, game_id=game_id, player=player),
        )

        await session.refresh()
        if not session.in_progress:
            return None
        if session.state.player_o is None:
            return None
        if session.state.player_o != player:
            return None

        await session._schedule_keep_alive()
        return session

    @staticmethod
    async def get_game_state(store: LedgerStore, game_id: str) -> GameState:
        return await asyncio.to_thread(require_game_state, store=store, game_id=game_id)

    async def refresh(self) -> None:
        raw = await asyncio.to_thread(self.store.read, self.game_id)
        if raw is None:
            raise AccountNotFound(self.game_id)
        self.reconcile(raw)

    def reconcile(self, raw: RawState) -> None:
        state = decode_game_state(raw)
        if self.state.phase.is_terminal and not state.phase.is_terminal:
            logger.debug("ignoring %s state for finished game %s", state.phase.value, self.game_id)
            self._emit_change()
            return

        flags = flags_for(state.phase, self.role)
        self.state = state
        self.in_progress = flags.in_progress
        self.my_turn = flags.my_turn
        self.draw = flags.draw
        self.winner = flags.winner

        if self.in_progress and self.disconnected:
            self.in_progress = False
        elif self.in_progress and not self.is_peer_alive():
            self.in_progress = False
            self.abandoned = True

        self._emit_change()

    def is_peer_alive(self) -> bool:
        x, o = self.state.keep_alive
        return abs(x - o) < PEER_TIMEOUT_TICKS

    async def move(self, row: int, col: int) -> None:
        """Submit a move at zero-based (row, col).

        The ledger decides legality. The local state is not updated until the next
        reconcile.
        """

        await asyncio.to_thread(
            self.store.submit,
            Move(
                dashboard_id=self.identity.dashboard_id,
                game_id=self.game_id,
                player=self.player,
                row=row,
                col=col,
            ),
        )

    async def keep_alive(self) -> None:
        await asyncio.to_thread(
            self.store.submit,
            KeepAlive(dashboard_id=self.identity.dashboard_id, game_id=self.game_id, player=self.player),
        )

    def abandon(self) -> None:
        self.abandoned = True

    def close(self) -> None:
        """Stop the keepalive and drop the change subscription."""

        self._keep_alive_timer.cancel()
        self._drop_subscription()
        if not self._keep_alive_fsm.has_exited:
            self._keep_alive_fsm.halt()

    def on_change(self, listener: ChangeListener) -> None:
        self._listeners[listener] = listener

    def remove_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.pop(listener, None)

    def _emit_change(self) -> None:
        for listener in list(self._listeners.values()):
            listener()

    # ---- keepalive subprotocol ----

    async def _schedule_keep_alive(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._subscription is None:
            self._subscription = await asyncio.to_thread(self.store.subscribe, self.game_id, self._on_account_change)
            self._keep_alive_fsm.subscribe()
        self._keep_alive_fsm.arm()
        self._keep_alive_timer.start()

    async def _keep_alive_tick(self) -> bool:
        if self.abandoned or self.disconnected:
            self._drop_subscription()
            self._keep_alive_fsm.halt()
            logger.debug("keepalive exit, game abandoned: %s", self.game_id)
            return False
        if self.state.phase.is_terminal:
            self._keep_alive_fsm.halt()
            logger.debug("keepalive exit, game over: %s", self.game_id)
            return False

        try:
            await self.keep_alive()
            self.keep_alive_failures = 0
        except (LedgerError, redis.RedisError) as e:
            self.keep_alive_failures += 1
            logger.warning("keep_alive() failed #%d for %s: %s", self.keep_alive_failures, self.game_id, e)
            if self.keep_alive_failures > MAX_KEEP_ALIVE_FAILURES:
                self.disconnected = True
                self.in_progress = False
                self._emit_change()

        self._keep_alive_fsm.arm()
        return True

    def _drop_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self.store.unsubscribe(subscription)

    def _on_account_change(self, raw: RawState) -> None:
        # Called on the store's subscription thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._reconcile_pushed, raw)

    def _reconcile_pushed(self, raw: RawState) -> None:
        try:
            self.reconcile(raw)
        except MalformedState:
            logger.exception("malformed state pushed for game %s, abandoning", self.game_id)
            self.abandon()
            self.in_progress = False
            self._emit_change()

"""Game rules executed by the ledger for every submitted transaction.

Clients never run this code against their local view; it is the store's
authority over game and dashboard records.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from pydantic import BaseModel

from tictactoe.api.models import Cell, DashboardState, GamePhase, GameState
from tictactoe.codec import RawState, decode_dashboard_state, decode_game_state
from tictactoe.errors import ProgramError
from tictactoe.fsm import GamePhaseFSM
from tictactoe.transactions import (
    AdvertiseOrComplete,
    InitDashboard,
    InitGame,
    JoinGame,
    KeepAlive,
    Move,
    Transaction,
)


# 100 ticks ~ 10 seconds, see GameSession.is_peer_alive
TICKS_PER_SECOND = 10

_LINES: tuple[tuple[int, int, int], ...] = (
    # rows
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    # columns
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    # diagonals
    (0, 4, 8),
    (2, 4, 6),
)


def current_tick() -> int:
    return int(time.time() * TICKS_PER_SECOND)


def create_game(*, player_x: str, tick: int) -> GameState:
    return GameState(player_x=player_x, keep_alive=(tick, 0))


def _stamp(game: GameState, *, slot: int, tick: int) -> None:
    if tick <= game.keep_alive[slot]:
        raise ProgramError("InvalidTimestamp")
    counters = list(game.keep_alive)
    counters[slot] = tick
    game.keep_alive = (counters[0], counters[1])


def join_game(game: GameState, *, player_o: str, tick: int) -> None:
    if game.phase != GamePhase.waiting:
        raise ProgramError("GameInProgress")

    game.player_o = player_o
    fsm = GamePhaseFSM(game)
    fsm.joined()
    fsm.sync_phase_to_model()
    _stamp(game, slot=1, tick=tick)


def _has_line(board: list[Cell], mark: Cell) -> bool:
    return any(all(board[i] == mark for i in line) for line in _LINES)


def next_move(game: GameState, *, player: str, row: int, col: int) -> None:
    if not (0 <= row < 3 and 0 <= col < 3):
        raise ProgramError("InvalidMove")
    index = row * 3 + col
    if game.board[index] != Cell.empty:
        raise ProgramError("InvalidMove")

    if game.phase == GamePhase.x_to_move:
        if player != game.player_x:
            raise ProgramError("PlayerNotFound")
        mark, won, moved = Cell.x, "x_wins", "x_moved"
    elif game.phase == GamePhase.o_to_move:
        if player != game.player_o:
            raise ProgramError("PlayerNotFound")
        mark, won, moved = Cell.o, "o_wins", "o_moved"
    else:
        raise ProgramError("NotYourTurn")

    game.board[index] = mark

    fsm = GamePhaseFSM(game)
    if _has_line(game.board, mark):
        fsm.send(won)
    elif all(c != Cell.empty for c in game.board):
        fsm.send("board_full")
    else:
        fsm.send(moved)
    fsm.sync_phase_to_model()


def keep_alive(game: GameState, *, player: str, tick: int) -> None:
    # Keepalives after the game is over are accepted and ignored.
    if game.phase.is_terminal:
        return
    if player == game.player_x:
        _stamp(game, slot=0, tick=tick)
    elif player == game.player_o:
        _stamp(game, slot=1, tick=tick)
    else:
        raise ProgramError("PlayerNotFound")


def advertise_or_complete(dashboard: DashboardState, *, game_id: str, game: GameState) -> None:
    if game.phase == GamePhase.waiting:
        dashboard.pending = game_id
    elif game.phase.is_terminal:
        if game_id not in dashboard.completed:
            dashboard.completed.append(game_id)
        if dashboard.pending == game_id:
            dashboard.pending = None
    else:
        raise ProgramError("GameInProgress")


def execute(
    tx: Transaction,
    *,
    load: Callable[[str], RawState | None],
    tick: int,
) -> dict[str, BaseModel]:
    """Apply `tx` to the accounts returned by `load`.

    Returns the records to write back, keyed by account id. Raises
    ProgramError without writing anything when the transaction is rejected.
    """

    if isinstance(tx, InitDashboard):
        if load(tx.dashboard_id) is not None:
            raise ProgramError("AccountAlreadyExists")
        return {tx.dashboard_id: DashboardState()}

    if isinstance(tx, InitGame):
        if load(tx.game_id) is not None:
            raise ProgramError("AccountAlreadyExists")
        dashboard = _require_dashboard(load, tx.dashboard_id)
        dashboard.total += 1
        return {
            tx.game_id: create_game(player_x=tx.player, tick=tick),
            tx.dashboard_id: dashboard,
        }

    if isinstance(tx, AdvertiseOrComplete):
        dashboard = _require_dashboard(load, tx.dashboard_id)
        game = _require_game(load, tx.game_id)
        advertise_or_complete(dashboard, game_id=tx.game_id, game=game)
        return {tx.dashboard_id: dashboard}

    game = _require_game(load, tx.game_id)
    if isinstance(tx, JoinGame):
        join_game(game, player_o=tx.player, tick=tick)
    elif isinstance(tx, KeepAlive):
        keep_alive(game, player=tx.player, tick=tick)
    elif isinstance(tx, Move):
        next_move(game, player=tx.player, row=tx.row, col=tx.col)
    else:
        raise ProgramError(f"Unsupported transaction: {tx.op}")
    return {tx.game_id: game}


def _require_game(load: Callable[[str], RawState | None], game_id: str) -> GameState:
    raw = load(game_id)
    if raw is None:
        raise ProgramError("GameNotFound")
    return decode_game_state(raw)


def _require_dashboard(load: Callable[[str], RawState | None], dashboard_id: str) -> DashboardState:
    raw = load(dashboard_id)
    if raw is None:
        raise ProgramError("DashboardNotFound")
    return decode_dashboard_state(raw)

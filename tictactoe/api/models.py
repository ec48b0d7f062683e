from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


BOARD_SIZE = 9


class Cell(StrEnum):
    empty = " "
    x = "X"
    o = "O"


class Role(StrEnum):
    x = "X"
    o = "O"


class GamePhase(StrEnum):
    waiting = "waiting"
    x_to_move = "x_to_move"
    o_to_move = "o_to_move"
    x_won = "x_won"
    o_won = "o_won"
    draw = "draw"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset({GamePhase.x_won, GamePhase.o_won, GamePhase.draw})


def _empty_board() -> list[Cell]:
    return [Cell.empty] * BOARD_SIZE


class GameState(BaseModel):
    # index = row * 3 + col
    board: list[Cell] = Field(default_factory=_empty_board, min_length=BOARD_SIZE, max_length=BOARD_SIZE)

    phase: GamePhase = GamePhase.waiting

    # Ledger ticks of the last keepalive, one slot per player (X, O).
    keep_alive: tuple[int, int] = (0, 0)

    player_x: str | None = None
    player_o: str | None = None


class DashboardState(BaseModel):
    # Game currently advertised as open for joining.
    pending: str | None = None

    # Games ever created.
    total: int = Field(default=0, ge=0)

    # Finished games, oldest first.
    completed: list[str] = Field(default_factory=list)


class CompletedGame(BaseModel):
    game_id: str
    phase: GamePhase
    board: list[Cell]


class CompletedGamesResponse(BaseModel):
    games: list[CompletedGame]

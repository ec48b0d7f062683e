"""Transactions understood by the ledger program.

Each transaction carries an ``op`` tag and the accounts it writes. Signing and
fee handling belong to the ledger, not to these models.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class InitDashboard(BaseModel):
    op: Literal["init_dashboard"] = "init_dashboard"
    dashboard_id: str

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.dashboard_id,)


class InitGame(BaseModel):
    op: Literal["init_game"] = "init_game"
    dashboard_id: str
    game_id: str
    player: str

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.dashboard_id, self.game_id)


class JoinGame(BaseModel):
    op: Literal["join_game"] = "join_game"
    dashboard_id: str
    game_id: str
    player: str

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.game_id,)


class KeepAlive(BaseModel):
    op: Literal["keep_alive"] = "keep_alive"
    dashboard_id: str
    game_id: str
    player: str

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.game_id,)


class Move(BaseModel):
    op: Literal["move"] = "move"
    dashboard_id: str
    game_id: str
    player: str
    # Zero-based; the ledger rejects anything off the board.
    row: int
    col: int

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.game_id,)


class AdvertiseOrComplete(BaseModel):
    op: Literal["advertise_or_complete"] = "advertise_or_complete"
    dashboard_id: str
    game_id: str

    @property
    def accounts(self) -> tuple[str, ...]:
        return (self.dashboard_id,)


Transaction = Annotated[
    Union[InitDashboard, InitGame, JoinGame, KeepAlive, Move, AdvertiseOrComplete],
    Field(discriminator="op"),
]

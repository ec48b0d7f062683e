from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from uuid import uuid4

import fakeredis
import pytest

from tictactoe.ledger import RedisLedgerStore
from tictactoe.transactions import InitDashboard, InitGame, JoinGame, Move


@dataclass
class TickClock:
    """Ledger clock for tests: every read moves one tick forward."""

    now: int = 1_000

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def clock() -> TickClock:
    return TickClock()


@pytest.fixture()
def store(r: fakeredis.FakeRedis, clock: TickClock) -> RedisLedgerStore:
    return RedisLedgerStore(r, clock=clock, poll_sleep=0.01)


@pytest.fixture()
def dashboard_id(store: RedisLedgerStore) -> str:
    did = uuid4().hex
    store.submit(InitDashboard(dashboard_id=did))
    return did


MakeGame = Callable[..., str]


@pytest.fixture()
def make_game(store: RedisLedgerStore, dashboard_id: str) -> MakeGame:
    """Create a game directly on the ledger.

    `moves` are zero-based (row, col) pairs, alternating X then O.
    """

    def _make(
        *,
        player_x: str = "px",
        player_o: str | None = None,
        moves: Iterable[tuple[int, int]] = (),
    ) -> str:
        game_id = uuid4().hex
        store.submit(InitGame(dashboard_id=dashboard_id, game_id=game_id, player=player_x))
        if player_o is not None:
            store.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player=player_o))
        for i, (row, col) in enumerate(moves):
            player = player_x if i % 2 == 0 else player_o
            assert player is not None
            store.submit(Move(dashboard_id=dashboard_id, game_id=game_id, player=player, row=row, col=col))
        return game_id

    return _make


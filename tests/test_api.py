from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from tictactoe.api.deps import get_store
from tictactoe.ledger import LedgerStore, RedisLedgerStore
from tictactoe.main import app
from tictactoe.transactions import AdvertiseOrComplete

X_WINS = [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2)]


@pytest.fixture()
def client(store: RedisLedgerStore) -> Generator[TestClient, None, None]:
    def _override() -> Generator[LedgerStore, None, None]:
        yield store

    app.dependency_overrides[get_store] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_healthcheck_and_info(client: TestClient) -> None:
    assert client.get("/healthcheck").json() == {"status": "ok"}
    assert client.get("/info").json()["name"] == "ledger-tictactoe"


def test_get_dashboard(client: TestClient, dashboard_id: str, make_game) -> None:  # type: ignore[no-untyped-def]
    make_game()
    res = client.get(f"/dashboards/{dashboard_id}")
    assert res.status_code == 200
    assert res.json() == {"pending": None, "total": 1, "completed": []}


def test_get_game(client: TestClient, make_game) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game(player_x="alice", player_o="bob", moves=[(1, 1)])
    res = client.get(f"/games/{game_id}")
    assert res.status_code == 200
    data = res.json()
    assert data["phase"] == "o_to_move"
    assert data["board"][4] == "X"
    assert data["player_x"] == "alice"
    assert data["player_o"] == "bob"


def test_unknown_accounts_are_404(client: TestClient) -> None:
    assert client.get("/games/nope").status_code == 404
    assert client.get("/dashboards/nope").status_code == 404
    assert client.get("/dashboards/nope/completed").status_code == 404


def test_malformed_account_is_502(client: TestClient, r: fakeredis.FakeRedis) -> None:
    r.set("tictactoe:account:broken", "[]")
    res = client.get("/games/broken")
    assert res.status_code == 502


def test_completed_games_listing(
    client: TestClient, store: RedisLedgerStore, dashboard_id: str, make_game  # type: ignore[no-untyped-def]
) -> None:
    finished = make_game(player_o="o", moves=X_WINS)
    make_game()
    store.submit(AdvertiseOrComplete(dashboard_id=dashboard_id, game_id=finished))

    res = client.get(f"/dashboards/{dashboard_id}/completed")
    assert res.status_code == 200
    games = res.json()["games"]
    assert [g["game_id"] for g in games] == [finished]
    assert games[0]["phase"] == "x_won"
    assert games[0]["board"][:3] == ["X", "X", "X"]

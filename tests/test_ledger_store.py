from __future__ import annotations

import threading

import fakeredis
import pytest
import redis

from tictactoe.api.models import GamePhase
from tictactoe.codec import decode_dashboard_state, decode_game_state
from tictactoe.errors import AccountNotFound, SubmissionFailed
from tictactoe.ledger import RedisLedgerStore, require_dashboard_state, require_game_state
from tictactoe.lock import AccountBusy, account_lock
from tictactoe.transactions import AdvertiseOrComplete, InitDashboard, InitGame, JoinGame, KeepAlive, Move


def test_read_missing_account_is_none(store: RedisLedgerStore) -> None:
    assert store.read("nope") is None
    with pytest.raises(AccountNotFound):
        require_game_state(store=store, game_id="nope")


def test_init_game_creates_game_and_counts_it(store: RedisLedgerStore, dashboard_id: str) -> None:
    store.submit(InitGame(dashboard_id=dashboard_id, game_id="g1", player="px"))
    store.submit(InitGame(dashboard_id=dashboard_id, game_id="g2", player="px"))

    game = decode_game_state(store.read("g1"))
    assert game.phase == GamePhase.waiting
    assert game.player_x == "px"
    assert decode_dashboard_state(store.read(dashboard_id)).total == 2


def test_init_game_twice_rejected(store: RedisLedgerStore, dashboard_id: str) -> None:
    store.submit(InitGame(dashboard_id=dashboard_id, game_id="g1", player="px"))
    with pytest.raises(SubmissionFailed) as e:
        store.submit(InitGame(dashboard_id=dashboard_id, game_id="g1", player="other"))
    assert e.value.reason == "AccountAlreadyExists"
    assert require_game_state(store=store, game_id="g1").player_x == "px"


def test_init_game_without_dashboard_rejected(store: RedisLedgerStore) -> None:
    with pytest.raises(SubmissionFailed) as e:
        store.submit(InitGame(dashboard_id="missing", game_id="g1", player="px"))
    assert e.value.reason == "DashboardNotFound"
    assert store.read("g1") is None


def test_init_dashboard_twice_rejected(store: RedisLedgerStore, dashboard_id: str) -> None:
    with pytest.raises(SubmissionFailed):
        store.submit(InitDashboard(dashboard_id=dashboard_id))


def test_rejected_move_leaves_game_untouched(store: RedisLedgerStore, make_game) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game(player_o="po")
    before = store.read(game_id)

    with pytest.raises(SubmissionFailed) as e:
        store.submit(Move(dashboard_id="d", game_id=game_id, player="po", row=0, col=0))

    assert e.value.op == "move"
    assert e.value.reason == "PlayerNotFound"
    assert store.read(game_id) == before


def test_second_join_loses_the_race(store: RedisLedgerStore, make_game, dashboard_id: str) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game()
    store.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player="first"))
    with pytest.raises(SubmissionFailed) as e:
        store.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player="second"))

    assert e.value.reason == "GameInProgress"
    assert require_game_state(store=store, game_id=game_id).player_o == "first"


def test_keep_alive_is_stamped_with_ledger_clock(store: RedisLedgerStore, make_game, clock, dashboard_id: str) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game(player_o="po")
    clock.now = 5_000
    store.submit(KeepAlive(dashboard_id=dashboard_id, game_id=game_id, player="px"))
    assert require_game_state(store=store, game_id=game_id).keep_alive[0] == 5_001


def test_advertise_and_complete_through_store(store: RedisLedgerStore, make_game, dashboard_id: str) -> None:  # type: ignore[no-untyped-def]
    waiting = make_game()
    store.submit(AdvertiseOrComplete(dashboard_id=dashboard_id, game_id=waiting))
    assert require_dashboard_state(store=store, dashboard_id=dashboard_id).pending == waiting

    finished = make_game(player_o="po", moves=[(0, 0), (1, 0), (0, 1), (1, 1), (0, 2)])
    store.submit(AdvertiseOrComplete(dashboard_id=dashboard_id, game_id=finished))
    dashboard = require_dashboard_state(store=store, dashboard_id=dashboard_id)
    assert dashboard.completed == [finished]
    assert dashboard.pending == waiting


def test_busy_account_rejects_submission(r: fakeredis.FakeRedis, make_game, dashboard_id: str) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game()
    impatient = RedisLedgerStore(r, lock_wait_ms=0)

    with account_lock(r=r, account_id=game_id):
        with pytest.raises(SubmissionFailed) as e:
            impatient.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player="po"))

    assert "busy" in e.value.reason
    # Released again after the holder is done.
    impatient.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player="po"))


def test_account_lock_times_out(r: fakeredis.FakeRedis) -> None:
    with account_lock(r=r, account_id="a"):
        with pytest.raises(AccountBusy):
            with account_lock(r=r, account_id="a", wait_ms=20):
                pass


def test_subscription_delivers_new_state(store: RedisLedgerStore, make_game, dashboard_id: str) -> None:  # type: ignore[no-untyped-def]
    game_id = make_game()
    received: list[str] = []
    got = threading.Event()

    def _on_change(raw: str) -> None:
        received.append(raw)
        got.set()

    sub = store.subscribe(game_id, _on_change)
    try:
        store.submit(JoinGame(dashboard_id=dashboard_id, game_id=game_id, player="po"))
        assert got.wait(timeout=2.0)
    finally:
        store.unsubscribe(sub)

    assert decode_game_state(received[-1]).player_o == "po"


def test_failed_lock_release_is_logged(r: fakeredis.FakeRedis, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    def _down(*_args, **_kwargs):  # type: ignore[no-untyped-def]
        raise redis.ConnectionError("connection reset")

    with account_lock(r=r, account_id="acct"):
        monkeypatch.setattr(r, "get", _down)

    assert "could not release lock on acct" in caplog.text

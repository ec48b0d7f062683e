from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import redis
from redis.client import PubSub, PubSubWorkerThread

from tictactoe.api.models import DashboardState, GameState
from tictactoe.codec import RawState, decode_dashboard_state, decode_game_state, encode_state
from tictactoe.errors import AccountNotFound, ProgramError, SubmissionFailed
from tictactoe.lock import AccountBusy, account_locks
from tictactoe.program import current_tick, execute
from tictactoe.transactions import Transaction

logger = logging.getLogger(__name__)


ACCOUNT_KEY_PREFIX = "tictactoe:account:"  # + {account id}
CHANGES_CHANNEL_PREFIX = "tictactoe:changes:"  # + {account id}

ChangeCallback = Callable[[RawState], None]


def _account_key(account_id: str) -> str:
    return f"{ACCOUNT_KEY_PREFIX}{account_id}"


def _changes_channel(account_id: str) -> str:
    return f"{CHANGES_CHANNEL_PREFIX}{account_id}"


@dataclass(slots=True)
class Subscription:
    account_id: str
    pubsub: PubSub
    worker: PubSubWorkerThread


class LedgerStore(Protocol):
    """The authoritative account store.

    Contract:
      - `read` returns the raw account data, or None if the account does not exist.
      - `submit` returns once the transaction is confirmed and raises SubmissionFailed
        when it is rejected.
      - `subscribe` calls `on_change` with the new raw data after every confirmed write,
        from a background thread, best-effort.
    """

    def read(self, account_id: str) -> RawState | None:  # pragma: no cover
        ...

    def submit(self, tx: Transaction) -> None:  # pragma: no cover
        ...

    def subscribe(self, account_id: str, on_change: ChangeCallback) -> Subscription:  # pragma: no cover
        ...

    def unsubscribe(self, subscription: Subscription) -> None:  # pragma: no cover
        ...


class RedisLedgerStore:
    """LedgerStore on a single Redis.

    Accounts are JSON strings. Writes to an account are serialized with a per-account
    lock, and every confirmed write is published on the account's change channel in
    the same MULTI block.
    """

    def __init__(
        self,
        r: redis.Redis,
        *,
        lock_ttl_ms: int = 5_000,
        lock_wait_ms: int = 250,
        clock: Callable[[], int] = current_tick,
        poll_sleep: float = 0.05,
    ) -> None:
        self.r = r
        self._lock_ttl_ms = lock_ttl_ms
        self._lock_wait_ms = lock_wait_ms
        self._clock = clock
        self._poll_sleep = poll_sleep

    def read(self, account_id: str) -> RawState | None:
        return self.r.get(_account_key(account_id))

    def submit(self, tx: Transaction) -> None:
        try:
            with account_locks(
                r=self.r,
                account_ids=tx.accounts,
                ttl_ms=self._lock_ttl_ms,
                wait_ms=self._lock_wait_ms,
            ):
                writes = execute(tx, load=self.read, tick=self._clock())
                encoded = {account_id: encode_state(record) for account_id, record in writes.items()}

                pipe = self.r.pipeline(transaction=True)
                for account_id, raw in encoded.items():
                    pipe.set(_account_key(account_id), raw)
                    pipe.publish(_changes_channel(account_id), raw)
                pipe.execute()
        except AccountBusy as e:
            raise SubmissionFailed(tx.op, str(e)) from e
        except ProgramError as e:
            raise SubmissionFailed(tx.op, e.reason) from e
        except redis.RedisError as e:
            raise SubmissionFailed(tx.op, f"store unavailable: {e}") from e

        logger.debug("confirmed %s on %s", tx.op, ",".join(encoded))

    def subscribe(self, account_id: str, on_change: ChangeCallback) -> Subscription:
        def _handler(message: dict[str, Any]) -> None:
            try:
                on_change(message["data"])
            except Exception:
                # An exception here would end the worker thread.
                logger.exception("change listener for %s failed", account_id)

        pubsub = self.r.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{_changes_channel(account_id): _handler})
        worker = pubsub.run_in_thread(sleep_time=self._poll_sleep, daemon=True)
        return Subscription(account_id=account_id, pubsub=pubsub, worker=worker)

    def unsubscribe(self, subscription: Subscription) -> None:
        # The worker closes its pubsub connection once it leaves its loop.
        subscription.worker.stop()


def require_game_state(*, store: LedgerStore, game_id: str) -> GameState:
    raw = store.read(game_id)
    if raw is None:
        raise AccountNotFound(game_id)
    return decode_game_state(raw)


def require_dashboard_state(*, store: LedgerStore, dashboard_id: str) -> DashboardState:
    raw = store.read(dashboard_id)
    if raw is None:
        raise AccountNotFound(dashboard_id)
    return decode_dashboard_state(raw)

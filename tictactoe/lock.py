from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import ExitStack, contextmanager
from uuid import uuid4

import redis

logger = logging.getLogger(__name__)


LOCK_KEY_PREFIX = "tictactoe:lock:"  # + {account id}


class AccountBusy(Exception):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account is busy: {account_id}")
        self.account_id = account_id


@contextmanager
def account_lock(*, r: redis.Redis, account_id: str, ttl_ms: int = 5_000, wait_ms: int = 250) -> Iterator[None]:
    """Best-effort per-account write lock.

    Spins for up to `wait_ms` before giving up with AccountBusy. The token check on
    release is not atomic; a holder that outlives `ttl_ms` may still drop a newer lock.
    """

    key = f"{LOCK_KEY_PREFIX}{account_id}"
    token = uuid4().hex
    deadline = time.monotonic() + wait_ms / 1000
    while not r.set(key, token, nx=True, px=ttl_ms):
        if time.monotonic() >= deadline:
            raise AccountBusy(account_id)
        time.sleep(0.005)
    try:
        yield
    finally:
        try:
            if r.get(key) == token:
                r.delete(key)
        except redis.RedisError:
            # Expires on its own after ttl_ms.
            logger.warning("could not release lock on %s", account_id, exc_info=True)


@contextmanager
def account_locks(*, r: redis.Redis, account_ids: Sequence[str], ttl_ms: int = 5_000, wait_ms: int = 250) -> Iterator[None]:
    # Sorted acquisition so two writers of the same accounts cannot deadlock.
    with ExitStack() as stack:
        for account_id in sorted(set(account_ids)):
            stack.enter_context(account_lock(r=r, account_id=account_id, ttl_ms=ttl_ms, wait_ms=wait_ms))
        yield

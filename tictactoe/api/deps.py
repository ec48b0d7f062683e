from __future__ import annotations

from collections.abc import Generator

from tictactoe.infra.redis_client import create_redis
from tictactoe.ledger import LedgerStore, RedisLedgerStore


def get_store() -> Generator[LedgerStore, None, None]:
    client = create_redis()
    try:
        yield RedisLedgerStore(client)
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass

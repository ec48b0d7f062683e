from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from tictactoe.infra.redis_client import get_redis_url
from tictactoe.session import KEEP_ALIVE_INTERVAL


@dataclass(frozen=True, slots=True)
class ClientConfig:
    redis_url: str
    # Where the shared dashboard id is remembered between runs.
    dashboard_file: Path = Path("dashboard.json")
    # Matchmaking and play loop polling period.
    poll_interval: float = 0.5
    keep_alive_interval: float = KEEP_ALIVE_INTERVAL

    @classmethod
    def from_env(cls) -> ClientConfig:
        return cls(
            redis_url=get_redis_url(),
            dashboard_file=Path(os.environ.get("TICTACTOE_DASHBOARD_FILE", "dashboard.json")),
            poll_interval=float(os.environ.get("TICTACTOE_POLL_INTERVAL", "0.5")),
            keep_alive_interval=float(os.environ.get("TICTACTOE_KEEP_ALIVE_INTERVAL", str(KEEP_ALIVE_INTERVAL))),
        )

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from tictactoe.api.models import DashboardState
from tictactoe.ledger import LedgerStore, require_dashboard_state
from tictactoe.transactions import AdvertiseOrComplete, InitDashboard

logger = logging.getLogger(__name__)


class Dashboard:
    """The shared matchmaking record: pending advertisement plus completed games."""

    def __init__(self, store: LedgerStore, dashboard_id: str, state: DashboardState) -> None:
        self.store = store
        self.dashboard_id = dashboard_id
        self.state = state

    @classmethod
    async def connect(cls, store: LedgerStore, dashboard_id: str) -> Dashboard:
        state = await asyncio.to_thread(require_dashboard_state, store=store, dashboard_id=dashboard_id)
        return cls(store, dashboard_id, state)

    @classmethod
    async def create(cls, store: LedgerStore) -> Dashboard:
        dashboard_id = uuid4().hex
        await asyncio.to_thread(store.submit, InitDashboard(dashboard_id=dashboard_id))
        logger.info("created dashboard %s", dashboard_id)
        return await cls.connect(store, dashboard_id)

    async def refresh(self) -> None:
        # Wholesale replacement; the ledger is the only source of truth.
        self.state = await asyncio.to_thread(require_dashboard_state, store=self.store, dashboard_id=self.dashboard_id)

    async def submit_game_state(self, game_id: str) -> None:
        """Advertise a waiting game, or record a finished one as completed.

        Which of the two happens is decided by the ledger from the game's phase when
        the transaction is processed.
        """

        await asyncio.to_thread(
            self.store.submit,
            AdvertiseOrComplete(dashboard_id=self.dashboard_id, game_id=game_id),
        )

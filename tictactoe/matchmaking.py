from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from tictactoe.dashboard import Dashboard
from tictactoe.errors import AccountNotFound, SubmissionFailed
from tictactoe.ledger import LedgerStore
from tictactoe.session import KEEP_ALIVE_INTERVAL, GameSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchmakingConfig:
    # How long to wait between dashboard polls.
    poll_interval: float = 0.5
    keep_alive_interval: float = KEEP_ALIVE_INTERVAL


async def find_opponent(
    *,
    store: LedgerStore,
    dashboard: Dashboard,
    player: str,
    config: MatchmakingConfig | None = None,
) -> GameSession:
    """Pair `player` with another client and return the game to play.

    Creates a game of our own, then repeatedly:
    - returns it once someone has joined it
    - tries to join whatever other game the dashboard advertises
    - otherwise advertises our game on the dashboard

    Waits indefinitely; cancelling the wait closes our own game. Two clients racing
    for the same pending game are sorted out by the ledger: the loser reads back a
    game whose O slot is not theirs and goes back to advertising.
    """

    cfg = config or MatchmakingConfig()
    my_game = await GameSession.create(
        store,
        dashboard.dashboard_id,
        player,
        keep_alive_interval=cfg.keep_alive_interval,
    )

    try:
        return await _match(store=store, dashboard=dashboard, player=player, my_game=my_game, cfg=cfg)
    except asyncio.CancelledError:
        my_game.close()
        raise


async def _match(
    *,
    store: LedgerStore,
    dashboard: Dashboard,
    player: str,
    my_game: GameSession,
    cfg: MatchmakingConfig,
) -> GameSession:
    while True:
        await asyncio.gather(my_game.refresh(), dashboard.refresh())

        if my_game.in_progress:
            logger.info("another player accepted our game (%s)", my_game.game_id)
            return my_game

        pending = dashboard.state.pending
        if pending != my_game.game_id:
            if pending is not None:
                their_game = await _try_join(store=store, dashboard=dashboard, player=player, game_id=pending, cfg=cfg)
                if their_game is not None:
                    logger.info("joined game %s", pending)
                    my_game.abandon()
                    return their_game

            # Advertise our game for others to see and hopefully join.
            logger.info("advertising our game (%s)", my_game.game_id)
            try:
                await dashboard.submit_game_state(my_game.game_id)
            except SubmissionFailed as e:
                logger.warning("advertising %s failed: %s", my_game.game_id, e)

        await asyncio.sleep(cfg.poll_interval)


async def _try_join(
    *,
    store: LedgerStore,
    dashboard: Dashboard,
    player: str,
    game_id: str,
    cfg: MatchmakingConfig,
) -> GameSession | None:
    logger.info("trying to join %s", game_id)
    try:
        their_game = await GameSession.join(
            store,
            dashboard.dashboard_id,
            player,
            game_id,
            keep_alive_interval=cfg.keep_alive_interval,
        )
    except (SubmissionFailed, AccountNotFound) as e:
        logger.info("could not join %s: %s", game_id, e)
        return None

    if their_game is None:
        logger.info("game %s is not joinable", game_id)
        return None
    return their_game

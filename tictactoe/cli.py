"""Command-line client: find an opponent through the dashboard and play.

Usage:
    tictactoe [--redis-url URL] [--dashboard-file PATH] [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv

from tictactoe.api.models import Cell
from tictactoe.config import ClientConfig
from tictactoe.dashboard import Dashboard
from tictactoe.errors import AccountNotFound, SubmissionFailed
from tictactoe.infra.redis_client import create_redis
from tictactoe.ledger import LedgerStore, RedisLedgerStore
from tictactoe.matchmaking import MatchmakingConfig, find_opponent
from tictactoe.session import GameSession

logger = logging.getLogger(__name__)


MOVE_PATTERN = re.compile(r"^[123]x[123]$")


def render_board(board: Sequence[Cell]) -> str:
    rows = ["|".join(cell.value for cell in board[i : i + 3]) for i in (0, 3, 6)]
    return "\n-+-+-\n".join(rows)


def parse_move(response: str) -> tuple[int, int] | None:
    """Parse `RxC` (1-based) into a zero-based (row, col)."""

    response = response.strip()
    if not MOVE_PATTERN.match(response):
        return None
    return int(response[0]) - 1, int(response[2]) - 1


async def prompt_move(prompt: str) -> tuple[int, int]:
    while True:
        response = await asyncio.to_thread(input, prompt)
        move = parse_move(response)
        if move is not None:
            return move
        print(f"Invalid response: {response}")


async def load_dashboard(*, store: LedgerStore, path: Path) -> Dashboard:
    try:
        dashboard_id = str(json.loads(path.read_text()))
        return await Dashboard.connect(store, dashboard_id)
    except (OSError, ValueError, AccountNotFound) as e:
        print(f"Unable to load dashboard: {e}")
        print("Creating new dashboard")

    dashboard = await Dashboard.create(store)
    path.write_text(json.dumps(dashboard.dashboard_id))
    return dashboard


async def print_history(*, store: LedgerStore, dashboard: Dashboard) -> None:
    print(f"Total games played: {dashboard.state.total}\n")
    print(f"Recently completed games: {len(dashboard.state.completed)}")
    for i, game_id in enumerate(dashboard.state.completed):
        state = await GameSession.get_game_state(store, game_id)
        print(f"Game #{i}: {state.phase.value}\n{render_board(state.board)}\n")


async def play_game(*, game: GameSession, dashboard: Dashboard, poll_interval: float) -> str:
    """Run the turn loop until the game ends. Returns won/lost/draw/abandoned."""

    print(f"\nThe game has started. You are {game.role.value}")
    show_board = False
    while True:
        await game.refresh()
        if show_board:
            print(f"\n{render_board(game.state.board)}")
        show_board = False

        if not game.in_progress:
            break
        if not game.my_turn:
            # No push to the foreground: poll twice a second.
            print(".", end="", flush=True)
            await asyncio.sleep(poll_interval)
            continue

        print(f"\nYour turn.\n{render_board(game.state.board)}")
        row, col = await prompt_move("Enter row and column (eg. 1x3): ")
        try:
            await game.move(row, col)
        except SubmissionFailed as e:
            print(f"Move rejected: {e.reason}")
        show_board = True

    if game.abandoned or game.disconnected:
        print("\nGame has been abandoned")
        return "abandoned"

    print(f"\nGame Over\n=========\n\n{render_board(game.state.board)}\n")
    if game.winner:
        print("You won!")
        # Only the winner reports, so each game is recorded once.
        await dashboard.submit_game_state(game.game_id)
        return "won"
    if game.draw:
        print("Draw.")
        return "draw"
    print("You lost.")
    return "lost"


async def main(*, store: LedgerStore, config: ClientConfig) -> str:
    dashboard = await load_dashboard(store=store, path=config.dashboard_file)
    await print_history(store=store, dashboard=dashboard)

    print("Looking for another player")
    game = await find_opponent(
        store=store,
        dashboard=dashboard,
        player=uuid4().hex,
        config=MatchmakingConfig(
            poll_interval=config.poll_interval,
            keep_alive_interval=config.keep_alive_interval,
        ),
    )
    try:
        return await play_game(game=game, dashboard=dashboard, poll_interval=config.poll_interval)
    finally:
        game.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tictactoe", description="Play tic-tac-toe against another client.")
    parser.add_argument("--redis-url", help="ledger store URL (default: $REDIS_URL)")
    parser.add_argument("--dashboard-file", type=Path, help="where the dashboard id is kept")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def run(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)

    config = ClientConfig.from_env()
    if args.redis_url:
        config = replace(config, redis_url=args.redis_url)
    if args.dashboard_file:
        config = replace(config, dashboard_file=args.dashboard_file)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    print(f"Connecting to network: {config.redis_url}...")
    store = RedisLedgerStore(create_redis(config.redis_url))
    try:
        asyncio.run(main(store=store, config=config))
    except KeyboardInterrupt:
        print("\nBye")


if __name__ == "__main__":
    run()

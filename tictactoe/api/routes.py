from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from tictactoe.api.deps import get_store
from tictactoe.api.models import CompletedGame, CompletedGamesResponse, DashboardState, GameState
from tictactoe.errors import AccountNotFound, MalformedState
from tictactoe.ledger import LedgerStore, require_dashboard_state, require_game_state

router = APIRouter()


def _not_found(e: AccountNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _bad_gateway(e: MalformedState) -> HTTPException:
    # The ledger returned something we cannot decode.
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/dashboards/{dashboard_id}", response_model=DashboardState)
async def get_dashboard_route(dashboard_id: str, store: LedgerStore = Depends(get_store)) -> DashboardState:
    try:
        return require_dashboard_state(store=store, dashboard_id=dashboard_id)
    except AccountNotFound as e:
        raise _not_found(e) from e
    except MalformedState as e:
        raise _bad_gateway(e) from e


@router.get("/dashboards/{dashboard_id}/completed", response_model=CompletedGamesResponse)
async def list_completed_games_route(dashboard_id: str, store: LedgerStore = Depends(get_store)) -> CompletedGamesResponse:
    try:
        dashboard = require_dashboard_state(store=store, dashboard_id=dashboard_id)
        games: list[CompletedGame] = []
        for game_id in dashboard.completed:
            state = require_game_state(store=store, game_id=game_id)
            games.append(CompletedGame(game_id=game_id, phase=state.phase, board=state.board))
    except AccountNotFound as e:
        raise _not_found(e) from e
    except MalformedState as e:
        raise _bad_gateway(e) from e
    return CompletedGamesResponse(games=games)


@router.get("/games/{game_id}", response_model=GameState)
async def get_game_route(game_id: str, store: LedgerStore = Depends(get_store)) -> GameState:
    try:
        return require_game_state(store=store, game_id=game_id)
    except AccountNotFound as e:
        raise _not_found(e) from e
    except MalformedState as e:
        raise _bad_gateway(e) from e

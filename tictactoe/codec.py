from __future__ import annotations

from pydantic import BaseModel, ValidationError

from tictactoe.api.models import DashboardState, GameState
from tictactoe.errors import MalformedState


RawState = str | bytes


def encode_state(state: BaseModel) -> str:
    return state.model_dump_json()


def decode_game_state(raw: RawState | None) -> GameState:
    if not raw:
        raise MalformedState("Game account holds no data")
    try:
        return GameState.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedState(f"Invalid game state: {e}") from e


def decode_dashboard_state(raw: RawState | None) -> DashboardState:
    if not raw:
        raise MalformedState("Dashboard account holds no data")
    try:
        return DashboardState.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedState(f"Invalid dashboard state: {e}") from e

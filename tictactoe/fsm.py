from __future__ import annotations

from statemachine import State, StateMachine

from tictactoe.api.models import GamePhase, GameState


class GamePhaseFSM(StateMachine):
    """Guards phase transitions of a game record.

    - waiting -> x_to_move (join)
    - x_to_move <-> o_to_move (moves)
    - either side to move -> won/draw, both terminal
    """

    waiting = State(GamePhase.waiting.value, value=GamePhase.waiting.value, initial=True)
    x_to_move = State(GamePhase.x_to_move.value, value=GamePhase.x_to_move.value)
    o_to_move = State(GamePhase.o_to_move.value, value=GamePhase.o_to_move.value)
    x_won = State(GamePhase.x_won.value, value=GamePhase.x_won.value, final=True)
    o_won = State(GamePhase.o_won.value, value=GamePhase.o_won.value, final=True)
    draw = State(GamePhase.draw.value, value=GamePhase.draw.value, final=True)

    joined = waiting.to(x_to_move)
    x_moved = x_to_move.to(o_to_move)
    o_moved = o_to_move.to(x_to_move)
    x_wins = x_to_move.to(x_won)
    o_wins = o_to_move.to(o_won)
    board_full = x_to_move.to(draw) | o_to_move.to(draw)

    def __init__(self, game: GameState):
        self.game = game
        super().__init__(start_value=game.phase.value)

    def sync_phase_to_model(self) -> None:
        self.game.phase = GamePhase(str(self.current_state.value))


class KeepAliveFSM(StateMachine):
    """Client-side keepalive subprotocol of one game session."""

    idle = State("Idle", value="idle", initial=True)
    subscribed = State("Subscribed", value="subscribed")
    armed = State("Armed", value="armed")
    exited = State("Exited", value="exited", final=True)

    subscribe = idle.to(subscribed)
    arm = subscribed.to(armed) | armed.to.itself()
    halt = idle.to(exited) | subscribed.to(exited) | armed.to(exited)

    @property
    def has_exited(self) -> bool:
        return self.current_state.value == "exited"

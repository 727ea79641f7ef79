from __future__ import annotations

from models.session import ConversationTurn


TURN_SEPARATOR = "\n\n"


def append_turn(history: list[ConversationTurn], turn: ConversationTurn) -> list[ConversationTurn]:
    """Return a new history with ``turn`` at the end. Prior turns are never touched."""
    return [*history, turn]


def render_turn(turn: ConversationTurn) -> str:
    return f"{turn.role.upper()}: {turn.content}"


def flatten_transcript(turns: list[ConversationTurn]) -> str:
    return TURN_SEPARATOR.join(render_turn(turn) for turn in turns)

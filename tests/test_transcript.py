from __future__ import annotations

from models.session import ConversationTurn
from services.transcript import append_turn, flatten_transcript


def test_flatten_transcript_matches_expected_format() -> None:
    turns = [
        ConversationTurn(role="interviewer", content="Hi"),
        ConversationTurn(role="candidate", content="Hello"),
    ]

    assert flatten_transcript(turns) == "INTERVIEWER: Hi\n\nCANDIDATE: Hello"


def test_flatten_empty_history_is_empty_string() -> None:
    assert flatten_transcript([]) == ""


def test_append_turn_returns_new_list_and_keeps_prior_turns() -> None:
    first = ConversationTurn(role="interviewer", content="Tell me about yourself")
    history = [first]

    updated = append_turn(history, ConversationTurn(role="candidate", content="Sure"))

    assert history == [first]
    assert updated[0] is first
    assert [t.content for t in updated] == ["Tell me about yourself", "Sure"]


def test_append_turn_does_not_deduplicate() -> None:
    turn = ConversationTurn(role="candidate", content="Yes")

    history = append_turn(append_turn([], turn), turn)

    assert flatten_transcript(history) == "CANDIDATE: Yes\n\nCANDIDATE: Yes"

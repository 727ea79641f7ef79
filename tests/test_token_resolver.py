from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from models.session import ConversationTurn
from services.errors import Expired, NotFound


def test_resolve_returns_session_template_and_candidate(store, resolver, invite) -> None:
    candidate = store.create_candidate("org_acme", "Ada", "Lovelace", "ada@example.com")
    session = invite(candidate_id=candidate.id)

    context = resolver.resolve(session.token)

    assert context.session.id == session.id
    assert context.template.job_title == "Backend Engineer"
    assert context.candidate.full_name == "Ada Lovelace"


def test_resolve_without_candidate(resolver, invite) -> None:
    context = resolver.resolve(invite().token)

    assert context.candidate is None
    assert context.session.status == "invited"


@pytest.mark.parametrize("token", ["", "not-a-real-token"])
def test_unknown_tokens_are_not_found(resolver, token) -> None:
    with pytest.raises(NotFound):
        resolver.resolve(token)


def test_invited_session_expires_on_first_resolve_after_deadline(store, resolver, invite, clock) -> None:
    session = invite(expires_in=timedelta(days=7))

    clock.advance(days=6)
    assert resolver.resolve(session.token).session.status == "invited"

    clock.advance(days=2)
    with pytest.raises(Expired):
        resolver.resolve(session.token)
    assert store.get_session_by_token(session.token).status == "expired"
    with pytest.raises(Expired):
        resolver.resolve(session.token)


def test_completed_session_stays_readable(resolver, lifecycle, invite, clock) -> None:
    session = lifecycle.start(invite(expires_in=timedelta(hours=1)))
    session = lifecycle.add_turn(session, ConversationTurn(role="interviewer", content="Hi"))
    session = lifecycle.add_turn(session, ConversationTurn(role="candidate", content="Hello"))
    lifecycle.complete(session)
    clock.advance(days=30)

    context = resolver.resolve(session.token)

    assert context.session.status == "completed"
    assert context.session.full_transcript == "INTERVIEWER: Hi\n\nCANDIDATE: Hello"


def test_dangling_candidate_is_logged_and_dropped(resolver, invite, caplog) -> None:
    session = invite(candidate_id="cand_deleted")

    with caplog.at_level(logging.WARNING, logger="services.token_resolver"):
        context = resolver.resolve(session.token)

    assert context.candidate is None
    assert "cand_deleted" in caplog.text

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from models.session import ConversationTurn
from models.template import TemplateConfig
from services.errors import ConcurrentUpdate, NotFound
from services.session_store import SessionStore


def test_tokens_are_unguessable_and_unique(invite) -> None:
    tokens = {invite().token for _ in range(20)}

    assert len(tokens) == 20
    assert all(len(token) == 64 for token in tokens)


def test_template_round_trips_config_and_lists(store, template) -> None:
    loaded = store.get_template(template.id)

    assert loaded.competencies == ["System design", "Communication"]
    assert loaded.must_ask_questions == ["Why do you want to join Acme?"]
    assert loaded.config == TemplateConfig(max_duration_minutes=20, depth_level="deep")


def test_template_lookup_is_scoped_to_organization(store, template) -> None:
    assert store.get_template(template.id, organization_id="org_acme").id == template.id
    with pytest.raises(NotFound):
        store.get_template(template.id, organization_id="org_other")


def test_update_session_is_compare_and_set(store, invite) -> None:
    session = invite()
    turn = ConversationTurn(role="interviewer", content="Hello")

    updated = store.update_session(
        session.id, {"conversation_history": [turn]}, expected_version=session.version
    )

    assert updated.version == session.version + 1
    assert updated.conversation_history == [turn]
    with pytest.raises(ConcurrentUpdate):
        store.update_session(session.id, {"status": "in_progress"}, expected_version=session.version)
    assert store.get_session_by_token(session.token).status == "invited"


def test_update_session_rejects_unknown_columns(store, invite) -> None:
    session = invite()

    with pytest.raises(ValueError):
        store.update_session(session.id, {"token": "stolen"}, expected_version=session.version)


def test_update_missing_session_is_not_found(store) -> None:
    with pytest.raises(NotFound):
        store.update_session("missing", {"status": "expired"}, expected_version=1)


def test_sessions_are_listed_per_organization(store, template, invite) -> None:
    other = store.create_template(
        organization_id="org_other",
        created_by="user_2",
        name="Other",
        job_title="Designer",
        company_name="Other Co",
        job_description="Design things.",
    )
    mine = invite()
    store.create_session(template_id=other.id, expires_at=mine.expires_at)

    listed = store.list_sessions("org_acme")

    assert [s.id for s in listed] == [mine.id]
    assert store.list_sessions("org_acme", status="completed") == []
    assert store.get_session_by_id(mine.id, "org_acme").token == mine.token
    with pytest.raises(NotFound):
        store.get_session_by_id(mine.id, "org_other")


def test_candidate_email_is_unique_per_organization(store) -> None:
    store.create_candidate("org_acme", "Ada", "Lovelace", "ada@example.com")

    with pytest.raises(sqlite3.IntegrityError):
        store.create_candidate("org_acme", "Ada", "L.", "ada@example.com")

    other_org = store.create_candidate("org_other", "Ada", "Lovelace", "ada@example.com")
    assert store.find_candidate_by_email("org_other", "ada@example.com").id == other_org.id
    assert store.find_candidate_by_email("org_acme", "nobody@example.com") is None


def test_organization_upsert_updates_name(store) -> None:
    store.upsert_organization("org_acme", "Acme")
    renamed = store.upsert_organization("org_acme", "Acme Corp")

    assert renamed.name == "Acme Corp"
    with pytest.raises(NotFound):
        store.get_organization("org_missing")


def test_store_is_shared_through_the_database_file(tmp_path, invite, clock) -> None:
    session = invite(expires_in=timedelta(days=1))

    other_process = SessionStore(tmp_path / "interviews.db")

    assert other_process.get_session_by_token(session.token).id == session.id


def test_update_template_is_scoped_and_whitelisted(store, template) -> None:
    updated = store.update_template(template.id, "org_acme", {"status": "paused", "competencies": ["Ownership"]})

    assert updated.status == "paused"
    assert store.get_template(template.id).competencies == ["Ownership"]
    with pytest.raises(NotFound):
        store.update_template(template.id, "org_other", {"status": "archived"})
    with pytest.raises(ValueError):
        store.update_template(template.id, "org_acme", {"organization_id": "org_other"})

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from models.actions import CompleteAction, SessionAction, StartAction, TurnAction
from models.session import ConversationTurn, InterviewSession
from services.errors import (
    AlreadyCompleted,
    ConcurrentUpdate,
    Expired,
    InvalidAction,
    InvalidTransition,
)
from services.session_store import SessionStore
from services.transcript import append_turn, flatten_transcript


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# action -> status the session must be in
REQUIRED_STATUS = {
    "start": "invited",
    "turn": "in_progress",
    "complete": "in_progress",
}

PatchBuilder = Callable[[InterviewSession, datetime], dict[str, Any]]


class SessionLifecycle:
    """State machine for interview sessions.

    ``invited -> in_progress -> completed`` driven by actions, and
    ``invited -> expired`` applied lazily whenever an invited session is seen
    past its deadline. Every write is a compare-and-set against the session's
    version; a losing writer re-reads and re-applies its action.
    """

    def __init__(
        self,
        store: SessionStore,
        max_retries: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.max_retries = max_retries
        self.clock = clock

    def check_expiry(self, session: InterviewSession, now: datetime | None = None) -> InterviewSession:
        """Persist ``expired`` for an invited session past its deadline."""
        now = now or self.clock()
        for _ in range(self.max_retries + 1):
            if session.status != "invited" or not session.is_past_deadline(now):
                return session
            try:
                expired = self.store.update_session(
                    session.id, {"status": "expired"}, expected_version=session.version
                )
            except ConcurrentUpdate:
                session = self._reload(session)
                continue
            logger.info("Session %s expired (deadline %s)", session.id, session.expires_at.isoformat())
            return expired
        raise ConcurrentUpdate(f"Session '{session.id}' kept changing while applying expiry")

    def apply(self, session: InterviewSession, action: SessionAction) -> InterviewSession:
        if isinstance(action, StartAction):
            return self.start(session)
        if isinstance(action, TurnAction):
            return self.add_turn(session, action.conversation_turn, metrics=action.metrics)
        if isinstance(action, CompleteAction):
            return self.complete(session, metrics=action.metrics)
        raise InvalidAction(f"Unsupported action '{getattr(action, 'action', action)}'")

    def start(self, session: InterviewSession) -> InterviewSession:
        def build(current: InterviewSession, now: datetime) -> dict[str, Any]:
            return {"status": "in_progress", "started_at": now}

        return self._transition(session, "start", build)

    def add_turn(
        self,
        session: InterviewSession,
        turn: ConversationTurn,
        metrics: dict[str, Any] | None = None,
    ) -> InterviewSession:
        def build(current: InterviewSession, now: datetime) -> dict[str, Any]:
            patch: dict[str, Any] = {
                "conversation_history": append_turn(current.conversation_history, turn),
            }
            if metrics is not None:
                patch["metrics"] = metrics
            return patch

        return self._transition(session, "turn", build)

    def complete(
        self,
        session: InterviewSession,
        metrics: dict[str, Any] | None = None,
    ) -> InterviewSession:
        def build(current: InterviewSession, now: datetime) -> dict[str, Any]:
            patch: dict[str, Any] = {
                "status": "completed",
                "completed_at": now,
                "full_transcript": flatten_transcript(current.conversation_history),
            }
            if metrics is not None:
                patch["metrics"] = metrics
            return patch

        return self._transition(session, "complete", build)

    def link_candidate(self, session: InterviewSession, candidate_id: str) -> InterviewSession:
        """Attach the candidate on first contact. Allowed while invited or in progress."""
        if session.candidate_id == candidate_id:
            return self.ensure_mutable(session)

        def build(current: InterviewSession, now: datetime) -> dict[str, Any]:
            return {"candidate_id": candidate_id}

        return self._transition(session, "link_candidate", build, check_status=False)

    def ensure_mutable(self, session: InterviewSession, now: datetime | None = None) -> InterviewSession:
        """Lazily expire, then reject sessions that can no longer change."""
        session = self.check_expiry(session, now)
        if session.status == "completed":
            raise AlreadyCompleted("Interview already completed")
        if session.status == "expired":
            raise Expired("Interview link has expired")
        return session

    def _guard(self, session: InterviewSession, action: str) -> None:
        required = REQUIRED_STATUS.get(action)
        if required is None:
            raise InvalidAction(f"Unsupported action '{action}'")
        if session.status != required:
            raise InvalidTransition(action, session.status)

    def _transition(
        self,
        session: InterviewSession,
        action: str,
        build_patch: PatchBuilder,
        check_status: bool = True,
    ) -> InterviewSession:
        for attempt in range(self.max_retries + 1):
            now = self.clock()
            session = self.ensure_mutable(session, now)
            if check_status:
                self._guard(session, action)
            patch = build_patch(session, now)
            try:
                updated = self.store.update_session(
                    session.id, patch, expected_version=session.version
                )
            except ConcurrentUpdate:
                logger.info(
                    "Session %s: concurrent write during '%s' (attempt %d), retrying",
                    session.id,
                    action,
                    attempt + 1,
                )
                session = self._reload(session)
                continue
            if updated.status != session.status:
                logger.info("Session %s: %s -> %s", session.id, session.status, updated.status)
            return updated

        logger.warning("Session %s: gave up on '%s' after %d conflicts", session.id, action, self.max_retries + 1)
        raise ConcurrentUpdate(f"Session '{session.id}' kept changing during '{action}'")

    def _reload(self, session: InterviewSession) -> InterviewSession:
        return self.store.get_session_by_token(session.token)

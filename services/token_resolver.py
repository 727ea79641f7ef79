from __future__ import annotations

import logging
from datetime import datetime

from models.session import SessionContext
from services.errors import Expired, NotFound
from services.lifecycle import SessionLifecycle
from services.session_store import SessionStore


logger = logging.getLogger(__name__)


class TokenResolver:
    """Maps an interview token to its session, template and candidate.

    Expiry is observed, not polled: an invited session past its deadline is
    moved to ``expired`` on the first resolve after the deadline.
    """

    def __init__(self, store: SessionStore, lifecycle: SessionLifecycle) -> None:
        self.store = store
        self.lifecycle = lifecycle

    def resolve(self, token: str, now: datetime | None = None) -> SessionContext:
        if not token:
            raise NotFound("Interview not found")
        session = self.store.get_session_by_token(token)
        session = self.lifecycle.check_expiry(session, now)
        if session.status == "expired":
            raise Expired("Interview link has expired")

        template = self.store.get_template(session.template_id)
        candidate = None
        if session.candidate_id:
            try:
                candidate = self.store.get_candidate(session.candidate_id)
            except NotFound:
                logger.warning(
                    "Session %s references missing candidate %s", session.id, session.candidate_id
                )
                candidate = None
        return SessionContext(session=session, template=template, candidate=candidate)

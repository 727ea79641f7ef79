from __future__ import annotations

import json
import logging
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

from pydantic import BaseModel

from models.candidate import Candidate, Organization
from models.session import InterviewSession
from models.template import InterviewTemplate, TemplateConfig
from services.errors import ConcurrentUpdate, NotFound, StorageUnavailable


logger = logging.getLogger(__name__)

SCHEMA = (
    """
CREATE TABLE IF NOT EXISTS organizations (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_templates (
  id TEXT PRIMARY KEY,
  organization_id TEXT NOT NULL,
  created_by TEXT NOT NULL,
  name TEXT NOT NULL,
  job_title TEXT NOT NULL,
  company_name TEXT NOT NULL,
  job_description TEXT NOT NULL,
  competencies TEXT NOT NULL DEFAULT '[]',
  must_ask_questions TEXT NOT NULL DEFAULT '[]',
  config TEXT NOT NULL DEFAULT '{}',
  status TEXT NOT NULL DEFAULT 'draft',
  created_at TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_templates_org ON interview_templates(organization_id);",
    """
CREATE TABLE IF NOT EXISTS candidates (
  id TEXT PRIMARY KEY,
  organization_id TEXT NOT NULL,
  first_name TEXT NOT NULL,
  last_name TEXT NOT NULL DEFAULT '',
  email TEXT NOT NULL,
  phone TEXT,
  created_at TEXT NOT NULL,
  UNIQUE(organization_id, email)
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  id TEXT PRIMARY KEY,
  token TEXT UNIQUE NOT NULL,
  template_id TEXT NOT NULL REFERENCES interview_templates(id),
  candidate_id TEXT REFERENCES candidates(id),
  status TEXT NOT NULL DEFAULT 'invited',
  invited_at TEXT NOT NULL,
  expires_at TEXT NOT NULL,
  started_at TEXT,
  completed_at TEXT,
  conversation_history TEXT NOT NULL DEFAULT '[]',
  metrics TEXT NOT NULL DEFAULT '{}',
  full_transcript TEXT,
  version INTEGER NOT NULL DEFAULT 1
);
""",
    "CREATE INDEX IF NOT EXISTS idx_sessions_template ON interview_sessions(template_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_status ON interview_sessions(status);",
)

_SESSION_JSON_COLUMNS = {"conversation_history", "metrics"}
_SESSION_MUTABLE_COLUMNS = {
    "status",
    "candidate_id",
    "started_at",
    "completed_at",
    "conversation_history",
    "metrics",
    "full_transcript",
}
_TEMPLATE_JSON_COLUMNS = ("competencies", "must_ask_questions", "config")
_TEMPLATE_MUTABLE_COLUMNS = {
    "name",
    "job_title",
    "job_description",
    "company_name",
    "competencies",
    "must_ask_questions",
    "config",
    "status",
}
_CANDIDATE_MUTABLE_COLUMNS = {"first_name", "last_name", "email", "phone"}


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _to_column(name: str, value: Any, json_columns: set[str] | tuple[str, ...]) -> Any:
    encoded = _encode(value)
    if name in json_columns:
        return json.dumps(encoded, ensure_ascii=False)
    return encoded


def _row_to_session(row: sqlite3.Row) -> InterviewSession:
    payload = dict(row)
    for column in _SESSION_JSON_COLUMNS:
        payload[column] = json.loads(payload[column] or "null") or (
            [] if column == "conversation_history" else {}
        )
    return InterviewSession.model_validate(payload)


def _row_to_template(row: sqlite3.Row) -> InterviewTemplate:
    payload = dict(row)
    for column in _TEMPLATE_JSON_COLUMNS:
        payload[column] = json.loads(payload[column] or "null")
    payload["config"] = payload["config"] or {}
    return InterviewTemplate.model_validate(payload)


class SessionStore:
    """SQLite-backed records for organizations, templates, candidates and sessions.

    Session writes are compare-and-set on the ``version`` column, so two
    processes appending to the same session cannot overwrite each other.
    """

    def __init__(self, database_path: Path, busy_timeout_seconds: float = 5.0):
        self.database_path = Path(database_path)
        self.busy_timeout_seconds = busy_timeout_seconds
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.migrate()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.database_path, timeout=self.busy_timeout_seconds)
        except sqlite3.Error as err:
            raise StorageUnavailable(f"Cannot open session store: {err}") from err
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.DatabaseError as err:
            conn.rollback()
            logger.warning("Session store error: %s", err)
            raise StorageUnavailable(f"Session store unavailable: {err}") from err
        finally:
            conn.close()

    def migrate(self) -> None:
        with self._connect() as conn:
            for stmt in SCHEMA:
                conn.execute(stmt)

    # Organizations

    def upsert_organization(self, organization_id: str, name: str) -> Organization:
        organization = Organization(id=organization_id, name=name)
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO organizations (id, name, created_at, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at""",
                (
                    organization.id,
                    organization.name,
                    organization.created_at.isoformat(),
                    organization.updated_at.isoformat(),
                ),
            )
        return self.get_organization(organization_id)

    def get_organization(self, organization_id: str) -> Organization:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM organizations WHERE id = ?", (organization_id,)
            ).fetchone()
        if row is None:
            raise NotFound(f"Organization '{organization_id}' not found")
        return Organization.model_validate(dict(row))

    # Templates

    def create_template(
        self,
        organization_id: str,
        created_by: str,
        name: str,
        job_title: str,
        company_name: str,
        job_description: str,
        competencies: list[str] | None = None,
        must_ask_questions: list[str] | None = None,
        config: TemplateConfig | None = None,
        status: str = "draft",
    ) -> InterviewTemplate:
        template = InterviewTemplate(
            id=str(uuid4()),
            organization_id=organization_id,
            created_by=created_by,
            name=name,
            job_title=job_title,
            company_name=company_name,
            job_description=job_description,
            competencies=competencies or [],
            must_ask_questions=must_ask_questions or [],
            config=config or TemplateConfig(),
            status=status,
        )
        row = {
            key: _to_column(key, value, _TEMPLATE_JSON_COLUMNS)
            for key, value in template.model_dump().items()
        }
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO interview_templates ({columns}) VALUES ({placeholders})",
                tuple(row.values()),
            )
        return template

    def get_template(self, template_id: str, organization_id: str | None = None) -> InterviewTemplate:
        query = "SELECT * FROM interview_templates WHERE id = ?"
        params: tuple[Any, ...] = (template_id,)
        if organization_id is not None:
            query += " AND organization_id = ?"
            params += (organization_id,)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            raise NotFound(f"Template '{template_id}' not found")
        return _row_to_template(row)

    def update_template(
        self,
        template_id: str,
        organization_id: str,
        patch: dict[str, Any],
    ) -> InterviewTemplate:
        unknown = set(patch) - _TEMPLATE_MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update template fields: {sorted(unknown)}")
        if not patch:
            return self.get_template(template_id, organization_id)

        assignments = ", ".join(f"{column} = ?" for column in patch)
        values = tuple(
            _to_column(column, value, _TEMPLATE_JSON_COLUMNS) for column, value in patch.items()
        )
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE interview_templates SET {assignments} WHERE id = ? AND organization_id = ?",
                values + (template_id, organization_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Template '{template_id}' not found")
        return self.get_template(template_id, organization_id)

    def list_templates_by_org(self, organization_id: str) -> list[InterviewTemplate]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM interview_templates WHERE organization_id = ? ORDER BY created_at DESC",
                (organization_id,),
            ).fetchall()
        return [_row_to_template(row) for row in rows]

    # Candidates

    def create_candidate(
        self,
        organization_id: str,
        first_name: str,
        last_name: str,
        email: str,
        phone: str | None = None,
    ) -> Candidate:
        candidate = Candidate(
            id=str(uuid4()),
            organization_id=organization_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO candidates
                   (id, organization_id, first_name, last_name, email, phone, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    candidate.id,
                    candidate.organization_id,
                    candidate.first_name,
                    candidate.last_name,
                    candidate.email,
                    candidate.phone,
                    candidate.created_at.isoformat(),
                ),
            )
        return candidate

    def get_candidate(self, candidate_id: str, organization_id: str | None = None) -> Candidate:
        query = "SELECT * FROM candidates WHERE id = ?"
        params: tuple[Any, ...] = (candidate_id,)
        if organization_id is not None:
            query += " AND organization_id = ?"
            params += (organization_id,)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            raise NotFound(f"Candidate '{candidate_id}' not found")
        return Candidate.model_validate(dict(row))

    def list_candidates(self, organization_id: str, search: str | None = None) -> list[Candidate]:
        query = "SELECT * FROM candidates WHERE organization_id = ?"
        params: tuple[Any, ...] = (organization_id,)
        if search:
            pattern = f"%{search}%"
            query += " AND (first_name LIKE ? OR last_name LIKE ? OR email LIKE ?)"
            params += (pattern, pattern, pattern)
        query += " ORDER BY created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Candidate.model_validate(dict(row)) for row in rows]

    def update_candidate(
        self,
        candidate_id: str,
        patch: dict[str, Any],
        organization_id: str | None = None,
    ) -> Candidate:
        """Raises ``sqlite3.IntegrityError`` when the new email is taken in the organization."""
        unknown = set(patch) - _CANDIDATE_MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update candidate fields: {sorted(unknown)}")
        if not patch:
            return self.get_candidate(candidate_id, organization_id)

        assignments = ", ".join(f"{column} = ?" for column in patch)
        query = f"UPDATE candidates SET {assignments} WHERE id = ?"
        params: tuple[Any, ...] = tuple(patch.values()) + (candidate_id,)
        if organization_id is not None:
            query += " AND organization_id = ?"
            params += (organization_id,)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
            if cursor.rowcount == 0:
                raise NotFound(f"Candidate '{candidate_id}' not found")
        return self.get_candidate(candidate_id)

    def find_candidate_by_email(self, organization_id: str, email: str) -> Candidate | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM candidates WHERE organization_id = ? AND email = ?",
                (organization_id, email),
            ).fetchone()
        return Candidate.model_validate(dict(row)) if row is not None else None

    def update_candidate_name(self, candidate_id: str, first_name: str, last_name: str) -> Candidate:
        return self.update_candidate(candidate_id, {"first_name": first_name, "last_name": last_name})

    # Sessions

    def create_session(
        self,
        template_id: str,
        expires_at: datetime,
        candidate_id: str | None = None,
    ) -> InterviewSession:
        session = InterviewSession(
            id=str(uuid4()),
            token=secrets.token_hex(32),
            template_id=template_id,
            candidate_id=candidate_id,
            expires_at=expires_at,
        )
        row = {
            key: _to_column(key, value, _SESSION_JSON_COLUMNS)
            for key, value in session.model_dump().items()
        }
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO interview_sessions ({columns}) VALUES ({placeholders})",
                tuple(row.values()),
            )
        return session

    def get_session_by_token(self, token: str) -> InterviewSession:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM interview_sessions WHERE token = ?", (token,)
            ).fetchone()
        if row is None:
            raise NotFound("Interview not found")
        return _row_to_session(row)

    def get_session_by_id(self, session_id: str, organization_id: str) -> InterviewSession:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT s.* FROM interview_sessions s
                   JOIN interview_templates t ON t.id = s.template_id
                   WHERE s.id = ? AND t.organization_id = ?""",
                (session_id, organization_id),
            ).fetchone()
        if row is None:
            raise NotFound(f"Session '{session_id}' not found")
        return _row_to_session(row)

    def list_sessions(
        self,
        organization_id: str,
        template_id: str | None = None,
        status: str | None = None,
        candidate_id: str | None = None,
    ) -> list[InterviewSession]:
        query = """SELECT s.* FROM interview_sessions s
                   JOIN interview_templates t ON t.id = s.template_id
                   WHERE t.organization_id = ?"""
        params: tuple[Any, ...] = (organization_id,)
        if template_id:
            query += " AND s.template_id = ?"
            params += (template_id,)
        if status:
            query += " AND s.status = ?"
            params += (status,)
        if candidate_id:
            query += " AND s.candidate_id = ?"
            params += (candidate_id,)
        query += " ORDER BY s.invited_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_session(row) for row in rows]

    def update_session(
        self,
        session_id: str,
        patch: dict[str, Any],
        expected_version: int,
    ) -> InterviewSession:
        """Apply ``patch`` only if the stored version still equals ``expected_version``.

        Raises ``ConcurrentUpdate`` when another writer got there first.
        """
        unknown = set(patch) - _SESSION_MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")
        if not patch:
            raise ValueError("Empty session patch")

        assignments = ", ".join(f"{column} = ?" for column in patch)
        values = tuple(
            _to_column(column, value, _SESSION_JSON_COLUMNS) for column, value in patch.items()
        )
        with self._connect() as conn:
            cursor = conn.execute(
                f"""UPDATE interview_sessions SET {assignments}, version = version + 1
                    WHERE id = ? AND version = ?""",
                values + (session_id, expected_version),
            )
            if cursor.rowcount == 0:
                exists = conn.execute(
                    "SELECT version FROM interview_sessions WHERE id = ?", (session_id,)
                ).fetchone()
                if exists is None:
                    raise NotFound(f"Session '{session_id}' not found")
                raise ConcurrentUpdate(
                    f"Session '{session_id}' changed (expected version {expected_version}, "
                    f"found {exists['version']})"
                )
            row = conn.execute(
                "SELECT * FROM interview_sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return _row_to_session(row)

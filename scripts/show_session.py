#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path

from services.errors import NotFound
from services.session_store import SessionStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Show interview session state")
    parser.add_argument("token", help="Interview token")
    parser.add_argument(
        "--database",
        default="./data/interviews.db",
        help="SQLite database path (default: ./data/interviews.db)",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Print full JSON instead of summary",
    )
    parser.add_argument(
        "--transcript",
        action="store_true",
        help="Print the flattened transcript of a completed session",
    )
    args = parser.parse_args()

    database = Path(args.database)
    if not database.exists():
        raise SystemExit(f"Database not found: {database}")

    store = SessionStore(database)
    try:
        session = store.get_session_by_token(args.token)
    except NotFound as err:
        raise SystemExit(str(err)) from err

    if args.transcript:
        print(session.full_transcript or "(no transcript yet)")
        return 0

    payload = session.model_dump(mode="json")
    if args.full:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    summary = {
        "id": session.id,
        "status": session.status,
        "template_id": session.template_id,
        "candidate_id": session.candidate_id,
        "expires_at": payload["expires_at"],
        "started_at": payload["started_at"],
        "completed_at": payload["completed_at"],
        "turns": len(session.conversation_history),
        "version": session.version,
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from jsonschema import ValidationError, validate

from flowcode.errors import StorageError
from flowcode.models import Message, Session, new_session_id
from flowcode.utils.io import SCHEMAS_DIR, read_text, write_json
from flowcode.utils.time import now_ms


class SessionStore:
    def __init__(self, sessions_dir: Path, schemas_dir: Path = SCHEMAS_DIR) -> None:
        self.sessions_dir = sessions_dir
        self.schemas_dir = schemas_dir
        self._schema: Dict | None = None

    def create(self, project_path: str, project_name: str) -> Session:
        timestamp = now_ms()
        session = Session(
            id=new_session_id(),
            project_name=project_name,
            project_path=project_path,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self.save(session)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        path = self._session_path(session_id)
        if not path.exists():
            return None
        return self._load(path)

    def save(self, session: Session) -> None:
        # Never move updatedAt backwards, even if the wall clock does.
        session.updated_at = max(now_ms(), session.updated_at)
        path = self._session_path(session.id)
        try:
            write_json(path, session.to_dict())
        except OSError as exc:
            raise StorageError(f"Unable to write session {session.id}: {exc}", path) from exc

    def append_message(self, session_id: str, message: Message) -> Optional[Session]:
        session = self.get(session_id)
        if session is None:
            return None
        session.messages.append(message)
        self.save(session)
        return session

    def list_all(self) -> List[Session]:
        if not self.sessions_dir.exists():
            return []
        sessions = [self._load(path) for path in sorted(self.sessions_dir.glob("*.json"))]
        return sorted(sessions, key=lambda item: item.updated_at, reverse=True)

    def _session_path(self, session_id: str) -> Path:
        if not session_id or "/" in session_id or "\\" in session_id or session_id.startswith("."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.sessions_dir / f"{session_id}.json"

    def _load(self, path: Path) -> Session:
        try:
            payload = json.loads(read_text(path))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Unable to read session {path.name}: {exc}", path) from exc
        try:
            validate(instance=payload, schema=self._session_schema())
        except ValidationError as exc:
            raise StorageError(f"Session {path.name} is invalid: {exc.message}", path) from exc
        return Session.from_dict(payload)

    def _session_schema(self) -> Dict:
        if self._schema is None:
            self._schema = json.loads(read_text(self.schemas_dir / "session.schema.json"))
        return self._schema

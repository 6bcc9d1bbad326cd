from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from flowcode.adapters.llm_base import LLMAdapter
from flowcode.artifacts.plan_writer import PlanVersioner
from flowcode.errors import StorageError, TransportError
from flowcode.extraction.parsers import PlanExtractor
from flowcode.models import Message, PlanArtifactSet, Role, Session
from flowcode.session_store import SessionStore


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    EXTRACTING = "extracting"
    VERSIONING = "versioning"


@dataclass
class TurnResult:
    session: Session
    response: str
    artifacts: Optional[PlanArtifactSet] = None
    plan_version: Optional[int] = None
    plan_dir: Optional[Path] = None

    @property
    def plan_generated(self) -> bool:
        return self.plan_version is not None


class ConversationPipeline:
    def __init__(
        self,
        store: SessionStore,
        versioner: PlanVersioner,
        adapter: LLMAdapter,
        extractor: PlanExtractor | None = None,
    ) -> None:
        self.store = store
        self.versioner = versioner
        self.adapter = adapter
        self.extractor = extractor or PlanExtractor()
        self.state = TurnState.IDLE

    def run_turn(
        self,
        session_id: str,
        user_input: str,
        on_chunk: Callable[[str], None] | None = None,
    ) -> TurnResult:
        text = user_input.strip()
        if not text:
            raise ValueError("User input must not be empty.")
        try:
            return self._run_turn(session_id, text, on_chunk)
        finally:
            self.state = TurnState.IDLE

    def _run_turn(
        self,
        session_id: str,
        text: str,
        on_chunk: Callable[[str], None] | None,
    ) -> TurnResult:
        session = self._append(session_id, Message(role=Role.USER, content=text))
        self.state = TurnState.AWAITING_RESPONSE
        try:
            response = self.adapter.chat(session.history(), on_chunk=on_chunk)
        except Exception as exc:
            raise TransportError(f"Chat request failed: {exc}") from exc

        self.state = TurnState.EXTRACTING
        session = self._append(session_id, Message(role=Role.ASSISTANT, content=response))
        artifacts = self.extractor.extract(response)
        if artifacts is None:
            return TurnResult(session=session, response=response)

        self.state = TurnState.VERSIONING
        version = self.versioner.next_version(session.project_path)
        plan_dir = self.versioner.write(session.project_path, artifacts, version)
        session.plan_generated = True
        session.plan_version = version
        self.store.save(session)
        return TurnResult(
            session=session,
            response=response,
            artifacts=artifacts,
            plan_version=version,
            plan_dir=plan_dir,
        )

    def _append(self, session_id: str, message: Message) -> Session:
        session = self.store.append_message(session_id, message)
        if session is None:
            raise StorageError(f"Session not found: {session_id}")
        return session

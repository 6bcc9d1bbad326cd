from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, Iterator

from .llm_base import ChatHistory, LLMAdapter

PLAN_TRIGGER = re.compile(r"\b(generate|ready)\b")


@dataclass
class MockAdapter(LLMAdapter):
    project_name: str = "Mock Project"
    chunk_size: int = 64

    def stream(self, history: ChatHistory) -> Iterator[str]:
        text = self._build_response(history)
        for start in range(0, len(text), self.chunk_size):
            yield text[start : start + self.chunk_size]

    def _build_response(self, history: ChatHistory) -> str:
        last = history[-1]["content"].lower() if history else ""
        if PLAN_TRIGGER.search(last):
            payload = json.dumps(self._build_payload(), indent=2)
            return (
                "Here is the plan we shaped together.\n\n"
                f"```md\n{payload}\n```\n\n"
                "Your plan is ready!"
            )
        turns = sum(1 for item in history if item["role"] == "user")
        return (
            f"Thanks, that helps (note {turns}). Who is the primary user, and what is the one "
            "thing they must be able to do on day one? Say 'generate the plan' when you are ready."
        )

    def _build_payload(self) -> Dict:
        return {
            "projectName": self.project_name,
            "planVersion": 1,
            "files": {
                "PRD": f"# {self.project_name} PRD\n\n- Deterministic mock plan\n",
                "ARCHITECTURE": "# Architecture\n\nSingle process CLI with file storage.\n",
                "STACK": "# Stack\n\n- Python 3\n",
                "TASKS": "# Tasks\n\n1. Scaffold project\n2. Write tests\n",
            },
        }

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from flowcode.adapters.llm_base import ChatHistory, LLMAdapter  # noqa: E402
from flowcode.artifacts.plan_writer import PlanVersioner  # noqa: E402
from flowcode.config import ConfigStore, FlowcodeConfig  # noqa: E402
from flowcode.session_store import SessionStore  # noqa: E402


@dataclass
class ScriptedAdapter(LLMAdapter):
    """Replays canned responses; an exception entry is raised instead of returned."""

    responses: List[Union[str, Exception]] = field(default_factory=list)
    histories: List[ChatHistory] = field(default_factory=list)

    def stream(self, history: ChatHistory) -> Iterator[str]:
        self.histories.append([dict(item) for item in history])
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        midpoint = len(response) // 2
        yield response[:midpoint]
        yield response[midpoint:]


def plan_response(files_json: str, tag: str = "md") -> str:
    return f"Here you go.\n\n```{tag}\n{{\n  \"files\": {files_json}\n}}\n```\n\nPlan is ready."


@pytest.fixture()
def config_store(tmp_path: Path) -> ConfigStore:
    store = ConfigStore(tmp_path / "home")
    store.ensure()
    return store


@pytest.fixture()
def config() -> FlowcodeConfig:
    return FlowcodeConfig(api_key="test-key")


@pytest.fixture()
def session_store(config_store: ConfigStore) -> SessionStore:
    return SessionStore(config_store.sessions_dir)


@pytest.fixture()
def versioner(config: FlowcodeConfig) -> PlanVersioner:
    return PlanVersioner(config)


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path

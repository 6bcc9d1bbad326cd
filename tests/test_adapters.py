from __future__ import annotations

import json

import pytest

from conftest import ScriptedAdapter
from flowcode.adapters.llm_base import load_system_prompt
from flowcode.adapters.mock_adapter import MockAdapter
from flowcode.extraction.parsers import extract_plan


def test_chat_joins_streamed_chunks() -> None:
    adapter = ScriptedAdapter(["abcdef"])
    seen = []
    assert adapter.chat([{"role": "user", "content": "hi"}], on_chunk=seen.append) == "abcdef"
    assert seen == ["abc", "def"]


def test_chat_rejects_empty_response() -> None:
    with pytest.raises(RuntimeError):
        ScriptedAdapter([""]).chat([{"role": "user", "content": "hi"}])


def test_mock_asks_follow_up_questions() -> None:
    reply = MockAdapter().chat([{"role": "user", "content": "I want a recipe app"}])
    assert "?" in reply
    assert extract_plan(reply) is None


def test_mock_ignores_trigger_words_inside_other_words() -> None:
    for text in ("I want to build a trip planner", "Any plan for offline mode?", "show me a regenerated draft"):
        assert extract_plan(MockAdapter().chat([{"role": "user", "content": text}])) is None


def test_mock_plans_on_whole_word_request() -> None:
    reply = MockAdapter().chat([{"role": "user", "content": "OK, I am ready."}])
    assert extract_plan(reply) is not None


def test_mock_streams_in_chunks() -> None:
    adapter = MockAdapter(chunk_size=8)
    chunks = list(adapter.stream([{"role": "user", "content": "tell me more"}]))
    assert len(chunks) > 1
    assert all(len(chunk) <= 8 for chunk in chunks)


def test_mock_plan_is_extractable() -> None:
    reply = MockAdapter(project_name="Recipes").chat(
        [{"role": "user", "content": "Please generate the plan"}]
    )
    artifacts = extract_plan(reply)
    assert artifacts is not None
    assert artifacts.project_name == "Recipes"
    assert set(artifacts.sections) == {"PRD", "ARCHITECTURE", "STACK", "TASKS"}


def test_system_prompt_describes_payload_format() -> None:
    prompt = load_system_prompt()
    assert "```md" in prompt
    start = prompt.index("```md") + len("```md")
    end = prompt.index("```", start)
    example = json.loads(prompt[start:end])
    assert len(example["files"]) == 11

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Protocol

from flowcode.utils.io import PROMPTS_DIR, read_text

ChatHistory = List[Dict[str, str]]


def load_system_prompt() -> str:
    return read_text(PROMPTS_DIR / "system_prompt.md")


class LLMAdapter(Protocol):
    def stream(self, history: ChatHistory) -> Iterable[str]:
        raise NotImplementedError

    def chat(
        self,
        history: ChatHistory,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        chunks: List[str] = []
        for chunk in self.stream(history):
            if not chunk:
                continue
            chunks.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)
        text = "".join(chunks)
        if not text:
            raise RuntimeError("Model returned empty content.")
        return text

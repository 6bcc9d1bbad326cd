from __future__ import annotations

import os
import time
from typing import Dict, Iterator, List

from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError, InternalServerError

from .llm_base import ChatHistory, LLMAdapter, load_system_prompt


class OpenAIAdapter(LLMAdapter):
    def __init__(self, api_key: str | None = None, system_prompt: str | None = None) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set.")
        self.client = OpenAI(api_key=self.api_key)
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.system_prompt = system_prompt or load_system_prompt()

    def _messages(self, history: ChatHistory) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": item["role"], "content": item["content"]} for item in history)
        return messages

    def stream(self, history: ChatHistory) -> Iterator[str]:
        temperature = float(os.getenv("FLOWCODE_TEMPERATURE", "0.7"))
        attempt = 0
        backoff = 1.0
        while True:
            attempt += 1
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=self._messages(history),
                    temperature=temperature,
                    stream=True,
                )
                break
            except RateLimitError as exc:
                error = getattr(exc, "error", None)
                code = getattr(error, "code", None)
                if code == "insufficient_quota":
                    raise RuntimeError(
                        "OpenAI API quota exceeded. Please enable billing in your OpenAI account."
                    ) from exc
                if attempt >= 4:
                    raise
            except (APITimeoutError, APIConnectionError, InternalServerError):
                if attempt >= 4:
                    raise
            print(f"[openai] model={self.model} retrying in {backoff:.1f}s (attempt {attempt})")
            time.sleep(backoff)
            backoff *= 2

        for chunk in response:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

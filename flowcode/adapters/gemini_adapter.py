from __future__ import annotations

import os
import random
import time
from typing import Iterator, List

from google import genai
from google.genai import types

from .llm_base import ChatHistory, LLMAdapter, load_system_prompt

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


class GeminiAdapter(LLMAdapter):
    def __init__(self, api_key: str | None = None, system_prompt: str | None = None) -> None:
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is not set. Use /config to store an API key.")

        self.client = genai.Client(api_key=api_key)
        self.system_prompt = system_prompt or load_system_prompt()

        primary = os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        self.model_candidates: List[str] = [primary]
        for fallback in ("gemini-flash-latest", "gemini-2.5-pro"):
            if fallback not in self.model_candidates:
                self.model_candidates.append(fallback)

        self.max_attempts = int(os.getenv("GEMINI_MAX_ATTEMPTS", "5"))
        self.base_delay = float(os.getenv("GEMINI_BASE_DELAY_SECONDS", "1.0"))

    def _is_transient(self, err: Exception) -> bool:
        msg = str(err).lower()
        return any(s in msg for s in ["503", "unavailable", "429", "too many", "timeout", "temporarily"])

    def _contents(self, history: ChatHistory) -> List[types.Content]:
        return [
            types.Content(
                role="model" if item["role"] == "assistant" else "user",
                parts=[types.Part(text=item["content"])],
            )
            for item in history
        ]

    def stream(self, history: ChatHistory) -> Iterator[str]:
        contents = self._contents(history)
        config = types.GenerateContentConfig(system_instruction=self.system_prompt)
        last_err: Exception | None = None

        for model in self.model_candidates:
            for attempt in range(1, self.max_attempts + 1):
                emitted = False
                try:
                    if attempt > 1:
                        print(f"[gemini] model={model} attempt={attempt}/{self.max_attempts}")
                    response = self.client.models.generate_content_stream(
                        model=model,
                        contents=contents,
                        config=config,
                    )
                    for chunk in response:
                        text = getattr(chunk, "text", None)
                        if text:
                            emitted = True
                            yield text
                    return

                except Exception as e:
                    # Part of the answer already reached the caller; replaying would duplicate it.
                    if emitted:
                        raise
                    last_err = e
                    if not self._is_transient(e):
                        break

                    delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.5
                    print(f"[gemini] transient error: {e} -> sleeping {delay:.2f}s")
                    time.sleep(delay)

            print(f"[gemini] switching model after failures: {model}")

        raise RuntimeError(
            "Gemini generate_content_stream failed for all candidate models. "
            f"Last error: {last_err}"
        ) from last_err

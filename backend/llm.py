"""
llm.py
------
AI Text Generator collaborators: prompt in, text out.

  GeminiClient      google-genai backed client (USE_STUB_LLM=false + API key)
  get_llm_client()  the configured client, or None when no AI is configured

Any object exposing ``complete(prompt: str) -> str`` satisfies the contract.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

from google import genai

import config

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a specialized AI for optimizing music tours. "
    "Generate JSON responses based on venue and tour data."
)


class TextGenerator(Protocol):
    def complete(self, prompt: str) -> str: ...


class GeminiClient:
    def __init__(self, api_key: str, model: str = config.LLM_MODEL_NAME,
                 timeout_seconds: float = config.LLM_TIMEOUT_SECONDS):
        self._client = genai.Client(
            api_key=api_key,
            http_options={"timeout": int(timeout_seconds * 1000)},   # milliseconds
        )
        self._model = model

    def complete(self, prompt: str) -> str:
        response = self._client.models.generate_content(
            model=self._model,
            contents=prompt,
            config={"system_instruction": SYSTEM_INSTRUCTION, "temperature": 0.7},
        )
        if not response or not response.text:
            raise RuntimeError("Empty Gemini response")
        return response.text.strip()


def get_llm_client() -> Optional[TextGenerator]:
    """Return the configured AI collaborator, or None when AI is disabled."""
    if config.USE_STUB_LLM:
        return None
    api_key = os.getenv("GEMINI_API_KEY") or config.LLM_API_KEY
    if not api_key:
        logger.warning("USE_STUB_LLM=false but no GEMINI_API_KEY / LLM_API_KEY set; AI disabled")
        return None
    return GeminiClient(api_key=api_key)

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from report_agent.config import Settings
from report_agent.errors import TransportError

logger = logging.getLogger(__name__)


class OpenAIChatClient:
    """
    Single-shot chat completion against an OpenAI-compatible endpoint.

    ``invoke`` returns the assistant text or raises TransportError. The SDK's
    own retries are disabled; a failed call fails the stage that made it.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Any = None):
        self.settings = settings or Settings.from_env()
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.settings.api_key:
            raise TransportError("OPENAI_API_KEY is not set")
        kwargs: Dict[str, Any] = {"api_key": self.settings.api_key, "max_retries": 0, "timeout": self.settings.timeout_sec}
        if self.settings.base_url:
            kwargs["base_url"] = self.settings.base_url
        self._client = OpenAI(**kwargs)
        return self._client

    def invoke(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        client = self._get_client()
        messages: List[Dict[str, str]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        params: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": messages,
            "temperature": self.settings.temperature,
        }
        if self.settings.frequency_penalty is not None:
            params["frequency_penalty"] = self.settings.frequency_penalty
        if self.settings.repetition_penalty is not None:
            # Not part of the OpenAI schema; OpenAI-compatible hosts accept it in the body.
            params["extra_body"] = {"repetition_penalty": self.settings.repetition_penalty}

        logger.debug("LLM request: model=%s, prompt_chars=%d", self.settings.model, len(prompt))
        try:
            resp = client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            raise TransportError(f"LLM request failed: {e}") from e
        if not resp.choices:
            raise TransportError("LLM response contained no choices")
        content = resp.choices[0].message.content or ""
        logger.debug("LLM response: %d chars", len(content))
        return content

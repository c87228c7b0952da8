"""Text-completion client backed by the OpenAI chat completions API."""

import logging
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from venue_enrichment.core.config import Settings, get_settings
from venue_enrichment.errors import CompletionCallFailed

logger = logging.getLogger(__name__)


class OpenAIChatCompletion:
    """Send one system + user prompt pair and return the raw reply text."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None) -> None:
        self.settings = settings or get_settings()
        self.model = self.settings.openai_model
        self.temperature = self.settings.completion_temperature
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self.settings.openai_api_key)

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise CompletionCallFailed("OPENAI_API_KEY is not configured")
            kwargs = {"api_key": self.settings.openai_api_key}
            if self.settings.completion_timeout is not None:
                kwargs["timeout"] = self.settings.completion_timeout
            self._client = OpenAI(**kwargs)
        return self._client

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        client = self._get_client()
        logger.info("Calling %s for enrichment completion", self.model)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            raise CompletionCallFailed(f"OpenAI request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        if not choices or choices[0].message is None:
            raise CompletionCallFailed("OpenAI returned no choices")
        return choices[0].message.content or ""

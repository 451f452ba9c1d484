from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from stepwise_tutor.config.schema import EvaluatorConfig
from stepwise_tutor.errors import EvaluatorUnavailable


class LLMClient:
    """Minimal async helper for issuing chat completions."""

    def __init__(
        self,
        config: EvaluatorConfig,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key and client is None:
            raise EvaluatorUnavailable("OPENAI_API_KEY must be set or an OpenAI client provided.")
        self.client = client or AsyncOpenAI(
            api_key=key,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )

    async def generate(self, messages: List[Dict[str, Any]], **kwargs: Any) -> str:
        params = {
            "model": self.config.name,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_output_tokens,
        }
        params.update(kwargs)
        response = await self.client.chat.completions.create(messages=messages, **params)
        return response.choices[0].message.content or ""

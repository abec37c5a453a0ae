import time
from typing import Optional

import structlog
from openai import OpenAI

from forecasta.core.config import settings
from forecasta.core.errors import ServiceUnavailable
from forecasta.metrics.prometheus import llm_request_latency_seconds

logger = structlog.get_logger(__name__)


class LLMClient:
    """Chat completions in JSON mode over the OpenAI SDK."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if not self.api_key:
            raise ServiceUnavailable("llm", "LLM provider not configured. Set OPENAI_API_KEY.")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def complete_json(self, messages: list[dict], temperature: float = 0.7, max_tokens: int = 2000) -> str:
        client = self.client
        start = time.perf_counter()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        finally:
            llm_request_latency_seconds.labels(model=self.model).observe(time.perf_counter() - start)
        content = resp.choices[0].message.content or ""
        return content.strip()


def get_llm() -> LLMClient:
    return LLMClient()

"""
OpenAI chat completion client
The only blocking collaborator of the diagnosis pipeline: system + user message in, text out
"""
from typing import Optional
from openai import AsyncOpenAI
from config import settings
import logging

logger = logging.getLogger(__name__)


class OpenAIService:
    """Thin async wrapper over chat completions; retries and timeouts are the caller's policy"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.client = None
        self.api_key = api_key
        self.model = model or settings.OPENAI_MODEL
        self.timeout = settings.OPENAI_TIMEOUT_SECONDS

    def _ensure_client(self):
        """Initialize client if not already done"""
        if self.client is None:
            api_key = self.api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ValueError("OPENAI_API_KEY is not configured")
            # max_retries=0: this layer does not retry
            self.client = AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    async def complete(
        self,
        system_message: str,
        user_message: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        """Return the first choice's text ("" when the model sends no content)"""
        self._ensure_client()

        logger.info(f"[OPENAI] Calling model={self.model}, max_tokens={max_tokens}")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message}
            ],
            temperature=temperature,
            max_tokens=max_tokens
        )

        if not response.choices:
            return ""
        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(f"[OPENAI] Got response ({usage.total_tokens} tokens)")
        return content


# Singleton instance
openai_service = OpenAIService()

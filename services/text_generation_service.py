"""
Text Generation Service - optional LLM completions with offline fallback
"""

import asyncio
import logging
from typing import Optional

from openai import OpenAI

from config.settings import settings

logger = logging.getLogger(__name__)


class TextGenerationService:
    """Thin wrapper over the OpenAI chat API. Returns None whenever it cannot answer."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _complete_sync(self, prompt: str) -> Optional[str]:
        client = OpenAI(api_key=self.api_key)
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "You generate realistic sign-up profile data. Reply with JSON only."},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
        )
        content = response.choices[0].message.content
        return content.strip() if content else None

    async def complete(self, prompt: str) -> Optional[str]:
        """
        Complete a prompt.

        Returns:
            Model text, or None when no API key is configured or the call fails
        """
        if not self.is_configured:
            return None

        try:
            return await asyncio.to_thread(self._complete_sync, prompt)
        except Exception as e:
            logger.warning(f"OpenAI completion failed: {e} - using fallback")
            return None

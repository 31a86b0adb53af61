from openai import OpenAI
from typing import Optional
import logging
from lib.config import get_settings
from lib.error_handler import AIUnavailableError

logger = logging.getLogger(__name__)

class OpenAIClient:
    """Thin wrapper over the OpenAI SDK pointed at OpenRouter."""

    def __init__(self, settings=None, client: Optional[OpenAI] = None):
        settings = settings or get_settings()
        self.model = settings.openrouter_model
        self.client = client or OpenAI(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.ai_timeout_seconds,
            max_retries=1,
            default_headers={
                "HTTP-Referer": "https://github.com/nutrition-bot",
                "X-Title": "Nutrition Bot",
            },
        )

    def complete(self, prompt: str, max_tokens: int = 300, image_data_url: Optional[str] = None) -> str:
        """
        Send a single user turn (optionally with one image) and return the text answer
        """
        content = [{"type": "text", "text": prompt}]
        if image_data_url:
            content.append({"type": "image_url", "image_url": {"url": image_data_url}})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                max_tokens=max_tokens
            )
        except Exception as e:
            raise AIUnavailableError(f"Completion request failed: {str(e)}")

        if not response.choices or not response.choices[0].message.content:
            raise AIUnavailableError("Model returned an empty response")

        text = response.choices[0].message.content.strip()
        logger.info(f"Model answered ({len(text)} chars)")
        return text

import asyncio
import logging

from examcraft.core.config import get_settings
from examcraft.core.deps import get_llm_client
from examcraft.models.completion import ChatMessage, CompletionRequest

logger = logging.getLogger(__name__)


class AIService:
    """Text-completion service: ordered chat messages in, plain text out."""

    def __init__(self, client=None, settings=None):
        self.settings = settings or get_settings()
        self.client = client or get_llm_client(self.settings)

    async def complete(
        self,
        messages: list[ChatMessage] | list[dict],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        request = CompletionRequest(
            messages=messages,
            model=model or self.settings.llm_model,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )

        kwargs: dict = {
            "model": request.model,
            "messages": [m.model_dump() for m in request.messages],
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if request.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        # The SDK call is blocking; run it in a thread so throttle waits stay cooperative.
        response = await asyncio.to_thread(self.client.chat.completions.create, **kwargs)

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise RuntimeError("Text service returned empty content")
        return content


def get_ai_service() -> AIService:
    return AIService()

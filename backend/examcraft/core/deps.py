import logging
import os
from functools import lru_cache
from supabase import create_client, Client
from openai import OpenAI
from examcraft.core.config import Settings, get_settings

_prompt_logger = logging.getLogger("examcraft.llm_prompts")

GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("Supabase settings missing (SUPABASE_URL / SUPABASE_SERVICE_KEY)")
    return create_client(settings.supabase_url, settings.supabase_service_key)


# ── Gemini adapter: mimics the OpenAI client interface ──────────────────────
# AIService calls client.chat.completions.create(...); this adapter
# intercepts those calls and routes them to Gemini.

class _FakeMessage:
    def __init__(self, content: str):
        self.content = content


class _FakeChoice:
    def __init__(self, content: str):
        self.message = _FakeMessage(content)


class _FakeResponse:
    def __init__(self, text: str):
        self.choices = [_FakeChoice(text)]


class _FakeCompletions:
    def __init__(self, api_key: str, timeout_seconds: float):
        self._api_key = api_key
        self._timeout_ms = int(timeout_seconds * 1000)

    def create(
        self,
        model=None,
        messages=None,
        temperature=0.7,
        max_tokens=None,
        response_format=None,
        **kwargs,
    ):
        from google import genai
        from google.genai import types

        system_parts = [
            m["content"] for m in (messages or []) if m.get("role") == "system"
        ]
        user_parts = [
            m["content"] for m in (messages or []) if m.get("role") != "system"
        ]

        system_instruction = "\n\n".join(system_parts) or None
        user_prompt = "\n\n".join(user_parts)

        json_mode = bool(response_format) and response_format.get("type") == "json_object"
        model_name = model if model and model.startswith("gemini") else GEMINI_DEFAULT_MODEL

        if os.environ.get("DEBUG_LLM_PROMPTS", "").lower() in ("1", "true"):
            _prompt_logger.warning(
                "\n\n%s\n"
                "── SYSTEM ──────────────────────────────────────────────\n%s\n"
                "── USER ────────────────────────────────────────────────\n%s\n"
                "── CONFIG ──────────────────────────────────────────────\n"
                "  model=%s  temp=%s  max_tokens=%s  json=%s\n"
                "%s",
                "=" * 60,
                system_instruction or "(none)",
                user_prompt,
                model_name,
                temperature,
                max_tokens or 2048,
                json_mode,
                "=" * 60,
            )

        client = genai.Client(
            api_key=self._api_key,
            http_options=types.HttpOptions(timeout=self._timeout_ms),
        )

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens or 2048,
            response_mime_type="application/json" if json_mode else "text/plain",
            # Disable thinking; prevents preamble text before the records
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        response = client.models.generate_content(
            model=model_name,
            contents=user_prompt,
            config=config,
        )
        return _FakeResponse(response.text or "")


class _FakeChat:
    def __init__(self, api_key: str, timeout_seconds: float):
        self.completions = _FakeCompletions(api_key, timeout_seconds)


class GeminiClientAdapter:
    def __init__(self, api_key: str, timeout_seconds: float = 60.0):
        self.chat = _FakeChat(api_key, timeout_seconds)


def get_llm_client(settings: Settings | None = None):
    """Return the active LLM client based on llm_provider setting."""
    if settings is None:
        settings = get_settings()
    if settings.llm_provider == "gemini":
        return GeminiClientAdapter(
            api_key=settings.gemini_api_key,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    return OpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout_seconds)

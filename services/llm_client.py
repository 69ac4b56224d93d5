"""
Text generation client (Google GenAI).

Prompt in, text out. Retries transient failures with exponential backoff and
raises AIProviderError once the attempts are exhausted, so a failed
generation job carries a readable error. Each request is bounded by
PLAN_GENERATION_TIMEOUT_S.

When an on_text callback is given, the response is streamed and the
callback receives the accumulated text after every chunk.
"""

import logging
import time
from typing import Any, Callable, Optional

from google import genai
from google.genai import types as genai_types

from core.config import settings
from core.exceptions import AIProviderError

logger = logging.getLogger(__name__)


def _get_gemini_client() -> Optional[Any]:
    """Get a Gemini client instance, or None if unavailable."""
    if not settings.GOOGLE_API_KEY:
        return None
    try:
        return genai.Client(
            api_key=settings.GOOGLE_API_KEY,
            http_options=genai_types.HttpOptions(timeout=settings.PLAN_GENERATION_TIMEOUT_S * 1000),
        )
    except Exception as e:
        logger.warning(f"Could not initialize Gemini client: {e}")
        return None


def _response_text(response: Any) -> str:
    text = getattr(response, "text", None)
    if text:
        return text
    if getattr(response, "candidates", None):
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            return candidate.content.parts[0].text or ""
    return ""


class TextGenerationClient:
    def __init__(
        self,
        gemini_client: Optional[Any] = None,
        model: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_s: Optional[float] = None,
    ):
        self._client = gemini_client
        self.model = model or settings.PLAN_GENERATION_MODEL
        self.max_retries = settings.PLAN_GENERATION_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_s = settings.PLAN_GENERATION_RETRY_BACKOFF_S if backoff_s is None else backoff_s

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = _get_gemini_client()
        if self._client is None:
            raise AIProviderError("No Gemini client available. Set GOOGLE_API_KEY.")
        return self._client

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 6000,
        on_text: Optional[Callable[[str], None]] = None,
    ) -> str:
        client = self.client
        config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        contents = [
            genai_types.Content(
                role="user",
                parts=[genai_types.Part(text=user_prompt)],
            ),
        ]

        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            start = time.monotonic()
            try:
                if on_text is None:
                    response = client.models.generate_content(
                        model=self.model, contents=contents, config=config,
                    )
                    text = _response_text(response)
                else:
                    text = ""
                    for chunk in client.models.generate_content_stream(
                        model=self.model, contents=contents, config=config,
                    ):
                        piece = _response_text(chunk)
                        if piece:
                            text += piece
                            on_text(text)

                if not text.strip():
                    raise AIProviderError("Model returned an empty response")

                logger.info(
                    f"Generated {len(text)} chars with {self.model}",
                    extra={"extra_fields": {
                        "model": self.model,
                        "attempt": attempt + 1,
                        "latency_ms": int((time.monotonic() - start) * 1000),
                    }},
                )
                return text
            except Exception as e:
                last_error = e
                if attempt < attempts - 1:
                    delay = self.backoff_s * (2 ** attempt)
                    logger.warning(
                        f"Text generation attempt {attempt + 1}/{attempts} failed: {e}. Retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)

        logger.error(f"Text generation failed after {attempts} attempts: {last_error}")
        raise AIProviderError(f"AI generation failed after {attempts} attempts: {last_error}") from last_error


_default_client: Optional[TextGenerationClient] = None


def get_text_client() -> TextGenerationClient:
    global _default_client
    if _default_client is None:
        _default_client = TextGenerationClient()
    return _default_client

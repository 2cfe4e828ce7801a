"""
Claude API Client

LLM invocation capability for the conversation layer: sends the tenant
system prompt plus the customer's message and returns the raw text the
model produced. Transient failures are retried with backoff on each
model of the chain (configured model, then fallback model) before the
call is reported as an llm_failure.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from anthropic import APIConnectionError, APIError, AsyncAnthropic, RateLimitError

from salon_ai.config import get_settings
from salon_ai.core.errors import CollaboratorError

logger = logging.getLogger(__name__)

# Worth another attempt on the same model
TRANSIENT_ERRORS = (RateLimitError, APIConnectionError)


class ClaudeClientError(CollaboratorError):
    """Raised when a Claude API call fails."""

    def __init__(self, message: str):
        super().__init__(message, code="llm_failure")


@dataclass
class ClaudeResponse:
    """Text produced by one model plus its usage counters."""
    content: str
    model: str
    input_tokens: int
    output_tokens: int
    stop_reason: Optional[str]
    latency_ms: float


class ClaudeClient:
    """
    Async wrapper around the Anthropic Messages API.

    A call walks the model chain in order; each model gets up to
    max_retries attempts for rate limits and connection errors, with the
    wait doubling between attempts. Any other failure moves on to the
    next model.
    """

    _instance: Optional["ClaudeClient"] = None

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
    ):
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to settings)
            client: Pre-built AsyncAnthropic client (tests)
            max_retries: Attempts per model for transient errors
            backoff_seconds: Wait before the second attempt
        """
        settings = get_settings()
        self.api_key = api_key or settings.anthropic_api_key
        if client is None and not self.api_key:
            raise ValueError("Anthropic API key is required")

        self._client = client or AsyncAnthropic(api_key=self.api_key)
        self.models = [settings.claude_model]
        if settings.claude_fallback_model and settings.claude_fallback_model != settings.claude_model:
            self.models.append(settings.claude_fallback_model)
        self.max_tokens = settings.claude_max_tokens
        self.temperature = settings.claude_temperature
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds

        logger.info(f"ClaudeClient ready, model chain: {' -> '.join(self.models)}")

    @classmethod
    def get_instance(cls) -> "ClaudeClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    async def complete(self, system_prompt: str, user_message: str) -> str:
        """Run one conversational turn and return the raw model text."""
        response = await self.generate(prompt=user_message, system_prompt=system_prompt)
        return response.content

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        use_fallback_on_error: bool = True,
    ) -> ClaudeResponse:
        """
        Generate a response from Claude.

        Args:
            prompt: User message
            system_prompt: System prompt (optional)
            model: Pin a single model instead of the configured chain
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            use_fallback_on_error: Continue down the chain after a failure

        Raises:
            ClaudeClientError: If every model in the chain failed
        """
        chain = [model] if model else list(self.models)
        if not use_fallback_on_error:
            chain = chain[:1]

        request: dict[str, Any] = {
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        failures: list[str] = []
        for candidate in chain:
            started = time.perf_counter()
            try:
                message = await self._create(candidate, request)
                content = self._text_of(message)
            except Exception as e:
                failures.append(f"{candidate}: {e}")
                logger.warning(f"Model {candidate} failed ({type(e).__name__}): {e}")
                continue

            return ClaudeResponse(
                content=content,
                model=candidate,
                input_tokens=message.usage.input_tokens,
                output_tokens=message.usage.output_tokens,
                stop_reason=message.stop_reason,
                latency_ms=(time.perf_counter() - started) * 1000,
            )

        raise ClaudeClientError(f"Claude API call failed: {'; '.join(failures)}")

    async def _create(self, model: str, request: dict[str, Any]) -> Any:
        """One Messages API call, retried on transient errors."""
        delay = self.backoff_seconds
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._client.messages.create(model=model, **request)
            except TRANSIENT_ERRORS as e:
                if attempt == self.max_retries:
                    raise
                logger.info(f"{type(e).__name__} on {model}, attempt {attempt}/{self.max_retries}, sleeping {delay}s")
                await asyncio.sleep(delay)
                delay *= 2
            except APIError as e:
                logger.error(f"Anthropic API rejected the request on {model}: {e}")
                raise

    @staticmethod
    def _text_of(message: Any) -> str:
        parts = [block.text for block in message.content if getattr(block, "type", "text") == "text"]
        if not parts:
            raise ClaudeClientError("Model returned no text content")
        return "".join(parts)

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()


def get_claude_client() -> ClaudeClient:
    """Get Claude client singleton instance."""
    return ClaudeClient.get_instance()

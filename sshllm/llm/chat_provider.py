"""OpenAI-compatible chat provider.

Uses the openai SDK, which speaks to any server exposing
``/chat/completions`` under the configured base URL.
"""

import time
from typing import Optional

import openai
import structlog
from openai import AsyncOpenAI

from .interface import BackendError, ChatResponse

logger = structlog.get_logger()


class ChatProvider:
    """Non-streaming chat completions against one base URL."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        # An empty key makes the SDK omit the Authorization header.
        self.client = AsyncOpenAI(
            api_key=api_key or "",
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
    ) -> ChatResponse:
        """Send chat completion request."""
        used_model = model or self.model
        start = time.monotonic()

        try:
            response = await self.client.chat.completions.create(
                model=used_model,
                messages=messages,
                stream=False,
            )
        except openai.APIStatusError as exc:
            body = exc.response.text if exc.response is not None else exc.message
            raise BackendError(f"API error {exc.status_code}: {body}") from exc
        except openai.APIConnectionError as exc:
            # Covers APITimeoutError as well
            raise BackendError(f"Request failed: {exc}") from exc
        except openai.APIResponseValidationError as exc:
            raise BackendError(f"Parse error: {exc}") from exc
        except openai.OpenAIError as exc:
            raise BackendError(f"Request failed: {exc}") from exc

        duration_ms = int((time.monotonic() - start) * 1000)

        try:
            choices = response.choices
        except AttributeError as exc:
            # Some servers return a bare string or error document
            raise BackendError(f"Parse error: {exc}") from exc
        if not choices:
            raise BackendError("No response from LLM")

        content = choices[0].message.content
        if content is None:
            raise BackendError("No response from LLM")

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(
            "Chat completion finished",
            model=used_model,
            duration_ms=duration_ms,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        return ChatResponse(
            content=content,
            model=response.model or used_model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration_ms=duration_ms,
        )

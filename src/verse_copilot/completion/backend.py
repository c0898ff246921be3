"""OpenAI-compatible chat-completion backend."""

from typing import Optional

import structlog

from verse_copilot.config import LLMConfig, get_config, mask_key
from verse_copilot.errors import BackendFailureError

logger = structlog.get_logger()

# A verse completion ends at the first blank line, whatever the line endings.
STOP_SEQUENCES = ["\n\n", "\r\r", "\r\n\r", "\n\r\n"]


class CompletionBackend:
    """Chat-completion client for verse completions.

    Requests are non-streaming and never retried: a new keystroke makes a
    retry pointless, so failures surface immediately as BackendFailureError.
    """

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or get_config().llm
        self._client = None

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                max_retries=0,
            )
        return self._client

    def reconfigure(self, config: LLMConfig) -> None:
        """Switch to new settings; the client is rebuilt on next use."""
        if config == self.config:
            return
        self.config = config
        self._client = None
        logger.debug(
            "completion_backend_reconfigured",
            model=config.model,
            base_url=config.base_url,
            api_key=mask_key(config.api_key),
        )

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Send the messages and return the first choice's text.

        Raises:
            BackendFailureError: on transport or HTTP errors, or an empty reply
        """
        import openai

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                stop=STOP_SEQUENCES,
                stream=False,
            )
        except openai.APIStatusError as e:
            raise BackendFailureError(
                f"Completion endpoint returned {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.OpenAIError as e:
            raise BackendFailureError(f"Completion request failed: {e}") from e

        if not response.choices:
            raise BackendFailureError("Completion endpoint returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise BackendFailureError("Completion endpoint returned an empty message")

        logger.debug(
            "completion_received",
            model=self.config.model,
            chars=len(content),
            finish_reason=response.choices[0].finish_reason,
        )
        return content.strip()

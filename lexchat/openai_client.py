"""
OpenAI client and the OpenAI-backed streaming completion service.
"""
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .errors import CapabilityError
from .interfaces import CompletionService
from .logging_config import logger


def create_client(api_key: Optional[str], timeout: float) -> AsyncOpenAI:
    if not api_key:
        raise CapabilityError("OPENAI_API_KEY is not set. Put it in env or .env (server-side only).")
    return AsyncOpenAI(api_key=api_key, timeout=timeout)


class OpenAICompletionService(CompletionService):

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """
        Stream responses from the OpenAI API.

        Yields:
            Text deltas from the streaming response
        """
        logger.info("Sent request to OpenAI API", model=self.model)
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta
        except OpenAIError as e:
            raise CapabilityError(f"OpenAI completion failed: {e}") from e

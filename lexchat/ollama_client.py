import asyncio
import json
from typing import AsyncIterator, Dict, List

import aiohttp

from .errors import CapabilityError
from .interfaces import CompletionService
from .logging_config import logger


class OllamaCompletionService(CompletionService):

    def __init__(self, base_url: str, model: str, timeout_seconds: float):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """
        Stream chat completion tokens from Ollama.
        Ollama answers with one JSON object per line.
        """
        logger.info("Sent request to Ollama model", model=self.model)
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": True,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(f"{self.base_url}/api/chat", json=payload) as resp:
                    if resp.status != 200:
                        raise CapabilityError(f"Ollama API error: {resp.status}")
                    async for line in resp.content:
                        line = line.decode().strip()
                        if not line:
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            continue  # skip malformed lines
                        if "error" in data:
                            raise CapabilityError(f"Ollama error: {data['error']}")
                        content = (data.get("message") or {}).get("content")
                        if content:
                            yield content
                        if data.get("done"):
                            break
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CapabilityError(f"Ollama request failed: {e}") from e

"""
Pre-pull the Ollama chat model at API startup so the first question
does not wait for a multi-gigabyte download.
"""
import asyncio
import time
from typing import List, Set

import aiohttp

from .logging_config import logger

PULL_TIMEOUT = aiohttp.ClientTimeout(total=600)


async def _wait_until_up(session: aiohttp.ClientSession, base_url: str, timeout_sec: float) -> bool:
    """Poll /api/tags until Ollama answers or ``timeout_sec`` passes."""
    deadline = time.monotonic() + timeout_sec
    while True:
        try:
            async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=3)) as r:
                if r.ok:
                    return True
        except (aiohttp.ClientError, asyncio.TimeoutError):
            pass
        if time.monotonic() >= deadline:
            return False
        await asyncio.sleep(1.0)


async def _installed_models(session: aiohttp.ClientSession, base_url: str) -> Set[str]:
    async with session.get(f"{base_url}/api/tags", timeout=aiohttp.ClientTimeout(total=5)) as r:
        r.raise_for_status()
        data = await r.json()
    return {m.get("name") or "" for m in data.get("models", [])}


def _is_installed(name: str, installed: Set[str]) -> bool:
    # "llama3.1" is listed as "llama3.1:latest"
    return any(tag.startswith(name) for tag in installed)


async def ensure_ollama_models(base_url: str, models: List[str], wait_seconds: float = 90) -> List[str]:
    """
    Pull every model in ``models`` that Ollama does not have yet.

    Never raises for Ollama problems: the first chat request can still
    trigger Ollama's own auto-pull.

    Returns:
        Names of the models that were pulled
    """
    base_url = base_url.rstrip("/")
    pulled: List[str] = []

    async with aiohttp.ClientSession() as session:
        if not await _wait_until_up(session, base_url, wait_seconds):
            logger.warning("Ollama not reachable; skipping model pre-pull", url=base_url)
            return pulled

        try:
            installed = await _installed_models(session, base_url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Could not list Ollama models", error=str(e))
            installed = set()

        for model in models:
            if _is_installed(model, installed):
                continue
            logger.info("Pulling missing Ollama model", model=model)
            try:
                async with session.post(
                    f"{base_url}/api/pull",
                    json={"name": model, "stream": False},
                    timeout=PULL_TIMEOUT,
                ) as r:
                    r.raise_for_status()
                pulled.append(model)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Failed to pull Ollama model", model=model, error=str(e))

    return pulled

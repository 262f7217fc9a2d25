from __future__ import annotations

import aiohttp
from typing import Any, Dict

from .config import Config, logger


def build_headers() -> Dict[str, str]:
    h = {
        "accept": "application/json",
        "content-type": "application/json",
        "user-agent": "derbybot/1.0",
    }
    if Config.AI_API_KEY:
        h["authorization"] = f"Bearer {Config.AI_API_KEY}"
    return h


def make_session() -> aiohttp.ClientSession:
    timeout = aiohttp.ClientTimeout(total=Config.AI_TIMEOUT_SECS)
    return aiohttp.ClientSession(
        timeout=timeout,
        headers=build_headers(),
        trust_env=True,
    )


async def post_json(session: aiohttp.ClientSession, url: str, payload: Dict[str, Any]) -> Any:
    logger.debug(f"API request: {url}")
    async with session.post(url, json=payload) as r:
        if r.status in (401, 403):
            txt = await r.text()
            logger.warning(f"API auth failure for {url}: {r.status}")
            raise PermissionError(f"Auth failed ({r.status}). Check AI_API_KEY. Body: {txt[:180]}")
        if r.status != 200:
            txt = await r.text()
            logger.error(f"API error for {url}: {r.status}")
            raise RuntimeError(f"HTTP {r.status} for {url} :: {txt[:300]}")
        logger.debug(f"API success: {url}")
        return await r.json()

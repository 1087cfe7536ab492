"""Client for the magnet metadata lookup service (whatslink.info by default)."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp

import services.logger as log
from services.error import TransportError, raise_and_log
from services.magnet import MagnetLink

l = log.get_logger()


class RemoteResolver:
    """Issues ``GET <endpoint>?url=<magnet>`` and returns the decoded body.

    The body is untrusted: it is whatever JSON the service sent, or ``None``
    when the response was not JSON at all.  Timeouts, connection errors,
    non-2xx statuses and undecodable bodies raise :class:`TransportError`.
    """

    def __init__(self, endpoint: str, timeout_ms: int, user_agent: str):
        if not endpoint:
            raise_and_log("Lookup endpoint must not be empty", ValueError)
        self.endpoint = endpoint
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def lookup(self, link: MagnetLink) -> Any:
        session = await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
        try:
            async with session.get(
                self.endpoint,
                params={"url": link.uri},
                headers={"User-Agent": self.user_agent},
                timeout=timeout,
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise TransportError(f"HTTP {resp.status}: {text[:200]}", status=resp.status)
                raw = await resp.text()
        except asyncio.TimeoutError as e:
            raise TransportError(f"lookup timed out after {self.timeout_ms} ms") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"lookup failed: {e}") from e
        except (UnicodeDecodeError, LookupError) as e:
            # undecodable body or unknown charset
            raise TransportError(f"lookup body could not be decoded: {e}") from e

        try:
            return json.loads(raw) if raw.strip() else None
        except json.JSONDecodeError:
            l.warning(f"Lookup service returned a non-JSON body: {raw[:200]!r}")
            return None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
            return self._session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()

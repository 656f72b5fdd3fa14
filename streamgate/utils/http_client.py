import asyncio
from typing import Optional

import aiohttp

from streamgate.core.models import settings

USER_AGENT = "streamgate/1.0"


class SharedSession:
    """
    The one aiohttp session used for Turnstile checks and engine fetches.

    Consumers hold `get_session` rather than the session itself, so a session
    closed by shutdown (or never opened, as in tests) is recreated on demand.
    """

    def __init__(self, total_timeout: int, pool_size: int = 100):
        self.total_timeout = total_timeout
        self.pool_size = pool_size
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self):
        return self._session is not None and not self._session.closed

    def _open(self):
        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self.pool_size),
            timeout=aiohttp.ClientTimeout(total=self.total_timeout),
            headers={"User-Agent": USER_AGENT},
        )

    async def get_session(self) -> aiohttp.ClientSession:
        if not self.is_open:
            async with self._lock:
                if not self.is_open:
                    self._session = self._open()
        return self._session

    async def close(self):
        async with self._lock:
            session, self._session = self._session, None
        if session is not None and not session.closed:
            await session.close()


http_client_manager = SharedSession(settings.HTTP_CLIENT_TIMEOUT_TOTAL)

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable
from urllib.parse import urlparse

from neo4j import WRITE_ACCESS, AsyncGraphDatabase, basic_auth
from neo4j.exceptions import DriverError, Neo4jError

from demeter_watchdog.core.config import Neo4jSettings
from demeter_watchdog.core.errors import SessionError


logger = logging.getLogger(__name__)

# Schemes that leave transport encryption to the driver configuration.
_PLAIN_SCHEMES = {"bolt", "neo4j"}


def driver_kwargs(settings: Neo4jSettings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"auth": basic_auth(settings.username, settings.password)}
    # "+s"/"+ssc" schemes already pin encryption and reject an explicit flag.
    if urlparse(settings.url).scheme in _PLAIN_SCHEMES:
        kwargs["encrypted"] = settings.encrypted
    return kwargs


class SessionProvider:
    """Lazily opens one write session and hands the same one out for the process lifetime."""

    def __init__(
        self,
        settings: Neo4jSettings,
        *,
        driver_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._settings = settings
        self._driver_factory = driver_factory or AsyncGraphDatabase.driver
        self._driver: Any | None = None
        self._session: Any | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def get_session(self) -> Any:
        if self._session is not None:
            return self._session
        async with self._lock:
            if self._session is None:
                self._session = await self._connect()
        return self._session

    async def _connect(self) -> Any:
        driver = None
        try:
            driver = self._driver_factory(self._settings.url, **driver_kwargs(self._settings))
            await driver.verify_connectivity()
            session = driver.session(default_access_mode=WRITE_ACCESS)
        except (Neo4jError, DriverError, OSError, ValueError) as exc:
            logger.error("neo4j_connect_failed url=%s", self._settings.url, exc_info=exc)
            if driver is not None:
                await _close_quietly(driver)
            raise SessionError(f"failed to connect to {self._settings.url}: {exc}") from exc
        self._driver = driver
        logger.info("neo4j_session_opened url=%s user=%s", self._settings.url, self._settings.username)
        return session

    async def close(self) -> None:
        session, driver = self._session, self._driver
        self._session = None
        self._driver = None
        if session is not None:
            await _close_quietly(session)
        if driver is not None:
            await _close_quietly(driver)


async def _close_quietly(resource: Any) -> None:
    try:
        await resource.close()
    except (Neo4jError, DriverError, OSError) as exc:
        logger.warning("neo4j_close_failed", exc_info=exc)


async def bounded(awaitable: Any, timeout_ms: int) -> Any:
    # Apply a call-level timeout only when one is configured.
    if timeout_ms <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000.0)

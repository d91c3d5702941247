from __future__ import annotations

import logging
from typing import Any

from neo4j.exceptions import DriverError, Neo4jError

from demeter_watchdog.core.errors import GroupingError
from demeter_watchdog.persistence.neo4j import SessionProvider, bounded


logger = logging.getLogger(__name__)

GROUP_TAGS_CALL = "CALL demeter.groupTags($application)"


class GroupingInvoker:
    def __init__(self, sessions: SessionProvider, *, timeout_ms: int = 0) -> None:
        self._sessions = sessions
        self._timeout_ms = timeout_ms

    async def call(self, application: str) -> None:
        session = await self._sessions.get_session()
        try:
            await bounded(self._run(session, application), self._timeout_ms)
        except (Neo4jError, DriverError, OSError, TimeoutError) as exc:
            raise GroupingError(application) from exc

    async def invoke(self, application: str) -> bool:
        # The procedure result is only consumed to surface server-side errors.
        try:
            await self.call(application)
        except GroupingError as exc:
            logger.warning("grouping_call_failed application=%s", application, exc_info=exc.__cause__)
            return False
        logger.info("grouping_call_succeeded application=%s", application)
        return True

    async def _run(self, session: Any, application: str) -> None:
        result = await session.run(GROUP_TAGS_CALL, {"application": application})
        await result.consume()

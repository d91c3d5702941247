from __future__ import annotations

import logging
from typing import Any, Iterable

from neo4j.exceptions import DriverError, Neo4jError

from demeter_watchdog.core.errors import ScanError
from demeter_watchdog.domain.models import TagMatch
from demeter_watchdog.persistence.neo4j import SessionProvider, bounded


logger = logging.getLogger(__name__)

# Generic label carried by every imaging object; all other labels name applications.
BASE_LABEL = "Object"

TAG_SCAN_QUERY = (
    "MATCH (o:Object) "
    "WHERE o.Tags IS NOT NULL AND any(x IN o.Tags WHERE x CONTAINS $prefix) "
    "RETURN DISTINCT [x IN labels(o) WHERE NOT x = $baseLabel] AS application, count(o) AS numTags"
)


def collect_applications(rows: Iterable[dict[str, Any]]) -> list[TagMatch]:
    # Deduplicate application names across rows, keeping first-seen order and summing counts.
    counts: dict[str, int] = {}
    for row in rows:
        labels = row.get("application") or []
        num_tags = int(row.get("numTags") or 0)
        logger.info("tags_found count=%s applications=%s", num_tags, labels)
        for label in labels:
            name = str(label)
            if name == BASE_LABEL:
                continue
            counts[name] = counts.get(name, 0) + num_tags
    return [TagMatch(application=name, num_tags=total) for name, total in counts.items()]


class TagScanner:
    def __init__(self, sessions: SessionProvider, *, timeout_ms: int = 0) -> None:
        self._sessions = sessions
        self._timeout_ms = timeout_ms

    async def scan(self, prefix: str) -> list[TagMatch]:
        # Session failures propagate as SessionError; only query failures become ScanError.
        session = await self._sessions.get_session()
        try:
            rows = await bounded(self._fetch(session, prefix), self._timeout_ms)
        except (Neo4jError, DriverError, OSError, TimeoutError) as exc:
            logger.error("tag_scan_failed prefix=%s", prefix, exc_info=exc)
            raise ScanError(f"failed to check for tags with prefix {prefix!r}") from exc
        return collect_applications(rows)

    async def _fetch(self, session: Any, prefix: str) -> list[dict[str, Any]]:
        result = await session.run(TAG_SCAN_QUERY, {"prefix": prefix, "baseLabel": BASE_LABEL})
        return await result.data()

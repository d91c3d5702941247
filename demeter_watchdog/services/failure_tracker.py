from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping


logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5


class FailureTracker:
    """Counts grouping failures per application and suppresses the ones that keep failing.

    Counts only ever go up: a successful call does not reset them, so an
    application that fails intermittently still reaches suppression. An
    application is suppressed once its count is strictly greater than the
    threshold (the 6th failure with the default of 5), and stays suppressed
    for the lifetime of the tracker.
    """

    def __init__(self, threshold: int = DEFAULT_FAILURE_THRESHOLD) -> None:
        if threshold < 0:
            raise ValueError("threshold must not be negative")
        self._threshold = threshold
        self._warnings: dict[str, int] = {}
        self._suppressed: set[str] = set()

    @property
    def warnings(self) -> Mapping[str, int]:
        return MappingProxyType(self._warnings)

    @property
    def suppressed(self) -> frozenset[str]:
        return frozenset(self._suppressed)

    def failure_count(self, application: str) -> int:
        return self._warnings.get(application, 0)

    def is_suppressed(self, application: str) -> bool:
        return application in self._suppressed

    def record_failure(self, application: str) -> int:
        count = self._warnings.get(application, 0) + 1
        self._warnings[application] = count
        logger.error(
            "grouping_warning application=%s count=%s/%s", application, count, self._threshold
        )
        if count > self._threshold and application not in self._suppressed:
            self._suppressed.add(application)
            logger.error(
                "application_suppressed application=%s failures=%s reason=too_many_warnings",
                application,
                count,
            )
        return count

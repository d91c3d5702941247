from __future__ import annotations


class WatchdogError(Exception):
    """Base error for the Demeter watchdog."""


class ConfigurationError(WatchdogError):
    """Configuration could not be loaded."""


class ConfigurationMissingError(ConfigurationError):
    """Configuration file is missing or unreadable."""


class ConfigurationInvalidError(ConfigurationError):
    """Configuration file is not valid JSON or holds invalid values."""


class SessionError(WatchdogError):
    """Neo4j session could not be established."""


class ScanError(WatchdogError):
    """Tag discovery query failed."""


class GroupingError(WatchdogError):
    """Grouping procedure call failed for one application."""

    def __init__(self, application: str, message: str | None = None) -> None:
        super().__init__(message or f"grouping failed for application {application}")
        self.application = application

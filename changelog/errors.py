"""Error taxonomy for the versioning and extraction engine."""

from __future__ import annotations


class ChangelogError(Exception):
    """Base class for every error raised by the engine."""


class InvalidTransition(ChangelogError):
    """Raised when an action is not legal from a version's current status."""

    def __init__(self, current: str | None, action: str, detail: str | None = None):
        self.current = current
        self.action = action
        message = f"Cannot apply '{action}' to a version in state '{current or 'none'}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class VersionNotFound(ChangelogError):
    """Raised when a component version id does not exist."""

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Component version {version_id} not found")


class SessionBusy(ChangelogError):
    """Raised when an extraction is requested while another one is active."""

    def __init__(self, active_session_id: str):
        self.active_session_id = active_session_id
        super().__init__(f"Extraction session {active_session_id} is still active")


class ExtractionFailed(ChangelogError):
    """The sandbox reported an extraction error; message is kept verbatim."""

    def __init__(self, message: str, session_id: str | None = None):
        self.session_id = session_id
        super().__init__(message)


class ExtractionCancelled(ChangelogError):
    """Raised to waiters of a session that was cancelled."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Extraction session {session_id} was cancelled")


class MalformedSnapshot(ChangelogError):
    """A snapshot field could not be normalized.

    Only raised inside normalization; snapshot construction catches it and
    degrades instead of failing.
    """

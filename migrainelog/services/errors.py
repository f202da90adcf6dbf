from __future__ import annotations


class EpisodeError(Exception):
    """Typed failure returned to callers of the episode service."""

    code = "EPISODE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSeverity(EpisodeError):
    code = "INVALID_SEVERITY"


class InvalidTimestamp(EpisodeError):
    code = "INVALID_TIMESTAMP"


class ConflictActiveEpisode(EpisodeError):
    code = "CONFLICT_ACTIVE_EPISODE"


class NotFound(EpisodeError):
    code = "NOT_FOUND"


class ConcurrentModification(EpisodeError):
    code = "CONCURRENT_MODIFICATION"

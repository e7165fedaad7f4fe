"""Custom exceptions for configuration, validation and remote-store errors."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Base exception for configuration errors with optional suggestions."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[Configuration Error] {self.message}"
        if self.suggestion:
            msg += f"\n[Suggestion] {self.suggestion}"
        return msg


class MissingCredentialsError(ConfigurationError):
    """Error when the hosted store URL or anon key is missing."""

    def __init__(self, field: str) -> None:
        super().__init__(
            f"Supabase {field} required for the hosted backend",
            "Set SUPABASE_URL and SUPABASE_ANON_KEY or add them under 'supabase' in config.yaml.",
        )


class HubError(Exception):
    """Base class for failures scoped to a single user command."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParticipationRejected(HubError):
    """Join or leave rejected locally before any remote call."""

    def __init__(self, tournament_id: str, reason: str) -> None:
        self.tournament_id = tournament_id
        self.reason = reason
        super().__init__(reason)


class UnauthorizedError(HubError):
    """Admin operation attempted without admin privileges."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Admin privileges required to {operation}")


class InvalidSortKey(HubError):
    """Leaderboard sort key that names no known statistic."""

    def __init__(self, sort_key: str) -> None:
        self.sort_key = sort_key
        super().__init__(f"Unknown leaderboard sort key: {sort_key!r}")


class RemoteError(HubError):
    """Failure reported by the remote store, message kept verbatim."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


class RemoteWriteConflict(RemoteError):
    """Write rejected by a store constraint (duplicate join, capacity, missing row)."""


class RemoteTimeoutError(RemoteError):
    """Remote call did not complete within the configured timeout."""

    def __init__(self, operation: str, timeout: float | None) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for {operation}", code="timeout")

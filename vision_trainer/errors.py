from __future__ import annotations


class ConfigurationError(ValueError):
    """Difficulty level, profile or variant that cannot start a session."""


class PersistenceFailure(RuntimeError):
    """The result store rejected a write or could not be read."""

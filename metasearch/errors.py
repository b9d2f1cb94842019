"""Exception hierarchy shared by engines, cache, and orchestrator."""

from __future__ import annotations


class MetasearchError(Exception):
    """Base class for all metasearch failures."""


class EngineError(MetasearchError):
    """Raised by an engine while serving a search."""

    def __init__(self, engine: str, message: str) -> None:
        super().__init__(f"{engine}: {message}")
        self.engine = engine


class TransportError(EngineError):
    """Non-timeout network failure. The breaker is not affected."""


class EngineTimeout(EngineError):
    """A request timed out. The engine's breaker is now open."""


class EngineSpecificError(EngineError):
    """Backend-specific failure, not retried within the current call."""


class TokenUnknown(EngineSpecificError):
    """The anti-bot session token could not be extracted."""


class NotAvailable(EngineError):
    """Breaker open or cooldown active. Skip the backend or try later."""


class PersistenceError(MetasearchError):
    """The result cache backend failed."""


class InvalidRequest(MetasearchError, ValueError):
    """A query request violates its bounds."""


class AllEnginesFailed(MetasearchError):
    """No backend produced data for a request."""

    def __init__(self, timeouts: list[str], errors: dict[str, str]) -> None:
        parts = [f"{name}: timeout" for name in timeouts]
        parts += [f"{name}: {msg}" for name, msg in errors.items()]
        detail = "; ".join(parts) or "no engines requested"
        super().__init__(f"All engines failed ({detail})")
        self.timeouts = timeouts
        self.errors = errors


class EngineContractError(RuntimeError):
    """search() was called on an engine that reported itself unavailable."""

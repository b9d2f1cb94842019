"""Settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from metasearch.contracts import Engines

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
)


def _load_env() -> None:
    """Load .env from project root if it exists."""
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)


_load_env()


def _split_engines(raw: str) -> tuple[str, ...]:
    return tuple(name.strip().lower() for name in raw.split(",") if name.strip())


@dataclass(frozen=True)
class Settings:
    # Result cache
    cache_db: str = field(
        default_factory=lambda: os.environ.get("METASEARCH_CACHE_DB", ".cache/metasearch.db")
    )

    # Engines queried when the caller does not choose
    engines: tuple[str, ...] = field(
        default_factory=lambda: _split_engines(os.environ.get("METASEARCH_ENGINES", "duckduckgo"))
    )

    # Per-request transport timeout (seconds)
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "2.0"))
    )
    # Breaker penalty after a timeout (seconds)
    timeout_penalty: float = field(
        default_factory=lambda: float(os.environ.get("TIMEOUT_PENALTY", "3600"))
    )
    # Burst limit between requests to one engine (seconds)
    cooldown: float = field(default_factory=lambda: float(os.environ.get("ENGINE_COOLDOWN", "2.0")))
    max_pages: int = field(default_factory=lambda: int(os.environ.get("MAX_PAGES", "10")))

    # Orchestrator
    engine_timeout: float = field(
        default_factory=lambda: float(os.environ.get("ENGINE_TIMEOUT", "15.0"))
    )
    max_count: int = field(default_factory=lambda: int(os.environ.get("MAX_COUNT", "25")))

    # DuckDuckGo
    region: str = field(default_factory=lambda: os.environ.get("DDG_REGION", "us-en"))
    user_agent: str = field(
        default_factory=lambda: os.environ.get("USER_AGENT", _DEFAULT_USER_AGENT)
    )

    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "WARNING"))

    def validate(self) -> list[str]:
        """Return list of validation errors. Empty list means valid."""
        errors = []
        known = {e.value for e in Engines}
        for name in self.engines:
            if name not in known:
                errors.append(f"METASEARCH_ENGINES contains unknown engine '{name}'")
        if not self.engines:
            errors.append("METASEARCH_ENGINES must name at least one engine")
        if self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be > 0")
        if self.engine_timeout <= 0:
            errors.append("ENGINE_TIMEOUT must be > 0")
        if self.max_pages < 1:
            errors.append("MAX_PAGES must be >= 1")
        if self.max_count < 1:
            errors.append("MAX_COUNT must be >= 1")
        if self.cooldown < 0 or self.timeout_penalty < 0:
            errors.append("ENGINE_COOLDOWN and TIMEOUT_PENALTY must be >= 0")
        return errors

    def warnings(self) -> list[str]:
        """Return list of non-fatal configuration warnings."""
        warns: list[str] = []
        if self.request_timeout >= self.engine_timeout:
            warns.append(
                f"REQUEST_TIMEOUT={self.request_timeout}s is not shorter than "
                f"ENGINE_TIMEOUT={self.engine_timeout}s. Slow engines will be cancelled "
                "before their own timeout can open the breaker."
            )
        if self.timeout_penalty < self.request_timeout:
            warns.append(
                f"TIMEOUT_PENALTY={self.timeout_penalty}s is shorter than a single request. "
                "The breaker will have no effect."
            )
        return warns


def get_settings() -> Settings:
    """Create Settings from current environment."""
    return Settings()

"""Runtime configuration for admission, queue, and compute settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_PROVIDER_URL = "https://api.openai.com/v1/chat/completions"
SUPPORTED_COMPUTE_BACKENDS = ("http", "echo")


@dataclass(frozen=True, slots=True)
class AdmissionSettings:
    """Shared keys and per-client rate limit."""

    secret: str = ""
    proxy_key: str = ""
    rate_limit: int = 100
    rate_window_seconds: int = 3_600


@dataclass(frozen=True, slots=True)
class QueueSettings:
    """Job retention, retry policy, and pass scheduling."""

    ttl_seconds: int = 86_400
    max_retries: int = 3
    backoff_seconds: float = 2.0
    pass_interval_seconds: float = 10.0
    claim_lease_seconds: int = 3_600


@dataclass(frozen=True, slots=True)
class ComputeSettings:
    """External chat-completions provider settings."""

    backend: str = "http"
    provider_url: str = DEFAULT_PROVIDER_URL
    model: str = "gpt-4"
    api_key: str = ""
    timeout_seconds: float = 60.0


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    """Log level and optional append-only log file."""

    level: str = "INFO"
    file_path: Path | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    """Application settings grouped by concern, built once per process."""

    db_path: Path = Path(".prompt_relay.db")
    sqlite_busy_timeout_ms: int = 5_000
    admission: AdmissionSettings = field(default_factory=AdmissionSettings)
    queue: QueueSettings = field(default_factory=QueueSettings)
    compute: ComputeSettings = field(default_factory=ComputeSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local development."""

        log_file = os.getenv("PROMPT_RELAY_LOG_FILE", "").strip()
        return cls(
            db_path=db_path or Path(os.getenv("PROMPT_RELAY_DB_PATH", ".prompt_relay.db")),
            sqlite_busy_timeout_ms=int(os.getenv("PROMPT_RELAY_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            admission=AdmissionSettings(
                secret=os.getenv("PROMPT_RELAY_SECRET", ""),
                proxy_key=os.getenv("PROMPT_RELAY_PROXY_KEY", ""),
                rate_limit=int(os.getenv("PROMPT_RELAY_RATE_LIMIT", "100")),
                rate_window_seconds=int(os.getenv("PROMPT_RELAY_RATE_WINDOW_SECONDS", "3600")),
            ),
            queue=QueueSettings(
                ttl_seconds=int(os.getenv("PROMPT_RELAY_TTL_SECONDS", "86400")),
                max_retries=int(os.getenv("PROMPT_RELAY_MAX_RETRIES", "3")),
                backoff_seconds=float(os.getenv("PROMPT_RELAY_BACKOFF_SECONDS", "2.0")),
                pass_interval_seconds=float(
                    os.getenv("PROMPT_RELAY_PASS_INTERVAL_SECONDS", "10.0"),
                ),
                claim_lease_seconds=int(os.getenv("PROMPT_RELAY_CLAIM_LEASE_SECONDS", "3600")),
            ),
            compute=ComputeSettings(
                backend=os.getenv("PROMPT_RELAY_COMPUTE_BACKEND", "http").strip().lower(),
                provider_url=os.getenv("PROMPT_RELAY_PROVIDER_URL", DEFAULT_PROVIDER_URL),
                model=os.getenv("PROMPT_RELAY_MODEL", "gpt-4"),
                api_key=os.getenv("PROMPT_RELAY_PROVIDER_API_KEY", ""),
                timeout_seconds=float(os.getenv("PROMPT_RELAY_COMPUTE_TIMEOUT_SECONDS", "60")),
            ),
            logging=LoggingSettings(
                level=os.getenv("PROMPT_RELAY_LOG_LEVEL", "INFO").strip().upper(),
                file_path=Path(log_file) if log_file else None,
            ),
        )

    def validate_for_admission(self) -> None:
        """Raise configuration error if submissions cannot be authenticated."""

        if not self.admission.secret:
            raise ValueError("PROMPT_RELAY_SECRET must be set.")
        if not self.admission.proxy_key:
            raise ValueError("PROMPT_RELAY_PROXY_KEY must be set.")
        if self.admission.rate_limit <= 0:
            raise ValueError("PROMPT_RELAY_RATE_LIMIT must be a positive integer.")
        if self.admission.rate_window_seconds <= 0:
            raise ValueError("PROMPT_RELAY_RATE_WINDOW_SECONDS must be > 0.")

    def validate_for_worker(self) -> None:
        """Raise configuration error if worker passes cannot run."""

        if self.queue.ttl_seconds <= 0:
            raise ValueError("PROMPT_RELAY_TTL_SECONDS must be > 0.")
        if self.queue.max_retries <= 0:
            raise ValueError("PROMPT_RELAY_MAX_RETRIES must be a positive integer.")
        if self.queue.backoff_seconds < 0:
            raise ValueError("PROMPT_RELAY_BACKOFF_SECONDS must be >= 0.")
        if self.queue.pass_interval_seconds < 0:
            raise ValueError("PROMPT_RELAY_PASS_INTERVAL_SECONDS must be >= 0.")
        if self.compute.timeout_seconds <= 0:
            raise ValueError("PROMPT_RELAY_COMPUTE_TIMEOUT_SECONDS must be > 0.")
        if self.queue.claim_lease_seconds <= self.compute.timeout_seconds:
            raise ValueError(
                "PROMPT_RELAY_CLAIM_LEASE_SECONDS must be greater than "
                "PROMPT_RELAY_COMPUTE_TIMEOUT_SECONDS.",
            )
        if self.compute.backend not in SUPPORTED_COMPUTE_BACKENDS:
            raise ValueError(
                f"Unsupported PROMPT_RELAY_COMPUTE_BACKEND: {self.compute.backend!r}. "
                f"Expected one of: {', '.join(SUPPORTED_COMPUTE_BACKENDS)}.",
            )
        if self.compute.backend == "http":
            if not self.compute.api_key:
                raise ValueError("PROMPT_RELAY_PROVIDER_API_KEY must be set.")
            _validate_provider_url(self.compute.provider_url)


def _validate_provider_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid PROMPT_RELAY_PROVIDER_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )

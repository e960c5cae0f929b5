"""Admission checks applied before a job may be created."""

from __future__ import annotations

import logging

from prompt_relay.admission.rate_limit import RateLimitRepository
from prompt_relay.admission.signing import sign_prompt, signatures_match
from prompt_relay.config import AdmissionSettings
from prompt_relay.errors import InvalidSignatureError, RateLimitError, UnauthorizedError

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Shared-key authentication, prompt signature check, and per-client rate limit."""

    def __init__(self, *, settings: AdmissionSettings, rate_limits: RateLimitRepository) -> None:
        self.settings = settings
        self.rate_limits = rate_limits

    def require_proxy_key(self, presented_key: str | None) -> None:
        configured = self.settings.proxy_key
        if not configured or not signatures_match(configured, presented_key or ""):
            logger.warning("Rejected request with invalid proxy key")
            raise UnauthorizedError("Unauthorized")

    def verify_signature(self, *, prompt: str, signature: str) -> None:
        expected = sign_prompt(prompt, self.settings.secret)
        if not signatures_match(expected, signature):
            logger.warning("Rejected request with invalid signature")
            raise InvalidSignatureError("Invalid signature")

    def hit_rate_limit(self, client_key: str) -> None:
        """Count one request for ``client_key`` or raise RateLimitError."""

        limit = self.settings.rate_limit
        if not self.rate_limits.try_acquire(client_key=client_key, limit=limit):
            logger.warning("Rate limit exceeded: client=%s limit=%d", client_key, limit)
            raise RateLimitError("Rate limit exceeded", client_key=client_key, limit=limit)

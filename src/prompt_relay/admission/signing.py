"""HMAC-SHA256 prompt signatures."""

from __future__ import annotations

import hashlib
import hmac


def sign_prompt(prompt: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of the UTF-8 prompt under ``secret``."""

    return hmac.new(secret.encode("utf-8"), prompt.encode("utf-8"), hashlib.sha256).hexdigest()


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time string comparison."""

    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))

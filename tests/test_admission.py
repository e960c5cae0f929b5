from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path

import allure
import pytest

from prompt_relay.admission import AdmissionGate, RateLimitRepository, sign_prompt
from prompt_relay.admission.signing import signatures_match
from prompt_relay.config import AdmissionSettings
from prompt_relay.errors import (
    AuthenticationError,
    InvalidSignatureError,
    RateLimitError,
    UnauthorizedError,
)
from prompt_relay.jobs.repository import JobRepository

pytestmark = [
    allure.epic("Admission"),
    allure.feature("Authentication & Rate Limits"),
]

SECRET = "change_this_secret"
PROXY_KEY = "change_this_proxy_key"


@pytest.fixture()
def rate_limits(db_path: Path, clock, repository: JobRepository) -> Iterator[RateLimitRepository]:
    limiter = RateLimitRepository(db_path, window_seconds=3600, clock=clock)
    try:
        yield limiter
    finally:
        limiter.close()


@pytest.fixture()
def gate(rate_limits: RateLimitRepository) -> AdmissionGate:
    return AdmissionGate(
        settings=AdmissionSettings(secret=SECRET, proxy_key=PROXY_KEY, rate_limit=100),
        rate_limits=rate_limits,
    )


def test_sign_prompt_is_hex_hmac_sha256() -> None:
    assert sign_prompt("The quick brown fox jumps over the lazy dog", "key") == (
        "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"
    )


def test_signatures_match_requires_exact_equality() -> None:
    assert signatures_match("abc", "abc")
    assert not signatures_match("abc", "abd")
    assert not signatures_match("abc", "")


def test_proxy_key_must_match(gate: AdmissionGate) -> None:
    gate.require_proxy_key(PROXY_KEY)
    with pytest.raises(UnauthorizedError):
        gate.require_proxy_key("wrong")
    with pytest.raises(UnauthorizedError):
        gate.require_proxy_key(None)


def test_unconfigured_proxy_key_rejects_empty_key(rate_limits: RateLimitRepository) -> None:
    gate = AdmissionGate(
        settings=AdmissionSettings(secret=SECRET, proxy_key=""),
        rate_limits=rate_limits,
    )
    with pytest.raises(UnauthorizedError):
        gate.require_proxy_key("")


def test_signature_over_other_payload_is_rejected(gate: AdmissionGate) -> None:
    gate.verify_signature(prompt="Tell me a joke", signature=sign_prompt("Tell me a joke", SECRET))

    with pytest.raises(InvalidSignatureError) as excinfo:
        gate.verify_signature(
            prompt="Tell me a joke",
            signature=sign_prompt("Tell me a secret", SECRET),
        )
    assert isinstance(excinfo.value, AuthenticationError)
    assert excinfo.value.http_status == 403


def test_hundredth_request_admitted_and_hundred_first_rejected(gate, rate_limits) -> None:
    for _ in range(100):
        gate.hit_rate_limit("203.0.113.7")
    assert rate_limits.current_count(client_key="203.0.113.7") == 100

    with pytest.raises(RateLimitError) as excinfo:
        gate.hit_rate_limit("203.0.113.7")
    assert excinfo.value.http_status == 429
    assert rate_limits.current_count(client_key="203.0.113.7") == 100


def test_rate_limit_is_per_client(gate, rate_limits) -> None:
    for _ in range(100):
        gate.hit_rate_limit("198.51.100.1")

    gate.hit_rate_limit("198.51.100.2")
    assert rate_limits.current_count(client_key="198.51.100.2") == 1


def test_rate_limit_resets_in_next_window(gate, rate_limits, clock) -> None:
    for _ in range(100):
        gate.hit_rate_limit("192.0.2.10")
    with pytest.raises(RateLimitError):
        gate.hit_rate_limit("192.0.2.10")

    clock.advance(3600)
    gate.hit_rate_limit("192.0.2.10")
    assert rate_limits.current_count(client_key="192.0.2.10") == 1


def test_non_positive_limit_rejects_everything(rate_limits: RateLimitRepository) -> None:
    assert rate_limits.try_acquire(client_key="anyone", limit=0) is False


def test_concurrent_requests_never_exceed_limit(db_path: Path, clock, rate_limits) -> None:
    limit = 25
    barrier = threading.Barrier(5)
    admitted: list[bool] = []
    lock = threading.Lock()

    def _hammer() -> None:
        limiter = RateLimitRepository(
            db_path,
            window_seconds=3600,
            sqlite_busy_timeout_ms=10_000,
            clock=clock,
        )
        try:
            barrier.wait(timeout=5)
            for _ in range(10):
                result = limiter.try_acquire(client_key="burst", limit=limit)
                with lock:
                    admitted.append(result)
        finally:
            limiter.close()

    threads = [threading.Thread(target=_hammer) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert admitted.count(True) == limit
    assert admitted.count(False) == 50 - limit
    assert rate_limits.current_count(client_key="burst") == limit

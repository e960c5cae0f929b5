"""Admission control: shared-key authentication, prompt signatures, rate limits."""

from prompt_relay.admission.gate import AdmissionGate
from prompt_relay.admission.rate_limit import RateLimitRepository
from prompt_relay.admission.signing import sign_prompt, signatures_match

__all__ = [
    "AdmissionGate",
    "RateLimitRepository",
    "sign_prompt",
    "signatures_match",
]

"""
Dispatch layer for element merges.

Provides:
- ResultCache: Commutative, tri-state cache of merge outcomes
- ProviderPool: Round-robin credentials with cooldown
- CallerRateLimiter: Per-caller one-request-per-window throttle
- RequestDeduplicator: Single-flight coalescing of identical dispatches
- FailoverDispatcher: Retry/rotate/fallback across credentials and models

MergeService (alchemist.services.merge_service) wires these together.
"""

from alchemist.services.errors import (
    CallerRateLimitedError,
    ErrorKind,
    ExhaustionError,
    InputError,
    MergeError,
    ProviderError,
)
from alchemist.services.types import GenerationRequest, MergeOutcome
from alchemist.services.policy import (
    DEFAULT_FAILURE_POLICY,
    DispatchPolicy,
    FailureAction,
)
from alchemist.services.cache import CacheLookup, CacheState, ResultCache, pair_key
from alchemist.services.pool import CredentialEntry, ProviderPool
from alchemist.services.rate_limiter import CallerRateLimiter
from alchemist.services.deduplicator import RequestDeduplicator
from alchemist.services.dispatcher import Backend, FailoverDispatcher, normalize_output

__all__ = [
    # Errors
    "MergeError",
    "InputError",
    "CallerRateLimitedError",
    "ProviderError",
    "ExhaustionError",
    "ErrorKind",
    # Types
    "GenerationRequest",
    "MergeOutcome",
    # Policy
    "DEFAULT_FAILURE_POLICY",
    "DispatchPolicy",
    "FailureAction",
    # Cache
    "ResultCache",
    "CacheLookup",
    "CacheState",
    "pair_key",
    # Pool
    "CredentialEntry",
    "ProviderPool",
    # Rate limiter
    "CallerRateLimiter",
    # Deduplicator
    "RequestDeduplicator",
    # Dispatcher
    "Backend",
    "FailoverDispatcher",
    "normalize_output",
]

"""
Failure policy for the dispatcher.

One table decides what every classified provider failure does to the
retry loops, so no call site carries its own retry rules.
"""

from dataclasses import dataclass, field
from enum import Enum

from alchemist.services.errors import ErrorKind


class FailureAction(str, Enum):
    """What the dispatcher does after a failed provider call."""

    RETRY_SAME = "retry-same"  # Back off, same model and credential
    ADVANCE_MODEL = "advance-model"  # Next model, same credential
    ADVANCE_CREDENTIAL = "advance-credential"  # Cool down, next credential
    ABORT_REQUEST = "abort-request"  # Stop dispatching this request


DEFAULT_FAILURE_POLICY: dict[ErrorKind, FailureAction] = {
    ErrorKind.NETWORK: FailureAction.RETRY_SAME,
    ErrorKind.EMPTY_OUTPUT: FailureAction.RETRY_SAME,
    ErrorKind.RATE_LIMIT: FailureAction.ADVANCE_CREDENTIAL,
    ErrorKind.SERVER: FailureAction.ADVANCE_CREDENTIAL,
    ErrorKind.AUTH: FailureAction.ADVANCE_MODEL,
    ErrorKind.INVALID_REQUEST: FailureAction.ADVANCE_MODEL,
}


@dataclass
class DispatchPolicy:
    """Retry, backoff and cooldown parameters."""

    attempts: int = 3  # Calls per model/credential for RETRY_SAME failures
    backoff_base: float = 0.5  # Seconds; wait is backoff_base * attempt
    cooldown: float = 60.0  # Seconds a credential is excluded after ADVANCE_CREDENTIAL
    call_timeout: float | None = 30.0  # Per-call deadline, None to disable
    actions: dict[ErrorKind, FailureAction] = field(
        default_factory=lambda: dict(DEFAULT_FAILURE_POLICY)
    )

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.backoff_base < 0 or self.cooldown < 0:
            raise ValueError("backoff_base and cooldown must be >= 0")

    def action_for(self, kind: ErrorKind) -> FailureAction:
        return self.actions.get(kind, FailureAction.ADVANCE_MODEL)

    def backoff(self, attempt: int) -> float:
        """Wait before retrying after the given (1-based) failed attempt."""
        return self.backoff_base * attempt

    def cooldown_for(self, retry_after: float | None) -> float:
        """Cooldown duration, extended by a provider Retry-After hint."""
        if retry_after is not None and retry_after > self.cooldown:
            return retry_after
        return self.cooldown

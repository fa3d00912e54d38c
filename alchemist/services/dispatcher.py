"""
FailoverDispatcher - Turns one generation request into a resilient sequence of
provider calls.

Loops, outermost first:
- credentials: next available entry from the backend's pool, at most once per entry
- models: candidate models in priority order
- attempts: up to ``policy.attempts`` calls for transient failures

The first non-empty answer wins and nothing else is tried. Each failure kind
maps to one FailureAction (see policy.py). When the primary backend is
exhausted, an optional secondary backend is run through the same loops.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from alchemist.services.errors import ErrorKind, ExhaustionError, ProviderError
from alchemist.services.policy import DispatchPolicy, FailureAction
from alchemist.services.pool import CredentialEntry, ProviderPool
from alchemist.services.types import GenerationRequest, MergeOutcome

NO_RESULT_LITERAL = "none"


def normalize_output(raw: str) -> MergeOutcome:
    """Trim provider text; a literal "none" (any case) means no result.

    Raises:
        ProviderError: EMPTY_OUTPUT when nothing but whitespace came back
    """
    text = raw.strip()
    if not text:
        raise ProviderError(ErrorKind.EMPTY_OUTPUT, "blank output")
    if text.casefold() == NO_RESULT_LITERAL:
        return MergeOutcome.no_result()
    return MergeOutcome(text=text)


@dataclass
class Backend:
    """A provider pool plus the models to try on it."""

    name: str
    pool: ProviderPool
    models: tuple[str, ...]


class _DispatchState:
    """Per-request bookkeeping: last failure seen and abort flag."""

    def __init__(self):
        self.last_kind: ErrorKind | None = None
        self.last_message: str | None = None
        self.aborted = False

    def record(self, error: ProviderError) -> None:
        self.last_kind = error.kind
        self.last_message = error.details


class FailoverDispatcher:
    """
    Usage:
        dispatcher = FailoverDispatcher(
            primary=Backend("gemini", gemini_pool, ("gemini-1.5-flash",)),
            secondary=Backend("openai", openai_pool, ("gpt-4o-mini",)),
        )
        outcome = await dispatcher.dispatch(GenerationRequest(prompt="..."))
    """

    def __init__(
        self,
        primary: Backend,
        secondary: Backend | None = None,
        policy: DispatchPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.primary = primary
        self.secondary = secondary
        self.policy = policy or DispatchPolicy()
        self._sleep = sleep
        self._stats = DispatchStats()

    async def dispatch(self, request: GenerationRequest) -> MergeOutcome:
        """Run the request until one provider answers.

        Raises:
            ExhaustionError: Every credential/model combination failed
        """
        self._stats.dispatches += 1
        state = _DispatchState()

        models = request.models or self.primary.models
        outcome = await self._run_backend(self.primary, models, request, state)

        if outcome is None and self.secondary is not None and not state.aborted:
            logger.warning(
                f"[Dispatcher] {self.primary.name} exhausted, "
                f"falling back to {self.secondary.name}"
            )
            self._stats.secondary_fallbacks += 1
            outcome = await self._run_backend(
                self.secondary, self.secondary.models, request, state
            )

        if outcome is None:
            self._stats.exhausted += 1
            error = ExhaustionError(state.last_kind, state.last_message)
            logger.error(f"[Dispatcher] Exhausted: {error.details}")
            raise error

        self._stats.succeeded += 1
        return outcome

    async def _run_backend(
        self,
        backend: Backend,
        models: tuple[str, ...],
        request: GenerationRequest,
        state: _DispatchState,
    ) -> MergeOutcome | None:
        tried: set[int] = set()
        for _ in range(len(backend.pool)):
            entry = await backend.pool.next_available()
            if entry is None:
                logger.warning(f"[Dispatcher] {backend.name}: every credential is cooling down")
                return None
            if id(entry) in tried:
                # The cursor wrapped onto a credential this request already used
                return None
            tried.add(id(entry))

            for model in models:
                result = await self._try_model(backend, entry, model, request, state)

                if isinstance(result, MergeOutcome):
                    return result
                if result is FailureAction.ABORT_REQUEST:
                    state.aborted = True
                    return None
                if result is FailureAction.ADVANCE_CREDENTIAL:
                    break
                # ADVANCE_MODEL: fall through to the next model

        return None

    async def _try_model(
        self,
        backend: Backend,
        entry: CredentialEntry,
        model: str,
        request: GenerationRequest,
        state: _DispatchState,
    ) -> MergeOutcome | FailureAction:
        attempts = self.policy.attempts

        for attempt in range(1, attempts + 1):
            try:
                raw = await self._call(entry, model, request)
                return normalize_output(raw)
            except ProviderError as e:
                state.record(e)
                action = self.policy.action_for(e.kind)
                logger.warning(
                    f"[Dispatcher] {entry.label} {model} attempt {attempt}/{attempts} "
                    f"failed ({e.kind.value}): {e.details}"
                )

                if action is FailureAction.ADVANCE_CREDENTIAL:
                    await backend.pool.mark_cooldown(
                        entry, self.policy.cooldown_for(e.retry_after)
                    )
                if action is not FailureAction.RETRY_SAME:
                    return action

                if attempt < attempts:
                    await self._sleep(self.policy.backoff(attempt))

        return FailureAction.ADVANCE_MODEL

    async def _call(
        self,
        entry: CredentialEntry,
        model: str,
        request: GenerationRequest,
    ) -> str:
        """One provider call, bounded by the per-call deadline."""
        self._stats.provider_calls += 1
        call = entry.adapter.generate(
            request.prompt,
            model,
            entry.credential,
            request.temperature,
            request.max_output_tokens,
        )
        timeout = self.policy.call_timeout
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                ErrorKind.NETWORK,
                f"no answer within {timeout}s",
                provider=entry.adapter.name,
            ) from e

    def get_stats(self) -> "DispatchStats":
        return self._stats


@dataclass
class DispatchStats:
    """Dispatcher counters."""

    dispatches: int = 0
    succeeded: int = 0
    exhausted: int = 0
    secondary_fallbacks: int = 0
    provider_calls: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "dispatches": self.dispatches,
            "succeeded": self.succeeded,
            "exhausted": self.exhausted,
            "secondary_fallbacks": self.secondary_fallbacks,
            "provider_calls": self.provider_calls,
        }

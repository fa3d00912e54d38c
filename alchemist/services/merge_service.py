"""
MergeService - The request pipeline for element merges.

Owns every piece of shared state (pools, cache, throttle map, in-flight
dispatches) so handlers receive one object by reference instead of reaching
for module globals.

Pipeline per request:
    validate -> throttle -> cache lookup -> (miss) coalesced dispatch -> store
"""

from typing import Any, Callable

from loguru import logger

from alchemist.prompts import build_merge_prompt
from alchemist.providers.base import ProviderAdapter
from alchemist.providers.gemini import GeminiAdapter
from alchemist.providers.openai import OpenAIChatAdapter
from alchemist.services.cache import ResultCache, pair_key
from alchemist.services.deduplicator import RequestDeduplicator
from alchemist.services.dispatcher import Backend, FailoverDispatcher
from alchemist.services.errors import InputError
from alchemist.services.policy import DispatchPolicy
from alchemist.services.pool import ProviderPool
from alchemist.services.rate_limiter import CallerRateLimiter
from alchemist.services.types import GenerationRequest, MergeOutcome
from alchemist.settings import Settings


class MergeService:
    """
    Usage:
        service = MergeService.from_settings(global_settings)
        outcome = await service.merge("203.0.113.7", "Fire", "Water")
        await service.close()
    """

    def __init__(
        self,
        dispatcher: FailoverDispatcher,
        cache: ResultCache | None = None,
        rate_limiter: CallerRateLimiter | None = None,
        deduplicator: RequestDeduplicator | None = None,
        prompt_builder: Callable[[str, str], str] = build_merge_prompt,
        temperature: float = 0.7,
        max_output_tokens: int = 64,
    ):
        self.dispatcher = dispatcher
        self.cache = cache if cache is not None else ResultCache()
        self.rate_limiter = (
            rate_limiter if rate_limiter is not None else CallerRateLimiter()
        )
        self.deduplicator = (
            deduplicator if deduplicator is not None else RequestDeduplicator()
        )
        self._prompt_builder = prompt_builder
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "MergeService":
        """Build adapters, pools and policy from configuration."""
        gemini = GeminiAdapter(
            base_url=settings.gemini_base_url, timeout=settings.provider_timeout
        )
        credentials = settings.gemini_credentials
        if not credentials:
            logger.warning("No Gemini API key configured; primary pool is empty")
        primary = Backend(
            name=gemini.name,
            pool=ProviderPool.for_adapter(gemini, credentials),
            models=tuple(settings.gemini_models),
        )

        secondary = None
        if settings.has_secondary:
            openai = OpenAIChatAdapter(
                base_url=settings.openai_base_url, timeout=settings.provider_timeout
            )
            secondary = Backend(
                name=openai.name,
                pool=ProviderPool.for_adapter(openai, [settings.openai_api_key]),
                models=tuple(settings.openai_models),
            )

        policy = DispatchPolicy(
            attempts=settings.retry_attempts,
            backoff_base=settings.retry_backoff_ms / 1000,
            cooldown=settings.cooldown_seconds,
            call_timeout=settings.provider_timeout,
        )
        logger.info(
            f"Merge service: {len(credentials)} {primary.name} credential(s), "
            f"models={list(primary.models)}, "
            f"secondary={secondary.name if secondary else 'none'}"
        )

        return cls(
            dispatcher=FailoverDispatcher(primary, secondary, policy),
            cache=ResultCache(
                max_size=settings.cache_max_size,
                ttl=settings.cache_ttl_seconds or None,
            ),
            rate_limiter=CallerRateLimiter(window=settings.rate_limit_window_ms / 1000),
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
        )

    async def merge(
        self, caller_id: str, element_a: str | None, element_b: str | None
    ) -> MergeOutcome:
        """Resolve the merge of two elements.

        Raises:
            InputError: An element is missing or blank
            CallerRateLimitedError: The caller is throttled
            ExhaustionError: No provider produced an answer
        """
        if not element_a or not element_b or not element_a.strip() or not element_b.strip():
            raise InputError("element1 and element2 are required")
        element_a, element_b = element_a.strip(), element_b.strip()

        await self.rate_limiter.acquire(caller_id)

        key = pair_key(element_a, element_b)
        lookup = await self.cache.lookup(key)
        if lookup.hit and lookup.outcome is not None:
            return lookup.outcome

        return await self.deduplicator.dedupe(
            key, lambda: self._dispatch_and_store(key, element_a, element_b)
        )

    async def _dispatch_and_store(
        self, key: str, element_a: str, element_b: str
    ) -> MergeOutcome:
        # A coalesced duplicate may have finished between lookup and dedupe
        lookup = await self.cache.lookup(key)
        if lookup.hit and lookup.outcome is not None:
            return lookup.outcome

        request = GenerationRequest(
            prompt=self._prompt_builder(element_a, element_b),
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )
        outcome = await self.dispatcher.dispatch(request)
        await self.cache.store(key, outcome)
        logger.info(f"Merged {element_a!r} + {element_b!r} -> {outcome.text!r}")
        return outcome

    def adapters(self) -> list[ProviderAdapter]:
        """Distinct adapters across both backends."""
        backends = [self.dispatcher.primary, self.dispatcher.secondary]
        seen: dict[int, ProviderAdapter] = {}
        for backend in backends:
            if backend is None:
                continue
            for entry in backend.pool.entries:
                seen.setdefault(id(entry.adapter), entry.adapter)
        return list(seen.values())

    async def close(self) -> None:
        """Cancel in-flight dispatches and close adapters."""
        await self.deduplicator.cancel_all()
        for adapter in self.adapters():
            await adapter.close()
        logger.debug("MergeService closed")

    async def __aenter__(self) -> "MergeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def status(self) -> dict[str, Any]:
        """Health snapshot of every component."""
        secondary = self.dispatcher.secondary
        return {
            "cache": self.cache.get_stats().to_dict(),
            "primary": self.dispatcher.primary.pool.get_status(),
            "secondary": secondary.pool.get_status() if secondary else None,
            "dispatcher": self.dispatcher.get_stats().to_dict(),
            "deduplicator": self.deduplicator.get_stats().to_dict(),
            "rate_limiter": {
                "tracked_callers": len(self.rate_limiter),
                "rejected": self.rate_limiter.rejected,
            },
        }

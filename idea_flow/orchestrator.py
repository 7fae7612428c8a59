"""Sequential provider fallback with retry and exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Sequence

from .config import Settings
from .errors import (
    OrchestrationFailure,
    ProviderError,
    ProviderInvalidResponse,
    ProviderRateLimited,
    ProviderTimeout,
)
from .providers import GenerationOptions, TextProvider, build_providers

SleepFn = Callable[[float], Awaitable[Any]]
LoggerLike = logging.Logger | logging.LoggerAdapter


class Step(str, Enum):
    """States of the fallback loop."""

    ATTEMPT = "attempt"
    RETRY = "retry"
    ADVANCE = "advance"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ProviderSlot:
    """A provider together with its call options and retry budget."""

    provider: TextProvider
    options: GenerationOptions
    max_retries: int = 2

    @property
    def name(self) -> str:
        return self.provider.name


def next_step(error: ProviderError, attempt: int, max_retries: int) -> Step:
    """Decide what follows a failed attempt.

    Rate limits and timeouts are retried on the same provider until the retry
    budget is spent; every other failure moves on to the next provider.
    """

    if isinstance(error, (ProviderRateLimited, ProviderTimeout)) and attempt < max_retries:
        return Step.RETRY
    return Step.ADVANCE


class ProviderOrchestrator:
    """Try providers in priority order until one returns usable text."""

    def __init__(
        self,
        slots: Sequence[ProviderSlot],
        *,
        backoff_base_ms: int = 500,
        backoff_cap_ms: int = 8_000,
        max_response_chars: int = 60_000,
        sleep: SleepFn = asyncio.sleep,
        logger: LoggerLike | None = None,
    ) -> None:
        self.slots = list(slots)
        self.backoff_base_ms = backoff_base_ms
        self.backoff_cap_ms = backoff_cap_ms
        self.max_response_chars = max_response_chars
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        providers: Sequence[TextProvider] | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        logger: LoggerLike | None = None,
    ) -> "ProviderOrchestrator":
        """Pair configured providers with their per-provider options.

        When *providers* is given it must line up with ``settings.providers``
        by name; unknown names fall back to the global defaults.
        """

        providers = list(providers) if providers is not None else build_providers(settings)
        by_name = {provider.name: provider for provider in settings.providers}
        slots = []
        for provider in providers:
            configured = by_name.get(provider.name)
            slots.append(
                ProviderSlot(
                    provider=provider,
                    options=GenerationOptions(
                        max_tokens=settings.max_tokens,
                        temperature=settings.temperature,
                        timeout_ms=configured.timeout_ms if configured else 30_000,
                    ),
                    max_retries=configured.max_retries if configured else 2,
                )
            )
        return cls(
            slots,
            backoff_base_ms=settings.backoff_base_ms,
            backoff_cap_ms=settings.backoff_cap_ms,
            max_response_chars=settings.max_response_chars,
            sleep=sleep,
            logger=logger,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt + 1``."""

        delay_ms = min(self.backoff_base_ms * (2 ** attempt), self.backoff_cap_ms)
        return delay_ms / 1000

    def _check_sanity(self, provider: str, text: str) -> str:
        stripped = text.strip() if isinstance(text, str) else ""
        if not stripped:
            raise ProviderInvalidResponse(provider, "Response is empty.")
        if len(stripped) > self.max_response_chars:
            raise ProviderInvalidResponse(
                provider,
                f"Response exceeds {self.max_response_chars} characters.",
                context={"length": len(stripped)},
            )
        return text

    async def generate_with_fallback(
        self,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        *,
        logger: LoggerLike | None = None,
    ) -> str:
        """Return the first sane response, or raise ``OrchestrationFailure``."""

        log = logger or self._logger
        attempted: List[str] = []
        last_error: ProviderError | None = None
        result = ""
        index = 0
        attempt = 0
        step = Step.ATTEMPT if self.slots else Step.EXHAUSTED

        if context:
            log.debug("Orchestrating generation with context keys: %s", sorted(context))

        while True:
            if step is Step.ATTEMPT:
                slot = self.slots[index]
                if slot.name not in attempted:
                    attempted.append(slot.name)
                try:
                    text = await slot.provider.generate(prompt, slot.options, logger=log)
                    result = self._check_sanity(slot.name, text)
                except ProviderError as exc:
                    last_error = exc
                    step = next_step(exc, attempt, slot.max_retries)
                    log.warning(
                        "Provider %s failed on attempt %d (%s); next step: %s",
                        slot.name,
                        attempt + 1,
                        exc.code,
                        step.value,
                    )
                else:
                    step = Step.SUCCESS

            elif step is Step.RETRY:
                delay = self.backoff_delay(attempt)
                log.info("Retrying provider %s in %.2fs", self.slots[index].name, delay)
                await self._sleep(delay)
                attempt += 1
                step = Step.ATTEMPT

            elif step is Step.ADVANCE:
                index += 1
                attempt = 0
                step = Step.ATTEMPT if index < len(self.slots) else Step.EXHAUSTED

            elif step is Step.SUCCESS:
                log.info("Provider %s produced %d characters", self.slots[index].name, len(result))
                return result

            else:
                log.error("All providers failed: %s", ", ".join(attempted) or "none configured")
                raise OrchestrationFailure(attempted, last_error)

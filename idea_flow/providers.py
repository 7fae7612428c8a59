"""Provider adapters that turn a prompt into raw text.

Each adapter performs exactly one outbound call per ``generate`` and maps
vendor failures onto the ``Provider*`` errors. Retrying is left to the
orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Protocol

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from .config import ProviderSettings, Settings
from .errors import (
    ProviderInvalidResponse,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
)

SYSTEM_PROMPT = (
    "You are an expert small business advisor who writes practical, "
    "SBA-style business plans for first-time founders."
)


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation knobs."""

    max_tokens: int = 2_500
    temperature: float = 0.7
    timeout_ms: int = 30_000


class TextProvider(Protocol):
    """Anything that can turn a prompt into raw text."""

    name: str

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
        *,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> str:
        ...


class OpenAICompatibleProvider:
    """Adapter for OpenAI and vendors exposing an OpenAI-compatible API."""

    def __init__(
        self,
        name: str,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.model = model
        self.system_prompt = system_prompt
        # SDK-level retries are disabled; the orchestrator owns retry policy.
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> "OpenAICompatibleProvider":
        return cls(
            settings.name,
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url,
        )

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
        *,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> str:
        """Send *prompt* and return the message text.

        *logger* replaces the adapter logger for this call.

        Raises
        ------
        ProviderTimeout
            The call did not finish within ``options.timeout_ms``.
        ProviderRateLimited
            The vendor answered with a rate-limit error.
        ProviderUnavailable
            Transport, authentication or server-side failure.
        ProviderInvalidResponse
            The vendor answered without usable text.
        """

        log = logger or self.logger
        timeout_s = options.timeout_ms / 1000
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "user", "content": prompt.strip()},
                    ],
                    temperature=options.temperature,
                    max_tokens=options.max_tokens,
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, APITimeoutError) as exc:
            raise ProviderTimeout(
                self.name,
                f"No response within {options.timeout_ms} ms.",
                context={"timeout_ms": options.timeout_ms},
            ) from exc
        except RateLimitError as exc:
            raise ProviderRateLimited(self.name, str(exc), context={"status_code": exc.status_code}) from exc
        except APIStatusError as exc:
            raise ProviderUnavailable(self.name, str(exc), context={"status_code": exc.status_code}) from exc
        except APIConnectionError as exc:
            raise ProviderUnavailable(self.name, f"Connection failed: {exc}") from exc
        except APIError as exc:
            raise ProviderUnavailable(self.name, str(exc)) from exc

        choices = getattr(response, "choices", None) or []
        message = choices[0].message.content if choices else None
        if not isinstance(message, str) or not message.strip():
            raise ProviderInvalidResponse(self.name, "Provider returned an empty or non-text payload.")
        log.debug("Provider %s returned %d characters", self.name, len(message))
        return message


def build_providers(settings: Settings) -> List[OpenAICompatibleProvider]:
    """Instantiate adapters for every configured provider, in priority order."""

    return [OpenAICompatibleProvider.from_settings(provider) for provider in settings.providers]

"""Configuration helpers for the idea generation pipeline."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Mapping, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

ENV_PREFIX = "IDEAFLOW_"
OTHER_PROVIDER_PREFIX = "IDEAFLOW_LLM_"
OTHER_PROVIDER_SUFFIX = "_API_KEY"
OTHER_PROVIDER_URL_SUFFIX = "_BASE_URL"

PARSER_MODES = ("strict", "lenient")

load_dotenv(override=False)


@dataclass(frozen=True)
class KnownProvider:
    """Connection defaults for a vendor reachable through the OpenAI SDK."""

    env_key: str
    base_url: str | None
    model: str


# Default priority order when IDEAFLOW_PROVIDER_PRIORITY is not set.
KNOWN_PROVIDERS: Dict[str, KnownProvider] = {
    "openai": KnownProvider("OPENAI_API_KEY", None, "gpt-4o-mini"),
    "anthropic": KnownProvider("ANTHROPIC_API_KEY", "https://api.anthropic.com/v1/", "claude-3-5-haiku-latest"),
    "gemini": KnownProvider(
        "GEMINI_API_KEY",
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        "gemini-2.0-flash",
    ),
    "perplexity": KnownProvider("PERPLEXITY_API_KEY", "https://api.perplexity.ai", "sonar"),
}

DEFAULT_OTHER_MODEL = "gpt-4o-mini"

# Category -> (low ceiling, medium ceiling) applied to the budget maximum.
DEFAULT_RISK_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "default": (10_000, 50_000),
    "Tech": (5_000, 30_000),
    "Retail": (8_000, 40_000),
    "Service": (10_000, 60_000),
    "Food": (5_000, 40_000),
    "Creative": (5_000, 25_000),
    "Education": (10_000, 50_000),
    "Consulting": (15_000, 75_000),
}


@dataclass(frozen=True)
class ProviderSettings:
    """Everything needed to call a single provider."""

    name: str
    api_key: str
    model: str
    base_url: str | None = None
    timeout_ms: int = 30_000
    max_retries: int = 2


@dataclass(frozen=True)
class Settings:
    """Settings container for the generation pipeline.

    ``providers`` is already filtered to vendors with credentials and sorted
    by priority, so the orchestrator can walk it front to back.
    """

    providers: Tuple[ProviderSettings, ...] = ()
    backoff_base_ms: int = 500
    backoff_cap_ms: int = 8_000
    max_response_chars: int = 60_000
    parser_mode: str = "lenient"
    placeholder_text: str = "Not specified"
    budget_multiplier: float = 3.0
    risk_thresholds: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_RISK_THRESHOLDS)
    )
    max_tokens: int = 2_500
    temperature: float = 0.7
    allowed_origins: Tuple[str, ...] = ()
    log_level: str = "INFO"

    @property
    def strict_parsing(self) -> bool:
        """True when missing plan sections should fail the request."""

        return self.parser_mode == "strict"

    @property
    def provider_names(self) -> List[str]:
        return [provider.name for provider in self.providers]

    @property
    def has_any_keys(self) -> bool:
        """True when at least one provider API key is configured."""

        return bool(self.providers)


def _env_int(environ: Mapping[str, str], key: str, default: int, *, minimum: int = 0) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}.", context={"key": key}) from exc
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}.", context={"key": key})
    return value


def _env_float(environ: Mapping[str, str], key: str, default: float, *, minimum: float = 0.0) -> float:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}.", context={"key": key}) from exc
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}.", context={"key": key})
    return value


def _split_list(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _extract_additional_providers(environ: Mapping[str, str]) -> Dict[str, Tuple[str, str]]:
    """Collect ``IDEAFLOW_LLM_<NAME>_API_KEY`` / ``_BASE_URL`` pairs."""

    discovered: Dict[str, Tuple[str, str]] = {}
    for env_key, value in environ.items():
        if not env_key.startswith(OTHER_PROVIDER_PREFIX) or not env_key.endswith(OTHER_PROVIDER_SUFFIX):
            continue

        provider = env_key[len(OTHER_PROVIDER_PREFIX) : -len(OTHER_PROVIDER_SUFFIX)].lower()
        if provider in KNOWN_PROVIDERS or not value:
            continue
        base_url = environ.get(f"{OTHER_PROVIDER_PREFIX}{provider.upper()}{OTHER_PROVIDER_URL_SUFFIX}")
        if not base_url:
            raise ConfigurationError(
                f"Provider '{provider}' has an API key but no "
                f"{OTHER_PROVIDER_PREFIX}{provider.upper()}{OTHER_PROVIDER_URL_SUFFIX}.",
                context={"provider": provider},
            )
        discovered[provider] = (value, base_url)
    return discovered


def _resolve_providers(environ: Mapping[str, str]) -> Tuple[ProviderSettings, ...]:
    default_timeout = _env_int(environ, f"{ENV_PREFIX}TIMEOUT_MS", 30_000, minimum=1)
    default_retries = _env_int(environ, f"{ENV_PREFIX}MAX_RETRIES", 2)
    additional = _extract_additional_providers(environ)

    available: Dict[str, Tuple[str, str | None, str]] = {}
    for name, known in KNOWN_PROVIDERS.items():
        api_key = environ.get(known.env_key)
        if api_key:
            available[name] = (api_key, known.base_url, known.model)
    for name in sorted(additional):
        api_key, base_url = additional[name]
        available[name] = (api_key, base_url, DEFAULT_OTHER_MODEL)

    priority = [name.lower() for name in _split_list(environ.get(f"{ENV_PREFIX}PROVIDER_PRIORITY"))]
    ordered = priority or list(available)

    providers: List[ProviderSettings] = []
    for name in ordered:
        if name not in available or any(p.name == name for p in providers):
            continue
        api_key, base_url, model = available[name]
        upper = name.upper()
        providers.append(
            ProviderSettings(
                name=name,
                api_key=api_key,
                model=environ.get(f"{ENV_PREFIX}{upper}_MODEL") or model,
                base_url=base_url,
                timeout_ms=_env_int(environ, f"{ENV_PREFIX}{upper}_TIMEOUT_MS", default_timeout, minimum=1),
                max_retries=_env_int(environ, f"{ENV_PREFIX}{upper}_MAX_RETRIES", default_retries),
            )
        )
    return tuple(providers)


def _resolve_risk_thresholds(raw: str | None) -> Dict[str, Tuple[float, float]]:
    thresholds = dict(DEFAULT_RISK_THRESHOLDS)
    if not raw:
        return thresholds
    try:
        overrides = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError("IDEAFLOW_RISK_THRESHOLDS must be a JSON object.") from exc
    if not isinstance(overrides, dict):
        raise ConfigurationError("IDEAFLOW_RISK_THRESHOLDS must be a JSON object.")

    for category, bounds in overrides.items():
        try:
            low, medium = (float(bound) for bound in bounds)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Risk thresholds for {category!r} must be a [low, medium] pair.",
                context={"category": category},
            ) from exc
        if low < 0 or low > medium:
            raise ConfigurationError(
                f"Risk thresholds for {category!r} must satisfy 0 <= low <= medium.",
                context={"category": category},
            )
        thresholds[category] = (low, medium)
    return thresholds


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from *environ* (defaults to ``os.environ``)."""

    environ = os.environ if environ is None else environ

    parser_mode = (environ.get(f"{ENV_PREFIX}PARSER_MODE") or "lenient").strip().lower()
    if parser_mode not in PARSER_MODES:
        raise ConfigurationError(
            f"IDEAFLOW_PARSER_MODE must be one of {', '.join(PARSER_MODES)}, got {parser_mode!r}."
        )

    backoff_base_ms = _env_int(environ, f"{ENV_PREFIX}BACKOFF_BASE_MS", 500)
    backoff_cap_ms = _env_int(environ, f"{ENV_PREFIX}BACKOFF_CAP_MS", 8_000)
    if backoff_cap_ms < backoff_base_ms:
        raise ConfigurationError("IDEAFLOW_BACKOFF_CAP_MS must not be below IDEAFLOW_BACKOFF_BASE_MS.")

    multiplier = _env_float(environ, f"{ENV_PREFIX}BUDGET_MULTIPLIER", 3.0)
    if multiplier < 1:
        raise ConfigurationError("IDEAFLOW_BUDGET_MULTIPLIER must be at least 1.")

    return Settings(
        providers=_resolve_providers(environ),
        backoff_base_ms=backoff_base_ms,
        backoff_cap_ms=backoff_cap_ms,
        max_response_chars=_env_int(environ, f"{ENV_PREFIX}MAX_RESPONSE_CHARS", 60_000, minimum=1),
        parser_mode=parser_mode,
        placeholder_text=environ.get(f"{ENV_PREFIX}PLACEHOLDER_TEXT") or "Not specified",
        budget_multiplier=multiplier,
        risk_thresholds=_resolve_risk_thresholds(environ.get(f"{ENV_PREFIX}RISK_THRESHOLDS")),
        max_tokens=_env_int(environ, f"{ENV_PREFIX}MAX_TOKENS", 2_500, minimum=1),
        temperature=_env_float(environ, f"{ENV_PREFIX}TEMPERATURE", 0.7),
        allowed_origins=tuple(_split_list(environ.get(f"{ENV_PREFIX}ALLOWED_ORIGINS"))),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read environment variables and return cached settings."""

    return load_settings()

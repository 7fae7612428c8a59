"""Exception hierarchy and the returned failure value for idea generation.

Provider errors are raised by the adapters and absorbed by the orchestrator.
Everything that reaches the pipeline boundary is converted into a
``GenerationFailure`` so callers can branch on ``code`` without handling
exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence


class IdeaFlowError(Exception):
    """Base exception for all idea generation errors.

    Parameters
    ----------
    code : str
        Stable machine-readable error code.
    message : str
        Human-readable description.
    context : Mapping[str, Any] | None
        Structured, log-safe context.
    transient : bool
        True when retrying the same operation may succeed.
    """

    code = "IDEA_FLOW_ERROR"
    transient = False

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        transient: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        if transient is not None:
            self.transient = bool(transient)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Return a log-safe dictionary representation of the error."""
        return {
            "error_code": self.code,
            "message": self.message,
            "context": self.context,
            "is_transient": self.transient,
        }


class ConfigurationError(IdeaFlowError):
    """Raised for invalid or missing configuration."""

    code = "CONFIGURATION_ERROR"


class ProviderError(IdeaFlowError):
    """Base class for normalized provider failures."""

    code = "PROVIDER_ERROR"
    transient = True

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        merged = {"provider": provider, **(context or {})}
        super().__init__(message, context=merged)
        self.provider = provider


class ProviderTimeout(ProviderError):
    """The provider did not answer within the configured timeout."""

    code = "PROVIDER_TIMEOUT"


class ProviderRateLimited(ProviderError):
    """The provider rejected the call because of rate limiting."""

    code = "PROVIDER_RATE_LIMITED"


class ProviderUnavailable(ProviderError):
    """Transport, auth or server-side failure; try the next provider."""

    code = "PROVIDER_UNAVAILABLE"


class ProviderInvalidResponse(ProviderError):
    """The provider answered with an empty or non-text payload."""

    code = "PROVIDER_INVALID_RESPONSE"


class OrchestrationFailure(IdeaFlowError):
    """Every configured provider failed for this request."""

    code = "ORCHESTRATION_FAILURE"

    def __init__(
        self,
        attempted_providers: Sequence[str],
        last_error: IdeaFlowError | None,
    ) -> None:
        self.attempted_providers = list(attempted_providers)
        self.last_error = last_error
        if not self.attempted_providers:
            message = "No AI providers are configured."
        else:
            message = f"All providers failed: {', '.join(self.attempted_providers)}."
        super().__init__(
            message,
            context={
                "attempted_providers": self.attempted_providers,
                "last_error": last_error.to_dict() if last_error else None,
            },
        )


class ParseFailure(IdeaFlowError):
    """Strict-mode parse found plan sections with no content."""

    code = "PARSE_FAILURE"

    def __init__(self, missing_fields: Sequence[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Missing plan sections: {', '.join(self.missing_fields)}.",
            context={"missing_fields": self.missing_fields},
        )


class SchemaViolation(IdeaFlowError):
    """A classified idea broke a schema invariant; indicates a bug."""

    code = "SCHEMA_VIOLATION"

    def __init__(self, message: str, *, fields: Sequence[str] = ()) -> None:
        self.fields = list(fields)
        super().__init__(message, context={"fields": self.fields})


@dataclass(frozen=True)
class GenerationFailure:
    """Typed failure returned by the pipeline instead of raising."""

    stage: str
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    error: IdeaFlowError | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_error(cls, stage: str, error: IdeaFlowError) -> "GenerationFailure":
        """Wrap *error* raised while the pipeline was in *stage*."""

        return cls(
            stage=stage,
            code=error.code,
            message=error.message,
            context=dict(error.context),
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "stage": self.stage,
            "error_code": self.code,
            "message": self.message,
            "context": self.context,
        }

"""Public entry point: preferences in, validated ``BusinessIdea`` out."""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Callable, List, Union

from pydantic import ValidationError

from .classification import Classification, ClassificationRules, classify
from .config import Settings, get_settings
from .errors import GenerationFailure, IdeaFlowError, SchemaViolation
from .orchestrator import ProviderOrchestrator
from .parser import DEFAULT_PLACEHOLDER, PlanDraft, parse_plan
from .prompts import build_idea_prompt
from .schemas import BusinessIdea, Category, PlanSection, UserPreferences

GenerationResult = Union[BusinessIdea, GenerationFailure]


class PipelineStage(str, Enum):
    """Forward-only stages of a single generation request."""

    BUILDING_PROMPT = "building_prompt"
    AWAITING_PROVIDER = "awaiting_provider"
    PARSING = "parsing"
    CLASSIFYING = "classifying"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


def _new_idea_id() -> str:
    return uuid.uuid4().hex


def _fallback_title(preferences: UserPreferences, category: Category) -> str:
    focus = (preferences.interests or preferences.skills or (category.value,))[0]
    return f"{focus.strip().title()} {category.value} Venture"


class BusinessIdeaPipeline:
    """Drive prompt building, provider fallback, parsing and classification."""

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        *,
        strict: bool = False,
        placeholder: str = DEFAULT_PLACEHOLDER,
        rules: ClassificationRules | None = None,
        id_factory: Callable[[], str] = _new_idea_id,
        logger: logging.Logger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.strict = strict
        self.placeholder = placeholder
        self.rules = rules or ClassificationRules()
        self._id_factory = id_factory
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        orchestrator: ProviderOrchestrator | None = None,
        **kwargs,
    ) -> "BusinessIdeaPipeline":
        settings = settings or get_settings()
        return cls(
            orchestrator or ProviderOrchestrator.from_settings(settings),
            strict=settings.strict_parsing,
            placeholder=settings.placeholder_text,
            rules=ClassificationRules.from_settings(settings),
            **kwargs,
        )

    def _assemble(
        self,
        idea_id: str,
        draft: PlanDraft,
        classification: Classification,
        preferences: UserPreferences,
    ) -> BusinessIdea:
        title = draft.title or _fallback_title(preferences, classification.category)
        description = draft.description or draft.plan.executive_summary.content
        skills = draft.skills or preferences.skills
        try:
            idea = BusinessIdea(
                id=idea_id,
                title=title,
                category=classification.category,
                description=description,
                skills=skills,
                initial_budget=classification.initial_budget,
                market_risk=classification.market_risk,
                timeframe=classification.timeframe,
                plan=draft.plan,
            )
        except ValidationError as exc:
            fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
            raise SchemaViolation(f"Assembled idea failed validation: {exc.error_count()} error(s).", fields=fields) from exc
        self._validate(idea)
        return idea

    @staticmethod
    def _validate(idea: BusinessIdea) -> None:
        """Re-check invariants the models already encode."""

        problems: List[str] = []
        if not isinstance(idea.category, Category):
            problems.append("category")
        budget = idea.initial_budget
        if budget.min < 0 or budget.max < 0 or budget.min > budget.max:
            problems.append("initial_budget")
        for key in PlanSection:
            section = idea.plan.section(key)
            if not section.content.strip():
                problems.append(f"plan.{key.value}")
        if problems:
            raise SchemaViolation("Business idea breaks schema invariants.", fields=problems)

    async def generate_business_idea(self, preferences: UserPreferences) -> GenerationResult:
        """Generate one idea, returning a ``GenerationFailure`` instead of raising.

        Cancellation of the calling task propagates unchanged.
        """

        idea_id = self._id_factory()
        log = logging.LoggerAdapter(self._logger, {"idea_id": idea_id})
        stage = PipelineStage.BUILDING_PROMPT

        try:
            prompt = build_idea_prompt(preferences)

            stage = PipelineStage.AWAITING_PROVIDER
            raw_text = await self.orchestrator.generate_with_fallback(
                prompt,
                {
                    "skills": list(preferences.skills),
                    "interests": list(preferences.interests),
                    "risk_tolerance": preferences.risk_tolerance.value,
                },
                logger=log,
            )

            stage = PipelineStage.PARSING
            draft = parse_plan(raw_text, strict=self.strict, placeholder=self.placeholder, logger=log)
            if draft.repaired_sections:
                log.info(
                    "Filled %d missing section(s) with placeholders: %s",
                    len(draft.repaired_sections),
                    ", ".join(section.value for section in draft.repaired_sections),
                )

            stage = PipelineStage.CLASSIFYING
            classification = classify(draft, preferences, self.rules)

            stage = PipelineStage.VALIDATING
            idea = self._assemble(idea_id, draft, classification, preferences)
        except ValidationError as exc:
            # Parsing and classification build models too; a rejection there is a bug.
            fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
            violation = SchemaViolation(f"Invalid intermediate model during {stage.value}.", fields=fields)
            log.error("Pipeline %s during %s: %s", PipelineStage.FAILED.value, stage.value, violation)
            return GenerationFailure.from_error(stage.value, violation)
        except IdeaFlowError as exc:
            log.warning("Pipeline %s during %s: %s", PipelineStage.FAILED.value, stage.value, exc)
            return GenerationFailure.from_error(stage.value, exc)

        stage = PipelineStage.DONE
        log.info("Pipeline %s: idea %r (%s, %s risk)", stage.value, idea.title, idea.category.value, idea.market_risk.value)
        return idea


async def generate_business_idea(
    preferences: UserPreferences,
    *,
    pipeline: BusinessIdeaPipeline | None = None,
) -> GenerationResult:
    """Convenience wrapper building the pipeline from environment settings."""

    pipeline = pipeline or BusinessIdeaPipeline.from_settings()
    return await pipeline.generate_business_idea(preferences)

from __future__ import annotations

import dataclasses
from typing import Iterable, List, Sequence

import pytest

from idea_flow.config import get_settings
from idea_flow.errors import ProviderError
from idea_flow.parser import PlanDraft, parse_plan
from idea_flow.providers import GenerationOptions
from idea_flow.schemas import PlanSection, UserPreferences


PREAMBLE = """Title: Sweet Crumbs Bakery
Category: Food
Description: A home-based artisan bakery selling sourdough and pastries at weekend farmers markets.
Skills: baking, food safety, customer service
Short-term (1-3 months): Obtain a cottage food licence and test recipes with neighbours.
Medium-term (3-12 months): Sell weekly at two farmers markets and take custom cake orders.
Long-term (1-3 years): Open a small storefront with a part-time assistant.
"""

SECTION_BODIES = {
    PlanSection.EXECUTIVE_SUMMARY: "Sweet Crumbs Bakery turns a passion for baking into a profitable weekend business.",
    PlanSection.COMPANY_DESCRIPTION: "A sole proprietorship operating from a licensed home kitchen.",
    PlanSection.MARKET_ANALYSIS: "Local farmers markets draw 2,000 visitors each weekend with few artisan bread stalls.",
    PlanSection.ORGANIZATION_AND_MANAGEMENT: "The founder handles baking and sales with help from family on market days.",
    PlanSection.SERVICE_OR_PRODUCT_LINE: "Sourdough loaves, seasonal pastries and custom celebration cakes.",
    PlanSection.MARKETING_AND_SALES: "Instagram posts, market tastings and a loyalty card for repeat buyers.",
    PlanSection.FUNDING_REQUEST: "No outside funding is required; personal savings cover the equipment.",
    PlanSection.FINANCIAL_PROJECTIONS: "Year one revenue of $18,000 with a 45% gross margin.",
    PlanSection.APPENDIX: "Cottage food licence checklist and supplier price list.",
}


def render_plan(*, omit: Iterable[PlanSection] = (), preamble: str = PREAMBLE) -> str:
    """Render a well-formed provider answer, optionally dropping sections."""

    skipped = set(omit)
    blocks = [preamble.strip()]
    for section in PlanSection:
        if section in skipped:
            continue
        blocks.append(f"## {section.title}\n{SECTION_BODIES[section]}")
    return "\n\n".join(blocks) + "\n"


WELL_FORMED_RESPONSE = render_plan()


class ScriptedProvider:
    """Provider double that replays a fixed list of outcomes."""

    def __init__(self, name: str, outcomes: Sequence[object]) -> None:
        self.name = name
        self._outcomes: List[object] = list(outcomes)
        self.calls = 0
        self.prompts: List[str] = []
        self.options: List[GenerationOptions] = []
        self.loggers: List[object] = []

    async def generate(self, prompt: str, options: GenerationOptions, *, logger: object = None) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        self.options.append(options)
        self.loggers.append(logger)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, ProviderError):
            raise outcome
        return outcome


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure cached settings do not leak between tests."""

    get_settings.cache_clear()


@pytest.fixture
def baking_preferences() -> UserPreferences:
    return UserPreferences(
        skills=["baking"],
        budget_range={"min": 500, "max": 2000},
        risk_tolerance="low",
        interests=["food"],
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


def make_draft(**overrides: object) -> PlanDraft:
    """Parse the well-formed answer and override selected draft fields."""

    draft = parse_plan(WELL_FORMED_RESPONSE)
    return dataclasses.replace(draft, **overrides)

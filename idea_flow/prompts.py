"""Prompt template for business idea generation."""

from __future__ import annotations

from textwrap import dedent
from typing import Iterable

from .schemas import Category, MarketRisk, PlanSection, UserPreferences

IDEA_PROMPT_TEMPLATE = dedent(
    """
    Propose one realistic business idea for a founder with this profile:

    - Skills: {skills}
    - Interests: {interests}
    - Available budget: {budget_min} to {budget_max}
    - Risk tolerance: {risk_tolerance}

    Start with these labelled lines, one per line:
    Title: <short business name>
    Category: <one of {categories}>
    Description: <one or two sentences>
    Skills: <comma-separated skills the business needs>
    Initial Budget: <$min - $max>
    Market Risk: <one of {risks}>
    Short-term (1-3 months): <concrete milestones>
    Medium-term (3-12 months): <concrete milestones>
    Long-term (1-3 years): <concrete milestones>

    Then write the business plan using exactly these markdown headings, in order,
    with at least one paragraph under each:
    {section_headings}

    Keep the plan practical for the stated budget and risk tolerance.
    """
).strip()


def _format_terms(terms: Iterable[str], fallback: str) -> str:
    joined = ", ".join(terms)
    return joined or fallback


def _format_amount(value: float) -> str:
    return f"${value:,.0f}"


def build_idea_prompt(preferences: UserPreferences) -> str:
    """Render the generation prompt for *preferences*.

    The template asks for the metadata labels and the nine SBA headings the
    parser looks for, but the parser does not rely on the model following it.
    """

    budget = preferences.budget_range
    return IDEA_PROMPT_TEMPLATE.format(
        skills=_format_terms(preferences.skills, "not specified"),
        interests=_format_terms(preferences.interests, "open to any industry"),
        budget_min=_format_amount(budget.min),
        budget_max=_format_amount(budget.max),
        risk_tolerance=preferences.risk_tolerance.value,
        categories=", ".join(category.value for category in Category),
        risks=", ".join(risk.value for risk in MarketRisk),
        section_headings="\n".join(f"## {section.title}" for section in PlanSection),
    )

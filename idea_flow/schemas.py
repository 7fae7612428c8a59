"""Pydantic models and enums for generated business ideas and plans."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    """Closed set of business categories an idea can belong to."""

    TECH = "Tech"
    RETAIL = "Retail"
    SERVICE = "Service"
    FOOD = "Food"
    CREATIVE = "Creative"
    EDUCATION = "Education"
    CONSULTING = "Consulting"


class MarketRisk(str, Enum):
    """Closed set of market risk bands."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RiskTolerance(str, Enum):
    """How much risk the user is willing to take on."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlanSection(str, Enum):
    """The nine SBA business plan components, in document order."""

    EXECUTIVE_SUMMARY = "executive_summary"
    COMPANY_DESCRIPTION = "company_description"
    MARKET_ANALYSIS = "market_analysis"
    ORGANIZATION_AND_MANAGEMENT = "organization_and_management"
    SERVICE_OR_PRODUCT_LINE = "service_or_product_line"
    MARKETING_AND_SALES = "marketing_and_sales"
    FUNDING_REQUEST = "funding_request"
    FINANCIAL_PROJECTIONS = "financial_projections"
    APPENDIX = "appendix"

    @property
    def title(self) -> str:
        """Return the heading used for the section in prompts and placeholders."""
        section_titles = {
            PlanSection.EXECUTIVE_SUMMARY: "Executive Summary",
            PlanSection.COMPANY_DESCRIPTION: "Company Description",
            PlanSection.MARKET_ANALYSIS: "Market Analysis",
            PlanSection.ORGANIZATION_AND_MANAGEMENT: "Organization and Management",
            PlanSection.SERVICE_OR_PRODUCT_LINE: "Service or Product Line",
            PlanSection.MARKETING_AND_SALES: "Marketing and Sales",
            PlanSection.FUNDING_REQUEST: "Funding Request",
            PlanSection.FINANCIAL_PROJECTIONS: "Financial Projections",
            PlanSection.APPENDIX: "Appendix",
        }
        return section_titles[self]

    @property
    def alias(self) -> str:
        """The camelCase key used for the section in JSON payloads."""
        return to_camel(self.value)


class _Model(BaseModel):
    """Shared config: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class SBASection(_Model):
    """A single titled section of a business plan."""

    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)

    @field_validator("title", "content", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class Timeframe(_Model):
    """Milestones for the 1-3 month, 3-12 month and 1-3 year horizons."""

    short_term: str = Field(..., min_length=1)
    medium_term: str = Field(..., min_length=1)
    long_term: str = Field(..., min_length=1)

    @field_validator("short_term", "medium_term", "long_term", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class BusinessPlan(_Model):
    """Fixed nine-section SBA business plan."""

    executive_summary: SBASection
    company_description: SBASection
    market_analysis: SBASection
    organization_and_management: SBASection
    service_or_product_line: SBASection
    marketing_and_sales: SBASection
    funding_request: SBASection
    financial_projections: SBASection
    appendix: SBASection

    def section(self, key: PlanSection) -> SBASection:
        """Return the section stored under *key*."""

        return getattr(self, key.value)

    def sections(self) -> List[Tuple[PlanSection, SBASection]]:
        """Return all nine sections in document order."""

        return [(key, self.section(key)) for key in PlanSection]


class BudgetRange(_Model):
    """Inclusive budget bounds in US dollars."""

    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "BudgetRange":
        if self.min > self.max:
            raise ValueError(f"budget min ({self.min}) exceeds max ({self.max})")
        return self


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    """Strip, drop blanks and case-insensitive duplicates, keep first-seen order."""

    seen = set()
    result = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return tuple(result)


class BusinessIdea(_Model):
    """Aggregate root produced once per successful generation call."""

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    category: Category
    description: str = Field(..., min_length=1)
    skills: Tuple[str, ...] = ()
    initial_budget: BudgetRange
    market_risk: MarketRisk
    timeframe: Timeframe
    plan: BusinessPlan

    @field_validator("skills", mode="before")
    @classmethod
    def _unique_skills(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set, frozenset)):
            return _dedupe(str(item) for item in value)
        return value


class UserPreferences(_Model):
    """Inputs supplied by the user when asking for a new idea."""

    skills: Tuple[str, ...] = Field(default=(), description="Skills the founder brings.")
    budget_range: BudgetRange = Field(..., description="Budget the founder can commit.")
    risk_tolerance: RiskTolerance = Field(default=RiskTolerance.MEDIUM)
    interests: Tuple[str, ...] = Field(default=(), description="Industries or themes of interest.")

    @field_validator("skills", "interests", mode="before")
    @classmethod
    def _unique_terms(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple, set, frozenset)):
            return _dedupe(str(item) for item in value)
        return value

    @field_validator("risk_tolerance", mode="before")
    @classmethod
    def _lower_risk(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

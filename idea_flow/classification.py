"""Deterministic rules for category, market risk, budget and timeframe.

Every function here is a pure function of the parsed draft, the user's
preferences and the ``ClassificationRules`` table, so repeated calls with
the same inputs always agree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Pattern, Tuple

from .config import DEFAULT_RISK_THRESHOLDS, Settings
from .parser import PlanDraft
from .schemas import BudgetRange, Category, MarketRisk, Timeframe, UserPreferences

FALLBACK_CATEGORY = Category.CONSULTING

CATEGORY_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.TECH: (
        "tech", "technology", "software", "app", "saas", "web", "website", "digital", "ai",
        "data", "programming", "coding", "developer", "development", "cybersecurity",
        "mobile", "computer", "electronics", "automation", "online platform",
    ),
    Category.RETAIL: (
        "retail", "store", "shop", "ecommerce", "e-commerce", "boutique", "merchandise",
        "resale", "reselling", "wholesale", "marketplace", "dropshipping", "thrift",
    ),
    Category.SERVICE: (
        "cleaning", "repair", "maintenance", "delivery", "childcare", "elder care", "pet",
        "fitness", "beauty", "salon", "landscaping", "gardening", "handyman", "plumbing",
        "moving", "logistics", "personal training", "event planning",
    ),
    Category.FOOD: (
        "food", "bakery", "baking", "baker", "restaurant", "cafe", "coffee", "catering",
        "cooking", "culinary", "chef", "beverage", "kitchen", "meal", "pastry", "brewing",
        "food truck", "snack", "dessert",
    ),
    Category.CREATIVE: (
        "creative", "design", "graphic design", "art", "artist", "photography", "music",
        "video", "writing", "craft", "crafts", "fashion", "film", "illustration", "media",
        "content creation", "jewelry",
    ),
    Category.EDUCATION: (
        "education", "tutoring", "tutor", "teaching", "teacher", "training", "course",
        "courses", "school", "learning", "workshop", "lessons", "curriculum",
    ),
    Category.CONSULTING: (
        "consulting", "consultancy", "consultant", "advisory", "strategy", "accounting",
        "bookkeeping", "finance", "legal", "compliance", "hr", "recruiting", "management",
    ),
}

RISK_SYNONYMS: Dict[str, MarketRisk] = {
    "low": MarketRisk.LOW,
    "minimal": MarketRisk.LOW,
    "minor": MarketRisk.LOW,
    "limited": MarketRisk.LOW,
    "medium": MarketRisk.MEDIUM,
    "moderate": MarketRisk.MEDIUM,
    "mid": MarketRisk.MEDIUM,
    "average": MarketRisk.MEDIUM,
    "high": MarketRisk.HIGH,
    "significant": MarketRisk.HIGH,
    "substantial": MarketRisk.HIGH,
    "elevated": MarketRisk.HIGH,
}

# A risk word this close after one of these is discarded ("not high").
NEGATIONS = frozenset({"not", "no", "never", "isn't", "without", "hardly", "neither", "nor"})

TIMEFRAME_TEMPLATES: Dict[Category, Tuple[str, str, str]] = {
    Category.TECH: (
        "Interview target users, build a clickable prototype and recruit beta testers.",
        "Launch the first paid version, track activation and retention, iterate on feedback.",
        "Grow recurring revenue, add integrations and hire the first engineers.",
    ),
    Category.RETAIL: (
        "Source initial inventory, set up a storefront or online shop and test pricing.",
        "Reach steady monthly sales, refine the product mix and build supplier relationships.",
        "Expand channels or locations and negotiate better wholesale terms.",
    ),
    Category.SERVICE: (
        "Register the business, obtain required licences and sign the first clients.",
        "Build a base of repeat customers and standardise service delivery.",
        "Hire staff, widen the service area and add complementary services.",
    ),
    Category.FOOD: (
        "Secure food handling permits, finalise recipes and run tasting sessions.",
        "Sell consistently through markets, cafes or online orders and control food costs.",
        "Open a dedicated kitchen or storefront and grow wholesale accounts.",
    ),
    Category.CREATIVE: (
        "Assemble a portfolio, set pricing and land the first commissions.",
        "Build a steady client pipeline and a recognisable brand presence.",
        "Launch signature products or collaborations and scale through partnerships.",
    ),
    Category.EDUCATION: (
        "Design the first curriculum module and run a pilot with a small group of learners.",
        "Grow enrolment through referrals and refine material based on learner outcomes.",
        "Add new courses or instructors and explore institutional partnerships.",
    ),
    Category.CONSULTING: (
        "Define the service offering, set rates and secure the first engagements.",
        "Collect case studies and testimonials and establish a referral network.",
        "Productise the expertise and bring on associate consultants.",
    ),
}


def _keyword_pattern(keyword: str) -> Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}s?\b", re.IGNORECASE)


def _compile_keywords(table: Mapping[Category, Iterable[str]]) -> Dict[Category, Tuple[Pattern[str], ...]]:
    return {category: tuple(_keyword_pattern(keyword) for keyword in keywords) for category, keywords in table.items()}


@dataclass(frozen=True)
class ClassificationRules:
    """Configuration data consumed by the classification functions."""

    budget_multiplier: float = 3.0
    risk_thresholds: Mapping[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_RISK_THRESHOLDS)
    )
    category_keywords: Mapping[Category, Tuple[str, ...]] = field(
        default_factory=lambda: dict(CATEGORY_KEYWORDS)
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassificationRules":
        return cls(
            budget_multiplier=settings.budget_multiplier,
            risk_thresholds=dict(settings.risk_thresholds),
        )

    def thresholds_for(self, category: Category) -> Tuple[float, float]:
        """Return ``(low_ceiling, medium_ceiling)`` for *category*."""

        if category.value in self.risk_thresholds:
            return self.risk_thresholds[category.value]
        return self.risk_thresholds.get("default", DEFAULT_RISK_THRESHOLDS["default"])


@dataclass(frozen=True)
class Classification:
    """Normalized attributes derived from a draft."""

    category: Category
    market_risk: MarketRisk
    initial_budget: BudgetRange
    timeframe: Timeframe


def infer_category(text: str, rules: ClassificationRules) -> Optional[Category]:
    """Pick the category whose keywords occur most often in *text*.

    Ties go to the category listed first in ``Category``.
    """

    if not text or not text.strip():
        return None
    patterns = _compile_keywords(rules.category_keywords)
    best: Optional[Category] = None
    best_score = 0
    for category in Category:
        score = sum(1 for pattern in patterns.get(category, ()) if pattern.search(text))
        if score > best_score:
            best, best_score = category, score
    return best


def classify_category(
    hint: Optional[str],
    preferences: UserPreferences,
    rules: ClassificationRules,
) -> Category:
    """Resolve the category from the AI hint, then skills, then interests."""

    if hint:
        cleaned = hint.strip().strip(".").lower()
        for category in Category:
            if cleaned == category.value.lower():
                return category
        inferred = infer_category(hint, rules)
        if inferred is not None:
            return inferred

    for terms in (preferences.skills, preferences.interests):
        inferred = infer_category(" ".join(terms), rules)
        if inferred is not None:
            return inferred
    return FALLBACK_CATEGORY


def match_risk(hint: Optional[str]) -> Optional[MarketRisk]:
    """Map an AI risk statement onto ``MarketRisk`` by its first risk word.

    A risk word within two words after a negation in the same clause is
    skipped, so "not high; fairly low" reads as low.
    """

    if not hint:
        return None
    for clause in re.split(r"[.;,!?\n]", hint.lower()):
        words = re.findall(r"[a-z']+", clause)
        for index, word in enumerate(words):
            if word in RISK_SYNONYMS and not NEGATIONS.intersection(words[max(0, index - 2):index]):
                return RISK_SYNONYMS[word]
    return None


def classify_risk(
    hint: Optional[str],
    category: Category,
    budget: BudgetRange,
    rules: ClassificationRules,
) -> MarketRisk:
    """Use the AI statement when it maps cleanly, else the threshold table."""

    explicit = match_risk(hint)
    if explicit is not None:
        return explicit

    low_ceiling, medium_ceiling = rules.thresholds_for(category)
    if budget.max <= low_ceiling:
        return MarketRisk.LOW
    if budget.max <= medium_ceiling:
        return MarketRisk.MEDIUM
    return MarketRisk.HIGH


def _non_negative(value: Optional[float]) -> Optional[float]:
    if value is None or value < 0:
        return None
    return float(value)


def reconcile_budget(
    budget_min: Optional[float],
    budget_max: Optional[float],
    preferences: UserPreferences,
    rules: ClassificationRules,
) -> BudgetRange:
    """Build an ordered, non-negative budget from possibly partial bounds."""

    low, high = _non_negative(budget_min), _non_negative(budget_max)
    multiplier = rules.budget_multiplier

    if low is not None and high is not None:
        if low > high:
            low, high = high, low
        return BudgetRange(min=low, max=high)
    if low is not None:
        return BudgetRange(min=low, max=low * multiplier)
    if high is not None:
        return BudgetRange(min=round(high / multiplier, 2), max=high)
    declared = preferences.budget_range
    return BudgetRange(min=declared.min, max=declared.max)


def fill_timeframe(draft: PlanDraft, category: Category) -> Timeframe:
    """Use parsed horizons, falling back to the category template."""

    short_default, medium_default, long_default = TIMEFRAME_TEMPLATES[category]
    return Timeframe(
        short_term=(draft.short_term or "").strip() or short_default,
        medium_term=(draft.medium_term or "").strip() or medium_default,
        long_term=(draft.long_term or "").strip() or long_default,
    )


def classify(
    draft: PlanDraft,
    preferences: UserPreferences,
    rules: ClassificationRules | None = None,
) -> Classification:
    """Derive category, market risk, initial budget and timeframe."""

    rules = rules or ClassificationRules()
    category = classify_category(draft.category_hint, preferences, rules)
    budget = reconcile_budget(draft.budget_min, draft.budget_max, preferences, rules)
    return Classification(
        category=category,
        market_risk=classify_risk(draft.risk_hint, category, budget, rules),
        initial_budget=budget,
        timeframe=fill_timeframe(draft, category),
    )

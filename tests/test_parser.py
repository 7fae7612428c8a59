import json
import logging

import pytest

from idea_flow.errors import ParseFailure
from idea_flow.parser import match_section, parse_budget, parse_plan, strip_code_fence
from idea_flow.schemas import PlanSection

from .conftest import SECTION_BODIES, WELL_FORMED_RESPONSE, render_plan


FUZZY_RESPONSE = """Here is a business idea for you:

# Crumb Club

A subscription box of small-batch pastries delivered to offices.

**1. Executive Summary**
Crumb Club delivers weekly pastry boxes.

**2. Company Overview**
A home bakery registered as an LLC.

### Market & Competition
Offices near downtown lack fresh pastry options.

Organisation and Management:
The founder bakes; a part-time driver delivers.

4) Products and Services
Weekly boxes in three sizes.

**Marketing Strategy**
Free tasting boxes for office managers.

## Funding
Self-funded with $3,000 in savings.

## Financial Projections
Break-even in month eight.

## Appendices
Menu and pricing sheet.
"""


def test_well_formed_response_fills_every_section() -> None:
    draft = parse_plan(WELL_FORMED_RESPONSE)

    for section, body in SECTION_BODIES.items():
        assert draft.plan.section(section).content == body
        assert draft.plan.section(section).title == section.title
    assert draft.repaired_sections == ()


def test_well_formed_response_metadata() -> None:
    draft = parse_plan(WELL_FORMED_RESPONSE)

    assert draft.title == "Sweet Crumbs Bakery"
    assert draft.category_hint == "Food"
    assert draft.description.startswith("A home-based artisan bakery")
    assert draft.skills == ("baking", "food safety", "customer service")
    assert draft.short_term.startswith("Obtain a cottage food licence")
    assert draft.medium_term.startswith("Sell weekly")
    assert draft.long_term.startswith("Open a small storefront")
    assert (draft.budget_min, draft.budget_max) == (None, None)
    assert draft.risk_hint is None


def test_fuzzy_headings_map_onto_sections() -> None:
    draft = parse_plan(FUZZY_RESPONSE)

    assert draft.repaired_sections == ()
    assert draft.plan.executive_summary.content == "Crumb Club delivers weekly pastry boxes."
    assert draft.plan.company_description.content == "A home bakery registered as an LLC."
    assert draft.plan.market_analysis.content.startswith("Offices near downtown")
    assert draft.plan.organization_and_management.content.startswith("The founder bakes")
    assert draft.plan.service_or_product_line.content == "Weekly boxes in three sizes."
    assert draft.plan.marketing_and_sales.content.startswith("Free tasting boxes")
    assert draft.plan.funding_request.content.startswith("Self-funded")
    assert draft.plan.appendix.content == "Menu and pricing sheet."


def test_title_and_description_come_from_preamble() -> None:
    draft = parse_plan(FUZZY_RESPONSE)

    assert draft.title == "Crumb Club"
    assert draft.description == "A subscription box of small-batch pastries delivered to offices."


def test_bare_preamble_paragraphs_supply_title_and_description() -> None:
    text = render_plan(preamble="Sweet Crumbs Bakery\n\nA home bakery selling sourdough at farmers markets.")

    draft = parse_plan(text)

    assert draft.title == "Sweet Crumbs Bakery"
    assert draft.description == "A home bakery selling sourdough at farmers markets."


def test_description_falls_back_to_executive_summary() -> None:
    draft = parse_plan(render_plan(preamble="Title: Sweet Crumbs Bakery"))

    assert draft.description == SECTION_BODIES[PlanSection.EXECUTIVE_SUMMARY]


def test_lenient_mode_fills_missing_sections_with_placeholder() -> None:
    text = render_plan(omit=[PlanSection.FUNDING_REQUEST, PlanSection.APPENDIX])

    draft = parse_plan(text, placeholder="To be written")

    assert draft.repaired_sections == (PlanSection.FUNDING_REQUEST, PlanSection.APPENDIX)
    assert draft.plan.funding_request.title == "Funding Request"
    assert draft.plan.funding_request.content == "To be written"
    assert draft.plan.appendix.content == "To be written"
    assert draft.plan.executive_summary.content == SECTION_BODIES[PlanSection.EXECUTIVE_SUMMARY]


def test_strict_mode_reports_missing_sections() -> None:
    text = render_plan(omit=[PlanSection.FUNDING_REQUEST, PlanSection.APPENDIX])

    with pytest.raises(ParseFailure) as excinfo:
        parse_plan(text, strict=True)

    assert excinfo.value.missing_fields == ["fundingRequest", "appendix"]
    assert excinfo.value.code == "PARSE_FAILURE"


def test_subheadings_stay_inside_their_section() -> None:
    marketing = SECTION_BODIES[PlanSection.MARKETING_AND_SALES]
    products = SECTION_BODIES[PlanSection.SERVICE_OR_PRODUCT_LINE]
    nested_marketing = "**Target Market**\nWeekend shoppers.\n**Pricing**\n1. Loyalty Card Discounts\nTen percent off."
    nested_products = f"{products}\n\n### Revenue Streams\nLoaves and custom cakes."
    text = WELL_FORMED_RESPONSE.replace(marketing, nested_marketing).replace(products, nested_products)

    draft = parse_plan(text, strict=True)

    assert draft.repaired_sections == ()
    assert draft.plan.marketing_and_sales.content == nested_marketing
    assert draft.plan.service_or_product_line.content == nested_products
    assert draft.plan.market_analysis.content == SECTION_BODIES[PlanSection.MARKET_ANALYSIS]
    assert draft.plan.financial_projections.content == SECTION_BODIES[PlanSection.FINANCIAL_PROJECTIONS]


def test_full_section_name_still_closes_nested_heading() -> None:
    text = render_plan(omit=[PlanSection.APPENDIX]) + "\n**Appendix**\nSupplier price list.\n"

    draft = parse_plan(text, strict=True)

    assert draft.plan.appendix.content == "Supplier price list."
    assert draft.plan.financial_projections.content == SECTION_BODIES[PlanSection.FINANCIAL_PROJECTIONS]


def test_strict_mode_accepts_complete_plan() -> None:
    assert parse_plan(WELL_FORMED_RESPONSE, strict=True).repaired_sections == ()


def test_empty_response_is_all_placeholders() -> None:
    draft = parse_plan("")

    assert draft.repaired_sections == tuple(PlanSection)
    assert draft.title is None
    assert draft.description is None


def test_parsing_is_deterministic() -> None:
    assert parse_plan(FUZZY_RESPONSE) == parse_plan(FUZZY_RESPONSE)
    assert repr(parse_plan(WELL_FORMED_RESPONSE)) == repr(parse_plan(WELL_FORMED_RESPONSE))


def test_code_fence_is_ignored() -> None:
    fenced = f"```markdown\n{WELL_FORMED_RESPONSE}```"

    assert strip_code_fence(fenced) == WELL_FORMED_RESPONSE.strip()
    assert parse_plan(fenced) == parse_plan(WELL_FORMED_RESPONSE)


def test_inline_section_label_opens_section() -> None:
    text = render_plan(omit=[PlanSection.APPENDIX]) + "\nAppendix: Licence checklist.\n"

    draft = parse_plan(text)

    assert draft.plan.appendix.content == "Licence checklist."
    assert draft.repaired_sections == ()


def test_budget_and_risk_labels_inside_sections_are_captured() -> None:
    body = SECTION_BODIES[PlanSection.FUNDING_REQUEST]
    text = WELL_FORMED_RESPONSE.replace(body, "Initial budget: $3,000 - $9,000 from savings.\nRisk level: moderate")

    draft = parse_plan(text)

    assert (draft.budget_min, draft.budget_max) == (3000.0, 9000.0)
    assert draft.risk_hint == "moderate"
    assert draft.plan.funding_request.content.startswith("Initial budget: $3,000 - $9,000")


def test_title_label_inside_section_stays_body_text() -> None:
    body = SECTION_BODIES[PlanSection.APPENDIX]
    text = WELL_FORMED_RESPONSE.replace(body, "Description: supplier price list.")

    draft = parse_plan(text)

    assert draft.description.startswith("A home-based artisan bakery")
    assert draft.plan.appendix.content == "Description: supplier price list."


def test_timeline_block_and_skill_bullets() -> None:
    preamble = "\n".join(
        [
            "Title: Crumb Club",
            "Skills:",
            "- baking",
            "- bookkeeping",
            "",
            "## Timeline",
            "Short term: Get permits.",
            "Mid-term: Sign three office clients.",
            "Long term: Hire a second baker.",
        ]
    )

    draft = parse_plan(render_plan(preamble=preamble))

    assert draft.skills == ("baking", "bookkeeping")
    assert draft.short_term == "Get permits."
    assert draft.medium_term == "Sign three office clients."
    assert draft.long_term == "Hire a second baker."
    assert draft.repaired_sections == ()


def test_json_answer_is_understood() -> None:
    payload = {
        "title": "Crumb Club",
        "category": "Food",
        "description": "Pastry boxes for offices.",
        "skills": ["baking", "logistics"],
        "initialBudget": {"min": 2000, "max": 6000},
        "marketRisk": "Medium",
        "timeframe": {
            "shortTerm": "Get permits.",
            "mediumTerm": "Sign office clients.",
            "longTerm": "Open a kitchen.",
        },
        "plan": {
            section.value: {"title": section.title, "content": f"{section.title} details."}
            for section in PlanSection
        },
    }
    text = f"```json\n{json.dumps(payload, indent=2)}\n```"

    draft = parse_plan(text, strict=True)

    assert draft.title == "Crumb Club"
    assert draft.category_hint == "Food"
    assert draft.skills == ("baking", "logistics")
    assert (draft.budget_min, draft.budget_max) == (2000.0, 6000.0)
    assert draft.risk_hint == "Medium"
    assert draft.short_term == "Get permits."
    assert draft.long_term == "Open a kitchen."
    assert draft.plan.marketing_and_sales.content == "Marketing and Sales details."


@pytest.mark.parametrize(
    ("heading", "expected"),
    [
        ("Executive Summary", PlanSection.EXECUTIVE_SUMMARY),
        ("1. EXECUTIVE SUMMARY", PlanSection.EXECUTIVE_SUMMARY),
        ("Marketing & Sales Strategy", PlanSection.MARKETING_AND_SALES),
        ("Market Research", PlanSection.MARKET_ANALYSIS),
        ("Competitive Landscape", PlanSection.MARKET_ANALYSIS),
        ("Management Team", PlanSection.ORGANIZATION_AND_MANAGEMENT),
        ("Funding Needs", PlanSection.FUNDING_REQUEST),
        ("Financial Plan", PlanSection.FINANCIAL_PROJECTIONS),
        ("Our Products", PlanSection.SERVICE_OR_PRODUCT_LINE),
        ("Supporting Documents", PlanSection.APPENDIX),
        ("Closing Thoughts", None),
    ],
)
def test_match_section(heading, expected) -> None:
    assert match_section(heading) is expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("$5,000 - $15,000", (5000.0, 15000.0)),
        ("$5k - $15,000", (5000.0, 15000.0)),
        ("5-15k", (5000.0, 15000.0)),
        ("5k to 20k", (5000.0, 20000.0)),
        ("$1.2M", (1200000.0, None)),
        ("up to $20k", (None, 20000.0)),
        ("$8,000", (8000.0, None)),
        ("$1.5 million", (1500000.0, None)),
        ("to be decided", (None, None)),
        ("", (None, None)),
    ],
)
def test_parse_budget(text, expected) -> None:
    assert parse_budget(text) == expected


def test_heading_without_body_counts_as_missing() -> None:
    body = SECTION_BODIES[PlanSection.APPENDIX]
    text = WELL_FORMED_RESPONSE.replace(body, "")

    draft = parse_plan(text)

    assert draft.repaired_sections == (PlanSection.APPENDIX,)
    assert draft.plan.appendix.content == "Not specified"


def test_long_title_is_truncated_and_logged(caplog) -> None:
    long_title = "Sweet Crumbs " + "Artisan " * 20
    text = render_plan(preamble=f"Title: {long_title}")

    with caplog.at_level(logging.INFO, logger="idea_flow.parser"):
        draft = parse_plan(text)

    assert len(draft.title) == 120
    assert draft.title == long_title.strip()[:120]
    assert any("Title truncated" in record.getMessage() for record in caplog.records)

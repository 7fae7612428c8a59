"""Turn free-form provider output into a nine-section plan draft.

Segmentation is line oriented: a line is either a heading, a ``Label: value``
line, or body text. Headings are mapped onto ``PlanSection`` keys through a
synonym table; labelled lines carry the idea metadata (title, category,
budget, timeframe...). Nothing here is random, so the same text always
produces an equal draft.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import ParseFailure
from .schemas import BusinessPlan, PlanSection, SBASection

DEFAULT_PLACEHOLDER = "Not specified"
MAX_TITLE_CHARS = 120

# ---------------------------------------------------------------------------
# Label tables
# ---------------------------------------------------------------------------

# Checked in order; multi-word phrases come before the single words they
# contain so "marketing and sales" never falls through to "market".
SECTION_SYNONYMS: List[Tuple[str, PlanSection]] = [
    ("executive summary", PlanSection.EXECUTIVE_SUMMARY),
    ("company description", PlanSection.COMPANY_DESCRIPTION),
    ("company overview", PlanSection.COMPANY_DESCRIPTION),
    ("business description", PlanSection.COMPANY_DESCRIPTION),
    ("about the company", PlanSection.COMPANY_DESCRIPTION),
    ("marketing and sales", PlanSection.MARKETING_AND_SALES),
    ("market analysis", PlanSection.MARKET_ANALYSIS),
    ("organization and management", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("organisation and management", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("service or product line", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("products and services", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("product or service", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("funding request", PlanSection.FUNDING_REQUEST),
    ("use of funds", PlanSection.FUNDING_REQUEST),
    ("financial projections", PlanSection.FINANCIAL_PROJECTIONS),
    ("sales forecast", PlanSection.FINANCIAL_PROJECTIONS),
    ("go-to-market", PlanSection.MARKETING_AND_SALES),
    ("go to market", PlanSection.MARKETING_AND_SALES),
    ("funding", PlanSection.FUNDING_REQUEST),
    ("financing", PlanSection.FUNDING_REQUEST),
    ("investment", PlanSection.FUNDING_REQUEST),
    ("financial", PlanSection.FINANCIAL_PROJECTIONS),
    ("projection", PlanSection.FINANCIAL_PROJECTIONS),
    ("forecast", PlanSection.FINANCIAL_PROJECTIONS),
    ("revenue", PlanSection.FINANCIAL_PROJECTIONS),
    ("break-even", PlanSection.FINANCIAL_PROJECTIONS),
    ("cash flow", PlanSection.FINANCIAL_PROJECTIONS),
    ("marketing", PlanSection.MARKETING_AND_SALES),
    ("sales", PlanSection.MARKETING_AND_SALES),
    ("promotion", PlanSection.MARKETING_AND_SALES),
    ("market", PlanSection.MARKET_ANALYSIS),
    ("competit", PlanSection.MARKET_ANALYSIS),
    ("swot", PlanSection.MARKET_ANALYSIS),
    ("industry analysis", PlanSection.MARKET_ANALYSIS),
    ("organization", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("organisation", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("management", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("team", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("ownership", PlanSection.ORGANIZATION_AND_MANAGEMENT),
    ("product", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("service", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("offering", PlanSection.SERVICE_OR_PRODUCT_LINE),
    ("company", PlanSection.COMPANY_DESCRIPTION),
    ("summary", PlanSection.EXECUTIVE_SUMMARY),
    ("appendix", PlanSection.APPENDIX),
    ("appendices", PlanSection.APPENDIX),
    ("supporting documents", PlanSection.APPENDIX),
]

# A ``Label: text`` line only opens a section when the label is one of these.
SECTION_ALIASES: Dict[str, PlanSection] = {
    **{section.title.lower().replace("&", "and"): section for section in PlanSection},
    **{phrase: section for phrase, section in SECTION_SYNONYMS if " " in phrase},
}

META_LABELS: Dict[str, str] = {
    "title": "title",
    "business name": "title",
    "business idea": "title",
    "idea": "title",
    "idea title": "title",
    "category": "category",
    "business category": "category",
    "industry": "category",
    "description": "description",
    "short description": "description",
    "overview": "description",
    "tagline": "description",
    "one-liner": "description",
    "skills": "skills",
    "required skills": "skills",
    "key skills": "skills",
    "skills needed": "skills",
    "market risk": "risk",
    "risk": "risk",
    "risk level": "risk",
    "initial budget": "budget",
    "budget": "budget",
    "estimated budget": "budget",
    "startup cost": "budget",
    "startup costs": "budget",
    "initial investment": "budget",
}

# Inside a plan section these labels are ordinary body text.
PREAMBLE_ONLY_META = frozenset({"title", "description", "category", "skills"})

# Headings that open a block holding metadata rather than plan content.
META_BLOCKS = ("timeframe", "timeline", "milestones", "roadmap", "idea overview", "key facts")

_HORIZON_RE = re.compile(r"^(short|medium|mid|long)[- ]?term\b")
_HORIZON_KEYS = {"short": "short_term", "medium": "medium_term", "mid": "medium_term", "long": "long_term"}

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9]*\s*\n(.*?)\n?```\s*$", re.DOTALL)
_MD_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s*(.*?)\s*#*\s*$")
_BOLD_LINE_RE = re.compile(r"^\s*(?:\*\*|__)(.+?)(?:\*\*|__)\s*:?\s*$")
_NUMBERED_RE = re.compile(r"^\s*(?:\d{1,2}|[ivxIVX]{1,4})[.)]\s+(.*)$")
_BULLET_RE = re.compile(r"^\s*(?:[-*+•]|\d{1,2}[.)])\s+")
_LABEL_RE = re.compile(r"^([A-Za-z][\w &/()'\-]{0,48}?)\s*:\s*(.*)$")
_AMOUNT_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(k|m|thousand|million)?\b", re.IGNORECASE)
_MAX_ONLY_RE = re.compile(r"\b(up to|under|below|less than|max(?:imum)?|at most)\b", re.IGNORECASE)

_META_BLOCK = "meta"


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlanDraft:
    """Parsed provider output prior to classification and validation."""

    plan: BusinessPlan
    title: Optional[str] = None
    description: Optional[str] = None
    skills: Tuple[str, ...] = ()
    category_hint: Optional[str] = None
    risk_hint: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    short_term: Optional[str] = None
    medium_term: Optional[str] = None
    long_term: Optional[str] = None
    repaired_sections: Tuple[PlanSection, ...] = ()


# ---------------------------------------------------------------------------
# Text utilities
# ---------------------------------------------------------------------------


def strip_code_fence(text: str) -> str:
    """Remove a wrapping fenced code block, if any."""

    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def _strip_markup(text: str) -> str:
    text = _BULLET_RE.sub("", text, count=1)
    return text.replace("**", "").replace("__", "").strip()


def normalize_label(text: str) -> str:
    """Lower-case a heading or label and drop numbering and decoration."""

    label = text.replace("**", "").replace("__", "").replace("`", "")
    label = re.sub(r"^\s*(?:section|part)\s+\d+\s*[:.\-]\s*", "", label, flags=re.IGNORECASE)
    label = re.sub(r"^\s*(?:\d{1,2}|[ivxIVX]{1,4})[.)]\s*", "", label)
    label = re.sub(r"\([^)]*\)", "", label)
    label = label.lower().replace("&", "and")
    label = re.sub(r"\s+", " ", label)
    return label.strip(" :*_#-\t")


def match_section(label: str) -> PlanSection | None:
    """Map a heading onto a plan section by case-insensitive substring match."""

    normalized = normalize_label(label)
    if not normalized:
        return None
    for phrase, section in SECTION_SYNONYMS:
        if phrase in normalized:
            return section
    return None


def _meta_key(label: str) -> str | None:
    normalized = normalize_label(label)
    if normalized in META_LABELS:
        return META_LABELS[normalized]
    horizon = _HORIZON_RE.match(normalized)
    if horizon:
        return _HORIZON_KEYS[horizon.group(1)]
    return None


def _is_meta_block(label: str) -> bool:
    normalized = normalize_label(label)
    return any(normalized.startswith(block) for block in META_BLOCKS)


def _split_terms(text: str) -> Tuple[str, ...]:
    terms = []
    seen = set()
    for part in re.split(r"[,;|]|\band\b", text):
        term = _strip_markup(part).strip(" .")
        if term and term.casefold() not in seen:
            seen.add(term.casefold())
            terms.append(term)
    return tuple(terms)


def _first_sentence(text: str) -> str:
    snippet = text.strip().split("\n", 1)[0].strip()
    match = re.match(r"(.+?[.!?])(?:\s|$)", snippet)
    return match.group(1) if match else snippet


def _amount(number: str, suffix: str | None) -> float:
    value = float(number.replace(",", ""))
    scale = (suffix or "").lower()
    if scale in ("k", "thousand"):
        value *= 1_000
    elif scale in ("m", "million"):
        value *= 1_000_000
    return value


def parse_budget(text: str) -> Tuple[Optional[float], Optional[float]]:
    """Extract ``(min, max)`` dollar bounds from text like ``$5k - $15,000``.

    A single amount is read as the lower bound unless the text says
    "up to", "under" or similar.
    """

    matches = _AMOUNT_RE.findall(text or "")
    if not matches:
        return None, None
    if len(matches) == 1:
        value = _amount(*matches[0])
        if _MAX_ONLY_RE.search(text):
            return None, value
        return value, None

    (low_raw, low_suffix), (high_raw, high_suffix) = matches[0], matches[1]
    # "5-15k" shares the suffix of the upper bound.
    if not low_suffix and high_suffix and float(low_raw.replace(",", "")) <= float(high_raw.replace(",", "")):
        low_suffix = high_suffix
    return _amount(low_raw, low_suffix), _amount(high_raw, high_suffix)


# ---------------------------------------------------------------------------
# JSON answers
# ---------------------------------------------------------------------------


def _humanize_key(key: str) -> str:
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", str(key)).replace("_", " ")
    return spaced.strip().title()


def _json_lines(data: Dict[str, Any]) -> List[str]:
    lines: List[str] = []
    for key, value in data.items():
        label = _humanize_key(key)
        meta = _meta_key(label)
        if isinstance(value, dict):
            if meta == "budget":
                lines.append(f"{label}: ${value.get('min', '')} - ${value.get('max', '')}")
            elif "content" in value:
                lines.extend([f"## {label}", str(value.get("content") or ""), ""])
            else:
                lines.extend(_json_lines(value))
        elif isinstance(value, list):
            items = [
                "; ".join(f"{k}: {v}" for k, v in item.items()) if isinstance(item, dict) else str(item)
                for item in value
            ]
            if meta:
                lines.append(f"{label}: {', '.join(items)}")
            elif match_section(label):
                lines.extend([f"## {label}", *(f"- {item}" for item in items), ""])
        elif value is not None:
            if meta:
                lines.append(f"{label}: {value}")
            elif match_section(label):
                lines.extend([f"## {label}", str(value), ""])
    return lines


def _json_to_text(text: str) -> str | None:
    """Render a JSON object answer as labelled text, or None if not JSON."""

    if not text.startswith("{"):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return "\n".join(_json_lines(data))


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


def _looks_like_title_case(text: str) -> bool:
    words = re.findall(r"[A-Za-z][A-Za-z'\-]*", text)
    return bool(words) and all(word[0].isupper() for word in words if len(word) > 3)


def _heading_text(line: str) -> Tuple[str, int] | None:
    """Return ``(text, level)`` if *line* looks like a heading.

    ``level`` is the number of ``#`` marks, or 0 for bold, numbered and bare
    headings.
    """

    stripped = line.strip()
    if stripped.startswith("#"):
        match = _MD_HEADING_RE.match(line)
        if match:
            return match.group(1), len(stripped) - len(stripped.lstrip("#"))
    match = _BOLD_LINE_RE.match(line)
    if match:
        return match.group(1), 0
    stripped = stripped.rstrip(":")
    numbered = _NUMBERED_RE.match(stripped)
    candidate = numbered.group(1) if numbered else stripped
    normalized = normalize_label(candidate)
    if normalized in SECTION_ALIASES:
        return candidate, 0
    if (
        numbered
        and len(normalized.split()) <= 5
        and not candidate.endswith(".")
        and _looks_like_title_case(candidate)
        and match_section(normalized)
    ):
        return candidate, 0
    return None


class _Segmenter:
    """Single pass over the lines collecting sections and metadata."""

    def __init__(self) -> None:
        self.sections: Dict[PlanSection, List[str]] = {}
        self.meta: Dict[str, str] = {}
        self.preamble: List[str] = []
        self.title_headings: List[str] = []
        self.current: PlanSection | str | None = None
        self.section_level = 0
        self.pending_meta: str | None = None
        self.collecting_skills = False
        self.skill_items: List[str] = []

    @property
    def in_preamble(self) -> bool:
        return self.current is None and not self.sections

    def _open(self, section: PlanSection, level: int = 0) -> None:
        lines = self.sections.setdefault(section, [])
        if lines:
            lines.append("")
        self.current = section
        self.section_level = level

    def _is_subheading(self, text: str, level: int) -> bool:
        """True for a heading nested inside the open section.

        Bold and numbered lines nest under a ``#`` heading, and a deeper ``#``
        heading nests under a shallower one. From there only a full section
        name opens another section.
        """
        if not isinstance(self.current, PlanSection):
            return False
        if normalize_label(text) in SECTION_ALIASES:
            return False
        if level == 0:
            return self.section_level > 0
        return 0 < self.section_level < level

    def _body(self, line: str) -> None:
        if isinstance(self.current, PlanSection):
            self.sections[self.current].append(line)
        elif self.current is None:
            self.preamble.append(line)

    def feed(self, line: str) -> None:
        if self.collecting_skills:
            if _BULLET_RE.match(line):
                self.skill_items.append(_strip_markup(line))
                self.pending_meta = None
                return
            if line.strip():
                self.collecting_skills = False

        heading = _heading_text(line)
        if self.pending_meta and line.strip():
            key, self.pending_meta = self.pending_meta, None
            if heading is None:
                self.meta.setdefault(key, _strip_markup(line))
                return

        if heading is not None:
            text, level = heading
            if level == 1 and self.in_preamble and normalize_label(text) not in SECTION_ALIASES:
                self.title_headings.append(_strip_markup(text))
                return
            if self._is_subheading(text, level):
                self._body(line)
                return
            section = match_section(text)
            if section is not None:
                self._open(section, level)
                return
            meta = _meta_key(text)
            if meta or _is_meta_block(text):
                self.current = _META_BLOCK
                if meta and meta not in self.meta:
                    self.pending_meta = meta
                    self.collecting_skills = meta == "skills"
                return
            if self.in_preamble:
                self.title_headings.append(_strip_markup(text))
                return
            self._body(line)
            return

        label_match = _LABEL_RE.match(_strip_markup(line))
        if label_match:
            label, value = label_match.group(1), label_match.group(2).strip()
            meta = _meta_key(label)
            in_section = isinstance(self.current, PlanSection)
            if meta and not (in_section and meta in PREAMBLE_ONLY_META):
                if value:
                    self.meta.setdefault(meta, value)
                elif meta == "skills" and "skills" not in self.meta:
                    self.collecting_skills = True
                if in_section:
                    self.sections[self.current].append(line)
                return
            section = SECTION_ALIASES.get(normalize_label(label))
            if section is not None:
                self._open(section)
                if value:
                    self.sections[section].append(value)
                return

        self._body(line)


def _clean_block(lines: List[str]) -> str:
    text = "\n".join(line.rstrip() for line in lines).strip()
    return re.sub(r"\n{3,}", "\n\n", text)


def _preamble_paragraphs(lines: List[str]) -> List[str]:
    paragraphs: List[str] = []
    buffer: List[str] = []
    for line in lines + [""]:
        if line.strip():
            buffer.append(_strip_markup(line))
        elif buffer:
            paragraphs.append(" ".join(buffer))
            buffer = []
    return paragraphs


def parse_plan(
    raw_text: str,
    *,
    strict: bool = False,
    placeholder: str = DEFAULT_PLACEHOLDER,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> PlanDraft:
    """Parse *raw_text* into a ``PlanDraft``.

    In strict mode a section without content raises ``ParseFailure``; in
    lenient mode it is filled with ``{title: <section title>, content:
    placeholder}`` and listed in ``repaired_sections``.
    """

    log = logger or logging.getLogger(__name__)

    text = strip_code_fence((raw_text or "").replace("\r\n", "\n").replace("\r", "\n"))
    text = _json_to_text(text) or text

    segmenter = _Segmenter()
    for line in text.split("\n"):
        segmenter.feed(line)

    contents = {section: _clean_block(lines) for section, lines in segmenter.sections.items()}
    missing = [section for section in PlanSection if not contents.get(section)]
    if missing and strict:
        raise ParseFailure([section.alias for section in missing])

    plan = BusinessPlan(
        **{
            section.value: SBASection(
                title=section.title,
                content=contents.get(section) or placeholder,
            )
            for section in PlanSection
        }
    )

    meta = segmenter.meta
    # Lead-ins such as "Here is your plan:" are neither title nor description.
    paragraphs = [p for p in _preamble_paragraphs(segmenter.preamble) if not p.endswith(":")]

    title = meta.get("title")
    if not title and segmenter.title_headings:
        title = segmenter.title_headings[0]
    if not title and paragraphs and len(paragraphs[0].split()) <= 12:
        title = paragraphs.pop(0)
    if title:
        title = title.strip(" \"'*#")
        if len(title) > MAX_TITLE_CHARS:
            log.info("Title truncated from %d to %d characters", len(title), MAX_TITLE_CHARS)
            title = title[:MAX_TITLE_CHARS]
        title = title or None

    description = meta.get("description")
    if not description and paragraphs:
        description = paragraphs[0]
    if not description and contents.get(PlanSection.EXECUTIVE_SUMMARY):
        description = _first_sentence(_strip_markup(contents[PlanSection.EXECUTIVE_SUMMARY]))

    skills: Tuple[str, ...] = ()
    if meta.get("skills"):
        skills = _split_terms(meta["skills"])
    elif segmenter.skill_items:
        skills = _split_terms(", ".join(segmenter.skill_items))

    budget_min, budget_max = parse_budget(meta.get("budget", ""))

    return PlanDraft(
        plan=plan,
        title=title,
        description=description or None,
        skills=skills,
        category_hint=meta.get("category"),
        risk_hint=meta.get("risk"),
        budget_min=budget_min,
        budget_max=budget_max,
        short_term=meta.get("short_term"),
        medium_term=meta.get("medium_term"),
        long_term=meta.get("long_term"),
        repaired_sections=tuple(missing),
    )

"""Field classification — image detection, refinement eligibility, content types.

Every decision here is a pure function of the field name (and, for
refinement eligibility, the content). Keyword tables are module-level data
so that ingestion tagging, slide population and the tests all read the same
source.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# ── Image fields ──

IMAGE_FIELD_KEYWORDS: tuple[str, ...] = ("image", "logo", "photo", "picture", "icon", "thumbnail")


def is_image_field(field_name: str) -> bool:
    lowered = field_name.lower()
    if any(keyword in lowered for keyword in IMAGE_FIELD_KEYWORDS):
        return True
    return lowered.endswith("img") or lowered.startswith("img")


# ── Refinement eligibility ──

ALWAYS_REFINE_KEYWORDS: tuple[str, ...] = ("problem", "solution", "model", "feature", "benefit")
NEVER_REFINE_KEYWORDS: tuple[str, ...] = ("name", "contact", "email", "phone", "website")


def should_refine(field_name: str, content: str | None) -> bool:
    """Decide whether a text value goes through refinement.

    Rules are evaluated in order; the first that applies decides.
    """
    if not content or len(content) < 10:
        return False

    lowered = field_name.lower()
    if "description" in lowered or len(content) > 100:
        return True
    if any(keyword in lowered for keyword in ALWAYS_REFINE_KEYWORDS):
        return True
    if any(keyword in lowered for keyword in NEVER_REFINE_KEYWORDS):
        return False
    return len(content) > 50


# ── Content types ──


class ContentType(str, Enum):
    SHORT_IDENTIFIER = "Short Identifier"
    LONG_DESCRIPTION = "Long Description"
    PROBLEM_STATEMENT = "Problem Statement"
    SOLUTION_DESCRIPTION = "Solution Description"
    PROCESS_DESCRIPTION = "Process Description"
    MARKET_INFORMATION = "Market Information"
    COMPARATIVE_INFORMATION = "Comparative Information"
    PEOPLE_INFORMATION = "People Information"
    CONTACT_INFORMATION = "Contact Information"
    FEATURES_BENEFITS = "Features/Benefits"
    NUMERICAL_DATA = "Numerical Data"
    TEMPORAL_INFORMATION = "Temporal Information"
    LOCATION_INFORMATION = "Location Information"
    GENERAL_INFORMATION = "General Information"


# Evaluated top to bottom. "Long Description" precedes "Short Identifier" so
# that e.g. "titleDescription" reads as a description.
CONTENT_TYPE_KEYWORDS: tuple[tuple[ContentType, tuple[str, ...]], ...] = (
    (ContentType.LONG_DESCRIPTION, ("description", "about", "summary")),
    (ContentType.SHORT_IDENTIFIER, ("name", "title")),
    (ContentType.PROBLEM_STATEMENT, ("problem", "challenge", "issue")),
    (ContentType.SOLUTION_DESCRIPTION, ("solution", "approach", "method")),
    (ContentType.PROCESS_DESCRIPTION, ("model", "process", "system")),
    (ContentType.MARKET_INFORMATION, ("market", "industry", "sector")),
    (ContentType.COMPARATIVE_INFORMATION, ("competitor", "alternative", "comparison")),
    (ContentType.PEOPLE_INFORMATION, ("team", "member", "staff", "employee")),
    (ContentType.CONTACT_INFORMATION, ("contact", "email", "phone", "address")),
    (ContentType.FEATURES_BENEFITS, ("feature", "benefit", "advantage", "capability")),
    (ContentType.NUMERICAL_DATA, ("stat", "metric", "number", "percentage")),
    (ContentType.TEMPORAL_INFORMATION, ("date", "time", "schedule", "deadline")),
    (ContentType.LOCATION_INFORMATION, ("location", "place", "region", "country")),
)

DEFAULT_TARGET_LENGTHS: dict[ContentType, str] = {
    ContentType.SHORT_IDENTIFIER: "concise (1-5 words)",
    ContentType.LONG_DESCRIPTION: "brief but comprehensive (30-50 words)",
    ContentType.PROBLEM_STATEMENT: "clear and concise (20-40 words)",
    ContentType.SOLUTION_DESCRIPTION: "focused and clear (30-50 words)",
    ContentType.PROCESS_DESCRIPTION: "concise (20-30 words)",
    ContentType.MARKET_INFORMATION: "data-focused (30-40 words)",
    ContentType.COMPARATIVE_INFORMATION: "brief but insightful (30-40 words)",
    ContentType.PEOPLE_INFORMATION: "brief highlights (20-30 words)",
    ContentType.CONTACT_INFORMATION: "essential only (10-20 words)",
    ContentType.FEATURES_BENEFITS: "bullet-point friendly (30-50 words)",
    ContentType.NUMERICAL_DATA: "precise and concise (10-20 words)",
    ContentType.TEMPORAL_INFORMATION: "clear and specific (10-20 words)",
    ContentType.LOCATION_INFORMATION: "specific and concise (10-20 words)",
}

DEFAULT_STYLES: dict[ContentType, str] = {
    ContentType.SHORT_IDENTIFIER: "bold, attention-grabbing",
    ContentType.LONG_DESCRIPTION: "professional, clear",
    ContentType.PROBLEM_STATEMENT: "direct, compelling",
    ContentType.SOLUTION_DESCRIPTION: "confident, solution-oriented",
    ContentType.PROCESS_DESCRIPTION: "straightforward, structured",
    ContentType.MARKET_INFORMATION: "data-driven, factual",
    ContentType.COMPARATIVE_INFORMATION: "analytical, comparative",
    ContentType.PEOPLE_INFORMATION: "professional, achievement-focused",
    ContentType.CONTACT_INFORMATION: "clear, straightforward",
    ContentType.FEATURES_BENEFITS: "benefit-oriented, impactful",
    ContentType.NUMERICAL_DATA: "precise, data-focused",
    ContentType.TEMPORAL_INFORMATION: "chronological, clear",
    ContentType.LOCATION_INFORMATION: "specific, contextual",
    ContentType.GENERAL_INFORMATION: "professional, concise",
}


def classify_content_type(field_name: str) -> ContentType:
    lowered = field_name.lower()
    for content_type, keywords in CONTENT_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return content_type
        if content_type is ContentType.SHORT_IDENTIFIER and lowered.endswith("id"):
            return content_type
    return ContentType.GENERAL_INFORMATION


def target_length_for(
    content_type: ContentType,
    original_length: int,
    override: str | None = None,
) -> str:
    if override:
        return override
    if content_type in DEFAULT_TARGET_LENGTHS:
        return DEFAULT_TARGET_LENGTHS[content_type]
    words = max(20, round(original_length * 0.6 / 5))
    return f"concise (about {words} words)"


def style_for(content_type: ContentType, override: str | None = None) -> str:
    return override or DEFAULT_STYLES[content_type]


# ── Refinement options ──


@dataclass
class RefinementOptions:
    """Per-call overrides for the refinement prompt."""

    target_length: str | None = None
    style: str | None = None
    use_bullet_points: bool = False
    force_refinement: bool = False
    additional_instructions: str | None = None


BULLET_POINT_KEYWORDS: tuple[str, ...] = ("feature", "benefit", "point")


def refinement_options_for(field_name: str, context: dict[str, Any] | None = None) -> RefinementOptions:
    """Derive refinement options from the field name and its slide element."""
    context = context or {}
    options = RefinementOptions()
    lowered = field_name.lower()

    if any(keyword in lowered for keyword in BULLET_POINT_KEYWORDS):
        options.use_bullet_points = True

    if context.get("is_title"):
        options.target_length = "very concise (1-5 words)"
    elif (context.get("font_size") or 0) > 14:
        options.target_length = "brief (10-20 words)"

    if context.get("is_bold"):
        options.style = "impactful, attention-grabbing"
    elif context.get("is_italic"):
        options.style = "descriptive, flowing"

    return options

"""Template introspection — placeholder discovery and manifest building.

Only ``{{field}}`` is recognised as a placeholder. Older templates written
with ``[field]``, ``<field>`` or ``${field}`` go through
``convert_placeholders_to_standard_format`` once, ahead of time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from slidesmith.core.errors import SlidesmithError
from slidesmith.core.logging import get_logger
from slidesmith.schemas.manifest import (
    ElementDescriptor,
    ElementPosition,
    FieldExample,
    FieldRequirement,
    SlideDescriptor,
    TableCell,
    TemplateManifest,
)
from slidesmith.schemas.transform import ConversionResult
from slidesmith.services.prompts import DOUBLE_LAYOUT_GUIDANCE, IMAGE_FIELD_GUIDANCE
from slidesmith.services.template_store import DocumentStore, PptxDocumentStore, SlideHandle

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
MAX_EXAMPLES_PER_FIELD = 3
DEFAULT_FONT_SIZE = 12

# Title heuristics (points from the top edge)
FIRST_SLIDE_TITLE_TOP = 150
TITLE_TOP = 100
TITLE_FONT_SIZE = 18


@dataclass(frozen=True)
class PlaceholderMatch:
    token: str  # "{{ name }}"
    field_name: str  # "name"


def find_placeholders(text: str) -> list[PlaceholderMatch]:
    return [PlaceholderMatch(m.group(0), m.group(1).strip()) for m in PLACEHOLDER_PATTERN.finditer(text)]


def template_name(template_id: str) -> str:
    return Path(template_id).stem


def is_likely_title(top: float, slide_index: int) -> bool:
    """Position-only title guess used for manifests."""
    return top < (FIRST_SLIDE_TITLE_TOP if slide_index == 0 else TITLE_TOP)


def is_shape_likely_title(top: float, font_size: float | None, is_bold: bool) -> bool:
    """Title guess for a live slide element: near the top and large or bold."""
    if top > TITLE_TOP:
        return False
    return (font_size or 0) >= TITLE_FONT_SIZE or is_bold


# ── Slide type ──

SLIDE_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("overview", ("overview", "introduction")),
    ("problem", ("problem",)),
    ("solution", ("solution",)),
    ("market", ("market", "opportunity")),
    ("product", ("product", "service")),
    ("business_model", ("business", "model")),
    ("team", ("team",)),
    ("contact", ("contact", "thank")),
)


def slide_title(slide: SlideHandle) -> str:
    for element in slide.text_elements():
        if element.kind != "shape":
            continue
        style = element.style()
        if is_shape_likely_title(element.geometry().top, style["font_size"], style["is_bold"]):
            return element.get_text()
    return ""


def detect_slide_type(title: str) -> str:
    if not title:
        return "unknown"
    lowered = title.lower()
    for slide_type, keywords in SLIDE_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return slide_type
    return "general"


# ── Manifest ──


def _describe_slide(slide: SlideHandle) -> SlideDescriptor:
    descriptor = SlideDescriptor(slide_index=slide.index, slide_number=slide.index + 1)
    tables: dict[int, ElementDescriptor] = {}
    shape_count = 0

    for element in slide.text_elements():
        text = element.get_text()
        if element.kind == "table_cell":
            table = tables.get(element.shape_index)
            if table is None:
                rows, cols = element.table_size or (0, 0)
                table = ElementDescriptor(type="table", index=len(tables), rows=rows, cols=cols)
                tables[element.shape_index] = table
            if text.strip():
                table.cells.append(TableCell(row=element.row, col=element.col, text=text))
            continue

        if not text.strip():
            continue
        box = element.geometry()
        style = element.style()
        descriptor.elements.append(
            ElementDescriptor(
                type="shape",
                index=shape_count,
                text=text,
                is_title=is_likely_title(box.top, slide.index),
                font_size=style["font_size"] or DEFAULT_FONT_SIZE,
                is_bold=style["is_bold"],
                is_italic=style["is_italic"],
                position=ElementPosition(left=box.left, top=box.top, width=box.width, height=box.height),
            )
        )
        shape_count += 1

    descriptor.elements.extend(t for t in tables.values() if t.cells)
    return descriptor


def build_manifest(template_id: str, store: DocumentStore | None = None) -> TemplateManifest:
    """Scan a template and list every ``{{field}}`` it contains.

    Raises ``SlidesmithError`` (INVALID_TEMPLATE_DECK) when the template
    cannot be opened.
    """
    store = store or PptxDocumentStore()
    template = store.open_template(template_id)
    slides = template.slides()

    fields: dict[str, FieldRequirement] = {}
    structure: list[SlideDescriptor] = []

    for slide in slides:
        structure.append(_describe_slide(slide))
        for element in slide.text_elements():
            text = element.get_text()
            if not text.strip():
                continue
            seen_here: set[str] = set()
            for match in find_placeholders(text):
                requirement = fields.get(match.field_name)
                if requirement is None:
                    requirement = FieldRequirement(
                        name=match.field_name,
                        description=f'Replace "{match.field_name}" in the template',
                        required=True,
                    )
                    fields[match.field_name] = requirement
                if match.field_name in seen_here or len(requirement.examples) >= MAX_EXAMPLES_PER_FIELD:
                    continue
                seen_here.add(match.field_name)
                requirement.examples.append(
                    FieldExample(slide_index=slide.index, slide_number=slide.index + 1, context=text)
                )

    manifest = TemplateManifest(
        name=template.name,
        slide_count=len(slides),
        fields=list(fields.values()),
        slide_structure=structure,
    )
    logger.info("manifest_built", template=template.name, slides=len(slides), fields=len(fields))
    return manifest


# ── Legacy placeholder conversion ──

LEGACY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[([^\]]+)\]"),
    re.compile(r"<([^>]+)>"),
    re.compile(r"\$\{([^}]+)\}"),
)


def convert_legacy_placeholders(text: str) -> tuple[str, int]:
    """Rewrite ``[X]``, ``<X>`` and ``${X}`` as ``{{X}}``."""
    total = 0
    for pattern in LEGACY_PATTERNS:
        text, count = pattern.subn(lambda m: "{{" + m.group(1).strip() + "}}", text)
        total += count
    return text, total


def convert_placeholders_to_standard_format(
    template_id: str,
    output_id: str | None = None,
    store: DocumentStore | None = None,
) -> ConversionResult:
    store = store or PptxDocumentStore()
    try:
        template = store.open_template(template_id)
    except SlidesmithError as e:
        return ConversionResult(success=False, message=e.definition.user_message)

    slides = template.slides()
    if not slides:
        return ConversionResult(success=False, message="Presentation has no slides")

    total = 0
    for slide in slides:
        for element in slide.text_elements():
            text = element.get_text()
            converted, count = convert_legacy_placeholders(text)
            if count:
                element.set_text(converted)
                total += count

    saved = template.save(output_id)
    logger.info("placeholders_converted", template=template.name, conversions=total, output=saved)
    return ConversionResult(
        success=True,
        message=f"Converted {total} placeholders to standard {{{{field}}}} format",
        conversions=total,
        output_id=saved,
    )


# ── Built-in requirements ──


def _requirements(name: str, description: str, fields: list[tuple[str, str, bool]]) -> TemplateManifest:
    return TemplateManifest(
        name=name,
        description=description,
        fields=[FieldRequirement(name=n, description=d, required=r) for n, d, r in fields],
    )


def _named_template_requirements() -> dict[str, TemplateManifest]:
    return {
        "startup_pitch": _requirements(
            "Pitch Deck Template",
            "Template for pitch presentations",
            [
                ("name", "Name or title", True),
                ("tagline", "Short tagline or slogan", False),
                ("description", "Brief description (50 words max)", True),
                ("problem", "Problem being addressed", True),
                ("solution", "Solution being offered", True),
                ("model", "Business or operational model", True),
                ("market", "Target market information", False),
                ("competitors", "Main competitors or alternatives", False),
                ("team", "Key team members", False),
                ("status", "Current status or stage", False),
                ("contact", "Contact information", False),
                ("logo", "Logo or main image", False),
            ],
        ),
        "comparison": _requirements(
            "Comparison Template",
            "Template for comparing items",
            [
                ("title", "Comparison title", True),
                ("item1Name", "Name of first item", True),
                ("item1Description", "Description of first item", True),
                ("item1Image", "Image of first item", False),
                ("item2Name", "Name of second item", True),
                ("item2Description", "Description of second item", True),
                ("item2Image", "Image of second item", False),
                ("comparisonTable", "Comparison table data", False),
            ],
        ),
    }


def _layout_requirements() -> dict[str, TemplateManifest]:
    return {
        "single": _requirements(
            "Single Item Template",
            "Template for single item presentations",
            [
                ("name", "Name or title of the item", True),
                ("description", "Brief description (50 words max)", True),
                ("category", "Category or type", False),
                ("details", "Additional details", False),
                ("location", "Location information", False),
                ("date", "Date or time information", False),
                ("features", "Key features or characteristics", False),
                ("link", "Related link or URL", False),
                ("image", "Image of the item", False),
            ],
        ),
        "double": _requirements(
            "Double Item Template",
            "Template for comparing two items",
            [
                ("item1Name", "Name of the first item", True),
                ("item1Description", "Brief description of first item", True),
                ("item1Category", "Category of first item", False),
                ("item1Image", "Image of the first item", False),
                ("item2Name", "Name of the second item", True),
                ("item2Description", "Brief description of second item", True),
                ("item2Category", "Category of second item", False),
                ("item2Image", "Image of the second item", False),
                ("comparisonPoints", "Key comparison points", False),
            ],
        ),
        "default": _requirements(
            "Generic Template",
            "Generic presentation template",
            [
                ("title", "Slide title", True),
                ("content", "Slide content", True),
                ("image", "Slide image", False),
            ],
        ),
    }


def get_template_requirements(template_id: str | None, layout: str | None) -> TemplateManifest:
    """Built-in requirements for a known template name, else for the layout."""
    if template_id:
        name = template_name(template_id).lower()
        for key, requirements in _named_template_requirements().items():
            if key in name:
                return requirements
    layouts = _layout_requirements()
    return layouts.get(layout or "", layouts["default"])


# ── Prompt helpers ──


def _preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def format_template_description(manifest: TemplateManifest | None) -> str:
    if manifest is None:
        return "No template information available."

    lines = [
        f"Template Name: {manifest.name or 'Unknown'}",
        f"Description: {manifest.description or 'No description available.'}",
    ]
    if manifest.slide_count:
        lines.append(f"Number of Slides: {manifest.slide_count}")

    if manifest.slide_structure:
        lines.append("\nSlide Structure:")
        for slide in manifest.slide_structure:
            lines.append(f"\nSlide {slide.slide_number}:")
            for element in slide.elements:
                if element.type == "shape" and element.text:
                    label = "Title" if element.is_title else "Text"
                    lines.append(f'- {label}: "{_preview(element.text, 50)}"')
                elif element.type == "table":
                    lines.append(f"- Table ({element.rows}x{element.cols})")
                    for cell in element.cells[:3]:
                        lines.append(f'  - Cell [{cell.row},{cell.col}]: "{_preview(cell.text, 30)}"')
                    if len(element.cells) > 3:
                        lines.append(f"  - ({len(element.cells) - 3} more cells...)")

    return "\n".join(lines) + "\n"


def format_required_mappings(manifest: TemplateManifest | None, layout: str = "single") -> str:
    if manifest is None or not manifest.fields:
        return "No specific mapping requirements. Please extract any relevant information from the data."

    parts = [
        "The following fields need to be mapped from the source data:\n",
        "NOTE: All placeholders in the template use the {{field}} format.\n",
    ]
    if layout == "double":
        parts.append(
            "IMPORTANT: This is a DOUBLE layout template. Fields are prefixed with 'item1' and 'item2'.\n"
            "For backward compatibility, 'company1' and 'company2' prefixes are also used.\n"
        )

    for requirement in manifest.fields:
        block = [
            f"### {{{{{requirement.name}}}}}",
            f"Description: {requirement.description or 'No description'}",
            f"Required: {'Yes' if requirement.required else 'No'}",
        ]
        if requirement.examples:
            block.append("Examples of where this appears in the template:")
            block.extend(f'- Slide {ex.slide_number}: "{ex.context}"' for ex in requirement.examples)
        parts.append("\n".join(block) + "\n")

    parts.append(IMAGE_FIELD_GUIDANCE)
    if layout == "double":
        parts.append(DOUBLE_LAYOUT_GUIDANCE)
    return "\n".join(parts)

"""LLM data mapping — let the completion service reshape source data into template fields.

Two calls: a structure analysis of the raw data, then a mapping request that
must return ``{"items": [...], "metadata": {...}}``. Any unusable answer
falls back to the normalised records unchanged.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from slidesmith.config import get_settings
from slidesmith.core.logging import get_logger
from slidesmith.schemas.manifest import TemplateManifest
from slidesmith.services.completion import CompletionClient
from slidesmith.services.data_sources import NormalizedDataset
from slidesmith.services.prompts import (
    ANALYSIS_PROMPT,
    ANALYSIS_SYSTEM_INSTRUCTION,
    MAPPING_PROMPT,
    MAPPING_SYSTEM_INSTRUCTION,
)
from slidesmith.services.template_introspection import format_required_mappings, format_template_description

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class MappingOutcome:
    items: list[dict[str, Any]]
    used_llm: bool
    metadata: dict[str, Any] = field(default_factory=dict)
    message: str = ""


def truncate_data(data: str, max_length: int) -> str:
    """Shorten ``data``, keeping the header row of line-based formats."""
    if len(data) <= max_length:
        return data

    if "\n" in data:
        lines = data.split("\n")
        header = lines[0]
        avg_line_length = len(data) / len(lines)
        estimated_lines = max(1, int((max_length - len(header)) // avg_line_length))
        kept = [header, *lines[1:estimated_lines]]
        return "\n".join(kept) + f"\n... [truncated, {len(lines) - estimated_lines} more rows]"

    return data[:max_length] + "... [truncated]"


def build_analysis_prompt(raw_data: str, data_format: str = "", max_chars: int = 8000) -> str:
    format_hint = (
        f"The data appears to be in {data_format} format."
        if data_format
        else "Please analyze the format of the data without any assumptions."
    )
    return ANALYSIS_PROMPT.format(data=truncate_data(raw_data, max_chars), format_hint=format_hint)


def build_mapping_prompt(
    raw_data: str,
    manifest: TemplateManifest | None,
    analysis: str,
    layout: str = "single",
    max_chars: int = 6000,
) -> str:
    return MAPPING_PROMPT.format(
        data=truncate_data(raw_data, max_chars),
        analysis=analysis or "No analysis available.",
        layout_upper=layout.upper(),
        layout_label="Two items per slide" if layout == "double" else "One item per slide",
        template_description=format_template_description(manifest),
        required_mappings=format_required_mappings(manifest, layout),
    )


def parse_mapping_response(response: str) -> dict[str, Any] | None:
    """Parse the mapping JSON, tolerating prose or code fences around it."""
    if not response.strip():
        return None
    try:
        parsed = json.loads(response)
    except ValueError:
        match = _JSON_OBJECT.search(response)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


async def map_with_llm(
    dataset: NormalizedDataset,
    manifest: TemplateManifest | None,
    layout: str,
    client: CompletionClient,
) -> MappingOutcome:
    settings = get_settings()

    analysis = await client.complete(
        build_analysis_prompt(dataset.raw_text, dataset.data_format, settings.mapping_analysis_max_chars),
        ANALYSIS_SYSTEM_INSTRUCTION,
    )
    logger.info("data_analysis_completed", chars=len(analysis))

    response = await client.complete(
        build_mapping_prompt(dataset.raw_text, manifest, analysis, layout, settings.mapping_prompt_max_chars),
        MAPPING_SYSTEM_INSTRUCTION,
    )
    parsed = parse_mapping_response(response)
    items = parsed.get("items") if parsed else None

    if not isinstance(items, list) or not items or not all(isinstance(i, dict) for i in items):
        logger.warning("llm_mapping_unusable", response_preview=response[:200])
        return MappingOutcome(
            items=dataset.items,
            used_llm=False,
            message="LLM mapping returned no usable items; using source records",
        )

    logger.info("data_mapping_completed", items=len(items))
    return MappingOutcome(items=items, used_llm=True, metadata=parsed.get("metadata") or {})

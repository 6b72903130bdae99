"""Content refinement — rewrite field values for slides via the completion service.

Refinement is best-effort: every failure path returns the original text with
``refined=False`` and a reason, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from slidesmith.config import get_settings
from slidesmith.core.logging import get_logger
from slidesmith.schemas.transform import DescriptionField
from slidesmith.services.completion import CompletionClient
from slidesmith.services.field_classifier import (
    RefinementOptions,
    classify_content_type,
    style_for,
    target_length_for,
)
from slidesmith.services.prompts import (
    BULLET_POINT_INSTRUCTION,
    DEFAULT_DESCRIPTION_PROMPT,
    DESCRIPTION_PROMPT,
    REFINEMENT_PROMPT,
    REFINEMENT_SYSTEM_INSTRUCTION,
)

logger = get_logger(__name__)


@dataclass
class RefinementResult:
    text: str
    refined: bool
    reason: str = ""


def build_refinement_prompt(
    field_name: str,
    content: str,
    options: RefinementOptions | None = None,
) -> str:
    options = options or RefinementOptions()
    content_type = classify_content_type(field_name)

    extra: list[str] = []
    if options.use_bullet_points:
        extra.append(BULLET_POINT_INSTRUCTION)
    if options.additional_instructions:
        extra.append(f"7. {options.additional_instructions}")

    return REFINEMENT_PROMPT.format(
        field_name=field_name,
        content=content,
        content_type=content_type.value,
        target_length=target_length_for(content_type, len(content), options.target_length),
        style=style_for(content_type, options.style),
        extra_instructions="".join(f"{line}\n" for line in extra),
    )


class ContentRefiner:
    """Refines single field values using a shared completion client."""

    def __init__(self, client: CompletionClient, *, min_length: int | None = None) -> None:
        self.client = client
        self.min_length = get_settings().refinement_min_length if min_length is None else min_length

    async def refine(
        self,
        field_name: str,
        content: str | None,
        context: dict[str, Any] | None = None,
        options: RefinementOptions | None = None,
    ) -> RefinementResult:
        options = options or RefinementOptions()
        original = content or ""

        if not original.strip():
            return RefinementResult(text=original, refined=False, reason="empty")
        if len(original) < self.min_length and not options.force_refinement:
            return RefinementResult(text=original, refined=False, reason="too_short")

        prompt = build_refinement_prompt(field_name, original, options)
        try:
            refined = await self.client.complete(prompt, REFINEMENT_SYSTEM_INSTRUCTION)
        except Exception as e:
            logger.warning("refinement_failed", field=field_name, error=str(e))
            return RefinementResult(text=original, refined=False, reason="completion_error")

        refined = refined.strip()
        if not refined:
            logger.warning("refinement_empty", field=field_name)
            return RefinementResult(text=original, refined=False, reason="empty_completion")

        logger.info(
            "content_refined",
            field=field_name,
            slide=(context or {}).get("slide_index"),
            original_length=len(original),
            refined_length=len(refined),
        )
        return RefinementResult(text=refined, refined=True, reason="refined")


async def apply_description_prompts(
    items: list[dict[str, Any]],
    description_fields: list[DescriptionField],
    client: CompletionClient,
    system_instruction: str = "",
) -> int:
    """Rewrite configured fields of each item with their custom prompt.

    Mutates ``items`` in place and returns the number of values rewritten.
    Values that are blank, missing or come back empty are left untouched.
    """
    rewritten = 0
    for item in items:
        for entry in description_fields:
            current = item.get(entry.field)
            if current is None or not str(current).strip():
                continue

            prompt = DESCRIPTION_PROMPT.format(
                system_instruction=system_instruction,
                prompt=entry.prompt or DEFAULT_DESCRIPTION_PROMPT,
                field_label=entry.field,
                content=current,
            )
            try:
                refined = await client.complete(prompt, system_instruction)
            except Exception as e:
                logger.warning("description_prompt_failed", field=entry.field, error=str(e))
                continue

            if refined.strip():
                item[entry.field] = refined.strip()
                rewritten += 1

    logger.info("description_prompts_applied", items=len(items), rewritten=rewritten)
    return rewritten

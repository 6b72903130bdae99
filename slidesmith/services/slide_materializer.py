"""Slide materialization — copy template slides per item and fill placeholders.

Each text element goes through two stages:

1. ``resolve_text``: every ``{{field}}`` is rewritten. Text fields get their
   (possibly refined) value; image fields get an ``[IMAGE:field]`` marker and
   a pending ``ImageSubstitution``; unknown fields are left as they are.
2. ``apply_image_substitutions``: each pending image is resolved and placed
   on the slide, and its marker is stripped, or replaced by
   ``[Image Error: <reason>]`` when the image could not be obtained.

One item failing never stops the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from slidesmith.core.errors import ERROR_DEFINITIONS, ErrorCode, SlidesmithError
from slidesmith.core.logging import get_logger
from slidesmith.services.content_refinement import ContentRefiner
from slidesmith.services.field_classifier import refinement_options_for, should_refine
from slidesmith.services.field_resolver import resolve
from slidesmith.services.image_resolution import ImageResolver
from slidesmith.services.layout_pairing import is_image_placeholder
from slidesmith.services.template_introspection import (
    PLACEHOLDER_PATTERN,
    detect_slide_type,
    is_shape_likely_title,
    slide_title,
)
from slidesmith.services.template_store import Box, DocumentStore, SlideHandle, TextElement

logger = get_logger(__name__)

IMAGE_GAP = 20
IMAGE_MAX_WIDTH = 300


def image_marker(field_name: str) -> str:
    return f"[IMAGE:{field_name}]"


def image_error_marker(message: str) -> str:
    return f"[Image Error: {message or 'Failed to process image'}]"


@dataclass
class ImageSubstitution:
    field_name: str
    value: str

    @property
    def marker(self) -> str:
        return image_marker(self.field_name)


@dataclass
class TextResolution:
    text: str
    substitutions: list[ImageSubstitution] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    refined: list[str] = field(default_factory=list)


@dataclass
class MaterializationReport:
    items_processed: int = 0
    slides_generated: int = 0
    failed_items: list[int] = field(default_factory=list)
    images_inserted: int = 0
    image_failures: int = 0
    success: bool = False
    message: str = ""
    destination: str | None = None


def default_image_box(slide_size: tuple[float, float]) -> Box:
    width, height = slide_size
    return Box(left=width * 0.6, top=height * 0.3, width=width * 0.3, height=height * 0.5)


def image_box_beside(element_box: Box, slide_size: tuple[float, float]) -> Box:
    """Box to the right of an element, or the default spot when that is off-slide."""
    left = element_box.right + IMAGE_GAP
    slide_width, _ = slide_size
    if element_box.height <= 0 or left + IMAGE_GAP > slide_width:
        return default_image_box(slide_size)
    width = min(IMAGE_MAX_WIDTH, slide_width - left)
    return Box(left=left, top=element_box.top, width=width, height=element_box.height)


class SlideMaterializer:
    """Fills copies of a template's slides, one set per item."""

    def __init__(
        self,
        store: DocumentStore,
        image_resolver: ImageResolver,
        refiner: ContentRefiner | None = None,
        *,
        image_fields: set[str] | None = None,
    ) -> None:
        self.store = store
        self.image_resolver = image_resolver
        self.refiner = refiner
        self.image_fields = image_fields or set()
        self._images_inserted = 0
        self._image_failures = 0

    # ── Stage 1 ──

    async def resolve_text(
        self,
        text: str,
        item: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> TextResolution:
        context = context or {}
        resolution = TextResolution(text=text)
        pieces: list[str] = []
        cursor = 0

        for match in PLACEHOLDER_PATTERN.finditer(text):
            field_name = match.group(1).strip()
            pieces.append(text[cursor : match.start()])
            cursor = match.end()

            value = resolve(item, field_name)
            if value is None:
                resolution.unresolved.append(field_name)
                pieces.append(match.group(0))
                continue

            if is_image_placeholder(field_name, self.image_fields):
                resolution.substitutions.append(ImageSubstitution(field_name=field_name, value=value))
                pieces.append(image_marker(field_name))
                continue

            if self.refiner is not None and should_refine(field_name, value):
                refinement_context = {**context, "field_name": field_name}
                options = refinement_options_for(field_name, refinement_context)
                result = await self.refiner.refine(field_name, value, refinement_context, options)
                if result.refined:
                    resolution.refined.append(field_name)
                value = result.text
            pieces.append(value)

        pieces.append(text[cursor:])
        resolution.text = "".join(pieces)
        return resolution

    # ── Stage 2 ──

    async def apply_image_substitutions(
        self,
        slide: SlideHandle,
        element: TextElement,
        substitutions: list[ImageSubstitution],
        context: dict[str, Any] | None = None,
    ) -> None:
        for substitution in substitutions:
            current = element.get_text()
            if substitution.marker not in current:
                continue

            box = element.geometry()
            image_context = {
                **(context or {}),
                "field_name": substitution.field_name,
                "width": int(box.width) or None,
                "height": int(box.height) or None,
            }
            result = await self.image_resolver.resolve(substitution.field_name, substitution.value, image_context)

            error_message = result.message
            if result.success and result.blob:
                remaining = current.replace(substitution.marker, "", 1)
                replaces_element = element.kind == "shape" and not remaining.strip()
                if element.kind == "table_cell":
                    target = default_image_box(slide.size())
                elif replaces_element:
                    target = box
                else:
                    target = image_box_beside(box, slide.size())
                try:
                    slide.insert_image(result.blob, target)
                except Exception as e:
                    error_message = f"Could not insert image: {e}"
                else:
                    self._images_inserted += 1
                    if replaces_element:
                        element.remove()
                        return
                    element.set_text(remaining)
                    continue

            self._image_failures += 1
            logger.warning(
                "image_substitution_failed",
                error_code=ERROR_DEFINITIONS[ErrorCode.IMAGE_PROCESSING_FAILED].code,
                field=substitution.field_name,
                reason=error_message,
            )
            element.set_text(current.replace(substitution.marker, image_error_marker(error_message), 1))

    # ── Driver ──

    async def populate_slide(self, slide: SlideHandle, item: dict[str, Any], template_index: int) -> None:
        title = slide_title(slide)
        slide_context = {
            "slide_index": template_index,
            "slide_type": detect_slide_type(title),
            "slide_title": title,
        }

        for index, element in enumerate(slide.text_elements()):
            text = element.get_text()
            if "{{" not in text:
                continue

            style = element.style()
            is_title = element.kind == "shape" and is_shape_likely_title(
                element.geometry().top, style["font_size"], style["is_bold"]
            )
            context = {
                **slide_context,
                "element_type": element.kind,
                "element_index": index,
                "font_size": style["font_size"],
                "is_bold": style["is_bold"],
                "is_italic": style["is_italic"],
                "is_title": is_title,
            }
            resolution = await self.resolve_text(text, item, context)
            if resolution.text != text:
                element.set_text(resolution.text)
            if resolution.unresolved:
                logger.debug("placeholders_unresolved", fields=resolution.unresolved, slide=template_index)
            if resolution.substitutions:
                await self.apply_image_substitutions(slide, element, resolution.substitutions, context)

    async def materialize(
        self,
        items: list[dict[str, Any]],
        template_id: str,
        destination_id: str,
    ) -> MaterializationReport:
        """Generate the destination deck; raises only for template-level failures."""
        if not items:
            return MaterializationReport(success=False, message="No items to process in the data")

        loop = asyncio.get_running_loop()
        destination = await loop.run_in_executor(
            None, self.store.create_destination, template_id, destination_id
        )
        slide_count = destination.template_slide_count
        if slide_count == 0:
            raise SlidesmithError(ErrorCode.EMPTY_TEMPLATE_DECK, {"template_id": template_id})

        report = MaterializationReport()
        for item_index, item in enumerate(items):
            logger.info("item_processing", item=item_index + 1, total=len(items))
            try:
                for template_index in range(slide_count):
                    slide = destination.duplicate_slide(template_index)
                    report.slides_generated += 1
                    await self.populate_slide(slide, item, template_index)
            except Exception as e:
                logger.exception("item_materialization_failed", item=item_index + 1, error=str(e))
                report.failed_items.append(item_index)
                continue
            report.items_processed += 1

        report.destination = await loop.run_in_executor(None, destination.save)
        report.images_inserted = self._images_inserted
        report.image_failures = self._image_failures
        report.success = report.items_processed > 0
        report.message = f"Generated {report.slides_generated} slides for {len(items)} items"
        if report.failed_items:
            report.message += f" ({len(report.failed_items)} failed)"
        logger.info(
            "materialization_finished",
            items=report.items_processed,
            slides=report.slides_generated,
            failed=len(report.failed_items),
        )
        return report

"""Transformation runs — data source in, generated deck out.

``run_transformation`` is the single entry point used by the API. It never
raises: configuration, upstream and template failures come back as an
``Error`` result carrying a structured ``ErrorInfo``.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import httpx
from pydantic import ValidationError

from slidesmith.config import get_settings
from slidesmith.core.errors import (
    ErrorCode,
    SlidesmithError,
    error_info_from_exception,
    handle_error,
)
from slidesmith.core.logging import get_logger, run_context
from slidesmith.schemas.transform import TransformRequest, TransformResult
from slidesmith.services.completion import CompletionClient, get_completion_client
from slidesmith.services.content_refinement import ContentRefiner, apply_description_prompts
from slidesmith.services.data_mapping import map_with_llm
from slidesmith.services.data_sources import (
    extract_airtable_ids,
    extract_slide_id,
    get_data_source,
    normalize_record,
)
from slidesmith.services.image_resolution import ImageResolver
from slidesmith.services.layout_pairing import detect_layout_from_template, expand_image_fields, pair_items
from slidesmith.services.slide_materializer import SlideMaterializer
from slidesmith.services.template_introspection import build_manifest, get_template_requirements
from slidesmith.services.template_store import DocumentStore, PptxDocumentStore

logger = get_logger(__name__)

__all__ = ["extract_airtable_ids", "extract_slide_id", "run_transformation"]


_FIELD_ERROR_CODES = {
    "template_id": ErrorCode.MISSING_TEMPLATE_DECK_ID,
    "destination_id": ErrorCode.MISSING_FINAL_DECK_ID,
    "layout": ErrorCode.INVALID_LAYOUT,
}


def _validation_error_code(exc: ValidationError) -> ErrorCode:
    """Most specific code for the first failing request field."""
    for error in exc.errors():
        if error["loc"] and error["loc"][0] in _FIELD_ERROR_CODES:
            return _FIELD_ERROR_CODES[error["loc"][0]]
    return ErrorCode.INVALID_PARAMETERS


def _error_result(exc: SlidesmithError) -> TransformResult:
    info = error_info_from_exception(exc)
    return TransformResult(result="Error", message=info.message, error=info)


async def run_transformation(
    request: TransformRequest | dict[str, Any],
    *,
    store: DocumentStore | None = None,
    completion_client: CompletionClient | None = None,
    image_resolver: ImageResolver | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TransformResult:
    """Populate ``destination_id`` with one slide set per record of the source."""
    run_id = str(uuid.uuid4())
    template_id = request.template_id if isinstance(request, TransformRequest) else request.get("template_id")

    with run_context(run_id, template_id if isinstance(template_id, str) else None):
        try:
            if not isinstance(request, TransformRequest):
                request = TransformRequest.model_validate(request)
            logger.info(
                "transformation_started",
                source_type=request.data_source.type,
                destination_id=request.destination_id,
            )
            return await _run(
                request,
                store=store or PptxDocumentStore(),
                completion_client=completion_client,
                image_resolver=image_resolver,
                transport=transport,
            )

        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            info = handle_error(_validation_error_code(e), {"errors": errors}, e)
            return TransformResult(result="Error", message=info.message, error=info)
        except SlidesmithError as e:
            return _error_result(e)
        except Exception as e:
            logger.exception("transformation_failed", error=str(e))
            info = handle_error(ErrorCode.SYSTEM_ERROR, {"reason": str(e)}, e)
            return TransformResult(result="Error", message=info.message, error=info)


async def _run(
    request: TransformRequest,
    *,
    store: DocumentStore,
    completion_client: CompletionClient | None,
    image_resolver: ImageResolver | None,
    transport: httpx.AsyncBaseTransport | None,
) -> TransformResult:
    settings = get_settings()

    # ── Ingest ──
    source = get_data_source(request.data_source, transport=transport)
    dataset = await source.load()
    if not dataset.items:
        logger.info("transformation_no_data", source_type=dataset.source_type)
        if dataset.source_type == "airtable":
            info = handle_error(ErrorCode.NO_MATCHING_RECORDS, {"source_type": dataset.source_type})
            return TransformResult(result="No data", message=info.message, error=info)
        return TransformResult(result="No data", message="No records found in the data source")

    layout = detect_layout_from_template(request.template_id) or request.layout or "single"
    loop = asyncio.get_running_loop()
    manifest = await loop.run_in_executor(None, build_manifest, request.template_id, store)
    if manifest.slide_count == 0:
        raise SlidesmithError(ErrorCode.EMPTY_TEMPLATE_DECK, {"template_id": request.template_id})

    refine = settings.refinement_enabled if request.refine_content is None else request.refine_content
    use_llm_mapping = settings.llm_mapping_enabled if request.use_llm_mapping is None else request.use_llm_mapping
    needs_completion = refine or use_llm_mapping or bool(request.description_fields)
    client = completion_client
    if client is None and needs_completion:
        client = get_completion_client()
    if client is not None and needs_completion:
        client.ensure_configured()

    # ── Shape ──
    items = dataset.items
    details: dict[str, Any] = {"source_type": dataset.source_type, "records": len(items)}

    if use_llm_mapping:
        mapping_manifest = manifest if manifest.fields else get_template_requirements(request.template_id, layout)
        outcome = await map_with_llm(dataset, mapping_manifest, layout, client)
        details["llm_mapping"] = outcome.used_llm
        if outcome.used_llm:
            items = [normalize_record(item, dataset.image_fields) for item in outcome.items]
        elif outcome.message:
            details["llm_mapping_message"] = outcome.message

    if request.description_fields:
        details["descriptions_rewritten"] = await apply_description_prompts(
            items, request.description_fields, client, request.system_instruction
        )

    items = pair_items(items, layout)
    image_fields = expand_image_fields(dataset.image_fields, layout)

    # ── Materialize ──
    materializer = SlideMaterializer(
        store,
        image_resolver or ImageResolver(transport=transport),
        ContentRefiner(client) if refine and client is not None else None,
        image_fields=image_fields,
    )
    report = await materializer.materialize(items, request.template_id, request.destination_id)

    details.update(
        items=len(items),
        failed_items=report.failed_items,
        images_inserted=report.images_inserted,
        image_failures=report.image_failures,
    )
    logger.info(
        "transformation_finished",
        processed=report.items_processed,
        slides=report.slides_generated,
        layout=layout,
    )
    return TransformResult(
        result="Success" if report.success else "Error",
        processed=report.items_processed,
        slides_generated=report.slides_generated,
        message=report.message,
        layout=layout,
        destination=report.destination,
        details=details,
    )

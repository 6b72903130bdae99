"""Template endpoints — list decks, describe their placeholders, upgrade legacy syntax."""

from fastapi import APIRouter, HTTPException, status

from slidesmith.core.errors import ErrorCode, SlidesmithError, error_info_from_exception
from slidesmith.schemas.manifest import (
    ConvertPlaceholdersRequest,
    ManifestRequest,
    TemplateManifest,
)
from slidesmith.schemas.transform import ConversionResult, TemplateSummary
from slidesmith.services.layout_pairing import detect_layout_from_template
from slidesmith.services.template_introspection import (
    build_manifest,
    convert_placeholders_to_standard_format,
)
from slidesmith.services.template_store import PptxDocumentStore

router = APIRouter()


def _raise_http(exc: SlidesmithError) -> None:
    info = error_info_from_exception(exc)
    code = (
        status.HTTP_404_NOT_FOUND
        if exc.code == ErrorCode.INVALID_TEMPLATE_DECK and exc.details.get("reason") == "not found"
        else status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    raise HTTPException(status_code=code, detail=info.model_dump()) from exc


@router.get("", response_model=list[TemplateSummary])
def list_templates() -> list[TemplateSummary]:
    """Decks available in the configured template directory."""
    return [
        TemplateSummary(
            template_id=path.stem,
            name=path.stem,
            layout=detect_layout_from_template(path.stem),
        )
        for path in PptxDocumentStore().list_templates()
    ]


@router.post("/manifest", response_model=TemplateManifest)
def describe_template(body: ManifestRequest) -> TemplateManifest:
    try:
        return build_manifest(body.template_id)
    except SlidesmithError as e:
        _raise_http(e)


@router.post("/convert-placeholders", response_model=ConversionResult)
def convert_placeholders(body: ConvertPlaceholdersRequest) -> ConversionResult:
    """Rewrite ``[field]``, ``<field>`` and ``${field}`` placeholders as ``{{field}}``."""
    result = convert_placeholders_to_standard_format(body.template_id, body.output_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.message)
    return result

"""Transformation schemas — request, result, template listing."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from slidesmith.core.errors import ErrorInfo

# ── Request ──


class DataSourceSpec(BaseModel):
    """Where the records come from.

    ``connection_info`` keys per type:
      airtable      : base_id + table_id, or url; optional filter_formula
      raw_text/csv/json/text : data; optional format
      google_sheets : spreadsheet_id or url; optional sheet_name
    """

    type: str = Field(..., min_length=1)
    connection_info: dict[str, Any] = Field(default_factory=dict)


class DescriptionField(BaseModel):
    """A per-field custom rewrite prompt, applied to every record."""

    field: str = Field(..., min_length=1)
    prompt: str | None = None  # None -> built-in description prompt


class TransformRequest(BaseModel):
    data_source: DataSourceSpec
    template_id: str = Field(..., min_length=1)
    destination_id: str = Field(..., min_length=1)
    layout: Literal["single", "double"] | None = None  # None -> detect from template name
    system_instruction: str = ""
    description_fields: list[DescriptionField] = Field(default_factory=list)
    use_llm_mapping: bool | None = None  # None -> settings.llm_mapping_enabled
    refine_content: bool | None = None  # None -> settings.refinement_enabled

    @field_validator("template_id", "destination_id")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ── Result ──


class TransformResult(BaseModel):
    result: Literal["Success", "Error", "No data"]
    processed: int = 0
    slides_generated: int = 0
    message: str = ""
    layout: str | None = None
    destination: str | None = None
    error: ErrorInfo | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ConversionResult(BaseModel):
    """Outcome of converting legacy placeholder syntax to ``{{field}}``."""

    success: bool
    message: str
    conversions: int = 0
    output_id: str | None = None


# ── Template listing ──


class TemplateSummary(BaseModel):
    template_id: str
    name: str
    layout: str | None = None

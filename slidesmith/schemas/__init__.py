"""Pydantic schemas for API request/response validation."""

from slidesmith.schemas.transform import (
    ConversionResult,
    DataSourceSpec,
    DescriptionField,
    TemplateSummary,
    TransformRequest,
    TransformResult,
)
from slidesmith.schemas.manifest import (
    ConvertPlaceholdersRequest,
    ElementDescriptor,
    ElementPosition,
    FieldExample,
    FieldRequirement,
    ManifestRequest,
    SlideDescriptor,
    TableCell,
    TemplateManifest,
)

__all__ = [
    "ConversionResult",
    "DataSourceSpec",
    "DescriptionField",
    "TemplateSummary",
    "TransformRequest",
    "TransformResult",
    "ConvertPlaceholdersRequest",
    "ElementDescriptor",
    "ElementPosition",
    "FieldExample",
    "FieldRequirement",
    "ManifestRequest",
    "SlideDescriptor",
    "TableCell",
    "TemplateManifest",
]

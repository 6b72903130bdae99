"""Template manifest schemas — discovered placeholders and slide structure."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class FieldExample(BaseModel):
    """One place a placeholder appears in the template."""

    slide_index: int
    slide_number: int
    context: str  # full text of the element holding the token


class FieldRequirement(BaseModel):
    name: str
    description: str
    required: bool = True
    examples: list[FieldExample] = Field(default_factory=list)


class ElementPosition(BaseModel):
    """Element geometry in points."""

    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0


class TableCell(BaseModel):
    row: int
    col: int
    text: str


class ElementDescriptor(BaseModel):
    type: Literal["shape", "table"]
    index: int
    text: str = ""
    is_title: bool = False
    font_size: float | None = None
    is_bold: bool = False
    is_italic: bool = False
    position: ElementPosition | None = None
    # Tables only
    rows: int | None = None
    cols: int | None = None
    cells: list[TableCell] = Field(default_factory=list)


class SlideDescriptor(BaseModel):
    slide_index: int
    slide_number: int
    elements: list[ElementDescriptor] = Field(default_factory=list)


class TemplateManifest(BaseModel):
    name: str
    description: str = "Auto-detected template structure"
    slide_count: int = 0
    fields: list[FieldRequirement] = Field(default_factory=list)
    slide_structure: list[SlideDescriptor] = Field(default_factory=list)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class ManifestRequest(BaseModel):
    template_id: str = Field(..., min_length=1)


class ConvertPlaceholdersRequest(BaseModel):
    template_id: str = Field(..., min_length=1)
    output_id: str | None = None  # None -> overwrite the template in place

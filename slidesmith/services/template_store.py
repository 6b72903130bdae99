"""Template/document store backed by .pptx files (python-pptx).

A template id is a path to a ``.pptx`` file; relative ids are looked up in
``settings.template_dir``. A destination is created by re-opening the
template, appending clones of its slides, and dropping the original slides
on save, so masters, layouts and theme come along unchanged.

All geometry crossing this module's boundary is in points.
"""

from __future__ import annotations

import zipfile
from copy import deepcopy
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Iterator, Protocol

from pptx import Presentation
from pptx.exc import PackageNotFoundError
from pptx.opc.constants import RELATIONSHIP_TYPE as RT
from pptx.oxml.ns import qn
from pptx.oxml.xmlchemy import OxmlElement
from pptx.shapes.group import GroupShape
from pptx.util import Emu, Pt

from slidesmith.config import get_settings
from slidesmith.core.errors import ErrorCode, SlidesmithError
from slidesmith.core.logging import get_logger

logger = get_logger(__name__)

EMU_PER_POINT = 12700
_R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_RUN_LEVEL_TAGS = (qn("a:r"), qn("a:br"), qn("a:fld"))


@dataclass
class Box:
    """Rectangle in points."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width


def _pt(value: int | None) -> float:
    return round((value or 0) / EMU_PER_POINT, 2)


# ── Interfaces ──


class TextElement(Protocol):
    kind: str  # "shape" | "table_cell"
    shape_index: int
    row: int | None
    col: int | None
    table_size: tuple[int, int] | None

    def get_text(self) -> str: ...
    def set_text(self, text: str) -> None: ...
    def geometry(self) -> Box: ...
    def style(self) -> dict[str, Any]: ...
    def remove(self) -> None: ...


class SlideHandle(Protocol):
    index: int

    def text_elements(self) -> list[TextElement]: ...
    def size(self) -> tuple[float, float]: ...
    def insert_image(self, blob: bytes, box: Box) -> Box: ...


class TemplateDocument(Protocol):
    template_id: str
    name: str

    def slides(self) -> list[SlideHandle]: ...
    def save(self, destination_id: str | None = None) -> str: ...


class DestinationDocument(Protocol):
    destination_id: str

    @property
    def template_slide_count(self) -> int: ...
    def duplicate_slide(self, template_index: int) -> SlideHandle: ...
    def save(self) -> str: ...


class DocumentStore(Protocol):
    def open_template(self, template_id: str) -> TemplateDocument: ...
    def create_destination(self, template_id: str, destination_id: str) -> DestinationDocument: ...


# ── python-pptx implementation ──


def _first_run_font(text_frame):
    for paragraph in text_frame.paragraphs:
        for run in paragraph.runs:
            return run.font
    return None


def _write_text_frame(text_frame, text: str) -> None:
    """Replace the frame's text, keeping each paragraph's first-run formatting."""
    lines = text.split("\n")
    paragraphs = list(text_frame.paragraphs)

    for i, line in enumerate(lines):
        if i < len(paragraphs):
            paragraph = paragraphs[i]
        else:
            template_p = paragraphs[-1]._p
            new_p = deepcopy(template_p)
            template_p.addnext(new_p)
            paragraphs = list(text_frame.paragraphs)
            paragraph = paragraphs[i]

        runs = paragraph.runs
        if not runs:
            paragraph.text = line
            continue
        first = runs[0]._r
        for child in list(paragraph._p):
            if child is first:
                continue
            if child.tag in _RUN_LEVEL_TAGS:
                paragraph._p.remove(child)

        # Soft line breaks ("\v") become a:br followed by a copy of the first run
        segments = line.split("\v")
        first.t.text = segments[0]
        anchor = first
        for segment in segments[1:]:
            br = OxmlElement("a:br")
            r_pr = first.find(qn("a:rPr"))
            if r_pr is not None:
                br.append(deepcopy(r_pr))
            anchor.addnext(br)
            run = deepcopy(first)
            run.t.text = segment
            br.addnext(run)
            anchor = run

    for extra in list(text_frame.paragraphs)[len(lines):]:
        extra._p.getparent().remove(extra._p)


class PptxTextElement:
    """A text-bearing shape or a single table cell."""

    def __init__(
        self,
        shape,
        shape_index: int,
        *,
        cell=None,
        row: int | None = None,
        col: int | None = None,
        table_size: tuple[int, int] | None = None,
    ) -> None:
        self._shape = shape
        self._cell = cell
        self.shape_index = shape_index
        self.kind = "table_cell" if cell is not None else "shape"
        self.row = row
        self.col = col
        self.table_size = table_size

    @property
    def text_frame(self):
        return self._cell.text_frame if self._cell is not None else self._shape.text_frame

    def get_text(self) -> str:
        return self.text_frame.text

    def set_text(self, text: str) -> None:
        _write_text_frame(self.text_frame, text)

    def geometry(self) -> Box:
        return Box(
            left=_pt(self._shape.left),
            top=_pt(self._shape.top),
            width=_pt(self._shape.width),
            height=_pt(self._shape.height),
        )

    def style(self) -> dict[str, Any]:
        font = _first_run_font(self.text_frame)
        if font is None:
            return {"font_size": None, "is_bold": False, "is_italic": False}
        return {
            "font_size": font.size.pt if font.size is not None else None,
            "is_bold": bool(font.bold),
            "is_italic": bool(font.italic),
        }

    def remove(self) -> None:
        if self._cell is not None:
            self._cell.text = ""
            return
        element = self._shape._element
        element.getparent().remove(element)


def _iter_text_elements(shapes, shape_index: int | None = None) -> Iterator[PptxTextElement]:
    for i, shape in enumerate(shapes):
        index = i if shape_index is None else shape_index
        if isinstance(shape, GroupShape):
            yield from _iter_text_elements(shape.shapes, index)
        elif getattr(shape, "has_table", False):
            table = shape.table
            size = (len(table.rows), len(table.columns))
            for r in range(size[0]):
                for c in range(size[1]):
                    yield PptxTextElement(
                        shape, index, cell=table.cell(r, c), row=r, col=c, table_size=size
                    )
        elif shape.has_text_frame:
            yield PptxTextElement(shape, index)


class PptxSlide:
    def __init__(self, slide, index: int, slide_size: tuple[float, float]) -> None:
        self._slide = slide
        self.index = index
        self._size = slide_size

    def text_elements(self) -> list[PptxTextElement]:
        return list(_iter_text_elements(self._slide.shapes))

    def size(self) -> tuple[float, float]:
        return self._size

    def insert_image(self, blob: bytes, box: Box) -> Box:
        """Add a picture fitted inside ``box`` (aspect ratio kept)."""
        picture = self._slide.shapes.add_picture(
            BytesIO(blob), Pt(box.left), Pt(box.top), width=Pt(box.width)
        )
        if picture.height > Pt(box.height) and box.height > 0:
            ratio = Pt(box.height) / picture.height
            picture.width = Emu(int(picture.width * ratio))
            picture.height = Pt(box.height)
        return Box(box.left, box.top, _pt(picture.width), _pt(picture.height))


def _slide_size(prs) -> tuple[float, float]:
    return _pt(prs.slide_width), _pt(prs.slide_height)


def _remap_rel_ids(element, mapping: dict[str, str]) -> None:
    for node in element.iter():
        for attr, value in node.attrib.items():
            if attr.startswith(f"{{{_R_NS}}}") and value in mapping:
                node.set(attr, mapping[value])


def clone_slide(prs, source):
    """Append a copy of ``source`` (a slide of ``prs``) and return it."""
    new_slide = prs.slides.add_slide(source.slide_layout)
    for shape in list(new_slide.shapes):
        element = shape._element
        element.getparent().remove(element)

    rid_map: dict[str, str] = {}
    for rid, rel in source.part.rels.items():
        if rel.reltype in (RT.SLIDE_LAYOUT, RT.NOTES_SLIDE):
            continue
        if rel.is_external:
            rid_map[rid] = new_slide.part.relate_to(rel.target_ref, rel.reltype, is_external=True)
        else:
            rid_map[rid] = new_slide.part.relate_to(rel.target_part, rel.reltype)

    background = source._element.cSld.bg
    if background is not None:
        new_bg = deepcopy(background)
        _remap_rel_ids(new_bg, rid_map)
        new_slide._element.cSld.insert(0, new_bg)

    for shape in source.shapes:
        new_element = deepcopy(shape._element)
        _remap_rel_ids(new_element, rid_map)
        new_slide.shapes._spTree.insert_element_before(new_element, "p:extLst")
    return new_slide


def resolve_template_path(template_id: str) -> Path:
    path = Path(template_id)
    if path.suffix.lower() != ".pptx":
        path = path.with_name(path.name + ".pptx")
    if not path.is_absolute() and not path.exists():
        path = Path(get_settings().template_dir) / path
    return path


def resolve_destination_path(destination_id: str) -> Path:
    path = Path(destination_id)
    if path.suffix.lower() != ".pptx":
        path = path.with_name(path.name + ".pptx")
    if not path.is_absolute() and path.parent == Path("."):
        path = Path(get_settings().output_dir) / path
    return path


def _open_presentation(template_id: str):
    path = resolve_template_path(template_id)
    if not path.is_file():
        raise SlidesmithError(ErrorCode.INVALID_TEMPLATE_DECK, {"template_id": template_id, "reason": "not found"})
    try:
        return path, Presentation(str(path))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise SlidesmithError(
            ErrorCode.INVALID_TEMPLATE_DECK, {"template_id": template_id, "reason": str(e)}
        ) from e


class PptxTemplate:
    def __init__(self, template_id: str, path: Path, prs) -> None:
        self.template_id = template_id
        self.path = path
        self.name = path.stem
        self._prs = prs

    def slides(self) -> list[PptxSlide]:
        size = _slide_size(self._prs)
        return [PptxSlide(slide, i, size) for i, slide in enumerate(self._prs.slides)]

    def save(self, destination_id: str | None = None) -> str:
        target = resolve_destination_path(destination_id) if destination_id else self.path
        target.parent.mkdir(parents=True, exist_ok=True)
        self._prs.save(str(target))
        return str(target)


class PptxDestination:
    def __init__(self, destination_id: str, path: Path, prs) -> None:
        self.destination_id = destination_id
        self.path = path
        self._prs = prs
        self._template_slides = list(prs.slides)
        self._size = _slide_size(prs)
        self._generated = 0

    @property
    def template_slide_count(self) -> int:
        return len(self._template_slides)

    @property
    def slides_generated(self) -> int:
        return self._generated

    def duplicate_slide(self, template_index: int) -> PptxSlide:
        new_slide = clone_slide(self._prs, self._template_slides[template_index])
        self._generated += 1
        return PptxSlide(new_slide, len(self._prs.slides) - 1, self._size)

    def save(self) -> str:
        """Drop the template's own slides and write the deck."""
        sld_id_lst = self._prs.slides._sldIdLst
        for sld_id in list(sld_id_lst)[: len(self._template_slides)]:
            rid = sld_id.rId
            sld_id_lst.remove(sld_id)
            self._prs.part.drop_rel(rid)
        self._template_slides = []

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._prs.save(str(self.path))
        except OSError as e:
            raise SlidesmithError(
                ErrorCode.INVALID_FINAL_DECK, {"destination_id": self.destination_id, "reason": str(e)}
            ) from e
        logger.info("deck_saved", path=str(self.path), slides=self._generated)
        return str(self.path)


class PptxDocumentStore:
    """DocumentStore over .pptx files on the local filesystem."""

    def open_template(self, template_id: str) -> PptxTemplate:
        path, prs = _open_presentation(template_id)
        return PptxTemplate(template_id, path, prs)

    def create_destination(self, template_id: str, destination_id: str) -> PptxDestination:
        _, prs = _open_presentation(template_id)
        return PptxDestination(destination_id, resolve_destination_path(destination_id), prs)

    def list_templates(self, template_dir: str | None = None) -> list[Path]:
        root = Path(template_dir or get_settings().template_dir)
        if not root.is_dir():
            return []
        return sorted(p for p in root.glob("*.pptx") if not p.name.startswith("~$"))

"""Shared fixtures: isolated settings, generated .pptx decks, fake completion clients."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE
from pptx.util import Pt

from slidesmith.config import get_settings
from slidesmith.core.errors import ErrorCode, SlidesmithError
from slidesmith.services.completion import get_completion_client

BLANK_LAYOUT = 6


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point template/output dirs at tmp_path and clear all credentials."""
    templates = tmp_path / "templates"
    output = tmp_path / "output"
    templates.mkdir()
    output.mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TEMPLATE_DIR", str(templates))
    monkeypatch.setenv("OUTPUT_DIR", str(output))
    for var in ("GEMINI_API_KEY_1", "GEMINI_API_KEY_2", "GEMINI_API_KEY_3", "LLM_API_KEYS", "AIRTABLE_API_KEY"):
        monkeypatch.setenv(var, "")
    monkeypatch.setenv("REFINEMENT_ENABLED", "false")
    monkeypatch.setenv("LLM_MAPPING_ENABLED", "false")
    get_settings.cache_clear()
    get_completion_client.cache_clear()
    yield
    get_settings.cache_clear()
    get_completion_client.cache_clear()


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (40, 30), "red").save(buf, format="PNG")
    return buf.getvalue()


# ── Deck builder ──


def _add_textbox(slide, element: dict[str, Any]) -> None:
    box = slide.shapes.add_textbox(
        Pt(element.get("left", 40)),
        Pt(element.get("top", 200)),
        Pt(element.get("width", 300)),
        Pt(element.get("height", 60)),
    )
    frame = box.text_frame
    frame.text = element["text"]
    for paragraph in frame.paragraphs:
        for run in paragraph.runs:
            if element.get("size"):
                run.font.size = Pt(element["size"])
            if element.get("bold"):
                run.font.bold = True
            if element.get("italic"):
                run.font.italic = True


def _add_table(slide, element: dict[str, Any]) -> None:
    cells: list[list[str]] = element["table"]
    shape = slide.shapes.add_table(
        len(cells),
        len(cells[0]),
        Pt(element.get("left", 40)),
        Pt(element.get("top", 300)),
        Pt(element.get("width", 400)),
        Pt(element.get("height", 80)),
    )
    for r, row in enumerate(cells):
        for c, text in enumerate(row):
            shape.table.cell(r, c).text = text


def build_deck(path: Path, slides: list[list[dict[str, Any]]]) -> Path:
    """Write a deck; each slide is a list of textbox (``text``) or table (``table``) dicts."""
    prs = Presentation()
    for elements in slides:
        slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
        for element in elements:
            if "table" in element:
                _add_table(slide, element)
            else:
                _add_textbox(slide, element)
    path.parent.mkdir(parents=True, exist_ok=True)
    prs.save(str(path))
    return path


def read_deck(path: str | Path) -> list[list[str]]:
    """Every non-empty text on every slide: textboxes, then table cells, in shape order."""
    texts: list[list[str]] = []
    for slide in Presentation(str(path)).slides:
        slide_texts = []
        for shape in slide.shapes:
            if shape.has_table:
                for row in shape.table.rows:
                    slide_texts.extend(cell.text for cell in row.cells if cell.text)
            elif shape.has_text_frame and shape.text_frame.text:
                slide_texts.append(shape.text_frame.text)
        texts.append(slide_texts)
    return texts


def count_pictures(path: str | Path) -> list[int]:
    return [
        sum(1 for shape in slide.shapes if shape.shape_type == MSO_SHAPE_TYPE.PICTURE)
        for slide in Presentation(str(path)).slides
    ]


@pytest.fixture
def template_dir(tmp_path) -> Path:
    return tmp_path / "templates"


@pytest.fixture
def make_deck(template_dir) -> Callable[..., Path]:
    def _make(name: str, slides: list[list[dict[str, Any]]]) -> Path:
        return build_deck(template_dir / f"{name}.pptx", slides)

    return _make


# ── Completion fakes ──


class FakeCompletionClient:
    """Stands in for CompletionClient; answers come from ``responder(prompt)``."""

    def __init__(self, responder: Callable[[str], str] | str = "", api_keys: list[str] | None = None) -> None:
        self.responder = responder
        self.api_keys = ["test-key"] if api_keys is None else api_keys
        self.calls: list[tuple[str, str]] = []

    def ensure_configured(self) -> None:
        if not self.api_keys:
            raise SlidesmithError(ErrorCode.MISSING_AI_API_KEYS)

    async def complete(self, prompt: str, system_instruction: str = "") -> str:
        self.calls.append((prompt, system_instruction))
        if callable(self.responder):
            return self.responder(prompt)
        return self.responder


@pytest.fixture
def fake_completion() -> Callable[..., FakeCompletionClient]:
    return FakeCompletionClient

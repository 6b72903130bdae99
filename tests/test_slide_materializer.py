"""Tests for slide materialization: text resolution, image substitution, per-item isolation."""

import httpx
import pytest
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from conftest import FakeCompletionClient, count_pictures, read_deck
from slidesmith.core.errors import SlidesmithError
from slidesmith.services.content_refinement import ContentRefiner
from slidesmith.services.image_resolution import DirectoryBlobStore, ImageResolver
from slidesmith.services.slide_materializer import (
    SlideMaterializer,
    default_image_box,
    image_box_beside,
)
from slidesmith.services.template_store import Box, PptxDocumentStore

LONG_DESCRIPTION = (
    "Acme designs autonomous inspection drones for offshore wind farms, cutting maintenance costs "
    "and downtime for operators across Europe."
)


@pytest.fixture
def resolver(png_bytes, tmp_path) -> ImageResolver:
    def handler(request: httpx.Request) -> httpx.Response:
        if "missing" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

    return ImageResolver(DirectoryBlobStore(tmp_path), transport=httpx.MockTransport(handler))


def _pictures(path: str, slide_index: int = 0):
    slide = Presentation(path).slides[slide_index]
    return [s for s in slide.shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]


class TestResolveText:
    @pytest.mark.asyncio
    async def test_text_fields_and_unresolved(self, resolver):
        materializer = SlideMaterializer(PptxDocumentStore(), resolver)
        resolution = await materializer.resolve_text(
            "{{company_name}} in {{City}} ({{unknown}})", {"companyName": "Acme", "city": "Oslo"}
        )
        assert resolution.text == "Acme in Oslo ({{unknown}})"
        assert resolution.unresolved == ["unknown"]
        assert resolution.substitutions == []

    @pytest.mark.asyncio
    async def test_image_fields_become_markers(self, resolver):
        materializer = SlideMaterializer(PptxDocumentStore(), resolver, image_fields={"headshot"})
        resolution = await materializer.resolve_text(
            "{{logo}} and {{headshot}}", {"logo": "https://x/l.png", "headshot": "https://x/h.png"}
        )
        assert resolution.text == "[IMAGE:logo] and [IMAGE:headshot]"
        assert [(s.field_name, s.value) for s in resolution.substitutions] == [
            ("logo", "https://x/l.png"),
            ("headshot", "https://x/h.png"),
        ]

    @pytest.mark.asyncio
    async def test_refinement_only_when_eligible(self, resolver):
        client = FakeCompletionClient("Inspection drones for wind farms.")
        materializer = SlideMaterializer(PptxDocumentStore(), resolver, ContentRefiner(client))
        resolution = await materializer.resolve_text(
            "{{name}}: {{description}}", {"name": "Acme", "description": LONG_DESCRIPTION}
        )
        assert resolution.text == "Acme: Inspection drones for wind farms."
        assert resolution.refined == ["description"]
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_refinement_failure_keeps_value(self, resolver):
        materializer = SlideMaterializer(PptxDocumentStore(), resolver, ContentRefiner(FakeCompletionClient("")))
        resolution = await materializer.resolve_text("{{description}}", {"description": LONG_DESCRIPTION})
        assert resolution.text == LONG_DESCRIPTION
        assert resolution.refined == []


class TestImageBoxes:
    def test_beside_element(self):
        box = image_box_beside(Box(40, 200, 300, 60), (720, 540))
        assert (box.left, box.top, box.width, box.height) == (360, 200, 300, 60)

    def test_clipped_to_slide(self):
        box = image_box_beside(Box(40, 200, 500, 60), (720, 540))
        assert box.width == 160

    def test_off_slide_uses_default(self):
        assert image_box_beside(Box(600, 200, 300, 60), (720, 540)) == default_image_box((720, 540))

    def test_default_box(self):
        box = default_image_box((720, 540))
        assert (box.left, box.top, box.width, box.height) == pytest.approx((432, 162, 216, 270))


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_one_slide_set_per_item(self, make_deck, resolver, tmp_path):
        make_deck(
            "pitch",
            [
                [{"text": "{{name}}", "top": 20, "size": 28}, {"text": "Based in {{city}}"}],
                [{"table": [["Stage", "{{stage}}"]]}],
            ],
        )
        items = [
            {"name": "Acme", "city": "Oslo", "stage": "Seed"},
            {"name": "Beta", "city": "Lima", "stage": "Series A"},
        ]
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(items, "pitch", "out")

        assert report.success
        assert report.items_processed == 2
        assert report.slides_generated == 4
        assert report.message == "Generated 4 slides for 2 items"
        assert read_deck(report.destination) == [
            ["Acme", "Based in Oslo"],
            ["Stage", "Seed"],
            ["Beta", "Based in Lima"],
            ["Stage", "Series A"],
        ]
        assert read_deck(tmp_path / "templates" / "pitch.pptx")[0] == ["{{name}}", "Based in {{city}}"]

    @pytest.mark.asyncio
    async def test_image_replaces_whole_element(self, make_deck, resolver):
        make_deck("logo", [[{"text": "{{logo}}", "left": 40, "top": 200, "width": 300, "height": 60}]])
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(
            [{"logo": "https://cdn.example.com/logo.png"}], "logo", "out"
        )

        assert report.images_inserted == 1
        assert read_deck(report.destination) == [[]]
        (picture,) = _pictures(report.destination)
        assert picture.left == pytest.approx(40 * 12700, abs=12700)
        assert picture.height == pytest.approx(60 * 12700, abs=12700)

    @pytest.mark.asyncio
    async def test_inline_image_placed_beside_text(self, make_deck, resolver):
        make_deck("inline", [[{"text": "Logo: {{logo}}", "left": 40, "top": 200, "width": 300, "height": 60}]])
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(
            [{"logo": "https://cdn.example.com/logo.png"}], "inline", "out"
        )

        assert read_deck(report.destination) == [["Logo: "]]
        (picture,) = _pictures(report.destination)
        assert picture.left == pytest.approx(360 * 12700, abs=12700)

    @pytest.mark.asyncio
    async def test_image_in_table_cell_uses_default_spot(self, make_deck, resolver):
        make_deck("table", [[{"table": [["Logo", "{{logo}}"]]}]])
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(
            [{"logo": "https://cdn.example.com/logo.png"}], "table", "out"
        )

        assert read_deck(report.destination) == [["Logo"]]
        (picture,) = _pictures(report.destination)
        assert picture.left == pytest.approx(432 * 12700, abs=12700)

    @pytest.mark.asyncio
    async def test_failed_image_leaves_error_marker(self, make_deck, resolver):
        make_deck("broken", [[{"text": "{{name}} {{logo}}"}]])
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(
            [{"name": "Acme", "logo": "https://cdn.example.com/missing.png"}], "broken", "out"
        )

        assert report.success
        assert report.image_failures == 1
        assert read_deck(report.destination) == [["Acme [Image Error: Failed to fetch image: HTTP 404]"]]
        assert count_pictures(report.destination) == [0]

    @pytest.mark.asyncio
    async def test_paired_image_fields(self, make_deck, resolver):
        make_deck("pair", [[{"text": "{{item1Headshot}}"}, {"text": "{{item2Headshot}}", "top": 300}]])
        materializer = SlideMaterializer(
            PptxDocumentStore(), resolver, image_fields={"item1Headshot", "item2Headshot"}
        )
        report = await materializer.materialize(
            [{"item1Headshot": "https://x/a.png", "item2Headshot": "https://x/b.png"}], "pair", "out"
        )
        assert count_pictures(report.destination) == [2]

    @pytest.mark.asyncio
    async def test_failing_item_does_not_stop_others(self, make_deck, resolver):
        make_deck("iso", [[{"text": "{{name}}"}]])
        items = [{"name": "Acme"}, None, {"name": "Gamma"}]
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(items, "iso", "out")

        assert report.success
        assert report.items_processed == 2
        assert report.failed_items == [1]
        texts = read_deck(report.destination)
        assert texts[0] == ["Acme"]
        assert texts[-1] == ["Gamma"]

    @pytest.mark.asyncio
    async def test_soft_line_breaks_survive(self, make_deck, resolver):
        make_deck("card", [[{"text": "Name: {{name}}\vCity: {{city}}"}]])
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize(
            [{"name": "Acme", "city": "Oslo"}], "card", "out"
        )
        assert read_deck(report.destination) == [["Name: Acme\vCity: Oslo"]]

    @pytest.mark.asyncio
    async def test_large_body_text_not_refined_as_title(self, make_deck, resolver):
        make_deck("body", [[{"text": "{{description}}", "top": 300, "size": 20}]])
        client = FakeCompletionClient("Inspection drones for wind farms.")
        materializer = SlideMaterializer(PptxDocumentStore(), resolver, ContentRefiner(client))
        await materializer.materialize([{"description": LONG_DESCRIPTION}], "body", "out")

        [(prompt, _)] = client.calls
        assert "very concise (1-5 words)" not in prompt
        assert "brief (10-20 words)" in prompt

    @pytest.mark.asyncio
    async def test_text_near_top_refined_as_title(self, make_deck, resolver):
        make_deck("head", [[{"text": "{{description}}", "top": 20, "size": 28}]])
        client = FakeCompletionClient("Wind drones")
        materializer = SlideMaterializer(PptxDocumentStore(), resolver, ContentRefiner(client))
        await materializer.materialize([{"description": LONG_DESCRIPTION}], "head", "out")

        [(prompt, _)] = client.calls
        assert "very concise (1-5 words)" in prompt

    @pytest.mark.asyncio
    async def test_no_items(self, resolver):
        report = await SlideMaterializer(PptxDocumentStore(), resolver).materialize([], "any", "out")
        assert report.success is False
        assert report.message == "No items to process in the data"

    @pytest.mark.asyncio
    async def test_empty_template(self, make_deck, resolver):
        make_deck("empty", [])
        with pytest.raises(SlidesmithError):
            await SlideMaterializer(PptxDocumentStore(), resolver).materialize([{"a": 1}], "empty", "out")

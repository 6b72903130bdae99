"""Tests for double-layout pairing."""

import math

import pytest

from slidesmith.services.layout_pairing import (
    MISSING_DESCRIPTION,
    MISSING_NAME,
    detect_layout_from_template,
    expand_image_fields,
    is_image_placeholder,
    pair_items,
)


def _items(n: int) -> list[dict]:
    return [{"name": f"Co {i}", "description": f"Desc {i}", "logo": f"https://x/{i}.png"} for i in range(n)]


class TestPairItems:
    def test_two_items(self):
        paired = pair_items(
            [{"name": "A", "description": "short"}, {"name": "B", "description": "short"}], "double"
        )
        assert len(paired) == 1
        record = paired[0]
        assert record["item1Name"] == "A"
        assert record["item2Name"] == "B"
        assert record["company1Name"] == "A"
        assert record["company2Name"] == "B"
        assert record["company1Description"] == "short"
        assert record["company2Description"] == "short"

    @pytest.mark.parametrize("n", [1, 3, 5])
    def test_odd_count(self, n):
        paired = pair_items(_items(n), "double")
        assert len(paired) == math.ceil(n / 2)
        last = paired[-1]
        assert last["item2Name"] == MISSING_NAME
        assert last["company2Name"] == MISSING_NAME
        assert last["item2Description"] == MISSING_DESCRIPTION
        assert last["company1Logo"] == f"https://x/{n - 1}.png"
        assert last["item1Logo"] == f"https://x/{n - 1}.png"

    def test_idempotent(self):
        once = pair_items(_items(4), "double")
        assert pair_items(once, "double") == once

    def test_single_layout_is_identity(self):
        items = _items(3)
        assert pair_items(items, "single") is items
        assert pair_items(items, None) is items

    def test_empty(self):
        assert pair_items([], "double") == []

    def test_name_alias_fallbacks(self):
        paired = pair_items([{"title": "T"}, {"companyName": "C", "name": "ignored"}], "double")
        record = paired[0]
        assert record["company1Name"] == "T"
        assert record["company2Name"] == "C"
        assert record["company1Description"] == ""

    def test_unnamed_items(self):
        record = pair_items([{"about": "x"}, {"other": "y"}], "double")[0]
        assert record["company1Name"] == "Item 1"
        assert record["company2Name"] == "Item 2"
        assert record["company1Description"] == "x"

    def test_key_prefixing(self):
        record = pair_items([{"date founded": "2019"}, {"Website": "w"}], "double")[0]
        assert record["item1Date founded"] == "2019"
        assert record["item2Website"] == "w"


class TestLayoutHelpers:
    @pytest.mark.parametrize(
        ("template_id", "expected"),
        [
            ("Startups_Double.pptx", "double"),
            ("templates/single-company", "single"),
            ("pitch", None),
            ("", None),
        ],
    )
    def test_detect_layout(self, template_id, expected):
        assert detect_layout_from_template(template_id) == expected

    def test_expand_image_fields(self):
        assert expand_image_fields({"headshot"}, "double") == {
            "headshot",
            "item1Headshot",
            "item2Headshot",
            "company1Headshot",
        }
        assert expand_image_fields({"headshot"}, "single") == {"headshot"}

    def test_is_image_placeholder(self):
        assert is_image_placeholder("item1Logo")
        assert is_image_placeholder("item2Headshot", {"item2Headshot"})
        assert not is_image_placeholder("item2Headshot")

"""Tests for placeholder discovery, manifests and legacy conversion."""

import pytest

from conftest import read_deck
from slidesmith.core.errors import SlidesmithError
from slidesmith.services.template_introspection import (
    convert_legacy_placeholders,
    convert_placeholders_to_standard_format,
    detect_slide_type,
    find_placeholders,
    format_required_mappings,
    format_template_description,
    get_template_requirements,
    build_manifest,
)


class TestFindPlaceholders:
    def test_tokens_and_trimmed_names(self):
        matches = find_placeholders("Hello {{ name }}, from {{city}} {{not closed")
        assert [m.field_name for m in matches] == ["name", "city"]
        assert matches[0].token == "{{ name }}"

    def test_no_tokens(self):
        assert find_placeholders("plain text") == []


class TestBuildManifest:
    def test_greeting_slide(self, make_deck):
        make_deck("greeting", [[{"text": "Hello {{name}}, welcome to {{city}}"}]])
        manifest = build_manifest("greeting")

        assert manifest.name == "greeting"
        assert manifest.slide_count == 1
        assert {f.name for f in manifest.fields} == {"name", "city"}
        for requirement in manifest.fields:
            assert requirement.required is True
            assert len(requirement.examples) == 1
            assert requirement.examples[0].context == "Hello {{name}}, welcome to {{city}}"
            assert requirement.examples[0].slide_number == 1

    def test_discovery_is_repeatable(self, make_deck):
        make_deck(
            "repeat",
            [
                [{"text": "{{name}}", "top": 20}, {"text": "{{description}}"}],
                [{"table": [["{{name}}", "{{revenue}}"]]}],
            ],
        )
        first = build_manifest("repeat")
        second = build_manifest("repeat")
        assert first.fields == second.fields
        assert first.field_names == ["name", "description", "revenue"]

    def test_examples_capped(self, make_deck):
        make_deck("many", [[{"text": f"{{{{name}}}} {i}"}] for i in range(5)])
        requirement = build_manifest("many").fields[0]
        assert len(requirement.examples) == 3
        assert [e.slide_index for e in requirement.examples] == [0, 1, 2]

    def test_one_example_per_element(self, make_deck):
        make_deck("twice", [[{"text": "{{name}} and {{name}}"}]])
        assert len(build_manifest("twice").fields[0].examples) == 1

    def test_slide_structure(self, make_deck):
        make_deck(
            "structure",
            [[{"text": "Title {{name}}", "top": 20, "size": 32}, {"table": [["a", ""], ["", "{{x}}"]]}]],
        )
        slide = build_manifest("structure").slide_structure[0]
        shape, table = slide.elements

        assert shape.type == "shape"
        assert shape.is_title is True
        assert shape.font_size == 32
        assert table.type == "table"
        assert (table.rows, table.cols) == (2, 2)
        assert [(c.row, c.col, c.text) for c in table.cells] == [(0, 0, "a"), (1, 1, "{{x}}")]

    def test_missing_template(self):
        with pytest.raises(SlidesmithError):
            build_manifest("does-not-exist")


class TestSlideType:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("", "unknown"),
            ("Company Overview", "overview"),
            ("The Problem", "problem"),
            ("Market Opportunity", "market"),
            ("Meet the Team", "team"),
            ("Thank you!", "contact"),
            ("Roadmap", "general"),
        ],
    )
    def test_keywords(self, title, expected):
        assert detect_slide_type(title) == expected


class TestLegacyConversion:
    def test_convert_text(self):
        text, count = convert_legacy_placeholders("[name] from <city> in ${country}")
        assert text == "{{name}} from {{city}} in {{country}}"
        assert count == 3

    def test_convert_deck(self, make_deck, tmp_path):
        make_deck("legacy", [[{"text": "[name]"}, {"text": "no placeholders"}], [{"table": [["<revenue>"]]}]])
        result = convert_placeholders_to_standard_format("legacy", str(tmp_path / "converted.pptx"))

        assert result.success
        assert result.conversions == 2
        assert result.message == "Converted 2 placeholders to standard {{field}} format"
        assert read_deck(result.output_id) == [["{{name}}", "no placeholders"], ["{{revenue}}"]]

    def test_convert_missing_template(self):
        result = convert_placeholders_to_standard_format("missing")
        assert result.success is False

    def test_convert_empty_deck(self, make_deck):
        make_deck("empty", [])
        result = convert_placeholders_to_standard_format("empty")
        assert result.success is False
        assert result.message == "Presentation has no slides"


class TestRequirementsAndPromptText:
    def test_named_template(self):
        assert get_template_requirements("startup_pitch_v2", None).name == "Pitch Deck Template"

    def test_layout_fallback(self):
        assert get_template_requirements("my deck", "double").name == "Double Item Template"
        assert get_template_requirements(None, None).name == "Generic Template"

    def test_required_mappings_for_double(self, make_deck):
        make_deck("pair", [[{"text": "{{item1Name}} vs {{item2Name}}"}]])
        text = format_required_mappings(build_manifest("pair"), "double")
        assert "### {{item1Name}}" in text
        assert "DOUBLE layout" in text
        assert 'Slide 1: "{{item1Name}} vs {{item2Name}}"' in text

    def test_descriptions_without_manifest(self):
        assert format_template_description(None) == "No template information available."
        assert format_required_mappings(None).startswith("No specific mapping requirements")

"""Tests for the element renderer."""

import pytest

from formforge import render
from formforge.config import ALLOWED_TYPES
from formforge.errors import INVALID_FORMAT, MISSING_REQUIRED, FieldError
from formforge.palette import PALETTE
from formforge.render import RENDERERS, check_variant_coverage, present, present_form


def palette_element(element_type):
    definition = next(item for item in PALETTE if item["type"] == element_type)
    return {"id": f"{element_type}-1", **definition}


class TestCoverage:
    """Every variant has a renderer."""

    def test_all_variants_render(self):
        check_variant_coverage()
        for element_type in ALLOWED_TYPES:
            spec = present(palette_element(element_type), None, None)
            assert spec["type"] == element_type
            assert spec["kind"]

    def test_missing_renderer_is_detected(self, monkeypatch):
        monkeypatch.delitem(RENDERERS, "divider")
        with pytest.raises(RuntimeError, match="divider"):
            check_variant_coverage()

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            present({"id": "x", "type": "slider", "label": "X"}, None, None)


class TestRenderSpecs:
    """Tests for individual variants."""

    def test_option_keys(self):
        spec = present(
            {"id": "topic", "type": "radio", "label": "Topic", "options": ["A", "B", "C"]}, "B", None
        )
        assert [option["key"] for option in spec["options"]] == [
            "topic-option-0",
            "topic-option-1",
            "topic-option-2",
        ]
        assert [option["selected"] for option in spec["options"]] == [False, True, False]

    def test_text_placeholder_default(self):
        spec = present({"id": "n", "type": "text", "label": "Name"}, None, None)
        assert spec["placeholder"] == "Enter Name"
        assert spec["value"] == ""
        assert spec["input_type"] == "text"

    def test_phone_uses_tel_input(self):
        spec = present({"id": "p", "type": "phone", "label": "Phone"}, "555", None)
        assert spec["input_type"] == "tel"
        assert spec["value"] == "555"

    def test_select_prompt(self):
        spec = present({"id": "s", "type": "select", "label": "S", "options": ["x"]}, None, None)
        assert spec["prompt"] == "Select an option"

    def test_heading_and_paragraph_defaults(self):
        heading = present({"id": "h", "type": "heading", "label": "Title"}, None, None)
        paragraph = present({"id": "p", "type": "paragraph", "label": "Body"}, None, None)
        assert (heading["font_size"], heading["text_align"]) == ("1.5rem", "left")
        assert (paragraph["font_size"], paragraph["text_align"]) == ("1rem", "left")

    def test_image_defaults(self):
        spec = present({"id": "i", "type": "image", "label": "Logo"}, None, None)
        assert spec["width"] == "100%"
        assert spec["height"] == "auto"
        assert spec["visible"] is False

    def test_rating_stops(self):
        spec = present({"id": "r", "type": "rating", "label": "R", "options": ["1", "2", "3"]}, "2", None)
        assert [option["value"] for option in spec["options"]] == ["1", "2", "3"]
        assert [option["selected"] for option in spec["options"]] == [False, True, False]

    def test_display_elements_are_not_interactive(self):
        spec = present({"id": "d", "type": "divider", "label": "", "required": True}, "ignored", None)
        assert spec["interactive"] is False
        assert spec["required"] is False

    def test_style_becomes_css(self):
        spec = present({"id": "n", "type": "text", "label": "Name"}, None, {"text_color": "#333333"})
        assert spec["css"]["color"] == "#333333"
        assert spec["css"]["background-color"] == "#ffffff"


class TestCallbacks:
    """Value changes are reported only through the callback."""

    def test_change_reports_element_id(self):
        changes = []
        spec = present(
            {"id": "n", "type": "text", "label": "Name"}, "", None, lambda *args: changes.append(args)
        )
        spec["change"]("Ada")
        assert changes == [("n", "Ada")]

    def test_checkbox_toggle(self):
        changes = []
        element = {"id": "c", "type": "checkbox", "label": "C", "options": ["A", "B"]}
        spec = present(element, ["A"], None, lambda *args: changes.append(args))
        spec["toggle"]("B")
        spec["toggle"]("A")
        assert changes == [("c", ["A", "B"]), ("c", [])]

    def test_no_callback_without_handler(self):
        spec = present({"id": "n", "type": "text", "label": "Name"}, "", None)
        assert "change" not in spec


class TestPresentForm:
    """Tests for whole-form presentation."""

    def test_inline_errors(self, contact_elements):
        form = {"title": "Contact", "elements": contact_elements, "style": None}
        errors = [FieldError("name", MISSING_REQUIRED), FieldError("email", INVALID_FORMAT)]
        view = present_form(form, {"email": "bad"}, errors, show_header=True)
        by_id = {spec["element_id"]: spec for spec in view["elements"]}
        assert by_id["name"]["error"] == "This field is required"
        assert by_id["email"]["error"] == "Please enter a valid email address"
        assert by_id["email"]["value"] == "bad"
        assert by_id["topic"]["error"] == ""
        assert view["show_header"] is True
        assert view["button_color"] == "#3b82f6"

    def test_error_message_for_other_formats(self):
        assert render.error_message({"type": "number"}, INVALID_FORMAT) == "Please enter a valid value"

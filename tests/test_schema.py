"""Tests for element normalisation and schema building."""

from datetime import datetime, timezone

from formforge.config import DEFAULT_STYLE, DEFAULT_SUBMIT_MESSAGE
from formforge.schema import (
    build_form_record,
    normalize_element,
    normalize_settings,
    normalize_style,
    parse_elements,
    sanitize_form_output,
    schema_from_elements,
)


class TestNormalizeElement:
    """Tests for single element normalisation."""

    def test_generates_unique_id_when_missing(self):
        seen = set()
        first, _ = normalize_element({"type": "text", "label": "A"}, seen)
        second, _ = normalize_element({"type": "text", "label": "B"}, seen)
        assert first["id"].startswith("el_")
        assert first["id"] != second["id"]
        assert seen == {first["id"], second["id"]}

    def test_keeps_option_order(self):
        element, errors = normalize_element(
            {"type": "radio", "label": "Pick", "options": ["Zeta", " Alpha ", "", "Mu"]}, set()
        )
        assert errors == []
        assert element["options"] == ["Zeta", "Alpha", "Mu"]

    def test_rating_defaults_to_five_stops(self):
        element, errors = normalize_element({"type": "rating", "label": "Score"}, set())
        assert errors == []
        assert element["options"] == ["1", "2", "3", "4", "5"]

    def test_required_is_dropped_for_display_elements(self):
        element, _ = normalize_element({"type": "heading", "label": "Hi", "required": True}, set())
        assert element["required"] is False

    def test_placeholder_only_kept_for_text_inputs(self):
        text, _ = normalize_element({"type": "text", "label": "A", "placeholder": "Type"}, set())
        select, _ = normalize_element(
            {"type": "select", "label": "B", "options": ["x"], "placeholder": "Type"}, set()
        )
        assert text["placeholder"] == "Type"
        assert select["placeholder"] == ""

    def test_reports_problems(self):
        _, errors = normalize_element({"type": "select", "label": ""}, set(), loc="element 1")
        assert "element 1: label is required" in errors
        assert "element 1: options are required for select" in errors

    def test_rejects_bad_presentation(self):
        _, errors = normalize_element(
            {"type": "heading", "label": "H", "presentation": {"text_align": "justify"}}, set()
        )
        assert errors == ["invalid text alignment (justify)"]


class TestParseElements:
    """Tests for whole element lists."""

    def test_duplicate_ids_and_unknown_types(self):
        _, errors = parse_elements(
            [
                {"id": "a", "type": "text", "label": "A"},
                {"id": "a", "type": "text", "label": "B"},
                {"id": "c", "type": "slider", "label": "C"},
            ]
        )
        assert "element 2: duplicate element id (a)" in errors
        assert "element 3: unsupported element type (slider)" in errors

    def test_non_list_input(self):
        assert parse_elements({"type": "text"}) == ([], ["elements must be a list"])


class TestFormRecords:
    """Tests for form-level helpers."""

    def test_style_and_settings_defaults(self):
        assert normalize_style(None) == DEFAULT_STYLE
        assert normalize_style({"button_color": "#ff0000"})["button_color"] == "#ff0000"
        settings = normalize_settings({})
        assert settings["submit_message"] == DEFAULT_SUBMIT_MESSAGE
        assert settings["redirect_url"] == ""
        assert settings["notify_on_submission"] is False

    def test_build_form_record(self):
        record = build_form_record({"title": "  Survey ", "elements": []}, "owner-1")
        assert record["title"] == "Survey"
        assert record["owner_id"] == "owner-1"
        assert record["published"] is False
        assert record["style"] == DEFAULT_STYLE

    def test_sanitize_form_output_uses_iso_timestamps(self):
        created = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        output = sanitize_form_output(
            {"id": "f1", "title": "T", "created_at": created, "updated_at": created}
        )
        assert output["created_at"] == "2024-03-01T12:00:00+00:00"
        assert output["published_at"] is None


class TestSchemaFromElements:
    """Tests for the JSON Schema built from elements."""

    def test_only_interactive_elements_become_properties(self, contact_elements):
        schema = schema_from_elements(contact_elements)
        assert "intro" not in schema["properties"]
        assert schema["properties"]["topic"]["enum"] == ["Sales", "Support", "Other"]
        assert schema["properties"]["channels"]["type"] == "array"
        assert schema["properties"]["score"]["enum"] == ["1", "2", "3", "4", "5"]

from __future__ import annotations

from functools import partial
from typing import Any, Callable

from formforge.config import ALLOWED_TYPES, DEFAULT_RATING_STOPS, INTERACTIVE_TYPES
from formforge.errors import INVALID_FORMAT, MISSING_REQUIRED, FieldError
from formforge.schema import normalize_style
from formforge.validation import VALIDATED_TYPES

RenderSpec = dict[str, Any]
ChangeCallback = Callable[[str, Any], None]

INPUT_TYPES = {
    "text": "text",
    "email": "email",
    "number": "number",
    "phone": "tel",
    "date": "date",
    "time": "time",
}

HEADING_FONT_SIZE = "1.5rem"
PARAGRAPH_FONT_SIZE = "1rem"


def style_css(style: dict[str, Any] | None) -> dict[str, str]:
    resolved = normalize_style(style)
    return {
        "background-color": resolved["background_color"],
        "color": resolved["text_color"],
        "border-radius": resolved["border_radius"],
        "font-family": resolved["font_family"],
        "--button-color": resolved["button_color"],
    }


def _text_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _option_specs(element: dict[str, Any], selected: Callable[[str], bool]) -> list[dict[str, Any]]:
    return [
        {
            "key": f"{element['id']}-option-{index}",
            "value": option,
            "label": option,
            "selected": selected(option),
        }
        for index, option in enumerate(element.get("options") or [])
    ]


def _columns(element: dict[str, Any]) -> int:
    presentation = element.get("presentation") or {}
    try:
        return max(1, int(presentation.get("columns") or 1))
    except (TypeError, ValueError):
        return 1


def _render_input(element: dict[str, Any], value: Any) -> RenderSpec:
    rules = element.get("validation") or {}
    spec: RenderSpec = {
        "kind": "input",
        "input_type": INPUT_TYPES[element["type"]],
        "value": _text_value(value),
    }
    if element["type"] in {"text", "email", "number", "phone"}:
        spec["placeholder"] = element.get("placeholder") or f"Enter {element.get('label', '')}"
    if element["type"] in {"number", "date"}:
        spec["min"] = rules.get("min")
        spec["max"] = rules.get("max")
    if element["type"] in {"text", "phone"}:
        spec["min_length"] = rules.get("min_length")
        spec["max_length"] = rules.get("max_length")
    return spec


def _render_textarea(element: dict[str, Any], value: Any) -> RenderSpec:
    return {
        "kind": "textarea",
        "value": _text_value(value),
        "placeholder": element.get("placeholder") or f"Enter {element.get('label', '')}",
        "rows": 4,
    }


def _render_select(element: dict[str, Any], value: Any) -> RenderSpec:
    current = _text_value(value)
    return {
        "kind": "select",
        "value": current,
        "prompt": "Select an option",
        "options": _option_specs(element, lambda option: option == current),
    }


def _render_radio(element: dict[str, Any], value: Any) -> RenderSpec:
    current = _text_value(value)
    return {
        "kind": "radio_group",
        "value": current,
        "columns": _columns(element),
        "options": _option_specs(element, lambda option: option == current),
    }


def _render_checkbox(element: dict[str, Any], value: Any) -> RenderSpec:
    if isinstance(value, (list, tuple)):
        current = [str(item) for item in value]
    elif value in (None, ""):
        current = []
    else:
        current = [str(value)]
    return {
        "kind": "checkbox_group",
        "value": current,
        "columns": _columns(element),
        "options": _option_specs(element, lambda option: option in current),
    }


def _render_file(element: dict[str, Any], value: Any) -> RenderSpec:
    accepted = (element.get("validation") or {}).get("accepted_files") or []
    current = _text_value(value)
    return {
        "kind": "file",
        "value": current,
        "accept": ",".join(str(item) for item in accepted),
        "multiple": True,
        "selection_label": f"Selected files: {current}" if current else "Choose files",
    }


def _render_rating(element: dict[str, Any], value: Any) -> RenderSpec:
    stops = len(element.get("options") or []) or DEFAULT_RATING_STOPS
    current = _text_value(value)
    return {
        "kind": "rating",
        "value": current,
        "options": [
            {
                "key": f"{element['id']}-option-{index}",
                "value": str(stop),
                "label": str(stop),
                "selected": str(stop) == current,
            }
            for index, stop in enumerate(range(1, stops + 1))
        ],
    }


def _render_heading(element: dict[str, Any], value: Any) -> RenderSpec:
    presentation = element.get("presentation") or {}
    return {
        "kind": "heading",
        "text": element.get("label", ""),
        "font_size": presentation.get("font_size") or HEADING_FONT_SIZE,
        "text_align": presentation.get("text_align") or "left",
    }


def _render_paragraph(element: dict[str, Any], value: Any) -> RenderSpec:
    presentation = element.get("presentation") or {}
    return {
        "kind": "paragraph",
        "text": element.get("label", ""),
        "font_size": presentation.get("font_size") or PARAGRAPH_FONT_SIZE,
        "text_align": presentation.get("text_align") or "left",
    }


def _render_image(element: dict[str, Any], value: Any) -> RenderSpec:
    presentation = element.get("presentation") or {}
    image_url = presentation.get("image_url") or ""
    return {
        "kind": "image",
        "image_url": image_url,
        "alt": element.get("label", ""),
        "width": presentation.get("width") or "100%",
        "height": presentation.get("height") or "auto",
        "visible": bool(image_url),
    }


def _render_divider(element: dict[str, Any], value: Any) -> RenderSpec:
    return {"kind": "divider"}


RENDERERS: dict[str, Callable[[dict[str, Any], Any], RenderSpec]] = {
    "text": _render_input,
    "email": _render_input,
    "number": _render_input,
    "phone": _render_input,
    "date": _render_input,
    "time": _render_input,
    "textarea": _render_textarea,
    "select": _render_select,
    "radio": _render_radio,
    "checkbox": _render_checkbox,
    "file": _render_file,
    "rating": _render_rating,
    "heading": _render_heading,
    "paragraph": _render_paragraph,
    "image": _render_image,
    "divider": _render_divider,
}


def check_variant_coverage() -> None:
    missing_renderers = ALLOWED_TYPES - RENDERERS.keys()
    missing_rules = INTERACTIVE_TYPES - VALIDATED_TYPES
    unknown = (RENDERERS.keys() - ALLOWED_TYPES) | (VALIDATED_TYPES - INTERACTIVE_TYPES)
    if missing_renderers or missing_rules or unknown:
        raise RuntimeError(
            "element variant tables are out of sync: "
            f"no renderer for {sorted(missing_renderers)}, "
            f"no validation rule for {sorted(missing_rules)}, "
            f"unknown {sorted(unknown)}"
        )


check_variant_coverage()


def _report_change(callback: ChangeCallback, element_id: str, value: Any) -> None:
    callback(element_id, value)


def _toggle_option(callback: ChangeCallback, element_id: str, current: list[str], option: str) -> None:
    if option in current:
        callback(element_id, [item for item in current if item != option])
    else:
        callback(element_id, [*current, option])


def present(
    element: dict[str, Any],
    current_value: Any,
    style: dict[str, Any] | None,
    on_change: ChangeCallback | None = None,
) -> RenderSpec:
    """Describe how ``element`` is displayed with ``current_value`` filled in.

    Pure: value changes are only ever reported through ``on_change`` when the
    caller invokes the ``change``/``toggle`` hooks carried by the spec.
    """
    element_type = element.get("type", "")
    renderer = RENDERERS.get(element_type)
    if renderer is None:
        raise ValueError(f"unsupported element type: {element_type}")

    interactive = element_type in INTERACTIVE_TYPES
    spec = renderer(element, current_value if interactive else None)
    spec.update(
        {
            "element_id": element["id"],
            "type": element_type,
            "label": element.get("label", ""),
            "description": element.get("description", ""),
            "required": bool(element.get("required")) and interactive,
            "interactive": interactive,
            "css": style_css(style),
        }
    )
    if interactive and on_change is not None:
        spec["change"] = partial(_report_change, on_change, element["id"])
        if spec["kind"] == "checkbox_group":
            spec["toggle"] = partial(_toggle_option, on_change, element["id"], list(spec["value"]))
    return spec


def error_message(element: dict[str, Any], reason: str) -> str:
    if reason == MISSING_REQUIRED:
        return "This field is required"
    if reason == INVALID_FORMAT and element.get("type") == "email":
        return "Please enter a valid email address"
    return "Please enter a valid value"


def present_form(
    form: dict[str, Any],
    responses: dict[str, Any] | None = None,
    errors: list[FieldError] | None = None,
    on_change: ChangeCallback | None = None,
    show_header: bool = False,
    show_footer: bool = False,
) -> dict[str, Any]:
    responses = responses or {}
    reasons = {error.field_id: error.reason for error in errors or []}
    specs: list[RenderSpec] = []
    for element in form.get("elements") or []:
        spec = present(element, responses.get(element["id"]), form.get("style"), on_change)
        reason = reasons.get(element["id"])
        spec["error"] = error_message(element, reason) if reason else ""
        specs.append(spec)
    return {
        "title": form.get("title", ""),
        "description": form.get("description", ""),
        "css": style_css(form.get("style")),
        "button_color": normalize_style(form.get("style"))["button_color"],
        "elements": specs,
        "show_header": show_header,
        "show_footer": show_footer,
    }

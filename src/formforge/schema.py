from __future__ import annotations

import re
from typing import Any, Callable

from formforge.config import (
    ALLOWED_TYPES,
    DEFAULT_RATING_STOPS,
    DEFAULT_STYLE,
    DEFAULT_SUBMIT_MESSAGE,
    EMAIL_PATTERN,
    INTERACTIVE_TYPES,
    OPTION_TYPES,
    TEXT_ALIGNMENTS,
)
from formforge.utils import new_element_id, now_utc, to_iso

NUMBER_PATTERN = r"^-?\d+(\.\d+)?$"
PHONE_PATTERN = r"^[0-9+()\-.\s]+$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}(:\d{2})?$"

PLACEHOLDER_TYPES = frozenset({"text", "email", "number", "phone", "textarea"})
PRESENTATION_KEYS = ("font_size", "text_align", "columns", "image_url", "width", "height")
VALIDATION_KEYS = ("min_length", "max_length", "pattern", "min", "max", "accepted_files")
STYLE_KEYS = tuple(DEFAULT_STYLE.keys())


def _clean_options(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(value).strip() for value in raw if str(value).strip()]


def _clean_mapping(raw: Any, keys: tuple[str, ...]) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    return {key: raw[key] for key in keys if raw.get(key) not in (None, "")}


def normalize_element(
    raw: dict[str, Any], seen_ids: set[str], loc: str = ""
) -> tuple[dict[str, Any], list[str]]:
    """Coerce one raw element definition into its stored shape.

    Returns the element and the list of problems found, prefixed by ``loc``.
    Missing ids are generated; ``seen_ids`` is updated in place.
    """
    errors: list[str] = []
    prefix = f"{loc}: " if loc else ""

    element_type = str(raw.get("type", "")).strip()
    if element_type not in ALLOWED_TYPES:
        errors.append(f"{prefix}unsupported element type ({element_type})")

    element_id = str(raw.get("id", "")).strip() or new_element_id(seen_ids)
    if element_id in seen_ids:
        errors.append(f"{prefix}duplicate element id ({element_id})")
    seen_ids.add(element_id)

    label = str(raw.get("label", "")).strip()
    if not label and element_type in INTERACTIVE_TYPES:
        errors.append(f"{prefix}label is required")

    options = _clean_options(raw.get("options"))
    if element_type in OPTION_TYPES - {"rating"} and not options:
        errors.append(f"{prefix}options are required for {element_type}")
    if element_type == "rating" and not options:
        options = [str(stop) for stop in range(1, DEFAULT_RATING_STOPS + 1)]

    validation = _clean_mapping(raw.get("validation"), VALIDATION_KEYS)
    pattern = validation.get("pattern")
    if pattern:
        try:
            re.compile(str(pattern))
        except re.error:
            errors.append(f"{prefix}invalid pattern ({pattern})")

    presentation = _clean_mapping(raw.get("presentation"), PRESENTATION_KEYS)
    if presentation.get("text_align") and presentation["text_align"] not in TEXT_ALIGNMENTS:
        errors.append(f"{prefix}invalid text alignment ({presentation['text_align']})")
    if "columns" in presentation:
        try:
            presentation["columns"] = max(1, int(presentation["columns"]))
        except (TypeError, ValueError):
            errors.append(f"{prefix}columns must be a number")

    element = {
        "id": element_id,
        "type": element_type,
        "label": label,
        "required": bool(raw.get("required")) and element_type in INTERACTIVE_TYPES,
        "placeholder": (
            str(raw.get("placeholder", "")).strip() if element_type in PLACEHOLDER_TYPES else ""
        ),
        "description": str(raw.get("description", "")).strip(),
        "options": options if element_type in OPTION_TYPES else [],
        "validation": validation,
        "presentation": presentation,
    }
    return element, errors


def parse_elements(raw_elements: Any) -> tuple[list[dict[str, Any]], list[str]]:
    if not isinstance(raw_elements, list):
        return [], ["elements must be a list"]
    seen_ids: set[str] = set()
    elements: list[dict[str, Any]] = []
    errors: list[str] = []
    for index, raw in enumerate(raw_elements, start=1):
        if not isinstance(raw, dict):
            errors.append(f"element {index}: definition must be an object")
            continue
        element, element_errors = normalize_element(raw, seen_ids, loc=f"element {index}")
        elements.append(element)
        errors.extend(element_errors)
    return elements, errors


def normalize_style(raw: Any) -> dict[str, str]:
    style = dict(DEFAULT_STYLE)
    if isinstance(raw, dict):
        for key in STYLE_KEYS:
            value = raw.get(key)
            if value not in (None, ""):
                style[key] = str(value)
    return style


def normalize_settings(raw: Any) -> dict[str, Any]:
    raw = raw if isinstance(raw, dict) else {}
    return {
        "submit_message": str(raw.get("submit_message") or DEFAULT_SUBMIT_MESSAGE),
        "redirect_url": str(raw.get("redirect_url") or "").strip(),
        "notify_on_submission": bool(raw.get("notify_on_submission")),
        "collect_email": bool(raw.get("collect_email")),
        "webhook_url": str(raw.get("webhook_url") or "").strip(),
    }


def build_form_record(draft: dict[str, Any], owner_id: str) -> dict[str, Any]:
    now = now_utc()
    elements, _ = parse_elements(draft.get("elements") or [])
    return {
        "title": str(draft.get("title", "")).strip(),
        "description": str(draft.get("description", "")).strip(),
        "elements": elements,
        "style": normalize_style(draft.get("style")),
        "settings": normalize_settings(draft.get("settings")),
        "owner_id": owner_id,
        "published": False,
        "published_at": None,
        "created_at": now,
        "updated_at": now,
    }


def sanitize_form_output(form: dict[str, Any]) -> dict[str, Any]:
    published_at = form.get("published_at")
    return {
        "id": form["id"],
        "title": form.get("title", ""),
        "description": form.get("description", ""),
        "elements": form.get("elements", []),
        "style": normalize_style(form.get("style")),
        "settings": normalize_settings(form.get("settings")),
        "owner_id": form.get("owner_id", ""),
        "published": bool(form.get("published")),
        "published_at": to_iso(published_at) if published_at else None,
        "created_at": to_iso(form.get("created_at", now_utc())),
        "updated_at": to_iso(form.get("updated_at", now_utc())),
    }


def _text_property(element: dict[str, Any]) -> dict[str, Any]:
    rules = element.get("validation") or {}
    prop: dict[str, Any] = {"type": "string"}
    if rules.get("min_length") is not None:
        prop["minLength"] = int(rules["min_length"])
    if rules.get("max_length") is not None:
        prop["maxLength"] = int(rules["max_length"])
    if rules.get("pattern"):
        prop["pattern"] = str(rules["pattern"])
    return prop


def _email_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "string", "pattern": EMAIL_PATTERN.pattern}


def _phone_property(element: dict[str, Any]) -> dict[str, Any]:
    prop = _text_property(element)
    prop.setdefault("pattern", PHONE_PATTERN)
    return prop


def _number_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "string", "pattern": NUMBER_PATTERN}


def _single_choice_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "string", "enum": list(element.get("options") or [])}


def _multi_choice_property(element: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "array",
        "items": {"type": "string", "enum": list(element.get("options") or [])},
    }


def _rating_property(element: dict[str, Any]) -> dict[str, Any]:
    stops = len(element.get("options") or []) or DEFAULT_RATING_STOPS
    return {"type": "string", "enum": [str(stop) for stop in range(1, stops + 1)]}


def _date_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "string", "pattern": DATE_PATTERN}


def _time_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": "string", "pattern": TIME_PATTERN}


def _file_property(element: dict[str, Any]) -> dict[str, Any]:
    return {"type": ["string", "array"], "items": {"type": "string"}}


PROPERTY_BUILDERS: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
    "text": _text_property,
    "textarea": _text_property,
    "email": _email_property,
    "phone": _phone_property,
    "number": _number_property,
    "select": _single_choice_property,
    "radio": _single_choice_property,
    "checkbox": _multi_choice_property,
    "rating": _rating_property,
    "date": _date_property,
    "time": _time_property,
    "file": _file_property,
}


def build_property(element: dict[str, Any]) -> dict[str, Any]:
    prop = PROPERTY_BUILDERS[element["type"]](element)
    prop["title"] = element.get("label") or element["id"]
    return prop


def schema_from_elements(elements: list[dict[str, Any]]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for element in elements:
        if element.get("type") not in INTERACTIVE_TYPES:
            continue
        properties[element["id"]] = build_property(element)
    return {"type": "object", "properties": properties}

from __future__ import annotations

import logging
from typing import Any

from jsonschema import Draft7Validator

from formforge.config import EMAIL_PATTERN, INTERACTIVE_TYPES
from formforge.errors import INVALID_FORMAT, MISSING_REQUIRED, FieldError
from formforge.schema import PROPERTY_BUILDERS, schema_from_elements

logger = logging.getLogger(__name__)

NUMERIC_TYPES = frozenset({"number", "rating"})


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not any(not is_empty(item) for item in value)
    return False


def _coerce_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_coerce_value(item) for item in value if not is_empty(item)]
    return value


def coerce_responses(elements: list[dict[str, Any]], responses: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``responses`` with known values in their stored shape.

    Numbers become strings and empty list items are dropped; keys that do not
    belong to an element are kept verbatim.
    """
    known = {element["id"] for element in elements if element.get("type") in INTERACTIVE_TYPES}
    coerced: dict[str, Any] = {}
    for key, value in responses.items():
        coerced[key] = _coerce_value(value) if key in known else value
    return coerced


def clean_responses(elements: list[dict[str, Any]], responses: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for element in elements:
        if element.get("type") not in INTERACTIVE_TYPES:
            continue
        value = responses.get(element["id"])
        if is_empty(value):
            continue
        cleaned[element["id"]] = _coerce_value(value)
    return cleaned


def _within_bounds(element: dict[str, Any], value: Any) -> bool:
    rules = element.get("validation") or {}
    low, high = rules.get("min"), rules.get("max")
    if low in (None, "") and high in (None, ""):
        return True
    if element["type"] == "number":
        try:
            number = float(value)
            if low not in (None, "") and number < float(low):
                return False
            if high not in (None, "") and number > float(high):
                return False
        except (TypeError, ValueError):
            return False
        return True
    if element["type"] == "date":
        if low not in (None, "") and str(value) < str(low):
            return False
        if high not in (None, "") and str(value) > str(high):
            return False
    return True


def validate(elements: list[dict[str, Any]], responses: dict[str, Any] | None) -> list[FieldError]:
    """Check a response map against the element list.

    Returns at most one error per element, in element order. Never raises.
    """
    responses = responses if isinstance(responses, dict) else {}
    cleaned = clean_responses(elements, responses)

    format_failures: set[str] = set()
    try:
        validator = Draft7Validator(schema_from_elements(elements))
        for error in validator.iter_errors(cleaned):
            if error.path:
                format_failures.add(str(error.path[0]))
    except Exception:
        logger.exception("Response schema could not be evaluated")

    errors: list[FieldError] = []
    for element in elements:
        element_type = element.get("type")
        if element_type not in INTERACTIVE_TYPES:
            continue
        element_id = element["id"]
        if element_id not in cleaned:
            if element.get("required"):
                errors.append(FieldError(element_id, MISSING_REQUIRED))
            continue
        value = cleaned[element_id]
        if element_type == "email" and not EMAIL_PATTERN.match(str(value)):
            errors.append(FieldError(element_id, INVALID_FORMAT))
        elif element_id in format_failures or not _within_bounds(element, value):
            errors.append(FieldError(element_id, INVALID_FORMAT))
    return errors


def error_map(errors: list[FieldError]) -> dict[str, str]:
    return {error.field_id: error.reason for error in errors}


VALIDATED_TYPES = frozenset(PROPERTY_BUILDERS)

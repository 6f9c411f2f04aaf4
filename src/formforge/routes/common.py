from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from formforge.errors import (
    BLANK_PROMPT,
    MISSING_TITLE,
    SAVE_IN_PROGRESS,
    UNAUTHENTICATED,
    BuilderError,
    DraftError,
    ExportError,
    FieldError,
    FormForgeError,
    NotAcceptingResponses,
    NotFoundError,
    PersistenceError,
)
from formforge.submissions import load_owned_form

BUILDER_STATUS = {MISSING_TITLE: 400, UNAUTHENTICATED: 401, SAVE_IN_PROGRESS: 409}


def status_for(exc: FormForgeError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, NotAcceptingResponses):
        return 403
    if isinstance(exc, PersistenceError):
        return 503
    if isinstance(exc, ExportError):
        return 400
    if isinstance(exc, BuilderError):
        return BUILDER_STATUS.get(exc.reason, 400)
    if isinstance(exc, DraftError):
        return 400 if exc.reason == BLANK_PROMPT else 502
    return 500


def http_error(exc: FormForgeError) -> HTTPException:
    return HTTPException(status_code=status_for(exc), detail=str(exc))


def field_errors_detail(errors: list[FieldError]) -> list[dict[str, str]]:
    return [{"field_id": error.field_id, "reason": error.reason} for error in errors]


def owned_form(request: Request, form_id: str, user: dict[str, str]) -> dict[str, Any]:
    try:
        return load_owned_form(request.app.state.storage, form_id, user["id"])
    except FormForgeError as exc:
        raise http_error(exc) from exc

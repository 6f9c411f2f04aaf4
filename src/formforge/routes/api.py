from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from formforge.auth import require_user
from formforge.errors import PersistenceError
from formforge.palette import FORM_TEMPLATES, PALETTE
from formforge.routes.common import http_error, owned_form
from formforge.schema import (
    build_form_record,
    normalize_settings,
    normalize_style,
    parse_elements,
    sanitize_form_output,
)
from formforge.storage import storage_operation
from formforge.utils import now_utc
from formforge.webhook import is_valid_webhook_url

router = APIRouter()


def share_links(base_url: str, form_id: str) -> dict[str, str]:
    embed_url = f"{base_url}/embed/{form_id}"
    return {
        "share_url": f"{base_url}/form/{form_id}",
        "embed_url": embed_url,
        "embed_code": (
            f'<iframe src="{embed_url}" width="100%" height="600" frameborder="0"></iframe>'
        ),
    }


def _checked_settings(raw: Any) -> dict[str, Any]:
    settings = normalize_settings(raw)
    if settings["webhook_url"] and not is_valid_webhook_url(settings["webhook_url"]):
        raise HTTPException(status_code=400, detail="webhook_url is invalid")
    return settings


def _checked_elements(raw: Any) -> list[dict[str, Any]]:
    elements, errors = parse_elements(raw)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    return elements


@router.get("/api/palette", tags=["api/forms"])
async def api_palette() -> JSONResponse:
    return JSONResponse(PALETTE)


@router.get("/api/templates", tags=["api/forms"])
async def api_templates() -> JSONResponse:
    return JSONResponse(FORM_TEMPLATES)


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(request: Request, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    storage = request.app.state.storage
    try:
        with storage_operation("list_forms"):
            forms = storage.forms.list_forms_by_owner(user["id"])
            counts = {form["id"]: len(storage.submissions.list_submissions(form["id"])) for form in forms}
    except PersistenceError as exc:
        raise http_error(exc) from exc
    return JSONResponse(
        [{**sanitize_form_output(form), "submission_count": counts[form["id"]]} for form in forms]
    )


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(request: Request, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    storage = request.app.state.storage
    payload = await request.json()
    title = str(payload.get("title", "")).strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    draft = {
        "title": title,
        "description": payload.get("description", ""),
        "elements": _checked_elements(payload.get("elements") or []),
        "style": payload.get("style"),
        "settings": _checked_settings(payload.get("settings")),
    }
    try:
        with storage_operation("create_form"):
            form_id = storage.forms.create_form(build_form_record(draft, user["id"]))
            form = storage.forms.get_form(form_id)
    except PersistenceError as exc:
        raise http_error(exc) from exc
    return JSONResponse(sanitize_form_output(form or {"id": form_id}), status_code=201)


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def api_get_form(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    form = owned_form(request, form_id, user)
    return JSONResponse(sanitize_form_output(form))


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def api_update_form(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    storage = request.app.state.storage
    owned_form(request, form_id, user)
    payload = await request.json()
    updates: dict[str, Any] = {}
    if "title" in payload:
        title = str(payload.get("title", "")).strip()
        if not title:
            raise HTTPException(status_code=400, detail="title is required")
        updates["title"] = title
    if "description" in payload:
        updates["description"] = str(payload.get("description", "")).strip()
    if "elements" in payload:
        updates["elements"] = _checked_elements(payload.get("elements"))
    if "style" in payload:
        updates["style"] = normalize_style(payload.get("style"))
    if "settings" in payload:
        updates["settings"] = _checked_settings(payload.get("settings"))
    updates["updated_at"] = now_utc()
    try:
        with storage_operation("update_form"):
            updated = storage.forms.update_form(form_id, updates)
    except PersistenceError as exc:
        raise http_error(exc) from exc
    return JSONResponse(sanitize_form_output(updated))


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def api_delete_form(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    storage = request.app.state.storage
    owned_form(request, form_id, user)
    try:
        with storage_operation("delete_form"):
            storage.forms.delete_form(form_id)
    except PersistenceError as exc:
        raise http_error(exc) from exc
    return JSONResponse({"deleted": form_id})


async def _set_published(request: Request, form_id: str, user: dict[str, str], published: bool) -> JSONResponse:
    storage = request.app.state.storage
    owned_form(request, form_id, user)
    try:
        with storage_operation("publish_form" if published else "unpublish_form"):
            storage.forms.set_published(form_id, published)
            form = storage.forms.get_form(form_id)
    except PersistenceError as exc:
        raise http_error(exc) from exc
    return JSONResponse(sanitize_form_output(form))


@router.post("/api/forms/{form_id}/publish", tags=["api/forms"])
async def api_publish_form(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    return await _set_published(request, form_id, user, True)


@router.post("/api/forms/{form_id}/unpublish", tags=["api/forms"])
async def api_unpublish_form(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    return await _set_published(request, form_id, user, False)


@router.get("/api/forms/{form_id}/share", tags=["api/forms"])
async def api_share_links(request: Request, form_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    owned_form(request, form_id, user)
    return JSONResponse(share_links(request.app.state.settings.public_base_url, form_id))

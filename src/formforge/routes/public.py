from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from formforge.auth import current_user
from formforge.config import INTERACTIVE_TYPES
from formforge.errors import FieldError, FormForgeError
from formforge.render import present_form
from formforge.routes.common import field_errors_detail, http_error, status_for
from formforge.schema import normalize_settings
from formforge.submissions import accept_submission, load_public_form
from formforge.utils import to_iso

router = APIRouter()


def _submitted_by(request: Request) -> str | None:
    if request.app.state.settings.auth_mode != "header":
        return None
    user = current_user(request)
    if not user:
        return None
    return user.get("email") or user["id"]


def _unavailable(request: Request, exc: FormForgeError, embed: bool) -> HTMLResponse:
    return request.app.state.templates.TemplateResponse(
        request,
        "form_unavailable.html",
        {"message": str(exc), "embed": embed},
        status_code=status_for(exc),
    )


def _render_form(
    request: Request,
    form: dict[str, Any],
    embed: bool,
    responses: dict[str, Any] | None = None,
    errors: list[FieldError] | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    view = present_form(form, responses, errors, show_header=not embed, show_footer=not embed)
    return request.app.state.templates.TemplateResponse(
        request,
        "form_public.html",
        {
            "form": form,
            "view": view,
            "embed": embed,
            "action": f"/{'embed' if embed else 'form'}/{form['id']}",
        },
        status_code=status_code,
    )


async def collect_responses(request: Request, form: dict[str, Any]) -> dict[str, Any]:
    """Read posted form fields into a response map keyed by element id."""
    form_data = await request.form()
    responses: dict[str, Any] = {}
    for element in form.get("elements") or []:
        element_type = element.get("type")
        if element_type not in INTERACTIVE_TYPES:
            continue
        key = element["id"]
        if element_type == "checkbox":
            responses[key] = [str(value) for value in form_data.getlist(key) if str(value).strip()]
        elif element_type == "file":
            names = [
                upload.filename
                for upload in form_data.getlist(key)
                if getattr(upload, "filename", "")
            ]
            responses[key] = ",".join(names)
        else:
            value = form_data.get(key)
            responses[key] = str(value) if value is not None else ""
    return responses


async def _show(request: Request, form_id: str, embed: bool) -> HTMLResponse:
    try:
        form = load_public_form(request.app.state.storage, form_id)
    except FormForgeError as exc:
        return _unavailable(request, exc, embed)
    return _render_form(request, form, embed)


async def _submit(request: Request, form_id: str, embed: bool) -> Response:
    storage = request.app.state.storage
    try:
        form = load_public_form(storage, form_id)
    except FormForgeError as exc:
        return _unavailable(request, exc, embed)

    responses = await collect_responses(request, form)
    try:
        submission, errors = await accept_submission(
            storage, form, responses, _submitted_by(request)
        )
    except FormForgeError as exc:
        raise http_error(exc) from exc
    if errors:
        return _render_form(request, form, embed, responses, errors, status_code=422)

    settings = normalize_settings(form.get("settings"))
    if settings["redirect_url"]:
        return RedirectResponse(settings["redirect_url"], status_code=303)
    return request.app.state.templates.TemplateResponse(
        request,
        "submission_done.html",
        {"form": form, "message": settings["submit_message"], "embed": embed},
    )


@router.get("/form/{form_id}", response_class=HTMLResponse, tags=["public"])
async def public_form(request: Request, form_id: str) -> HTMLResponse:
    return await _show(request, form_id, embed=False)


@router.post("/form/{form_id}", tags=["public"])
async def submit_form(request: Request, form_id: str) -> Response:
    return await _submit(request, form_id, embed=False)


@router.get("/embed/{form_id}", response_class=HTMLResponse, tags=["public"])
async def embedded_form(request: Request, form_id: str) -> HTMLResponse:
    return await _show(request, form_id, embed=True)


@router.post("/embed/{form_id}", tags=["public"])
async def submit_embedded_form(request: Request, form_id: str) -> Response:
    return await _submit(request, form_id, embed=True)


@router.post("/api/public/forms/{form_id}/submissions", tags=["api/submissions"])
async def api_submit_form(form_id: str, request: Request) -> JSONResponse:
    storage = request.app.state.storage
    try:
        form = load_public_form(storage, form_id)
    except FormForgeError as exc:
        raise http_error(exc) from exc

    payload = await request.json()
    responses = payload.get("responses", payload) if isinstance(payload, dict) else None
    if not isinstance(responses, dict):
        raise HTTPException(status_code=400, detail="responses must be an object")

    try:
        submission, errors = await accept_submission(
            storage, form, responses, _submitted_by(request)
        )
    except FormForgeError as exc:
        raise http_error(exc) from exc
    if errors:
        raise HTTPException(status_code=422, detail=field_errors_detail(errors))

    return JSONResponse(
        {"submission_id": submission["id"], "submitted_at": to_iso(submission["submitted_at"])},
        status_code=201,
    )

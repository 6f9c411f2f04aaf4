from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from formforge.auth import require_user
from formforge.errors import FormForgeError
from formforge.pipeline import (
    SubmissionsView,
    export_date,
    export_filename,
    parse_query,
    submission_output,
)
from formforge.routes.common import field_errors_detail, http_error, owned_form
from formforge.spam import VerdictCache
from formforge.storage import storage_operation
from formforge.submissions import edit_submission, remove_submission

router = APIRouter(tags=["api/submissions"])


async def load_view(request: Request, form: dict[str, Any]) -> SubmissionsView:
    settings = request.app.state.settings
    view = SubmissionsView(
        request.app.state.storage,
        form,
        request.app.state.spam_classifier,
        page_size=settings.page_size,
        export_timezone=settings.export_timezone,
    )
    try:
        view.refresh()
    except FormForgeError as exc:
        raise http_error(exc) from exc
    await view.classify()
    view.apply_query(parse_query(request.query_params, settings.page_size))
    return view


@router.get("/api/forms/{form_id}/submissions")
async def api_list_submissions(
    request: Request, form_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    """Search, filter, spam-gate, sort and page one form's submissions.

    Query parameters: ``q``, ``f_<element id>``, ``spam`` (all|spam|valid),
    ``sort`` (submitted_at or an element id), ``order``, ``page``, ``page_size``.
    """
    form = owned_form(request, form_id, user)
    view = await load_view(request, form)
    return JSONResponse(view.result())


@router.get("/api/forms/{form_id}/submissions/{submission_id}")
async def api_get_submission(
    request: Request, form_id: str, submission_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    form = owned_form(request, form_id, user)
    try:
        with storage_operation("load_submission"):
            submission = request.app.state.storage.submissions.get_submission(form["id"], submission_id)
    except FormForgeError as exc:
        raise http_error(exc) from exc
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    verdict = await VerdictCache(request.app.state.spam_classifier).reclassify(submission)
    return JSONResponse(submission_output(submission, verdict))


@router.put("/api/forms/{form_id}/submissions/{submission_id}")
async def api_edit_submission(
    request: Request, form_id: str, submission_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    form = owned_form(request, form_id, user)
    payload = await request.json()
    responses = payload.get("responses", payload) if isinstance(payload, dict) else None
    if not isinstance(responses, dict):
        raise HTTPException(status_code=400, detail="responses must be an object")
    try:
        updated, errors = edit_submission(request.app.state.storage, form, submission_id, responses)
    except FormForgeError as exc:
        raise http_error(exc) from exc
    if errors:
        raise HTTPException(status_code=422, detail=field_errors_detail(errors))
    verdict = await VerdictCache(request.app.state.spam_classifier).reclassify(updated)
    return JSONResponse(submission_output(updated, verdict))


@router.delete("/api/forms/{form_id}/submissions/{submission_id}")
async def api_delete_submission(
    request: Request, form_id: str, submission_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    form = owned_form(request, form_id, user)
    try:
        remove_submission(request.app.state.storage, form, submission_id)
    except FormForgeError as exc:
        raise http_error(exc) from exc
    return JSONResponse({"deleted": submission_id})


@router.get("/api/forms/{form_id}/export")
async def api_export_submissions(
    request: Request, form_id: str, user: dict[str, str] = Depends(require_user)
) -> PlainTextResponse:
    form = owned_form(request, form_id, user)
    view = await load_view(request, form)
    try:
        content = view.export()
    except FormForgeError as exc:
        raise http_error(exc) from exc
    filename = export_filename(form_id, export_date(view.export_timezone))
    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/healthz", tags=["system"])
async def healthz() -> dict[str, str]:
    return {"status": "ok"}

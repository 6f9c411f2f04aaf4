from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from formforge.auth import require_user
from formforge.builder import BuilderSession
from formforge.errors import FormForgeError
from formforge.palette import palette_definition
from formforge.render import present_form
from formforge.routes.common import http_error

router = APIRouter(prefix="/api/builder", tags=["api/builder"])


def _session(request: Request, session_id: str, user: dict[str, str]) -> BuilderSession:
    session = request.app.state.builder_sessions.get(session_id)
    if session is None or not session.user or session.user["id"] != user["id"]:
        raise HTTPException(status_code=404, detail="Builder session not found")
    return session


def _state(session_id: str, session: BuilderSession, **extra: Any) -> JSONResponse:
    return JSONResponse({"session_id": session_id, **session.snapshot(), **extra})


async def _json_body(request: Request) -> dict[str, Any]:
    payload = await request.json()
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="body must be an object")
    return payload


@router.post("/sessions")
async def open_session(request: Request, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    """Start editing an existing form, a template, an AI draft or a blank form."""
    storage = request.app.state.storage
    payload = await _json_body(request)
    try:
        if payload.get("form_id"):
            session = BuilderSession.open(storage, user, str(payload["form_id"]))
        elif payload.get("template_id"):
            session = BuilderSession.from_template(storage, user, str(payload["template_id"]))
        elif "prompt" in payload:
            draft = await request.app.state.draft_generator.generate_draft(str(payload["prompt"] or ""))
            session = BuilderSession.from_draft(storage, user, draft)
        else:
            session = BuilderSession(storage, user)
    except FormForgeError as exc:
        raise http_error(exc) from exc
    session_id = request.app.state.builder_sessions.add(session)
    return _state(session_id, session)


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    return _state(session_id, _session(request, session_id, user))


@router.delete("/sessions/{session_id}")
async def close_session(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    _session(request, session_id, user)
    request.app.state.builder_sessions.discard(session_id)
    return JSONResponse({"closed": session_id})


@router.post("/sessions/{session_id}/elements")
async def add_element(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    definition = palette_definition(str(payload.get("type", "")))
    if definition is None:
        raise HTTPException(status_code=400, detail=f"unsupported element type: {payload.get('type')}")
    element = session.add_element({**definition, **payload})
    return _state(session_id, session, element=element)


@router.patch("/sessions/{session_id}/elements/{element_id}")
async def update_element(
    request: Request, session_id: str, element_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    try:
        element = session.update_element(element_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if element is None:
        raise HTTPException(status_code=404, detail="Element not found")
    return _state(session_id, session, element=element)


@router.delete("/sessions/{session_id}/elements/{element_id}")
async def remove_element(
    request: Request, session_id: str, element_id: str, user: dict[str, str] = Depends(require_user)
) -> JSONResponse:
    session = _session(request, session_id, user)
    return _state(session_id, session, removed=session.remove_element(element_id))


@router.post("/sessions/{session_id}/reorder")
async def reorder_elements(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    moved = session.reorder(str(payload.get("moved_id", "")), str(payload.get("target_id", "")))
    return _state(session_id, session, moved=moved)


@router.post("/sessions/{session_id}/drag/start")
async def start_drag(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    session.start_drag(str(payload.get("element_id", "")))
    return _state(session_id, session, dragged=session.dragged_element)


@router.post("/sessions/{session_id}/drag/drop")
async def drop(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    target_id = payload.get("target_id")
    moved = session.drop(str(target_id) if target_id else None)
    return _state(session_id, session, moved=moved)


@router.post("/sessions/{session_id}/drag/cancel")
async def cancel_drag(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    session.cancel_drag()
    return _state(session_id, session)


@router.put("/sessions/{session_id}/view")
async def set_view_mode(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    session.set_view_mode(str(payload.get("mode", "")))
    return _state(session_id, session)


@router.patch("/sessions/{session_id}/form")
async def update_form_details(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    payload = await _json_body(request)
    if isinstance(payload.get("settings"), dict):
        try:
            session.update_settings(**payload["settings"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    if "title" in payload:
        session.set_title(str(payload["title"] or ""))
    if "description" in payload:
        session.set_description(str(payload["description"] or ""))
    if isinstance(payload.get("style"), dict):
        session.set_style(**payload["style"])
    return _state(session_id, session)


@router.get("/sessions/{session_id}/preview")
async def preview(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    return JSONResponse(present_form(session.snapshot()))


@router.post("/sessions/{session_id}/save")
async def save(request: Request, session_id: str, user: dict[str, str] = Depends(require_user)) -> JSONResponse:
    session = _session(request, session_id, user)
    try:
        form_id = session.save()
    except FormForgeError as exc:
        raise http_error(exc) from exc
    return _state(session_id, session, saved=form_id)

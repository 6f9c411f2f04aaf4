from __future__ import annotations

import logging
from typing import Any

import httpx

from formforge.errors import FieldError, NotAcceptingResponses, NotFoundError
from formforge.protocols import Storage
from formforge.schema import normalize_settings
from formforge.storage import storage_operation
from formforge.validation import coerce_responses, validate
from formforge.webhook import send_webhook

logger = logging.getLogger(__name__)


def load_form(storage: Storage, form_id: str) -> dict[str, Any]:
    with storage_operation("load_form"):
        form = storage.forms.get_form(form_id)
    if not form:
        raise NotFoundError(form_id)
    return form


def load_public_form(storage: Storage, form_id: str) -> dict[str, Any]:
    form = load_form(storage, form_id)
    if not form.get("published"):
        raise NotAcceptingResponses(form_id)
    return form


def load_owned_form(storage: Storage, form_id: str, owner_id: str) -> dict[str, Any]:
    form = load_form(storage, form_id)
    if form.get("owner_id") != owner_id:
        raise NotFoundError(form_id)
    return form


async def accept_submission(
    storage: Storage,
    form: dict[str, Any],
    responses: dict[str, Any],
    submitted_by: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[dict[str, Any] | None, list[FieldError]]:
    """Validate and store one submission.

    Returns ``(submission, [])`` on success and ``(None, errors)`` when the
    responses are rejected; nothing is written in the second case.
    """
    errors = validate(form.get("elements") or [], responses)
    if errors:
        return None, errors

    stored = coerce_responses(form.get("elements") or [], responses)
    with storage_operation("add_submission"):
        submission_id = storage.submissions.add_submission(form["id"], stored, submitted_by)
        submission = storage.submissions.get_submission(form["id"], submission_id)
    logger.info("Accepted submission %s for form %s", submission_id, form["id"])

    settings = normalize_settings(form.get("settings"))
    if settings["notify_on_submission"] and settings["webhook_url"]:
        await send_webhook(settings["webhook_url"], "submit", form, submission, transport)
    return submission, []


def edit_submission(
    storage: Storage,
    form: dict[str, Any],
    submission_id: str,
    responses: dict[str, Any],
) -> tuple[dict[str, Any] | None, list[FieldError]]:
    errors = validate(form.get("elements") or [], responses)
    if errors:
        return None, errors
    stored = coerce_responses(form.get("elements") or [], responses)
    with storage_operation("update_submission"):
        try:
            submission = storage.submissions.update_submission(form["id"], submission_id, stored)
        except KeyError:
            raise NotFoundError(submission_id, "Submission not found") from None
    logger.info("Edited submission %s of form %s", submission_id, form["id"])
    return submission, []


def remove_submission(storage: Storage, form: dict[str, Any], submission_id: str) -> None:
    with storage_operation("load_submission"):
        existing = storage.submissions.get_submission(form["id"], submission_id)
    if not existing:
        raise NotFoundError(submission_id, "Submission not found")
    with storage_operation("delete_submission"):
        storage.submissions.delete_submission(form["id"], submission_id)
    logger.info("Deleted submission %s of form %s", submission_id, form["id"])

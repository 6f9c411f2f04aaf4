from __future__ import annotations

from typing import NamedTuple

MISSING_REQUIRED = "missing_required"
INVALID_FORMAT = "invalid_format"

MISSING_TITLE = "missing_title"
UNAUTHENTICATED = "unauthenticated"
SAVE_IN_PROGRESS = "save_in_progress"

NOTHING_TO_EXPORT = "nothing_to_export"

BLANK_PROMPT = "blank_prompt"
GENERATION_FAILED = "generation_failed"


class FieldError(NamedTuple):
    field_id: str
    reason: str


class FormForgeError(Exception):
    """Base class for every error the engine reports to callers."""


class BuilderError(FormForgeError):
    messages = {
        MISSING_TITLE: "Please enter a form title",
        UNAUTHENTICATED: "You must be logged in to save forms",
        SAVE_IN_PROGRESS: "A save is already in progress",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(self.messages.get(reason, reason))


class NotFoundError(FormForgeError):
    def __init__(self, form_id: str, message: str = "Form not found") -> None:
        self.form_id = form_id
        super().__init__(message)


class NotAcceptingResponses(FormForgeError):
    def __init__(self, form_id: str) -> None:
        self.form_id = form_id
        super().__init__("This form is not accepting responses")


class PersistenceError(FormForgeError):
    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation.replace('_', ' ')}")


class ExportError(FormForgeError):
    def __init__(self, reason: str = NOTHING_TO_EXPORT) -> None:
        self.reason = reason
        super().__init__("No submissions to export")


class DraftError(FormForgeError):
    messages = {
        BLANK_PROMPT: "Please describe the form you want to create",
        GENERATION_FAILED: "Failed to generate form",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(self.messages.get(reason, reason))

from __future__ import annotations

from typing import Any, Protocol

from fastapi import Request


class FormRepository(Protocol):
    def create_form(self, draft: dict[str, Any]) -> str: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    def delete_form(self, form_id: str) -> None: ...

    def set_published(self, form_id: str, published: bool) -> None: ...

    def list_forms_by_owner(self, owner_id: str) -> list[dict[str, Any]]: ...


class SubmissionRepository(Protocol):
    def add_submission(
        self, form_id: str, responses: dict[str, Any], submitted_by: str | None = None
    ) -> str: ...

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]: ...

    def get_submission(self, form_id: str, submission_id: str) -> dict[str, Any] | None: ...

    def update_submission(
        self, form_id: str, submission_id: str, responses: dict[str, Any]
    ) -> dict[str, Any]: ...

    def delete_submission(self, form_id: str, submission_id: str) -> None: ...

    def delete_for_form(self, form_id: str) -> None: ...


class Storage(Protocol):
    forms: FormRepository
    submissions: SubmissionRepository


class IdentityProvider(Protocol):
    def current_user(self, request: Request) -> dict[str, str] | None: ...


class SpamClassifier(Protocol):
    async def analyze(self, responses: dict[str, Any]) -> dict[str, Any]: ...


class DraftGenerator(Protocol):
    async def generate_draft(self, prompt: str) -> dict[str, Any]: ...

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from formforge.models import Base, FormModel, SubmissionModel
from formforge.utils import dumps_json, ensure_aware, loads_json, new_ulid, now_utc

FORM_JSON_COLUMNS = {"elements": "elements_json", "style": "style_json", "settings": "settings_json"}


def _aware(value: Any) -> Any:
    return ensure_aware(value) if value is not None else None


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_form(self, draft: dict[str, Any]) -> str:
        form_id = new_ulid()
        now = now_utc()
        with self._Session() as session:
            row = FormModel(
                id=form_id,
                owner_id=draft.get("owner_id", ""),
                title=draft.get("title", ""),
                description=draft.get("description", ""),
                elements_json=dumps_json(draft.get("elements", [])),
                style_json=dumps_json(draft.get("style", {})),
                settings_json=dumps_json(draft.get("settings", {})),
                published=bool(draft.get("published")),
                published_at=draft.get("published_at"),
                created_at=draft.get("created_at") or now,
                updated_at=draft.get("updated_at") or now,
            )
            session.add(row)
            session.commit()
        return form_id

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            for key, value in updates.items():
                if key in FORM_JSON_COLUMNS:
                    setattr(row, FORM_JSON_COLUMNS[key], dumps_json(value))
                elif key in {"title", "description", "owner_id", "published", "published_at"}:
                    setattr(row, key, value)
            row.updated_at = updates.get("updated_at") or now_utc()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, form_id: str) -> None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if row:
                session.query(SubmissionModel).filter(SubmissionModel.form_id == form_id).delete()
                session.delete(row)
                session.commit()

    def set_published(self, form_id: str, published: bool) -> None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            now = now_utc()
            row.published = published
            if published:
                row.published_at = now
            row.updated_at = now
            session.commit()

    def list_forms_by_owner(self, owner_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(FormModel)
                .filter(FormModel.owner_id == owner_id)
                .order_by(FormModel.updated_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "owner_id": row.owner_id or "",
            "title": row.title or "",
            "description": row.description or "",
            "elements": loads_json(row.elements_json) or [],
            "style": loads_json(row.style_json) or {},
            "settings": loads_json(row.settings_json) or {},
            "published": bool(row.published),
            "published_at": _aware(row.published_at),
            "created_at": _aware(row.created_at),
            "updated_at": _aware(row.updated_at),
        }


class SQLiteSubmissionRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def add_submission(
        self, form_id: str, responses: dict[str, Any], submitted_by: str | None = None
    ) -> str:
        submission_id = new_ulid()
        with self._Session() as session:
            row = SubmissionModel(
                id=submission_id,
                form_id=form_id,
                responses_json=dumps_json(responses),
                submitted_by=submitted_by,
                submitted_at=now_utc(),
            )
            session.add(row)
            session.commit()
        return submission_id

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(SubmissionModel)
                .filter(SubmissionModel.form_id == form_id)
                .order_by(SubmissionModel.submitted_at.desc(), SubmissionModel.id.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def get_submission(self, form_id: str, submission_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(SubmissionModel, submission_id)
            if not row or row.form_id != form_id:
                return None
            return self._to_dict(row)

    def update_submission(
        self, form_id: str, submission_id: str, responses: dict[str, Any]
    ) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(SubmissionModel, submission_id)
            if not row or row.form_id != form_id:
                raise KeyError(submission_id)
            row.responses_json = dumps_json(responses)
            row.updated_at = now_utc()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_submission(self, form_id: str, submission_id: str) -> None:
        with self._Session() as session:
            row = session.get(SubmissionModel, submission_id)
            if row and row.form_id == form_id:
                session.delete(row)
                session.commit()

    def delete_for_form(self, form_id: str) -> None:
        with self._Session() as session:
            session.query(SubmissionModel).filter(SubmissionModel.form_id == form_id).delete()
            session.commit()

    @staticmethod
    def _to_dict(row: SubmissionModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "responses": loads_json(row.responses_json) or {},
            "submitted_by": row.submitted_by,
            "submitted_at": _aware(row.submitted_at),
            "updated_at": _aware(row.updated_at),
        }


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.submissions = SQLiteSubmissionRepo(self._Session)

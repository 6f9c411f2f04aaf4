from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock
from tinydb import Query, TinyDB

from formforge.utils import new_ulid, now_utc, parse_dt, to_iso

FORM_FIELDS = (
    "owner_id",
    "title",
    "description",
    "elements",
    "style",
    "settings",
    "published",
    "published_at",
    "created_at",
    "updated_at",
)


class JSONRepoBase:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db
            finally:
                db.close()


def _dump_value(value: Any) -> Any:
    return to_iso(value) if isinstance(value, datetime) else value


class JSONFormRepo(JSONRepoBase):
    def create_form(self, draft: dict[str, Any]) -> str:
        form_id = new_ulid()
        now = to_iso(now_utc())
        record = {key: _dump_value(draft[key]) for key in FORM_FIELDS if key in draft}
        record["id"] = form_id
        record.setdefault("created_at", now)
        record.setdefault("updated_at", now)
        with self._db() as db:
            db.table("forms").insert(record)
        return form_id

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("forms").get(Query().id == form_id)
        return self._from_record(item) if item else None

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            if not item:
                raise KeyError(form_id)
            record = dict(item)
            for key, value in updates.items():
                if key in FORM_FIELDS:
                    record[key] = _dump_value(value)
            record["updated_at"] = _dump_value(updates.get("updated_at") or now_utc())
            table.update(record, Query().id == form_id)
        return self._from_record(record)

    def delete_form(self, form_id: str) -> None:
        with self._db() as db:
            db.table("forms").remove(Query().id == form_id)
            db.table("submissions").remove(Query().form_id == form_id)

    def set_published(self, form_id: str, published: bool) -> None:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            if not item:
                raise KeyError(form_id)
            now = to_iso(now_utc())
            changes: dict[str, Any] = {"published": published, "updated_at": now}
            if published:
                changes["published_at"] = now
            table.update(changes, Query().id == form_id)

    def list_forms_by_owner(self, owner_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("forms").search(Query().owner_id == owner_id)
        forms = [self._from_record(item) for item in items]
        return sorted(forms, key=lambda x: x["updated_at"], reverse=True)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "owner_id": record.get("owner_id", ""),
            "title": record.get("title", ""),
            "description": record.get("description", ""),
            "elements": record.get("elements", []),
            "style": record.get("style", {}),
            "settings": record.get("settings", {}),
            "published": bool(record.get("published")),
            "published_at": parse_dt(record["published_at"]) if record.get("published_at") else None,
            "created_at": parse_dt(record.get("created_at")),
            "updated_at": parse_dt(record.get("updated_at")),
        }


class JSONSubmissionRepo(JSONRepoBase):
    def add_submission(
        self, form_id: str, responses: dict[str, Any], submitted_by: str | None = None
    ) -> str:
        submission_id = new_ulid()
        record = {
            "id": submission_id,
            "form_id": form_id,
            "responses": responses,
            "submitted_by": submitted_by,
            "submitted_at": to_iso(now_utc()),
        }
        with self._db() as db:
            db.table("submissions").insert(record)
        return submission_id

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("submissions").search(Query().form_id == form_id)
        submissions = [self._from_record(item) for item in items]
        return sorted(submissions, key=lambda x: (x["submitted_at"], x["id"]), reverse=True)

    def get_submission(self, form_id: str, submission_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("submissions").get(
                (Query().id == submission_id) & (Query().form_id == form_id)
            )
        return self._from_record(item) if item else None

    def update_submission(
        self, form_id: str, submission_id: str, responses: dict[str, Any]
    ) -> dict[str, Any]:
        condition = (Query().id == submission_id) & (Query().form_id == form_id)
        with self._db() as db:
            table = db.table("submissions")
            item = table.get(condition)
            if not item:
                raise KeyError(submission_id)
            record = dict(item)
            record["responses"] = responses
            record["updated_at"] = to_iso(now_utc())
            table.update(record, condition)
        return self._from_record(record)

    def delete_submission(self, form_id: str, submission_id: str) -> None:
        with self._db() as db:
            db.table("submissions").remove(
                (Query().id == submission_id) & (Query().form_id == form_id)
            )

    def delete_for_form(self, form_id: str) -> None:
        with self._db() as db:
            db.table("submissions").remove(Query().form_id == form_id)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_id": record["form_id"],
            "responses": record.get("responses", {}),
            "submitted_by": record.get("submitted_by"),
            "submitted_at": parse_dt(record.get("submitted_at")),
            "updated_at": parse_dt(record["updated_at"]) if record.get("updated_at") else None,
        }


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.submissions = JSONSubmissionRepo(path, self._lock)

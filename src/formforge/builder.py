from __future__ import annotations

import copy
import logging
from typing import Any

from formforge.config import ALLOWED_TYPES
from formforge.errors import (
    MISSING_TITLE,
    SAVE_IN_PROGRESS,
    UNAUTHENTICATED,
    BuilderError,
    NotFoundError,
)
from formforge.palette import get_template
from formforge.protocols import Storage
from formforge.schema import (
    build_form_record,
    normalize_element,
    normalize_settings,
    normalize_style,
    parse_elements,
)
from formforge.storage import storage_operation
from formforge.utils import new_session_id
from formforge.webhook import is_valid_webhook_url

logger = logging.getLogger(__name__)

VIEW_MODES = ("editor", "preview", "submissions")
MERGED_KEYS = ("presentation", "validation")


class BuilderSession:
    """Editing state for one form: ordered elements, style and view mode.

    Every mutation is synchronous and total; ``save`` is the only operation
    that touches storage.
    """

    def __init__(
        self,
        storage: Storage,
        user: dict[str, str] | None,
        form: dict[str, Any] | None = None,
    ) -> None:
        form = form or {}
        self._storage = storage
        self.user = user
        self.form_id: str | None = form.get("id")
        self.title: str = form.get("title", "")
        self.description: str = form.get("description", "")
        self.elements: list[dict[str, Any]] = copy.deepcopy(form.get("elements") or [])
        self.style: dict[str, str] = normalize_style(form.get("style"))
        self.settings: dict[str, Any] = normalize_settings(form.get("settings"))
        self.published: bool = bool(form.get("published"))
        self.view_mode = "editor"
        self.drag_active_id: str | None = None
        self.saving = False

    @classmethod
    def open(cls, storage: Storage, user: dict[str, str] | None, form_id: str) -> BuilderSession:
        with storage_operation("load_form"):
            form = storage.forms.get_form(form_id)
        if not form or (user and form.get("owner_id") != user["id"]):
            raise NotFoundError(form_id)
        return cls(storage, user, form)

    @classmethod
    def from_template(
        cls, storage: Storage, user: dict[str, str] | None, template_id: str
    ) -> BuilderSession:
        template = get_template(template_id)
        if not template:
            raise NotFoundError(template_id)
        elements, _ = parse_elements(template["elements"])
        return cls(
            storage,
            user,
            {"title": template["name"], "description": template["description"], "elements": elements},
        )

    @classmethod
    def from_draft(
        cls, storage: Storage, user: dict[str, str] | None, draft: dict[str, Any]
    ) -> BuilderSession:
        elements, _ = parse_elements(draft.get("elements") or [])
        return cls(
            storage,
            user,
            {
                "title": draft.get("title", ""),
                "description": draft.get("description", ""),
                "elements": elements,
                "style": draft.get("style"),
            },
        )

    def _index(self, element_id: str) -> int | None:
        for index, element in enumerate(self.elements):
            if element["id"] == element_id:
                return index
        return None

    def get_element(self, element_id: str) -> dict[str, Any] | None:
        index = self._index(element_id)
        return self.elements[index] if index is not None else None

    def add_element(self, definition: dict[str, Any]) -> dict[str, Any]:
        if definition.get("type") not in ALLOWED_TYPES:
            raise ValueError(f"unsupported element type: {definition.get('type')}")
        seen_ids = {element["id"] for element in self.elements}
        element, _ = normalize_element({**copy.deepcopy(definition), "id": ""}, seen_ids)
        self.elements.append(element)
        return element

    def remove_element(self, element_id: str) -> bool:
        index = self._index(element_id)
        if index is None:
            return False
        del self.elements[index]
        if self.drag_active_id == element_id:
            self.drag_active_id = None
        return True

    def update_element(self, element_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        index = self._index(element_id)
        if index is None:
            return None
        current = self.elements[index]
        merged = {**current, **{key: value for key, value in fields.items() if key != "id"}}
        for key in MERGED_KEYS:
            if isinstance(fields.get(key), dict):
                nested = {**(current.get(key) or {}), **fields[key]}
                merged[key] = {name: value for name, value in nested.items() if value is not None}
        seen_ids = {element["id"] for element in self.elements if element["id"] != element_id}
        element, errors = normalize_element(merged, seen_ids)
        if errors:
            raise ValueError("; ".join(errors))
        self.elements[index] = element
        return element

    def reorder(self, moved_id: str, target_id: str) -> bool:
        """Move ``moved_id`` to the slot ``target_id`` occupied.

        Elements between the two positions shift by one; no-op when the ids
        are equal or either is unknown.
        """
        if moved_id == target_id:
            return False
        old_index = self._index(moved_id)
        new_index = self._index(target_id)
        if old_index is None or new_index is None:
            return False
        element = self.elements.pop(old_index)
        self.elements.insert(new_index, element)
        return True

    @property
    def drag_state(self) -> str:
        return "dragging" if self.drag_active_id else "idle"

    @property
    def dragged_element(self) -> dict[str, Any] | None:
        if not self.drag_active_id:
            return None
        return self.get_element(self.drag_active_id)

    def start_drag(self, element_id: str) -> bool:
        if self._index(element_id) is None:
            return False
        self.drag_active_id = element_id
        return True

    def drop(self, target_id: str | None) -> bool:
        source_id = self.drag_active_id
        self.drag_active_id = None
        if not source_id or not target_id or target_id == source_id:
            return False
        return self.reorder(source_id, target_id)

    def cancel_drag(self) -> None:
        self.drag_active_id = None

    def set_view_mode(self, mode: str) -> str:
        if mode not in VIEW_MODES:
            return self.view_mode
        if mode == "submissions" and not self.form_id:
            return self.view_mode
        self.view_mode = mode
        return self.view_mode

    def set_title(self, title: str) -> None:
        self.title = title

    def set_description(self, description: str) -> None:
        self.description = description

    def set_style(self, **changes: Any) -> dict[str, str]:
        self.style = normalize_style({**self.style, **changes})
        return self.style

    def update_settings(self, **changes: Any) -> dict[str, Any]:
        settings = normalize_settings({**self.settings, **changes})
        if settings["webhook_url"] and not is_valid_webhook_url(settings["webhook_url"]):
            raise ValueError("webhook_url is invalid")
        self.settings = settings
        return self.settings

    def stats(self) -> dict[str, int]:
        return {
            "total_elements": len(self.elements),
            "required_fields": sum(1 for element in self.elements if element.get("required")),
        }

    def save(self) -> str:
        if self.saving:
            raise BuilderError(SAVE_IN_PROGRESS)
        if not self.title.strip():
            raise BuilderError(MISSING_TITLE)
        if not self.user:
            raise BuilderError(UNAUTHENTICATED)

        self.saving = True
        try:
            payload = {
                "title": self.title.strip(),
                "description": self.description.strip(),
                "elements": copy.deepcopy(self.elements),
                "style": dict(self.style),
                "settings": dict(self.settings),
            }
            if self.form_id:
                with storage_operation("update_form"):
                    try:
                        self._storage.forms.update_form(self.form_id, payload)
                    except KeyError:
                        raise NotFoundError(self.form_id) from None
                logger.info("Updated form %s", self.form_id)
            else:
                with storage_operation("create_form"):
                    self.form_id = self._storage.forms.create_form(
                        build_form_record(payload, self.user["id"])
                    )
                logger.info("Created form %s for %s", self.form_id, self.user["id"])
        finally:
            self.saving = False
        return self.form_id

    def snapshot(self) -> dict[str, Any]:
        return {
            "form_id": self.form_id,
            "title": self.title,
            "description": self.description,
            "elements": copy.deepcopy(self.elements),
            "style": dict(self.style),
            "settings": dict(self.settings),
            "view_mode": self.view_mode,
            "drag": {"state": self.drag_state, "active_id": self.drag_active_id},
            "saving": self.saving,
            "stats": self.stats(),
        }


class BuilderRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, BuilderSession] = {}

    def add(self, session: BuilderSession) -> str:
        session_id = new_session_id()
        self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> BuilderSession | None:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.cancel_drag()

    def __len__(self) -> int:
        return len(self._sessions)

"""Shared fixtures for FormForge tests."""

import pytest
from fastapi.testclient import TestClient

from formforge.app import create_app
from formforge.config import Settings
from formforge.repo_json import JSONStorage
from formforge.repo_sqlite import SQLiteStorage
from formforge.schema import build_form_record


@pytest.fixture
def contact_elements():
    """A form mixing display and interactive elements with fixed ids."""
    return [
        {"id": "intro", "type": "heading", "label": "Contact us"},
        {"id": "name", "type": "text", "label": "Name", "required": True},
        {"id": "email", "type": "email", "label": "Email"},
        {"id": "topic", "type": "select", "label": "Topic", "options": ["Sales", "Support", "Other"]},
        {"id": "channels", "type": "checkbox", "label": "Channels", "options": ["Phone", "Email", "Chat"]},
        {"id": "score", "type": "rating", "label": "Score"},
        {"id": "message", "type": "textarea", "label": "Message"},
    ]


@pytest.fixture
def sqlite_storage(tmp_path):
    return SQLiteStorage(tmp_path / "forms.db")


@pytest.fixture
def json_storage(tmp_path):
    return JSONStorage(tmp_path / "store.json")


@pytest.fixture(params=["sqlite", "json"])
def storage(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "json":
        return JSONStorage(tmp_path / "store.json")
    return SQLiteStorage(tmp_path / "forms.db")


@pytest.fixture
def make_form():
    """Persist a form and return it as stored."""

    def _make(storage, elements, published=True, owner_id="local", title="Contact", settings=None):
        draft = {"title": title, "elements": elements, "settings": settings}
        form_id = storage.forms.create_form(build_form_record(draft, owner_id))
        if published:
            storage.forms.set_published(form_id, True)
        return storage.forms.get_form(form_id)

    return _make


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings pointing at a temporary data directory."""
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "data" / "app.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "data" / "store.json"))
    monkeypatch.setenv("AUTH_MODE", "none")
    monkeypatch.setenv("SPAM_MODE", "heuristic")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://forms.example.com")
    monkeypatch.setenv("PAGE_SIZE", "10")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("EXPORT_TIMEZONE", raising=False)
    return Settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)

from __future__ import annotations

from typing import Any

import markupsafe
from fastapi import FastAPI
from fastapi.templating import Jinja2Templates

from formforge.auth import get_auth_provider
from formforge.builder import BuilderRegistry
from formforge.config import BASE_DIR, Settings
from formforge.drafts import get_draft_generator
from formforge.routes.api import router as api_router
from formforge.routes.builder import router as builder_router
from formforge.routes.public import router as public_router
from formforge.routes.submissions import router as submissions_router
from formforge.spam import get_spam_classifier
from formforge.storage import init_storage
from formforge.utils import dumps_json


def _tojson_attr(value: Any) -> markupsafe.Markup:
    """Escape a JSON dump so it can sit inside an HTML attribute."""
    return markupsafe.Markup(markupsafe.escape(dumps_json(value)))


def css_declarations(css: dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in css.items() if value)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    storage = init_storage(settings)

    app = FastAPI(
        title="FormForge",
        openapi_tags=[
            {"name": "public", "description": "Published forms (HTML)"},
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/builder", "description": "REST API: builder sessions"},
            {"name": "api/submissions", "description": "REST API: submissions"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.auth_provider = get_auth_provider(settings)
    app.state.spam_classifier = get_spam_classifier(settings)
    app.state.draft_generator = get_draft_generator(settings)
    app.state.builder_sessions = BuilderRegistry()

    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    templates.env.filters["tojson_attr"] = _tojson_attr
    templates.env.globals["css_declarations"] = css_declarations
    app.state.templates = templates

    app.include_router(public_router)
    app.include_router(api_router)
    app.include_router(builder_router)
    app.include_router(submissions_router)

    return app

from __future__ import annotations

import os
import re
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

DISPLAY_TYPES = frozenset({"heading", "paragraph", "image", "divider"})
TEXT_TYPES = frozenset({"text", "email", "number", "phone", "textarea"})
CHOICE_TYPES = frozenset({"select", "radio", "checkbox"})
INTERACTIVE_TYPES = TEXT_TYPES | CHOICE_TYPES | frozenset({"date", "time", "file", "rating"})
ALLOWED_TYPES = INTERACTIVE_TYPES | DISPLAY_TYPES
OPTION_TYPES = CHOICE_TYPES | frozenset({"rating"})

TEXT_ALIGNMENTS = ("left", "center", "right")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_STYLE = {
    "background_color": "#ffffff",
    "text_color": "#000000",
    "button_color": "#3b82f6",
    "border_radius": "0.5rem",
    "font_family": "Inter, system-ui, sans-serif",
}

DEFAULT_SUBMIT_MESSAGE = "Your response has been submitted successfully."
DEFAULT_RATING_STOPS = 5
DEFAULT_PAGE_SIZE = 25


class Settings:
    def __init__(self) -> None:
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        self.sqlite_path = Path(os.getenv("SQLITE_PATH", "./data/formforge.db"))
        self.json_path = Path(os.getenv("JSON_PATH", "./data/jsonstore.json"))
        self.auth_mode = os.getenv("AUTH_MODE", "none").lower()
        self.host = os.getenv("HOST", "0.0.0.0")
        port_value = os.getenv("PORT", "8000")
        try:
            self.port = int(port_value)
        except ValueError:
            self.port = 8000
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
        self.export_timezone = os.getenv("EXPORT_TIMEZONE", "UTC")
        page_size_value = os.getenv("PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
        try:
            self.page_size = max(1, int(page_size_value))
        except ValueError:
            self.page_size = DEFAULT_PAGE_SIZE
        self.spam_mode = os.getenv("SPAM_MODE", "heuristic").lower()
        self.spam_endpoint = os.getenv("SPAM_ENDPOINT", "")
        self.openai_api_key = os.getenv("OPENAI_API_KEY", "")
        self.openai_model = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
        self.openai_base_url = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")


def ensure_dirs(settings: Settings) -> None:
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    settings.json_path.parent.mkdir(parents=True, exist_ok=True)

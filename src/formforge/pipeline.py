from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from formforge.config import DEFAULT_PAGE_SIZE
from formforge.errors import NOTHING_TO_EXPORT, ExportError
from formforge.protocols import SpamClassifier, Storage
from formforge.spam import VerdictCache
from formforge.storage import storage_operation
from formforge.utils import ensure_aware, to_iso

logger = logging.getLogger(__name__)

SPAM_GATES = ("all", "spam", "valid")
SORT_ORDERS = ("asc", "desc")
TIMESTAMP_FIELD = "submitted_at"
NUMERIC_SORT_TYPES = frozenset({"number", "rating"})
EXPORT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_query(params: Mapping[str, Any], default_page_size: int = DEFAULT_PAGE_SIZE) -> dict[str, Any]:
    filters = {
        key[2:]: str(value).strip()
        for key, value in params.items()
        if key.startswith("f_") and str(value or "").strip()
    }
    spam = str(params.get("spam") or "all")
    order = str(params.get("order") or "desc")
    return {
        "search": str(params.get("q") or "").strip(),
        "filters": filters,
        "spam": spam if spam in SPAM_GATES else "all",
        "sort": str(params.get("sort") or TIMESTAMP_FIELD),
        "order": order if order in SORT_ORDERS else "desc",
        "page": _as_int(params.get("page"), 1),
        "page_size": max(1, _as_int(params.get("page_size"), default_page_size)),
    }


def value_to_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(value_to_text(item) for item in value if item is not None)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def matches_search(submission: dict[str, Any], term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    responses = submission.get("responses") or {}
    return any(needle in value_to_text(value).lower() for value in responses.values())


def matches_filters(submission: dict[str, Any], filters: Mapping[str, str]) -> bool:
    responses = submission.get("responses") or {}
    for field_id, term in filters.items():
        if not term:
            continue
        if term.lower() not in value_to_text(responses.get(field_id)).lower():
            return False
    return True


def passes_spam_gate(submission: dict[str, Any], gate: str, verdicts: VerdictCache | None) -> bool:
    if gate == "all":
        return True
    is_spam = verdicts.is_spam(submission["id"]) if verdicts is not None else False
    return is_spam if gate == "spam" else not is_spam


def apply_filters(
    submissions: list[dict[str, Any]],
    query: Mapping[str, Any],
    verdicts: VerdictCache | None = None,
) -> list[dict[str, Any]]:
    search = query.get("search", "")
    filters = query.get("filters") or {}
    gate = query.get("spam", "all")
    return [
        submission
        for submission in submissions
        if matches_search(submission, search)
        and matches_filters(submission, filters)
        and passes_spam_gate(submission, gate, verdicts)
    ]


def _sort_key(submission: dict[str, Any], field: str, numeric: bool) -> tuple[int, int, Any]:
    if field == TIMESTAMP_FIELD:
        value = submission.get(TIMESTAMP_FIELD)
    else:
        value = (submission.get("responses") or {}).get(field)

    if value is None or value == "" or value == []:
        return (1, 0, "")
    if isinstance(value, datetime):
        return (0, 0, ensure_aware(value).timestamp())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, 0, float(value))
    if numeric:
        try:
            return (0, 0, float(value))
        except (TypeError, ValueError):
            pass
    return (0, 1, value_to_text(value).lower())


def sort_submissions(
    submissions: list[dict[str, Any]],
    sort: str = TIMESTAMP_FIELD,
    order: str = "desc",
    elements: list[dict[str, Any]] | None = None,
) -> list[dict[str, Any]]:
    """Return a new list sorted by the timestamp or a response field.

    Stable in both directions: ``sorted(reverse=True)`` keeps equal keys in
    input order.
    """
    numeric = any(
        element["id"] == sort and element.get("type") in NUMERIC_SORT_TYPES
        for element in elements or []
    )
    return sorted(
        submissions,
        key=lambda item: _sort_key(item, sort, numeric),
        reverse=order == "desc",
    )


def paginate(items: list[Any], page: int, page_size: int) -> dict[str, Any]:
    """Slice one page out of ``items``; out-of-range pages clamp to the nearest valid page."""
    page_size = max(1, page_size)
    total = len(items)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return {
        "items": items[start : start + page_size],
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
    }


def run_query(
    submissions: list[dict[str, Any]],
    query: Mapping[str, Any],
    verdicts: VerdictCache | None = None,
    elements: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    filtered = apply_filters(submissions, query, verdicts)
    ordered = sort_submissions(
        filtered, query.get("sort", TIMESTAMP_FIELD), query.get("order", "desc"), elements
    )
    return paginate(ordered, query.get("page", 1), query.get("page_size", DEFAULT_PAGE_SIZE))


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown export timezone %s, falling back to UTC", tz_name)
        return ZoneInfo("UTC")


def export_date(tz_name: str = "UTC") -> date:
    return datetime.now(_zone(tz_name)).date()


def format_timestamp(value: Any, tz_name: str = "UTC") -> str:
    if not isinstance(value, datetime):
        return ""
    return ensure_aware(value).astimezone(_zone(tz_name)).strftime(EXPORT_TIMESTAMP_FORMAT)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _header_cell(text: str) -> str:
    return _quote(text) if any(char in text for char in ',"\r\n') else text


def export_csv(
    elements: list[dict[str, Any]],
    submissions: list[dict[str, Any]],
    tz_name: str = "UTC",
) -> str:
    if not submissions:
        raise ExportError(NOTHING_TO_EXPORT)
    headers = ["Submission ID", "Submitted At", *(element.get("label", "") for element in elements)]
    lines = [",".join(_header_cell(header) for header in headers)]
    for submission in submissions:
        responses = submission.get("responses") or {}
        cells = [
            str(submission["id"]),
            format_timestamp(submission.get(TIMESTAMP_FIELD), tz_name),
            *(_quote(value_to_text(responses.get(element["id"]))) for element in elements),
        ]
        lines.append(",".join(cells))
    return "\n".join(lines)


def export_filename(form_id: str, today: date) -> str:
    return f"form-submissions-{form_id}-{today.strftime('%Y-%m-%d')}.csv"


def submission_output(submission: dict[str, Any], verdict: dict[str, Any] | None) -> dict[str, Any]:
    updated_at = submission.get("updated_at")
    return {
        "id": submission["id"],
        "form_id": submission["form_id"],
        "responses": submission.get("responses") or {},
        "submitted_by": submission.get("submitted_by"),
        "submitted_at": to_iso(submission[TIMESTAMP_FIELD]),
        "updated_at": to_iso(updated_at) if updated_at else None,
        "spam": verdict,
    }


class SubmissionsView:
    """Owned state behind one form's submissions screen.

    Holds the loaded submission set, the spam verdicts and the current query;
    changing the search, a filter or the spam gate sends the view back to
    page 1.
    """

    def __init__(
        self,
        storage: Storage,
        form: dict[str, Any],
        classifier: SpamClassifier,
        page_size: int = DEFAULT_PAGE_SIZE,
        export_timezone: str = "UTC",
        verdicts: VerdictCache | None = None,
    ) -> None:
        self._storage = storage
        self.form = form
        self.elements: list[dict[str, Any]] = form.get("elements") or []
        self.verdicts = verdicts or VerdictCache(classifier)
        self.export_timezone = export_timezone
        self.submissions: list[dict[str, Any]] = []
        self.search = ""
        self.filters: dict[str, str] = {}
        self.spam = "all"
        self.sort = TIMESTAMP_FIELD
        self.order = "desc"
        self.page = 1
        self.page_size = max(1, page_size)

    def refresh(self) -> list[dict[str, Any]]:
        with storage_operation("list_submissions"):
            submissions = self._storage.submissions.list_submissions(self.form["id"])
        self.submissions = submissions
        return self.submissions

    async def classify(self) -> dict[str, dict[str, Any]]:
        return await self.verdicts.classify(self.submissions)

    def set_search(self, term: str) -> None:
        self.search = term.strip()
        self.page = 1

    def set_filter(self, field_id: str, term: str) -> None:
        term = term.strip()
        if term:
            self.filters[field_id] = term
        else:
            self.filters.pop(field_id, None)
        self.page = 1

    def clear_filters(self) -> None:
        self.filters = {}
        self.page = 1

    def set_spam_gate(self, gate: str) -> None:
        if gate not in SPAM_GATES:
            raise ValueError(f"unknown spam gate: {gate}")
        self.spam = gate
        self.page = 1

    def set_sort(self, field: str, order: str = "asc") -> None:
        self.sort = field
        self.order = order if order in SORT_ORDERS else "asc"

    def toggle_sort(self, field: str) -> None:
        if self.sort == field:
            self.order = "asc" if self.order == "desc" else "desc"
        else:
            self.set_sort(field, "asc")

    def set_page(self, page: int) -> None:
        self.page = page

    def apply_query(self, query: Mapping[str, Any]) -> None:
        self.search = query.get("search", "")
        self.filters = dict(query.get("filters") or {})
        self.spam = query.get("spam", "all")
        self.sort = query.get("sort", TIMESTAMP_FIELD)
        self.order = query.get("order", "desc")
        self.page = query.get("page", 1)
        self.page_size = max(1, query.get("page_size", self.page_size))

    def query(self) -> dict[str, Any]:
        return {
            "search": self.search,
            "filters": dict(self.filters),
            "spam": self.spam,
            "sort": self.sort,
            "order": self.order,
            "page": self.page,
            "page_size": self.page_size,
        }

    def filtered(self) -> list[dict[str, Any]]:
        matched = apply_filters(self.submissions, self.query(), self.verdicts)
        return sort_submissions(matched, self.sort, self.order, self.elements)

    def result(self) -> dict[str, Any]:
        page = paginate(self.filtered(), self.page, self.page_size)
        self.page = page["page"]
        page["items"] = [
            submission_output(item, self.verdicts.get(item["id"])) for item in page["items"]
        ]
        page["query"] = self.query()
        page["unfiltered_total"] = len(self.submissions)
        return page

    def export(self) -> str:
        return export_csv(self.elements, self.filtered(), self.export_timezone)

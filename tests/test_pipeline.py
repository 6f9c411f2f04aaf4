"""Tests for the submission query pipeline."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from formforge.errors import PersistenceError
from formforge.pipeline import (
    SubmissionsView,
    apply_filters,
    paginate,
    parse_query,
    run_query,
    sort_submissions,
    value_to_text,
)
from formforge.spam import HeuristicSpamClassifier, NullSpamClassifier, VerdictCache

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def submission(submission_id, minutes=0, **responses):
    return {
        "id": submission_id,
        "form_id": "form-1",
        "responses": responses,
        "submitted_by": None,
        "submitted_at": BASE_TIME + timedelta(minutes=minutes),
        "updated_at": None,
    }


class FixedClassifier:
    """Marks the given submission ids as spam by their ``tag`` response."""

    async def analyze(self, responses):
        is_spam = responses.get("tag") == "spam"
        return {"is_spam": is_spam, "confidence": 0.9, "reasons": []}


@pytest.fixture
def people():
    return [
        submission("s1", 1, name="Ada Lovelace", city="London", langs=["Python", "Rust"]),
        submission("s2", 2, name="Grace Hopper", city="New York"),
        submission("s3", 3, name="alan turing", city="london"),
        submission("s4", 4, name="Linus", extra="Rustacean"),
    ]


class TestSearchAndFilter:
    """Tests for search, field filters and the spam gate."""

    def test_empty_search_matches_everything(self, people):
        assert apply_filters(people, {"search": ""}) == people

    def test_search_is_case_insensitive_over_all_values(self, people):
        assert [item["id"] for item in apply_filters(people, {"search": "LONDON"})] == ["s1", "s3"]

    def test_search_covers_lists_and_unknown_keys(self, people):
        assert [item["id"] for item in apply_filters(people, {"search": "rust"})] == ["s1", "s4"]
        assert [item["id"] for item in apply_filters(people, {"search": "python,rust"})] == ["s1"]

    def test_field_filters_all_must_match(self, people):
        query = {"filters": {"city": "lon", "name": "ada"}}
        assert [item["id"] for item in apply_filters(people, query)] == ["s1"]

    def test_missing_value_never_matches_a_non_empty_filter(self, people):
        assert [item["id"] for item in apply_filters(people, {"filters": {"city": "o"}})] == [
            "s1",
            "s2",
            "s3",
        ]

    def test_spam_gate(self):
        items = [submission("a", tag="spam"), submission("b", tag="ok"), submission("c", tag="ok")]
        verdicts = VerdictCache(FixedClassifier())
        asyncio.run(verdicts.classify(items[:2]))

        assert [item["id"] for item in apply_filters(items, {"spam": "spam"}, verdicts)] == ["a"]
        # "c" has no verdict yet and counts as valid
        assert [item["id"] for item in apply_filters(items, {"spam": "valid"}, verdicts)] == ["b", "c"]
        assert len(apply_filters(items, {"spam": "all"}, verdicts)) == 3


class TestSort:
    """Tests for ordering."""

    def test_timestamp_descending_by_default(self, people):
        assert [item["id"] for item in sort_submissions(people)] == ["s4", "s3", "s2", "s1"]

    def test_strings_case_insensitive(self, people):
        ordered = sort_submissions(people, "name", "asc")
        assert [item["id"] for item in ordered] == ["s1", "s3", "s2", "s4"]

    def test_missing_values_sort_last_ascending(self, people):
        ordered = sort_submissions(people, "city", "asc")
        assert [item["id"] for item in ordered][-1] == "s4"

    def test_numeric_fields_sort_numerically(self):
        items = [submission("a", age="10"), submission("b", age="9"), submission("c", age="100")]
        elements = [{"id": "age", "type": "number", "label": "Age"}]
        ordered = sort_submissions(items, "age", "asc", elements)
        assert [item["id"] for item in ordered] == ["b", "a", "c"]

    @pytest.mark.parametrize("order", ["asc", "desc"])
    def test_sort_is_stable(self, order):
        items = [submission(key, color="Blue") for key in ("x", "y", "z")]
        assert [item["id"] for item in sort_submissions(items, "color", order)] == ["x", "y", "z"]

    def test_returns_new_list(self, people):
        original = list(people)
        sort_submissions(people, "name", "asc")
        assert people == original


class TestPaginate:
    """Pagination clamps out-of-range pages."""

    @pytest.fixture
    def items(self):
        return list(range(1, 24))

    def test_total_pages(self, items):
        result = paginate(items, 1, 10)
        assert result["total"] == 23
        assert result["total_pages"] == 3
        assert result["items"] == list(range(1, 11))

    def test_last_page(self, items):
        assert paginate(items, 3, 10)["items"] == [21, 22, 23]

    def test_page_past_the_end_clamps(self, items):
        result = paginate(items, 4, 10)
        assert result["page"] == 3
        assert result["items"] == [21, 22, 23]

    def test_page_before_the_start_clamps(self, items):
        result = paginate(items, 0, 10)
        assert result["page"] == 1
        assert result["items"][0] == 1

    def test_empty_set_has_one_page(self):
        result = paginate([], 5, 10)
        assert (result["page"], result["total_pages"], result["items"]) == (1, 1, [])


class TestQuery:
    """Tests for query parsing and the full run."""

    def test_parse_query(self):
        query = parse_query(
            {"q": " ada ", "f_city": "lon", "f_name": " ", "spam": "junk", "order": "up", "page": "x"},
            default_page_size=10,
        )
        assert query == {
            "search": "ada",
            "filters": {"city": "lon"},
            "spam": "all",
            "sort": "submitted_at",
            "order": "desc",
            "page": 1,
            "page_size": 10,
        }

    def test_run_query_order_of_stages(self, people):
        query = parse_query({"q": "london", "sort": "name", "order": "asc", "page_size": "1", "page": "2"})
        result = run_query(people, query)
        assert result["total"] == 2
        assert [item["id"] for item in result["items"]] == ["s3"]

    def test_value_to_text(self):
        assert value_to_text(["a", "b"]) == "a,b"
        assert value_to_text(None) == ""
        assert value_to_text(3) == "3"


class TestSubmissionsView:
    """Tests for the owned submissions view state."""

    @pytest.fixture
    def view(self, sqlite_storage, make_form, contact_elements):
        form = make_form(sqlite_storage, contact_elements)
        for index in range(23):
            sqlite_storage.submissions.add_submission(
                form["id"], {"name": f"Person {index}", "topic": "Sales" if index % 2 else "Support"}
            )
        view = SubmissionsView(sqlite_storage, form, NullSpamClassifier(), page_size=10)
        view.refresh()
        return view

    def test_filter_changes_reset_page(self, view):
        view.set_page(3)
        view.set_search("person")
        assert view.page == 1
        view.set_page(2)
        view.set_filter("topic", "sales")
        assert view.page == 1
        view.set_page(2)
        view.set_spam_gate("valid")
        assert view.page == 1

    def test_result_pages(self, view):
        view.set_page(4)
        result = view.result()
        assert result["page"] == 3
        assert len(result["items"]) == 3
        assert result["unfiltered_total"] == 23

    def test_filter_then_page(self, view):
        view.set_filter("topic", "sales")
        result = view.result()
        assert result["total"] == 11
        assert all(item["responses"]["topic"] == "Sales" for item in result["items"])

    def test_clear_filters(self, view):
        view.set_filter("topic", "sales")
        view.set_page(2)
        view.clear_filters()
        assert view.page == 1
        assert view.result()["total"] == 23

    def test_toggle_sort(self, view):
        view.toggle_sort("name")
        assert (view.sort, view.order) == ("name", "asc")
        view.toggle_sort("name")
        assert view.order == "desc"

    def test_invalid_spam_gate(self, view):
        with pytest.raises(ValueError):
            view.set_spam_gate("maybe")

    def test_refresh_failure_keeps_previous_set(self, view, monkeypatch):
        before = list(view.submissions)

        def broken(form_id):
            raise OSError("gone")

        monkeypatch.setattr(view._storage.submissions, "list_submissions", broken)
        with pytest.raises(PersistenceError):
            view.refresh()
        assert view.submissions == before

    def test_classify_with_heuristics(self, sqlite_storage, make_form, contact_elements):
        form = make_form(sqlite_storage, contact_elements)
        sqlite_storage.submissions.add_submission(
            form["id"], {"message": "FREE MONEY!!! click here http://a.example http://b.example"}
        )
        sqlite_storage.submissions.add_submission(form["id"], {"message": "Thanks for the help"})
        view = SubmissionsView(sqlite_storage, form, HeuristicSpamClassifier())
        view.refresh()
        asyncio.run(view.classify())
        view.set_spam_gate("spam")
        result = view.result()
        assert result["total"] == 1
        assert result["items"][0]["spam"]["is_spam"] is True

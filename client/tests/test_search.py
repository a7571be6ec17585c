import pytest

from client.errors import InvalidArgument
from client.search import filter_events, search_params, suggest_titles


def ids(events):
    return [e["event_id"] for e in events]


def test_workshop_matches_exactly_two(events):
    assert ids(filter_events(events, "workshop")) == [1, 4]


@pytest.mark.parametrize("query", ["", "   ", None])
def test_blank_query_returns_everything(events, query):
    result = filter_events(events, query)
    assert result == events
    assert result is not events


def test_query_is_trimmed_and_case_insensitive(events):
    assert ids(filter_events(events, "  JAZZ ")) == [2]


@pytest.mark.parametrize("query, expected", [
    ("technology", [1, 7]),      # category
    ("pune", [1, 10]),           # location
    ("wellness", [9]),           # description
    ("ml", [7]),                 # tag
    ("running", [5]),            # tag only
])
def test_matches_each_searched_field(events, query, expected):
    assert ids(filter_events(events, query)) == expected


def test_no_match_is_empty(events):
    assert filter_events(events, "quidditch") == []


def test_results_are_ordered_subsequence(events):
    result = filter_events(events, "a")
    positions = [events.index(e) for e in result]
    assert positions == sorted(positions)
    for e in result:
        haystack = " ".join(
            [str(e.get(f) or "") for f in ("title", "category", "location", "description")]
            + list(e.get("tags") or [])
        ).lower()
        assert "a" in haystack


def test_missing_fields_never_raise():
    sparse = [{}, {"title": None, "tags": None}, {"tags": [None, 3, "Workshop"]}]
    assert filter_events(sparse, "workshop") == [sparse[2]]


def test_tuple_input_is_accepted(events):
    assert ids(filter_events(tuple(events), "jazz")) == [2]


@pytest.mark.parametrize("bad", [None, "events", {"a": 1}])
def test_non_list_input_rejected(bad):
    with pytest.raises(InvalidArgument):
        filter_events(bad, "x")


def test_input_is_not_mutated(events):
    before = [dict(e) for e in events]
    filter_events(events, "workshop")
    assert events == before


def test_suggest_titles(events):
    assert suggest_titles(events, "o", limit=3) == ["Python Workshop", "Startup Pitch Day", "Pottery WORKSHOP for Beginners"]
    assert suggest_titles(events, "") == []


def test_search_params_drops_placeholders():
    assert search_params(" jazz ", category="All", type=None, location="Pune") == {
        "search": "jazz", "location": "Pune",
    }

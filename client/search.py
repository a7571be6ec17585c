"""
Client-side event search.

`filter_events` narrows an already-loaded event list by a free-text query,
the same way the Events page filters without another round trip.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from client.errors import InvalidArgument

SEARCH_FIELDS = ("title", "category", "location", "description")


def _matches(event: Mapping[str, Any], needle: str) -> bool:
    for field in SEARCH_FIELDS:
        value = event.get(field)
        if isinstance(value, str) and needle in value.lower():
            return True

    tags = event.get("tags") or []
    if isinstance(tags, str):
        tags = [tags]
    return any(isinstance(t, str) and needle in t.lower() for t in tags)


def filter_events(events: Sequence[Mapping[str, Any]], query: Optional[str]) -> List[Mapping[str, Any]]:
    """
    Return the events whose title, category, location, description or any
    tag contains `query` (case-insensitive, trimmed).

    Order is preserved. A blank query returns every event. Missing fields
    never match and never raise.

    Raises:
        InvalidArgument: `events` is not a list or tuple.
    """
    if not isinstance(events, (list, tuple)):
        raise InvalidArgument("events must be a list")

    needle = (query or "").strip().lower()
    if not needle:
        return list(events)

    return [e for e in events if isinstance(e, Mapping) and _matches(e, needle)]


def suggest_titles(events: Sequence[Mapping[str, Any]], query: Optional[str], limit: int = 5) -> List[str]:
    """
    Titles of the first `limit` matching events, for a search-box dropdown.
    """
    if not (query or "").strip():
        return []
    titles = []
    for e in filter_events(events, query):
        title = e.get("title")
        if title and title not in titles:
            titles.append(title)
        if len(titles) >= limit:
            break
    return titles


def search_params(query: Optional[str], **filters: Any) -> Dict[str, Any]:
    """
    Build the query string for a server-side `GET /events` search,
    dropping empty values and the "All" category/type placeholders.
    """
    params: Dict[str, Any] = {}
    q = (query or "").strip()
    if q:
        params["search"] = q
    for key, value in filters.items():
        if value in (None, "", "All", "all"):
            continue
        params[key] = value
    return params

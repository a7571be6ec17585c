import pytest


def test_list_locations(client):
    response = client.get("/api/locations")
    assert response.status_code == 200
    body = response.get_json()
    assert body["total"] == 12
    assert body["data"][0]["name"] == "Mumbai"


def test_popular_locations(client):
    response = client.get("/api/locations/popular")
    assert response.get_json()["total"] == 12


@pytest.mark.parametrize("q, expected", [
    ("pune", ["Pune"]),
    ("MH", ["Mumbai", "Pune"]),
    ("new", ["New York"]),
    ("zz", []),
])
def test_search_locations(client, q, expected):
    response = client.get("/api/locations/search", query_string={"q": q})
    assert response.status_code == 200
    assert [loc["name"] for loc in response.get_json()["data"]] == expected


def test_search_locations_empty_query(client):
    response = client.get("/api/locations/search?q=")
    assert response.get_json() == {"data": [], "total": 0}

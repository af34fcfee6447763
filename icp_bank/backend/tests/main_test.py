import pytest
from fastapi.testclient import TestClient

import data_loader
from classifier import MOVIE
from data_loader import DataStore
from main import app


SAMPLE_UPLOAD = {
    "file_name": "sample.csv",
    "headers": ["Editor", "Sound Mixer", "state"],
    "rows": [
        {"Editor": 10, "Sound Mixer": 5, "state": "CA"},
        {"Editor": 0, "Sound Mixer": 20, "state": "NY"},
    ],
}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(data_loader, "data_store", DataStore())
    return TestClient(app)


@pytest.fixture
def loaded_client(client):
    response = client.post("/datasets", json=SAMPLE_UPLOAD)
    assert response.status_code == 200
    return client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_endpoints_require_data(client):
    assert client.get("/config").status_code == 503
    assert client.post("/analytics", json={}).status_code == 503
    assert client.post("/filters/actions", json={"action": "clear"}).status_code == 503


def test_upload_returns_summary(client):
    body = client.post("/datasets", json=SAMPLE_UPLOAD).json()
    assert body["file_name"] == "sample.csv"
    assert body["row_count"] == 2
    assert body["column_count"] == 3
    assert body["geography"] == "US"


def test_upload_rejects_unknown_geography(client):
    response = client.post("/datasets", json={**SAMPLE_UPLOAD, "geography": "mars"})
    assert response.status_code == 400


def test_config(loaded_client):
    body = loaded_client.get("/config").json()
    assert body["geography"] == "US"
    assert body["location_label"] == "States"
    assert body["map_kind"] == "regional"
    assert body["filter_options"]["locations"] == ["CA", "NY"]
    assert body["filter_options"]["roles"] == ["Sound Mixer", "Editor"]
    assert [m["column_name"] for m in body["role_metadata"]] == ["Sound Mixer", "Editor"]


def test_analytics_unfiltered(loaded_client):
    body = loaded_client.post("/analytics", json={}).json()
    kpis = body["kpis"]
    assert kpis["total_people"] == 35
    assert kpis["role_breakdown"] == {"Editor": 10, "Sound Mixer": 25}
    assert kpis["location_breakdown"] == {"CA": 15, "NY": 20}
    assert body["effective"]["locations"] == ["CA", "NY"]
    assert [p["role"] for p in body["pareto"]] == ["Sound Mixer", "Editor"]
    assert body["pareto"][-1]["cumulative_percent"] == 100
    assert body["tree"]["id"] == "root"
    assert [s["code"] for s in body["location_summaries"]] == ["NY", "CA"]
    assert body["row_count"] == 2


def test_analytics_with_request_filters(loaded_client):
    payload = {"filters": {"industries": [MOVIE], "industry_mode": "AND"}}
    body = loaded_client.post("/analytics", json=payload).json()
    assert body["effective"]["roles"] == ["Editor"]
    assert body["kpis"]["total_people"] == 10


def test_analytics_rejects_bad_industry_mode(loaded_client):
    payload = {"filters": {"industry_mode": "XOR"}}
    assert loaded_client.post("/analytics", json=payload).status_code == 422


def test_analytics_pareto_limit(loaded_client):
    body = loaded_client.post("/analytics", json={"pareto_limit": 1}).json()
    assert len(body["pareto"]) == 1


def test_filter_actions_drive_stored_state(loaded_client):
    response = loaded_client.post("/filters/actions", json={"action": "toggle_region", "value": "West"})
    assert response.status_code == 200
    assert response.json()["regions"] == ["West"]
    assert loaded_client.get("/filters").json()["regions"] == ["West"]

    body = loaded_client.post("/analytics", json={}).json()
    assert body["effective"]["locations"] == ["CA"]
    assert body["kpis"]["total_people"] == 15

    response = loaded_client.post("/filters/actions", json={"action": "clear"})
    assert response.json()["regions"] == []


def test_filter_action_errors(loaded_client):
    response = loaded_client.post("/filters/actions", json={"action": "explode"})
    assert response.status_code == 400


def test_geography_catalog(client):
    body = client.get("/geography/us").json()
    assert body["id"] == "US"
    assert body["locations"]["CA"] == "California"
    assert "West" in body["regions"]
    assert set(body["region_colors"]) == set(body["regions"])
    assert client.get("/geography/mars").status_code == 404


def test_dataset_lifecycle(loaded_client):
    second = {**SAMPLE_UPLOAD, "file_name": "second.csv"}
    second_id = loaded_client.post("/datasets", json=second).json()["id"]

    listing = loaded_client.get("/datasets").json()
    assert len(listing["datasets"]) == 2
    assert listing["merge_all"] is True
    assert listing["merge_summary"]["label"] == "2 files merged · 4 rows total"

    body = loaded_client.post("/analytics", json={}).json()
    assert body["kpis"]["total_people"] == 70

    listing = loaded_client.post("/datasets/merge", json={"merge_all": False}).json()
    assert listing["merge_all"] is False
    assert listing["active_dataset_id"] == second_id

    assert loaded_client.post("/datasets/active", json={"dataset_id": "nope"}).status_code == 404
    assert loaded_client.delete("/datasets/nope").status_code == 404

    listing = loaded_client.delete(f"/datasets/{second_id}").json()
    assert len(listing["datasets"]) == 1
    assert listing["active_dataset_id"] != second_id

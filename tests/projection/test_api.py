"""
API Server Tests

Exercises the FastAPI surface through TestClient against in-memory
collaborators.
"""

import pytest
from fastapi.testclient import TestClient

from roadmap_projection.api.server import create_app
from roadmap_projection.engine import RoadmapEngine
from roadmap_projection.overlay import InMemoryKeyValueStore
from roadmap_projection.sources import InMemoryPermissionChecker

from .fixtures import (
    ACTOR,
    PROJECT,
    UnavailableDomainSource,
    create_source_with_counts,
    fixed_clock,
    make_track,
)


BASE = f"/api/v1/projects/{PROJECT}"


def _client(source):
    engine = RoadmapEngine(
        domain_source=source,
        permission_checker=InMemoryPermissionChecker({PROJECT: {"A"}}, domain_source=source),
        storage=InMemoryKeyValueStore(),
        clock=fixed_clock,
    )
    return TestClient(create_app(engine=engine))


@pytest.fixture
def client():
    return _client(create_source_with_counts())


class TestProjectionEndpoint:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "online", "mode": "projection"}

    def test_projection_dto(self, client):
        response = client.get(f"{BASE}/projection", params={"actor": ACTOR})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["loading"] is False
        assert body["error"] is None
        assert body["totalTracks"] == 1
        assert body["totalItems"] == 5

        track = body["tracks"][0]
        assert track["track"]["id"] == "A"
        assert "children" not in track["track"]
        assert track["canEdit"] is True
        assert track["itemCount"] == 2
        assert track["totalItemCount"] == 5
        assert track["uiState"] == {"collapsed": False, "highlighted": False, "focused": False}
        assert track["subtracks"][0]["canEdit"] is False
        assert track["subtracks"][0]["itemCount"] == 3

    def test_anonymous_projection_cannot_edit(self, client):
        body = client.get(f"{BASE}/projection").json()

        assert body["tracks"][0]["canEdit"] is False

    def test_domain_failure_is_502_with_error_snapshot(self):
        source = UnavailableDomainSource()
        source.add_track(PROJECT, make_track("A"))

        response = _client(source).get(f"{BASE}/projection")

        assert response.status_code == 502
        body = response.json()
        assert body["status"] == "error"
        assert body["tracks"] == []
        assert body["error"]["code"] == "DOMAIN_UNAVAILABLE"

    def test_overlay_reflected_in_projection(self, client):
        client.post(f"{BASE}/overlay/set-track-collapsed", json={"trackId": "A", "collapsed": True})
        client.post(f"{BASE}/overlay/set-highlighted", json={"trackId": "B"})

        track = client.get(f"{BASE}/projection").json()["tracks"][0]

        assert track["uiState"]["collapsed"] is True
        assert track["subtracks"][0]["uiState"]["highlighted"] is True


class TestOverlayEndpoints:

    def test_default_overlay(self, client):
        body = client.get(f"{BASE}/overlay").json()

        assert body["projectId"] == PROJECT
        assert body["viewMode"] == "week"
        assert body["anchorDate"] == "2024-01-10"
        assert body["lastWeekAnchor"] is None

    def test_toggle_and_query(self, client):
        client.post(f"{BASE}/overlay/toggle-track-collapse", json={"trackId": "A"})

        assert client.get(f"{BASE}/overlay/tracks/A/collapsed").json() == {"trackId": "A", "collapsed": True}

        client.post(f"{BASE}/overlay/toggle-subtrack-collapse", json={"subtrackId": "B", "currentlyCollapsed": False})
        assert client.get(f"{BASE}/overlay/subtracks/B/collapsed").json()["collapsed"] is True

    def test_collapse_tracks_then_expand_all(self, client):
        body = client.post(f"{BASE}/overlay/collapse-tracks", json={"trackIds": ["B", "A"]}).json()
        assert body["collapsedTracks"] == ["A", "B"]

        body = client.post(f"{BASE}/overlay/expand-all").json()
        assert body["collapsedTracks"] == []

    def test_focus_and_highlights(self, client):
        assert client.post(f"{BASE}/overlay/set-focused", json={"trackId": "A"}).json()["focusedTrackId"] == "A"
        assert client.post(f"{BASE}/overlay/clear-focus").json()["focusedTrackId"] is None

        client.post(f"{BASE}/overlay/set-highlighted", json={"trackId": "A", "highlighted": True})
        assert client.post(f"{BASE}/overlay/clear-highlights").json()["highlightedTracks"] == []

    def test_view_navigation(self, client):
        client.post(f"{BASE}/overlay/set-anchor-date", json={"anchorDate": "2024-01-08"})
        body = client.post(f"{BASE}/overlay/enter-day-view", json={"weekStart": "2024-01-15"}).json()
        assert body["viewMode"] == "day"
        assert body["lastWeekAnchor"] == "2024-01-08"

        body = client.post(f"{BASE}/overlay/return-to-week-view").json()
        assert body["anchorDate"] == "2024-01-08"

        body = client.post(f"{BASE}/overlay/navigate-weeks", json={"count": -1}).json()
        assert body["anchorDate"] == "2024-01-01"

        body = client.post(f"{BASE}/overlay/navigate-months", json={"count": 2}).json()
        assert body["anchorDate"] == "2024-03-01"

        body = client.post(f"{BASE}/overlay/set-view-mode", json={"viewMode": "month"}).json()
        assert body["viewMode"] == "month"

        assert client.post(f"{BASE}/overlay/navigate-to-today").json()["anchorDate"] == "2024-01-10"

    def test_invalid_values_are_422(self, client):
        assert client.post(f"{BASE}/overlay/set-view-mode", json={"viewMode": "year"}).status_code == 422
        assert client.post(f"{BASE}/overlay/set-anchor-date", json={"anchorDate": "soon"}).status_code == 422
        assert client.post(f"{BASE}/overlay/set-track-collapsed", json={"trackId": "A"}).status_code == 422

    def test_reset(self, client):
        client.post(f"{BASE}/overlay/set-focused", json={"trackId": "A"})

        body = client.delete(f"{BASE}/overlay").json()

        assert body["focusedTrackId"] is None

    def test_storage_event(self, client):
        body = client.post(f"{BASE}/overlay/storage-event", json={"oldValue": "a", "newValue": "a"}).json()
        assert body["broadcast"] is False

        body = client.post(f"{BASE}/overlay/storage-event", json={"oldValue": None, "newValue": "{}"}).json()
        assert body["broadcast"] is True

"""
HTTP Collaborator Tests

The REST adapters are exercised against httpx.MockTransport; no network.
"""

import httpx
import pytest

from roadmap_projection.contracts import DomainFetchError, ErrorCode, VisibilityState
from roadmap_projection.permissions import Capability, resolve_edit_capability
from roadmap_projection.sources import HttpDomainSource, HttpPermissionChecker

from .fixtures import ACTOR, PROJECT, run


BASE_URL = "https://domain.test/api"

TREE = [
    {
        "id": "A",
        "name": "Alpha",
        "orderingIndex": 1,
        "includeInRoadmap": True,
        "masterProjectId": PROJECT,
        "children": [{"id": "B", "orderingIndex": 0, "children": []}],
    },
]

ITEMS = [
    {"id": "i1", "trackId": "A", "title": "Kickoff", "startDate": "2024-01-08"},
    {"id": "i2", "trackId": "A", "subtrackId": "B", "title": "Draft"},
]

TRACKS_WITH_INSTANCES = [
    {"id": "A", "orderingIndex": 1, "instance": {"visibilityState": "collapsed", "orderIndex": 3}},
    {"id": "B", "orderingIndex": 0, "instance": None},
]


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == f"/api/projects/{PROJECT}/tracks/tree":
        return httpx.Response(200, json=TREE)
    if path == f"/api/projects/{PROJECT}/roadmap-items":
        return httpx.Response(200, json=ITEMS)
    if path == f"/api/projects/{PROJECT}/tracks":
        assert request.url.params["includeInstances"] == "true"
        return httpx.Response(200, json=TRACKS_WITH_INSTANCES)
    if path == f"/api/projects/{PROJECT}/tracks/A/instance":
        return httpx.Response(200, json={"visibilityState": "hidden", "includeInRoadmap": True})
    if path == f"/api/projects/{PROJECT}/tracks/A/permissions":
        return httpx.Response(200, json={"canEdit": True})
    if path == f"/api/projects/{PROJECT}/tracks/B/permissions":
        return httpx.Response(200, json={"canEdit": False, "reason": "Read only"})
    if path == f"/api/projects/{PROJECT}/tracks/C/permissions":
        return httpx.Response(200, json={"allowed": "maybe"})
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def source():
    return HttpDomainSource(BASE_URL, transport=httpx.MockTransport(_handler))


@pytest.fixture
def checker():
    return HttpPermissionChecker(BASE_URL, transport=httpx.MockTransport(_handler))


class TestHttpDomainSource:

    def test_track_tree(self, source):
        tree = run(source.get_track_tree(PROJECT))

        assert [t.id for t in tree] == ["A"]
        assert tree[0].ordering_index == 1
        assert tree[0].include_in_roadmap is True
        assert tree[0].child_ids == ("B",)
        assert tree[0].children[0].include_in_roadmap is None

    def test_items(self, source):
        items = run(source.get_items_by_project(PROJECT))

        assert [(i.id, i.track_id, i.subtrack_id) for i in items] == [("i1", "A", None), ("i2", "A", "B")]

    def test_tracks_with_instances(self, source):
        rows = run(source.get_tracks_with_instances(PROJECT))

        assert rows[0].instance.visibility_state is VisibilityState.COLLAPSED
        assert rows[0].instance.order_index == 3
        assert rows[0].instance.project_id == PROJECT
        assert rows[1].instance is None

    def test_instance_lookup(self, source):
        instance = run(source.get_track_instance("A", PROJECT))

        assert instance.track_id == "A"
        assert instance.visibility_state is VisibilityState.HIDDEN

    def test_missing_instance_is_none(self, source):
        assert run(source.get_track_instance("nobody", PROJECT)) is None

    def test_http_error_wrapped(self):
        source = HttpDomainSource(BASE_URL, transport=httpx.MockTransport(lambda r: httpx.Response(503)))

        with pytest.raises(DomainFetchError) as exc_info:
            run(source.get_track_tree(PROJECT))

        assert exc_info.value.code is ErrorCode.DOMAIN_UNAVAILABLE
        assert "HTTP 503" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_transport_error_wrapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = HttpDomainSource(BASE_URL, transport=httpx.MockTransport(refuse))

        with pytest.raises(DomainFetchError):
            run(source.get_items_by_project(PROJECT))

    def test_invalid_json_wrapped(self):
        source = HttpDomainSource(BASE_URL, transport=httpx.MockTransport(
            lambda r: httpx.Response(200, content=b"<html>")
        ))

        with pytest.raises(DomainFetchError):
            run(source.get_track_tree(PROJECT))

    def test_non_list_payload_rejected(self):
        source = HttpDomainSource(BASE_URL, transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json={"tracks": []})
        ))

        with pytest.raises(DomainFetchError):
            run(source.get_track_tree(PROJECT))

    def test_batch_instances_use_default_loop(self, source):
        instances = run(source.get_track_instances(["A", "nobody"], PROJECT))

        assert instances["A"].visibility_state is VisibilityState.HIDDEN
        assert instances["nobody"] is None


class TestHttpPermissionChecker:

    def test_granted(self, checker):
        assert run(resolve_edit_capability(checker, "A", PROJECT, ACTOR)) is Capability.GRANTED

    def test_denied_with_reason(self, checker):
        result = run(checker.check_edit_permission("B", PROJECT))

        assert result.can_edit is False
        assert result.reason == "Read only"

    def test_malformed_answer_is_unknown(self, checker):
        assert run(resolve_edit_capability(checker, "C", PROJECT, ACTOR)) is Capability.UNKNOWN

    def test_http_failure_is_unknown(self, checker):
        assert run(resolve_edit_capability(checker, "missing", PROJECT, ACTOR)) is Capability.UNKNOWN

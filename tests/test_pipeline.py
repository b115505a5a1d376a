import threading

import pytest
import requests

from shopsearch import config, pipeline
from shopsearch.errors import SearchError
from shopsearch.geo import Coordinate
from shopsearch.location import GeoProvider, denied_location_source, fixed_location_source
from shopsearch.models import CategoryFilter, SortCriterion
from shopsearch.pipeline import ERROR, IDLE, LOADING, READY, SearchSession
from shopsearch.recent import RecentSearches
from shopsearch.search_client import SearchGateway

UNIVERSAL_URL = config.endpoint(config.UNIVERSAL_SEARCH_PATH)
SUGGEST_URL = config.endpoint(config.DID_YOU_MEAN_PATH)

ORIGIN = Coordinate(23.2, 75.1)
KM_PER_DEGREE_LAT = 6371.0 * 3.141592653589793 / 180


def _north_of_origin(km):
    return {"lat": ORIGIN.latitude + km / KM_PER_DEGREE_LAT, "lng": ORIGIN.longitude}


MILK_RESULTS = [
    {"id": "far", "resultType": "product", "name": "Milk 1L", "shopId": "s2", "matchScore": 0.9, "location": _north_of_origin(2.1)},
    {"id": "nowhere", "resultType": "product", "name": "Milk 500ml", "shopId": "s3", "matchScore": 0.8},
    {"id": "near", "resultType": "product", "name": "Toned Milk", "shopId": "s1", "matchScore": 0.1, "location": _north_of_origin(0.4)},
    {"id": "s1", "resultType": "shop", "name": "Dairy Point", "shopId": "s1", "location": _north_of_origin(0.4)},
    {"id": "s2", "resultType": "shop", "name": "Milk Mart", "shopId": "s2", "location": _north_of_origin(2.1)},
]


class FakeHttp:
    """Universal search keyed by query; optional per-query gates block a response."""

    def __init__(self, results_by_query, suggestions=None, error=None):
        self.results_by_query = results_by_query
        self.suggestions = suggestions or []
        self.error = error
        self.gates = {}
        self.calls = []

    def get_json(self, url, params=None, extra_headers=None, timeout=None):
        self.calls.append((url, dict(params or {})))
        if url == SUGGEST_URL:
            return self.suggestions
        if self.error is not None:
            raise self.error
        query = (params or {}).get("q")
        gate = self.gates.get(query)
        if gate is not None:
            gate.wait(5)
        return self.results_by_query.get(query, [])


class RecordingTracker:
    def __init__(self):
        self.calls = []

    def track_unavailable(self, query, results):
        self.calls.append((query, list(results)))


def make_session(http, **kwargs):
    return SearchSession(SearchGateway(http), **kwargs)


def _ids(rows):
    return [r.id for r in rows]


def test_distance_sort_with_known_origin():
    session = make_session(FakeHttp({"milk": MILK_RESULTS}), sort=SortCriterion.DISTANCE)

    snapshot = session.search("milk", origin=ORIGIN)

    assert snapshot.status == READY
    view = snapshot.view
    assert _ids(view.items) == ["near", "far", "nowhere"]
    assert view.items[0].distance_km == pytest.approx(0.4, rel=1e-3)
    assert view.items[1].distance_km == pytest.approx(2.1, rel=1e-3)
    assert view.items[2].distance_km is None
    assert _ids(view.shops) == ["s1", "s2"]
    session.close()


def test_origin_is_sent_to_universal_search():
    http = FakeHttp({"milk": MILK_RESULTS})
    session = make_session(http)
    session.search("milk", origin=ORIGIN)
    assert http.calls[0][1] == {"q": "milk", "lat": "23.2", "lng": "75.1"}
    session.close()


def test_location_provider_supplies_origin():
    provider = GeoProvider(fixed_location_source(23.2, 75.1), timeout_seconds=1)
    session = make_session(FakeHttp({"milk": MILK_RESULTS}), geo_provider=provider, sort="distance")

    view = session.search("milk").view

    assert _ids(view.items) == ["near", "far", "nowhere"]
    session.close()
    provider.shutdown()


def test_denied_location_ranks_without_distances():
    provider = GeoProvider(denied_location_source, timeout_seconds=1)
    http = FakeHttp({"milk": MILK_RESULTS})
    session = make_session(http, geo_provider=provider, sort="distance")

    snapshot = session.search("milk")

    assert snapshot.status == READY
    assert all(r.distance_km is None for r in snapshot.view.items)
    # unknown distances keep server order
    assert _ids(snapshot.view.items) == ["far", "nowhere", "near"]
    assert http.calls[0][1] == {"q": "milk"}
    session.close()
    provider.shutdown()


def test_out_of_stock_item_is_rendered_and_tracked():
    results = [
        {"id": "p1", "resultType": "product", "name": "Milk 1L", "shopId": "s1", "inStock": 0},
        {"id": "p2", "resultType": "product", "name": "Curd", "shopId": "s1", "inStock": 3},
    ]
    tracker = RecordingTracker()
    session = make_session(FakeHttp({"milk": results}), tracker=tracker)

    view = session.search("milk").view

    assert "p1" in _ids(view.items)
    assert len(tracker.calls) == 1
    unavailable = [r for r in tracker.calls[0][1] if r.is_unavailable]
    assert _ids(unavailable) == ["p1"]
    session.close()


def test_zero_results_show_suggestions():
    http = FakeHttp({}, suggestions=["paneer"])
    session = make_session(http)

    snapshot = session.search("paner")

    assert snapshot.status == READY
    assert snapshot.view.total_count == 0
    assert snapshot.view.suggestions == ("paneer",)
    assert sum(1 for url, _ in http.calls if url == SUGGEST_URL) == 1
    session.close()


def test_search_failure_publishes_error_state():
    session = make_session(FakeHttp({}, error=requests.ConnectionError("down")))

    snapshot = session.search("milk")

    assert snapshot.status == ERROR
    assert snapshot.error.reason == SearchError.TRANSPORT_FAILURE
    assert snapshot.view.total_count == 0
    assert session.state == snapshot
    assert session.set_sort("price") is None
    session.close()


def test_blank_query_is_idle_without_network():
    http = FakeHttp({})
    session = make_session(http)

    snapshot = session.search("   ")

    assert snapshot.status == IDLE
    assert http.calls == []
    session.close()


def test_sort_and_category_changes_recompose_without_network():
    http = FakeHttp({"milk": MILK_RESULTS})
    tracker = RecordingTracker()
    session = make_session(http, tracker=tracker)
    session.search("milk", origin=ORIGIN)
    calls_before = len(http.calls)

    by_distance = session.set_sort(SortCriterion.DISTANCE)
    assert _ids(by_distance.items) == ["near", "far", "nowhere"]

    shops_only = session.set_category(CategoryFilter.SHOPS)
    assert shops_only.items == ()
    assert _ids(shops_only.shops) == ["s1", "s2"]

    assert len(http.calls) == calls_before
    assert len(tracker.calls) == 1
    assert session.state.view == shops_only
    assert session.state.seq == 1
    session.close()


def test_stale_response_is_discarded():
    http = FakeHttp({"slow": [{"id": "old", "resultType": "item"}], "fast": [{"id": "new", "resultType": "item"}]})
    gate = threading.Event()
    http.gates["slow"] = gate
    session = make_session(http)

    pending = session.submit("slow")
    latest = session.search("fast")
    gate.set()

    assert pending.result(timeout=5) is None
    assert latest.status == READY
    assert session.state.seq == 2
    assert _ids(session.state.view.items) == ["new"]
    session.close()


def test_submit_supersedes_previous_query():
    http = FakeHttp({"mil": [{"id": "a", "resultType": "item"}], "milk": [{"id": "b", "resultType": "item"}]})
    gate = threading.Event()
    http.gates["mil"] = gate
    session = make_session(http)

    first = session.submit("mil")
    assert session.state.status == LOADING
    second = session.submit("milk")
    snapshot = second.result(timeout=5)
    gate.set()

    assert snapshot.status == READY
    assert snapshot.seq == 2
    assert first.cancelled() or first.result(timeout=5) is None
    assert _ids(session.state.view.items) == ["b"]
    session.close()


def test_direct_hit_shows_parent_shop():
    lookup_url = config.endpoint(config.REFERENCE_LOOKUP_PATH, reference_id="SRV-BHO-007")

    class LookupHttp(FakeHttp):
        def get_json(self, url, params=None, extra_headers=None, timeout=None):
            if url == lookup_url:
                self.calls.append((url, {}))
                return {
                    "id": "svc-7",
                    "resultType": "service",
                    "name": "AC Repair",
                    "shopId": "s9",
                    "shopName": "Cool Fix",
                    "referenceId": "SRV-BHO-007",
                }
            return super().get_json(url, params=params)

    http = LookupHttp({})
    session = make_session(http)

    view = session.search("SRV-BHO-007").view

    assert view.direct_hit is True
    assert _ids(view.services) == ["svc-7"]
    assert _ids(view.shops) == ["s9"]
    assert view.shops[0].shop_name == "Cool Fix"
    assert [url for url, _ in http.calls] == [lookup_url]
    session.close()


def test_search_hook_records_recent_searches():
    recent = RecentSearches()
    session = make_session(FakeHttp({"milk": MILK_RESULTS}), on_search=recent)

    session.search("Milk ")

    entries = recent.entries()
    assert [e.query for e in entries] == ["milk"]
    assert entries[0].results == session.state.view.total_count
    session.close()


def test_failing_hook_does_not_fail_search():
    def hook(query, count):
        raise RuntimeError("storage full")

    session = make_session(FakeHttp({"milk": MILK_RESULTS}), on_search=hook)
    assert session.search("milk").status == READY
    session.close()


def test_office_only_search_shows_offices():
    results = [
        {"id": "o1", "resultType": "office", "name": "Head Post Office"},
        {"id": "o2", "resultType": "office", "name": "Sub Post Office"},
    ]
    http = FakeHttp({"post office": results}, suggestions=["post"])
    session = make_session(http)

    view = session.search("post office").view

    assert _ids(view.offices) == ["o1", "o2"]
    assert view.total_count == 2
    assert view.suggestions == ()
    session.close()


def test_superseded_query_is_not_tracked(monkeypatch):
    results = [{"id": "p1", "resultType": "product", "name": "Milk 1L", "shopId": "s1", "inStock": 0}]
    tracker = RecordingTracker()
    session = make_session(FakeHttp({"milk": results}), tracker=tracker)
    real_compose = pipeline.compose_view

    def compose_then_newer_query(*args, **kwargs):
        view = real_compose(*args, **kwargs)
        # a newer query takes a sequence number while this one is composing
        session._next_seq()
        return view

    monkeypatch.setattr(pipeline, "compose_view", compose_then_newer_query)

    assert session.search("milk") is None
    assert tracker.calls == []
    session.close()

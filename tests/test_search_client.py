import pytest
import requests

from shopsearch import config
from shopsearch.cache import Cache
from shopsearch.errors import ReferenceLookupError, SearchError
from shopsearch.geo import Coordinate
from shopsearch.http import RequestMetrics
from shopsearch.search_client import SearchGateway

LOOKUP_URL = config.endpoint(config.REFERENCE_LOOKUP_PATH, reference_id="SRV-BHO-007")
UNIVERSAL_URL = config.endpoint(config.UNIVERSAL_SEARCH_PATH)
SUGGEST_URL = config.endpoint(config.DID_YOU_MEAN_PATH)


class _Resp:
    def __init__(self, status_code):
        self.status_code = status_code


def http_error(status):
    return requests.HTTPError(f"HTTP {status}", response=_Resp(status))


class FakeHttp:
    """Maps URL -> payload, or an exception to raise."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get_json(self, url, params=None, extra_headers=None, timeout=None):
        self.calls.append((url, params))
        value = self.responses.get(url)
        if isinstance(value, Exception):
            raise value
        return value

    def count(self, url):
        return sum(1 for called, _ in self.calls if called == url)


SERVICE_HIT = {
    "id": "svc-7",
    "resultType": "service",
    "name": "AC Repair",
    "shopId": "s9",
    "shopName": "Cool Fix",
    "referenceId": "SRV-BHO-007",
}


def test_direct_hit_skips_universal_search():
    http = FakeHttp({LOOKUP_URL: SERVICE_HIT})
    metrics = RequestMetrics()
    gateway = SearchGateway(http, metrics=metrics)

    outcome = gateway.execute("srv-bho-007")

    assert outcome.direct_hit is True
    assert [r.id for r in outcome.results] == ["svc-7"]
    assert outcome.results[0].result_type == "service"
    assert outcome.suggestions == []
    assert http.count(UNIVERSAL_URL) == 0
    assert metrics.network["lookup"] == 1
    assert metrics.network["universal"] == 0


def test_lookup_not_found_falls_back_to_universal():
    http = FakeHttp(
        {
            LOOKUP_URL: http_error(404),
            UNIVERSAL_URL: [{"id": "1", "resultType": "service", "name": "AC"}],
        }
    )
    gateway = SearchGateway(http)

    outcome = gateway.execute("SRV-BHO-007")

    assert outcome.direct_hit is False
    assert [r.id for r in outcome.results] == ["1"]
    # the raw query goes to universal search
    assert http.calls[-1] == (UNIVERSAL_URL, {"q": "SRV-BHO-007"})


@pytest.mark.parametrize(
    "failure",
    [http_error(500), requests.ConnectionError("down"), ValueError("bad json")],
)
def test_lookup_transport_failure_falls_back(failure):
    http = FakeHttp({LOOKUP_URL: failure, UNIVERSAL_URL: []})
    gateway = SearchGateway(http)

    with pytest.raises(ReferenceLookupError) as exc:
        gateway.lookup_reference("SRV-BHO-007")
    assert exc.value.reason == ReferenceLookupError.TRANSPORT_FAILURE

    outcome = gateway.execute("SRV-BHO-007")
    assert outcome.direct_hit is False
    assert http.count(UNIVERSAL_URL) == 1


def test_lookup_empty_body_is_not_found():
    gateway = SearchGateway(FakeHttp({LOOKUP_URL: None}))
    with pytest.raises(ReferenceLookupError) as exc:
        gateway.lookup_reference("SRV-BHO-007")
    assert exc.value.reason == ReferenceLookupError.NOT_FOUND


def test_free_text_never_calls_lookup():
    http = FakeHttp({UNIVERSAL_URL: [{"id": "1", "resultType": "item"}]})
    SearchGateway(http).execute("milk")
    assert [url for url, _ in http.calls] == [UNIVERSAL_URL]


def test_zero_results_ask_for_suggestions_once():
    http = FakeHttp({UNIVERSAL_URL: {"results": []}, SUGGEST_URL: ["paneer", "pani puri", "papad", "pav"]})
    gateway = SearchGateway(http)

    outcome = gateway.execute("paner")

    assert outcome.results == []
    assert outcome.suggestions == ["paneer", "pani puri", "papad"]
    assert http.count(SUGGEST_URL) == 1
    assert http.calls[-1] == (SUGGEST_URL, {"q": "paner"})


def test_results_do_not_ask_for_suggestions():
    http = FakeHttp({UNIVERSAL_URL: [{"id": "1", "resultType": "item"}], SUGGEST_URL: ["x"]})
    outcome = SearchGateway(http).execute("milk")
    assert outcome.suggestions == []
    assert http.count(SUGGEST_URL) == 0


def test_suggestion_failure_yields_empty_list():
    http = FakeHttp({UNIVERSAL_URL: [], SUGGEST_URL: requests.Timeout("slow")})
    assert SearchGateway(http).execute("paner").suggestions == []

    http = FakeHttp({UNIVERSAL_URL: [], SUGGEST_URL: {"suggestions": ["paneer"]}})
    assert SearchGateway(http).execute("paner").suggestions == ["paneer"]


@pytest.mark.parametrize(
    "failure, reason",
    [
        (requests.ConnectionError("down"), SearchError.TRANSPORT_FAILURE),
        (http_error(502), SearchError.SERVER_ERROR),
        (ValueError("bad json"), SearchError.SERVER_ERROR),
    ],
)
def test_universal_failure_raises_search_error(failure, reason):
    http = FakeHttp({UNIVERSAL_URL: failure})
    with pytest.raises(SearchError) as exc:
        SearchGateway(http).execute("milk")
    assert exc.value.reason == reason
    assert http.count(SUGGEST_URL) == 0


def test_origin_is_sent_with_universal_query():
    http = FakeHttp({UNIVERSAL_URL: []})
    SearchGateway(http).search_universal("milk", Coordinate(23.2, 75.1))
    assert http.calls[0] == (UNIVERSAL_URL, {"q": "milk", "lat": "23.2", "lng": "75.1"})


def test_origin_resolved_only_for_universal_query():
    resolved = []

    def resolve_origin():
        resolved.append(True)
        return Coordinate(23.2, 75.1)

    http = FakeHttp({LOOKUP_URL: SERVICE_HIT, UNIVERSAL_URL: []})
    gateway = SearchGateway(http)

    gateway.execute("SRV-BHO-007", resolve_origin=resolve_origin)
    assert resolved == []

    outcome = gateway.execute("milk", resolve_origin=resolve_origin)
    assert resolved == [True]
    assert outcome.origin == Coordinate(23.2, 75.1)


def test_universal_response_is_cached(tmp_path):
    http = FakeHttp({UNIVERSAL_URL: [{"id": "1", "resultType": "item"}]})
    metrics = RequestMetrics()
    cache = Cache(str(tmp_path / "cache.db"))
    gateway = SearchGateway(http, cache=cache, metrics=metrics)

    first = gateway.execute("milk")
    second = gateway.execute("milk")

    assert [r.id for r in first.results] == [r.id for r in second.results] == ["1"]
    assert http.count(UNIVERSAL_URL) == 1
    assert metrics.network["universal"] == 1
    assert metrics.cache_hits["universal"] == 1
    cache.close()


def test_no_cache_always_hits_network():
    http = FakeHttp({UNIVERSAL_URL: []})
    gateway = SearchGateway(http, cache=Cache(":memory:"), no_cache=True)
    gateway.execute("tea")
    gateway.execute("tea")
    assert http.count(UNIVERSAL_URL) == 2


def test_unclassifiable_direct_match_falls_back_to_universal():
    prd_url = config.endpoint(config.REFERENCE_LOOKUP_PATH, reference_id="PRD-MAN-024")
    http = FakeHttp(
        {
            prd_url: {"id": "p", "type": "grocery"},
            UNIVERSAL_URL: [{"id": "milk-1", "resultType": "product", "referenceId": "PRD-MAN-024"}],
        }
    )
    gateway = SearchGateway(http)

    with pytest.raises(ReferenceLookupError) as exc:
        gateway.lookup_reference("PRD-MAN-024")
    assert exc.value.reason == ReferenceLookupError.NOT_FOUND

    outcome = gateway.execute("PRD-MAN-024")
    assert outcome.direct_hit is False
    assert [r.id for r in outcome.results] == ["milk-1"]
    assert http.count(UNIVERSAL_URL) == 1


def test_universal_server_error_after_retries_is_server_error():
    http = FakeHttp({UNIVERSAL_URL: http_error(503)})
    with pytest.raises(SearchError) as exc:
        SearchGateway(http).search_universal("milk")
    assert exc.value.reason == SearchError.SERVER_ERROR

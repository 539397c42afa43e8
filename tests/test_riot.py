import pytest
import requests

from riftstats import riot
from riftstats.riot import RiotClient, routing_for_platform


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.mark.parametrize(
    "platform,routing",
    [("na1", "americas"), ("br1", "americas"), ("kr", "asia"), ("oc1", "sea"), ("euw1", "europe"), ("tr1", "europe")],
)
def test_routing(platform, routing):
    assert routing_for_platform(platform) == routing
    assert RiotClient(platform, "k").routing == routing


@pytest.fixture
def calls(monkeypatch):
    seen = []
    monkeypatch.setattr(riot.time, "sleep", lambda s: None)
    return seen


def test_match_ids_request(monkeypatch, calls):
    def fake_get(url, headers=None, params=None, timeout=None):
        calls.append((url, headers, params))
        return FakeResponse(payload=["EUW1_1", "EUW1_2"])

    monkeypatch.setattr(riot.requests, "get", fake_get)
    ids = RiotClient("euw1", "secret").match_ids_by_puuid("abc", count=2, queue=420)
    assert ids == ["EUW1_1", "EUW1_2"]
    url, headers, params = calls[0]
    assert url == "https://europe.api.riotgames.com/lol/match/v5/matches/by-puuid/abc/ids"
    assert headers == {"X-Riot-Token": "secret"}
    assert params == {"start": 0, "count": 2, "queue": 420}


def test_retries_rate_limit(monkeypatch, calls):
    responses = [FakeResponse(429, headers={"Retry-After": "0"}), FakeResponse(payload={"metadata": {}})]

    def fake_get(url, headers=None, params=None, timeout=None):
        calls.append(url)
        return responses.pop(0)

    monkeypatch.setattr(riot.requests, "get", fake_get)
    assert RiotClient("euw1", "k").get_match("EUW1_1") == {"metadata": {}}
    assert len(calls) == 2


def test_gives_up_after_max_retries(monkeypatch, calls):
    monkeypatch.setattr(riot.requests, "get", lambda *a, **kw: FakeResponse(429, headers={"Retry-After": "0"}))
    with pytest.raises(requests.HTTPError):
        RiotClient("euw1", "k", max_retries=1).get_match("EUW1_1")


def test_timeline_failure_is_absent(monkeypatch):
    def boom(self, match_id):
        raise requests.ConnectionError("connection reset")

    monkeypatch.setattr(RiotClient, "get_timeline", boom)
    res = RiotClient("euw1", "k").get_timeline_result("EUW1_1")
    assert not res.available
    assert res.reason == "ConnectionError: connection reset"


def test_verify_key(monkeypatch):
    monkeypatch.setattr(riot.requests, "get", lambda *a, **kw: FakeResponse(401))
    assert RiotClient("euw1", "bad").verify_key() is False
    monkeypatch.setattr(riot.requests, "get", lambda *a, **kw: FakeResponse(200))
    assert RiotClient("euw1", "good").verify_key() is True


def test_from_config_without_key(monkeypatch):
    monkeypatch.setattr(riot, "get_api_key", lambda cfg: None)
    with pytest.raises(RuntimeError):
        RiotClient.from_config({"riot": {"platform": "euw1"}})
    monkeypatch.setattr(riot, "get_api_key", lambda cfg: "k")
    assert RiotClient.from_config({"riot": {"platform": "kr"}}).routing == "asia"

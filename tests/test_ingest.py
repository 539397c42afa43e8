import logging

import pytest
import requests

from matchdata import match, reference, timeline

from riftstats.ingest import MatchUnavailableError, ingest_batch, ingest_document, ingest_match
from riftstats.store import Store
from riftstats.timeline import TimelineResult


class FakeClient:
    def __init__(self, matches, timelines=None):
        self.matches = matches
        self.timelines = timelines or {}
        self.fetched = []

    def get_match(self, match_id):
        self.fetched.append(match_id)
        if match_id not in self.matches:
            raise requests.HTTPError(f"404 Client Error for {match_id}")
        return self.matches[match_id]

    def get_timeline_result(self, match_id):
        tl = self.timelines.get(match_id)
        return TimelineResult.present(tl) if tl else TimelineResult.absent("HTTPError: 404")


def loader(version):
    assert version == "14.3.1"
    return reference()


@pytest.fixture
def store(tmp_path):
    return Store(db_path=str(tmp_path / "ingest.db"))


def test_ingest_match_fetch_failure(store):
    client = FakeClient({})
    with pytest.raises(MatchUnavailableError):
        ingest_match(client, store, "EUW1_404", "GOLD", loader=loader)
    assert store.find_scanned("EUW1_404") is None


def test_ingest_match_skips_scanned_without_fetching(store):
    client = FakeClient({"EUW1_1": match("EUW1_1")}, {"EUW1_1": timeline()})
    assert ingest_match(client, store, "EUW1_1", "GOLD", loader=loader).status == "processed"
    again = ingest_match(client, store, "EUW1_1", "GOLD", loader=loader)
    assert (again.status, again.reason) == ("skipped", "already scanned")
    assert client.fetched == ["EUW1_1"]


def test_batch_isolates_failures(store, caplog):
    client = FakeClient({"EUW1_1": match("EUW1_1"), "EUW1_2": match("EUW1_2", blue_win=False)})
    seen = []
    with caplog.at_level(logging.INFO, logger="riftstats.ingest"):
        results = ingest_batch(
            client, store, ["EUW1_1", "EUW1_BAD", "EUW1_2", "EUW1_1"], "GOLD", concurrency=2, loader=loader, on_result=seen.append
        )
    assert [r.match_id for r in results] == ["EUW1_1", "EUW1_BAD", "EUW1_2"]
    assert [r.status for r in results] == ["processed", "failed", "processed"]
    assert results[1].reason.startswith("MatchUnavailableError")
    assert len(seen) == 3
    assert "match EUW1_BAD failed" in caplog.text
    assert "2 processed, 0 skipped, 1 failed" in caplog.text
    assert store.count_scanned() == 2

    rerun = ingest_batch(client, store, ["EUW1_1", "EUW1_2"], "GOLD", loader=loader)
    assert [r.status for r in rerun] == ["skipped", "skipped"]


def test_ingest_document_uses_patch_reference(store):
    res = ingest_document(store, match("EUW1_7"), TimelineResult.absent("offline"), "GOLD", loader=loader)
    assert res.status == "processed" and res.patch == "14.3"

import pytest

from riftstats.buckets import (
    BucketDelta,
    BucketKey,
    StatBucket,
    duration_bucket,
)
from riftstats.freqmap import FrequencyMap


KEY = BucketKey.for_champion("Ahri", "MID", "GOLD", "14.3", "MEDIUM")


def delta(matches, wins, kills=0, items=None):
    freq = {}
    if items:
        m = FrequencyMap()
        for k, w in items:
            m.record(k, w)
        freq["items"] = m
    return BucketDelta(KEY, {"matches": matches, "wins": wins, "total_kills": kills}, freq)


def test_duration_buckets():
    assert duration_bucket(0) == "SHORT"
    assert duration_bucket(25 * 60 - 1) == "SHORT"
    assert duration_bucket(25 * 60) == "MEDIUM"
    assert duration_bucket(30 * 60) == "LONG"
    assert duration_bucket(35 * 60) == "VERY_LONG"
    assert duration_bucket(10_000) == "VERY_LONG"
    with pytest.raises(ValueError):
        duration_bucket(-1)


def test_key_shapes():
    assert BucketKey.for_ban("Yasuo", "GOLD", "14.3", "LONG").role == "ALL"
    duo = BucketKey.for_duo("Ahri", "MID", "LeeSin", "JUNGLE", "GOLD", "14.3")
    assert duo.duration_bucket == ""
    with pytest.raises(ValueError):
        BucketKey("champion", "Ahri", "MIDDLE", "GOLD", "14.3", "LONG")
    with pytest.raises(ValueError):
        BucketKey("matchup", "Ahri", "MID", "GOLD", "14.3", "LONG")
    with pytest.raises(ValueError):
        BucketKey("duo", "Ahri", "MID", "GOLD", "14.3", "LONG", partner="LeeSin", partner_role="JUNGLE")


def test_delta_rejects_wins_above_matches():
    with pytest.raises(ValueError):
        delta(1, 2)
    with pytest.raises(ValueError):
        BucketDelta(KEY, {"matches": 1, "not_a_counter": 1})


def test_apply_order_independent():
    base = StatBucket.empty(KEY)
    d1 = delta(1, 1, kills=5, items=[("3031", True), ("core_1-2", True)])
    d2 = delta(2, 0, kills=3, items=[("3031", False)])
    d3 = delta(1, 1, kills=0, items=[("start_1055", True)])
    a = base.apply(d1).apply(d2).apply(d3)
    b = base.apply(d3).apply(d1).apply(d2)
    c = base.apply(d1.merge(d2).merge(d3))
    assert a.to_dict() == b.to_dict() == c.to_dict()
    assert a.matches == 4 and a.wins == 2
    assert a.total("total_kills") == 8
    assert a.frequency("items")["3031"].matches == 2


def test_wins_never_exceed_matches_after_merges():
    b = StatBucket.empty(KEY)
    for i in range(20):
        b = b.apply(delta(1, i % 3 == 0))
        assert 0 <= b.wins <= b.matches
    assert b.win_rate == pytest.approx(7 / 20)
    assert StatBucket.empty(KEY).win_rate is None


def test_merge_rejects_other_bucket():
    other = BucketDelta(BucketKey.for_champion("Zed", "MID", "GOLD", "14.3", "MEDIUM"), {"matches": 1})
    with pytest.raises(ValueError):
        delta(1, 1).merge(other)
    with pytest.raises(ValueError):
        StatBucket.empty(KEY).apply(other)

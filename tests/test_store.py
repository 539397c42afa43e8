import sqlite3

import pytest

from riftstats.buckets import BucketDelta, BucketKey, ScannedMatch
from riftstats.freqmap import FrequencyMap
from riftstats.store import Store


KEY = BucketKey.for_champion("Jinx", "ADC", "GOLD", "14.3", "LONG")


def make_store(tmp_path):
    return Store(db_path=str(tmp_path / "buckets.db"))


def items(*entries):
    m = FrequencyMap()
    for k, w in entries:
        m.record(k, w)
    return {"items": m}


def test_upsert_increment_creates_then_adds(tmp_path):
    S = make_store(tmp_path)
    assert S.find_bucket(KEY) is None
    S.upsert_increment(KEY, BucketDelta(KEY, {"matches": 1, "wins": 1, "total_damage_share": 0.25}, items(("3031", True))))
    S.upsert_increment(KEY, BucketDelta(KEY, {"matches": 1, "wins": 0, "total_damage_share": 0.5}, items(("3031", False), ("6672", False))))
    b = S.find_bucket(KEY)
    assert b.matches == 2 and b.wins == 1
    assert b.total("total_damage_share") == pytest.approx(0.75)
    assert b.frequency("items").to_dict() == {
        "3031": {"wins": 1, "matches": 2},
        "6672": {"wins": 0, "matches": 1},
    }


def test_upsert_create_only_once(tmp_path):
    S = make_store(tmp_path)
    first = BucketDelta(KEY, {"matches": 3, "wins": 2})
    assert S.upsert_create(KEY, first) is True
    assert S.upsert_create(KEY, BucketDelta(KEY, {"matches": 9, "wins": 9})) is False
    assert S.find_bucket(KEY).matches == 3


def test_check_constraint_rejects_wins_above_matches(tmp_path):
    S = make_store(tmp_path)
    with S.connect() as con:
        with pytest.raises(sqlite3.IntegrityError):
            con.execute(
                "INSERT INTO buckets(kind, champion, role, tier, patch, duration_bucket, matches, wins) "
                "VALUES('champion','Jinx','ADC','GOLD','14.3','LONG',1,2)"
            )


def test_apply_match_is_all_or_nothing(tmp_path):
    S = make_store(tmp_path)
    rec = ScannedMatch("EUW1_1", "14.3", "GOLD")
    deltas = [BucketDelta(KEY, {"matches": 1, "wins": 1})]
    assert S.apply_match(rec, deltas) is True
    assert S.apply_match(rec, deltas) is False
    assert S.find_bucket(KEY).matches == 1
    assert S.find_scanned("EUW1_1") == rec

    class Boom(Exception):
        pass

    other = ScannedMatch("EUW1_2", "14.3", "GOLD")
    with pytest.raises(Boom):
        with S.transaction() as con:
            S.upsert_increment(KEY, deltas[0], con)
            raise Boom()
    assert S.find_bucket(KEY).matches == 1
    assert S.find_scanned(other.match_id) is None


def test_scanned_marker_is_write_once(tmp_path):
    S = make_store(tmp_path)
    S.create_scanned(ScannedMatch("EUW1_9", "14.3", "GOLD"))
    with pytest.raises(sqlite3.IntegrityError):
        S.create_scanned(ScannedMatch("EUW1_9", "14.3", "GOLD"))


def test_list_and_count_by_tier(tmp_path):
    S = make_store(tmp_path)
    gold = KEY
    plat = BucketKey.for_champion("Jinx", "ADC", "PLATINUM", "14.3", "LONG")
    S.apply_match(ScannedMatch("A", "14.3", "GOLD"), [BucketDelta(gold, {"matches": 1}, items(("3031", True)))])
    S.apply_match(ScannedMatch("B", "14.3", "PLATINUM"), [BucketDelta(plat, {"matches": 1, "wins": 1})])
    assert S.count_scanned() == 2
    assert S.count_scanned(["PLATINUM"]) == 1
    assert S.count_scanned([]) == 0
    found = S.list_buckets("champion", champion="Jinx", tiers=["GOLD"], with_freq=True)
    assert [b.key for b in found] == [gold]
    assert found[0].frequency("items")["3031"].wins == 1
    assert len(S.list_buckets("champion", role="ADC")) == 2


def test_meta(tmp_path):
    S = make_store(tmp_path)
    assert S.get_meta("schema_version") == "1"
    S.set_meta("ddragon", "14.3.1")
    assert S.get_meta("ddragon") == "14.3.1"

import pytest

from matchdata import PATCH, match, reference

from riftstats.aggregator import process_match
from riftstats.baselines import (
    DEFAULT_BASELINES,
    BaselineSources,
    bucket_mean,
    lookup_baselines,
    shrunk_mean,
    sum_buckets,
)
from riftstats.buckets import BucketKey, StatBucket, duration_bucket
from riftstats.store import Store
from riftstats.timeline import TimelineResult


CHAMP_KEY = BucketKey.for_champion("Ahri", "MID", "GOLD", "14.3", "LONG")
MU_KEY = BucketKey.for_matchup("Ahri", "Zed", "MID", "GOLD", "14.3", "LONG")


def champ_bucket():
    # per match: 5 kills, 3 deaths, 7 assists, 30 minutes, 210 cs
    return StatBucket(
        CHAMP_KEY,
        {
            "matches": 10,
            "wins": 6,
            "total_kills": 50,
            "total_deaths": 30,
            "total_assists": 70,
            "total_duration": 18000,
            "total_cs": 2100,
            "total_damage_share": 2.5,
        },
    )


def matchup_bucket(n):
    # kda 2.0, 5 cs/min
    return StatBucket(
        MU_KEY,
        {
            "matches": n,
            "wins": n // 2,
            "total_kills": n,
            "total_deaths": n,
            "total_assists": n,
            "total_duration": 1800 * n,
            "total_cs": 150 * n,
        },
    )


def test_defaults_without_samples():
    for metric, default in DEFAULT_BASELINES.items():
        assert shrunk_mean(metric) == default
    assert bucket_mean("kda", StatBucket.empty(CHAMP_KEY)) is None


def test_champion_mean_replaces_default():
    assert shrunk_mean("kda", champ_bucket()) == pytest.approx(4.0)
    assert shrunk_mean("cs_per_min", champ_bucket()) == pytest.approx(7.0)
    assert shrunk_mean("damage_share", champ_bucket()) == pytest.approx(0.25)


def test_shrinkage_blend():
    # alpha = 10 / (10 + 10)
    assert shrunk_mean("kda", champ_bucket(), matchup_bucket(10)) == pytest.approx(3.0)
    assert shrunk_mean("cs_per_min", champ_bucket(), matchup_bucket(10)) == pytest.approx(6.0)


def test_shrinkage_limits():
    assert shrunk_mean("kda", champ_bucket(), matchup_bucket(0)) == 4.0
    assert shrunk_mean("kda", champ_bucket(), matchup_bucket(1_000_000)) == pytest.approx(2.0, abs=1e-4)
    assert shrunk_mean("kda", None, matchup_bucket(10)) == pytest.approx(0.5 * 2.0 + 0.5 * 3.0)
    small = shrunk_mean("kda", champ_bucket(), matchup_bucket(1))
    large = shrunk_mean("kda", champ_bucket(), matchup_bucket(100))
    assert 2.0 < large < small < 4.0


def test_sources_baselines_and_utility():
    src = BaselineSources(champ_bucket(), matchup_bucket(10))
    b = src.baselines("SUPPORT")
    assert b["utility"] == 10.0
    assert BaselineSources().baselines("MID")["utility"] == 5.0
    assert BaselineSources().baselines(None)["utility"] == 2.0
    assert src.sample_size == 10
    assert src.matchup_win_rate == 0.5
    assert BaselineSources().matchup_win_rate is None


def test_sum_buckets():
    total = sum_buckets([champ_bucket(), champ_bucket()])
    assert total.matches == 20
    assert bucket_mean("kda", total) == pytest.approx(4.0)
    assert sum_buckets([]) is None


def test_lookup_from_store(tmp_path):
    S = Store(db_path=str(tmp_path / "b.db"))
    process_match(S, match(), TimelineResult.absent("x"), "GOLD", reference())
    db = duration_bucket(1800)
    src = lookup_baselines(S, "Ahri", "MID", "GOLD", PATCH, db, opponent="Zed")
    assert src.champion.matches == 1
    assert src.matchup.key.opponent == "Zed"
    # no exact duration bucket: falls back to every bucket of that champion and patch
    other = lookup_baselines(S, "Ahri", "MID", "GOLD", PATCH, "SHORT")
    assert other.champion.matches == 1
    assert other.matchup is None
    assert lookup_baselines(S, "Ahri", "MID", "GOLD", "13.1", db).champion is None

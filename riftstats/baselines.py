from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from .buckets import BucketKey, StatBucket
from .store import Store


# Population defaults, used when no champion bucket has been seen
DEFAULT_BASELINES: Dict[str, float] = {
    "kda": 3.0,
    "damage_share": 0.2,
    "damage_per_min": 600.0,
    "gold_share": 0.2,
    "gold_per_min": 400.0,
    "cs_per_min": 6.0,
    "vision_per_min": 1.0,
    "objectives": 2.0,
}

# Utility is not aggregated; it only has a per-role expectation
UTILITY_BASELINES: Dict[str, float] = {"SUPPORT": 10.0, "JUNGLE": 10.0, "TOP": 5.0, "MID": 5.0}
UTILITY_FALLBACK = 2.0


def _per_min(total: str) -> Callable[[StatBucket], Optional[float]]:
    def f(b: StatBucket) -> Optional[float]:
        minutes = b.total("total_duration") / 60.0
        return b.total(total) / minutes if minutes > 0 else None

    return f


def _mean(total: str) -> Callable[[StatBucket], Optional[float]]:
    return lambda b: b.total(total) / b.matches


def _kda(b: StatBucket) -> float:
    k = b.total("total_kills") / b.matches
    d = b.total("total_deaths") / b.matches
    a = b.total("total_assists") / b.matches
    return (k + a) / max(1.0, d)


EXTRACTORS: Dict[str, Callable[[StatBucket], Optional[float]]] = {
    "kda": _kda,
    "damage_share": _mean("total_damage_share"),
    "damage_per_min": _per_min("total_damage"),
    "gold_share": _mean("total_gold_share"),
    "gold_per_min": _per_min("total_gold"),
    "cs_per_min": _per_min("total_cs"),
    "vision_per_min": _per_min("total_vision"),
    "objectives": _mean("total_objectives"),
}


def bucket_mean(metric: str, bucket: Optional[StatBucket]) -> Optional[float]:
    """Empirical mean of ``metric`` in ``bucket``, or None when it has no samples."""
    if bucket is None or bucket.matches <= 0:
        return None
    return EXTRACTORS[metric](bucket)


def shrunk_mean(
    metric: str,
    champion: Optional[StatBucket] = None,
    matchup: Optional[StatBucket] = None,
    prior_strength: float = 10.0,
    default: Optional[float] = None,
) -> float:
    """Empirical-Bayes baseline for one metric.

    default -> champion mean (if any) -> blended toward the matchup mean with
    ``alpha = n / (n + prior_strength)``, n being the matchup sample size.
    """
    base = DEFAULT_BASELINES[metric] if default is None else default
    champ_mean = bucket_mean(metric, champion)
    if champ_mean is not None:
        base = champ_mean
    matchup_mean = bucket_mean(metric, matchup)
    if matchup_mean is None:
        return base
    n = matchup.matches
    alpha = n / (n + prior_strength)
    return alpha * matchup_mean + (1 - alpha) * base


def utility_baseline(role: Optional[str]) -> float:
    return UTILITY_BASELINES.get(role or "", UTILITY_FALLBACK)


@dataclass(frozen=True)
class BaselineSources:
    """The champion and matchup samples a participant is compared against."""

    champion: Optional[StatBucket] = None
    matchup: Optional[StatBucket] = None

    @property
    def sample_size(self) -> int:
        return self.matchup.matches if self.matchup else 0

    @property
    def matchup_win_rate(self) -> Optional[float]:
        return self.matchup.win_rate if self.matchup else None

    def baselines(self, role: Optional[str], prior_strength: float = 10.0) -> Dict[str, float]:
        out = {m: shrunk_mean(m, self.champion, self.matchup, prior_strength) for m in DEFAULT_BASELINES}
        out["utility"] = utility_baseline(role)
        return out


def sum_buckets(buckets: Iterable[StatBucket]) -> Optional[StatBucket]:
    """Fold same-shaped buckets (e.g. every duration bucket of one champion) into one sample."""
    total: Optional[StatBucket] = None
    for b in buckets:
        if total is None:
            total = b
            continue
        counters = dict(total.counters)
        for k, v in b.counters.items():
            counters[k] = counters.get(k, 0) + v
        freq = {f: total.frequency(f).merge(b.frequency(f)) for f in set(total.freq) | set(b.freq)}
        total = StatBucket(total.key, counters, freq)
    return total


def lookup_baselines(
    store: Store,
    champion: str,
    role: str,
    tier: str,
    patch: str,
    duration_bucket: str,
    opponent: Optional[str] = None,
) -> BaselineSources:
    """Exact-key champion/matchup buckets, falling back to every duration bucket when the exact one is empty."""
    champ = store.find_bucket(BucketKey.for_champion(champion, role, tier, patch, duration_bucket))
    if champ is None or champ.matches == 0:
        champ = sum_buckets(
            b for b in store.list_buckets("champion", champion=champion, role=role, tiers=[tier]) if b.key.patch == patch
        )
    matchup = None
    if opponent:
        matchup = store.find_bucket(BucketKey.for_matchup(champion, opponent, role, tier, patch, duration_bucket))
    return BaselineSources(champ, matchup)

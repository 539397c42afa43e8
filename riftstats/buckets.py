from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .freqmap import FrequencyMap


ROLES = ("TOP", "JUNGLE", "MID", "ADC", "SUPPORT")
ROLE_ALL = "ALL"

KIND_CHAMPION = "champion"
KIND_MATCHUP = "matchup"
KIND_DUO = "duo"
KIND_BAN = "ban"
KINDS = (KIND_CHAMPION, KIND_MATCHUP, KIND_DUO, KIND_BAN)

# Upper bounds in seconds, checked in order; anything longer is VERY_LONG
DURATION_BUCKETS: Tuple[Tuple[str, int], ...] = (
    ("SHORT", 25 * 60),
    ("MEDIUM", 30 * 60),
    ("LONG", 35 * 60),
)
DURATION_VERY_LONG = "VERY_LONG"

# Match-sum accumulators. Means are always derived on read, never stored.
ACCUMULATORS = (
    "total_kills",
    "total_deaths",
    "total_assists",
    "total_damage",
    "total_gold",
    "total_cs",
    "total_vision",
    "total_duration",
    "total_damage_share",
    "total_gold_share",
    "total_vision_per_min",
    "total_objectives",
    "total_damage_share_sq",
)
COUNTERS = ("matches", "wins", "bans") + ACCUMULATORS
FREQ_FIELDS = ("items", "runes", "spells", "skill_order")


def duration_bucket(duration_s: float) -> str:
    if duration_s < 0:
        raise ValueError("duration must be non-negative")
    for name, upper in DURATION_BUCKETS:
        if duration_s < upper:
            return name
    return DURATION_VERY_LONG


@dataclass(frozen=True)
class BucketKey:
    kind: str
    champion: str
    role: str
    tier: str
    patch: str
    duration_bucket: str = ""
    opponent: str = ""
    partner: str = ""
    partner_role: str = ""

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError(f"unknown bucket kind {self.kind!r}")
        if self.kind == KIND_BAN:
            if self.role != ROLE_ALL:
                raise ValueError("ban buckets are keyed with role ALL")
        elif self.role not in ROLES:
            raise ValueError(f"unknown role {self.role!r}")
        if self.kind == KIND_DUO:
            if self.duration_bucket:
                raise ValueError("duo buckets carry no duration bucket")
            if not self.partner or self.partner_role not in ROLES:
                raise ValueError("duo buckets need a partner champion and role")
        elif not self.duration_bucket:
            raise ValueError(f"{self.kind} buckets need a duration bucket")
        if self.kind == KIND_MATCHUP and not self.opponent:
            raise ValueError("matchup buckets need an opponent champion")

    @classmethod
    def for_champion(cls, champion: str, role: str, tier: str, patch: str, duration_bucket: str) -> "BucketKey":
        return cls(KIND_CHAMPION, champion, role, tier, patch, duration_bucket)

    @classmethod
    def for_matchup(cls, champion: str, opponent: str, role: str, tier: str, patch: str, duration_bucket: str) -> "BucketKey":
        return cls(KIND_MATCHUP, champion, role, tier, patch, duration_bucket, opponent=opponent)

    @classmethod
    def for_duo(cls, champion: str, role: str, partner: str, partner_role: str, tier: str, patch: str) -> "BucketKey":
        return cls(KIND_DUO, champion, role, tier, patch, partner=partner, partner_role=partner_role)

    @classmethod
    def for_ban(cls, champion: str, tier: str, patch: str, duration_bucket: str) -> "BucketKey":
        return cls(KIND_BAN, champion, ROLE_ALL, tier, patch, duration_bucket)

    def as_tuple(self) -> Tuple[str, ...]:
        return (
            self.kind,
            self.champion,
            self.role,
            self.tier,
            self.patch,
            self.duration_bucket,
            self.opponent,
            self.partner,
            self.partner_role,
        )


KEY_COLUMNS = (
    "kind",
    "champion",
    "role",
    "tier",
    "patch",
    "duration_bucket",
    "opponent",
    "partner",
    "partner_role",
)


def _check_counts(counters: Mapping[str, float]) -> None:
    unknown = set(counters) - set(COUNTERS)
    if unknown:
        raise ValueError(f"unknown counters: {sorted(unknown)}")
    matches = counters.get("matches", 0)
    wins = counters.get("wins", 0)
    if matches < 0 or wins < 0 or counters.get("bans", 0) < 0 or wins > matches:
        raise ValueError(f"invalid counts wins={wins} matches={matches}")


@dataclass(frozen=True)
class BucketDelta:
    """One atomic increment against one bucket."""

    key: BucketKey
    counters: Mapping[str, float] = field(default_factory=dict)
    freq: Mapping[str, FrequencyMap] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_counts(self.counters)
        unknown = set(self.freq) - set(FREQ_FIELDS)
        if unknown:
            raise ValueError(f"unknown frequency fields: {sorted(unknown)}")

    def merge(self, other: "BucketDelta") -> "BucketDelta":
        if other.key != self.key:
            raise ValueError("cannot merge deltas of different buckets")
        counters = dict(self.counters)
        for k, v in other.counters.items():
            counters[k] = counters.get(k, 0) + v
        freq = dict(self.freq)
        for k, fm in other.freq.items():
            freq[k] = freq[k].merge(fm) if k in freq else fm
        return BucketDelta(self.key, counters, freq)


@dataclass(frozen=True)
class StatBucket:
    key: BucketKey
    counters: Mapping[str, float] = field(default_factory=dict)
    freq: Mapping[str, FrequencyMap] = field(default_factory=dict)

    @classmethod
    def empty(cls, key: BucketKey) -> "StatBucket":
        return cls(key, {c: 0 for c in COUNTERS}, {f: FrequencyMap() for f in FREQ_FIELDS})

    @property
    def matches(self) -> int:
        return int(self.counters.get("matches") or 0)

    @property
    def wins(self) -> int:
        return int(self.counters.get("wins") or 0)

    @property
    def bans(self) -> int:
        return int(self.counters.get("bans") or 0)

    @property
    def win_rate(self) -> Optional[float]:
        return self.wins / self.matches if self.matches else None

    def total(self, name: str) -> float:
        return float(self.counters.get(name) or 0.0)

    def frequency(self, name: str) -> FrequencyMap:
        return self.freq.get(name) or FrequencyMap()

    def apply(self, delta: BucketDelta) -> "StatBucket":
        """Pure in-memory merge; mirrors what the store does atomically."""
        if delta.key != self.key:
            raise ValueError("delta belongs to another bucket")
        counters = dict(self.counters)
        for k, v in delta.counters.items():
            counters[k] = counters.get(k, 0) + v
        _check_counts(counters)
        freq = dict(self.freq)
        for k, fm in delta.freq.items():
            freq[k] = freq[k].merge(fm) if k in freq else fm
        return replace(self, counters=counters, freq=freq)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(zip(KEY_COLUMNS, self.key.as_tuple()))
        out.update({c: self.counters.get(c, 0) for c in COUNTERS})
        out.update({f: self.frequency(f).to_dict() for f in FREQ_FIELDS})
        return out


@dataclass(frozen=True)
class ScannedMatch:
    match_id: str
    patch: str
    tier: str

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .baselines import BaselineSources
from .ddragon import ReferenceData
from .features import (
    ParticipantFeatures,
    TeamTotals,
    extract_features,
    lane_opponent,
    participant_role,
    team_totals,
)
from .timeline import LaneDeltas, TimelineResult, lane_deltas_at

logger = logging.getLogger(__name__)


METRICS = ("kda", "damage", "gold", "vision", "cs", "objective", "utility")


def _frozen(table: Mapping[str, Mapping[str, float]]) -> Mapping[str, Mapping[str, float]]:
    return MappingProxyType({k: MappingProxyType(dict(v)) for k, v in table.items()})


ROLE_WEIGHTS = _frozen({
    "TOP": {"damage": 0.20, "gold": 0.15, "cs": 0.15, "kda": 0.15, "vision": 0.10, "objective": 0.10, "utility": 0.15},
    "JUNGLE": {"objective": 0.20, "kda": 0.15, "vision": 0.20, "damage": 0.15, "gold": 0.10, "cs": 0.05, "utility": 0.15},
    "MID": {"damage": 0.25, "gold": 0.20, "kda": 0.20, "cs": 0.15, "vision": 0.10, "objective": 0.05, "utility": 0.05},
    "ADC": {"damage": 0.30, "gold": 0.25, "cs": 0.20, "kda": 0.15, "objective": 0.05, "vision": 0.05, "utility": 0.00},
    "SUPPORT": {"vision": 0.25, "kda": 0.15, "objective": 0.15, "utility": 0.30, "damage": 0.10, "gold": 0.05, "cs": 0.00},
})

DEFAULT_WEIGHTS = MappingProxyType(
    {"damage": 0.20, "gold": 0.20, "kda": 0.20, "cs": 0.20, "vision": 0.10, "objective": 0.10, "utility": 0.00}
)

# Multipliers on role weights; only metrics the role already weighs are touched
CLASS_MODIFIERS = _frozen({
    "Mage": {"damage": 1.2, "utility": 0.8, "vision": 1.0},
    "Assassin": {"damage": 1.3, "kda": 1.2, "utility": 0.5, "vision": 0.8},
    "Tank": {"damage": 0.7, "utility": 1.5, "kda": 1.0, "vision": 1.0},
    "Fighter": {"damage": 1.1, "utility": 0.9, "kda": 1.0},
    "Marksman": {"damage": 1.3, "gold": 1.2, "utility": 0.5},
    "Support": {"utility": 1.3, "vision": 1.2, "damage": 0.7},
})

GRADE_THRESHOLDS: Tuple[Tuple[float, str], ...] = ((95, "S+"), (85, "S"), (75, "A"), (60, "B"), (40, "C"))
LABEL_THRESHOLDS: Tuple[Tuple[float, str], ...] = ((75, "EXCELLENT"), (60, "GOOD"), (40, "AVERAGE"))

# Lane deltas at 15 minutes are divided by these before averaging
LANE_NORMALIZERS = MappingProxyType({"csd15": 20.0, "gd15": 1000.0, "xpd15": 1000.0})


@dataclass(frozen=True)
class ScoringConfig:
    prior_strength: float = 10.0
    dispersion_ratio: float = 0.4
    dispersion_floor: float = 0.1
    z_clip: float = 3.0
    lane_weight: float = 0.15
    logistic_steepness: float = 1.7
    win_bonus: float = 10.0
    contribution_threshold: float = 0.10
    contribution_bonus: float = 5.0
    difficulty_pivot: float = 0.5
    difficulty_floor_wr: float = 0.3
    difficulty_bounds: Tuple[float, float] = (0.8, 1.2)
    role_weights: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: ROLE_WEIGHTS)
    default_weights: Mapping[str, float] = field(default_factory=lambda: DEFAULT_WEIGHTS)
    class_modifiers: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: CLASS_MODIFIERS)
    grade_thresholds: Tuple[Tuple[float, str], ...] = GRADE_THRESHOLDS
    grade_floor: str = "D"
    label_thresholds: Tuple[Tuple[float, str], ...] = LABEL_THRESHOLDS
    label_floor: str = "POOR"

    def weights_for(self, role: Optional[str], archetype: Optional[str] = None) -> Dict[str, float]:
        weights = dict(self.role_weights.get(role or "", self.default_weights))
        for k, mult in (self.class_modifiers.get(archetype or "") or {}).items():
            if weights.get(k):
                weights[k] *= mult
        return weights


DEFAULT_SCORING = ScoringConfig()

_SCALARS = (
    "prior_strength",
    "dispersion_ratio",
    "dispersion_floor",
    "z_clip",
    "lane_weight",
    "logistic_steepness",
    "win_bonus",
    "contribution_threshold",
    "contribution_bonus",
)


def scoring_config(cfg: Dict[str, Any]) -> ScoringConfig:
    """Build the immutable scoring config from the ``scoring`` section of the user config."""
    sec = cfg.get("scoring") or {}
    kwargs: Dict[str, Any] = {k: float(sec[k]) for k in _SCALARS if sec.get(k) is not None}
    overrides = sec.get("role_weights") or {}
    if overrides:
        merged = {r: dict(w) for r, w in ROLE_WEIGHTS.items()}
        for role, weights in overrides.items():
            merged.setdefault(str(role).upper(), {}).update({k: float(v) for k, v in weights.items() if k in METRICS})
        kwargs["role_weights"] = _frozen(merged)
    return ScoringConfig(**kwargs)


def grade(score: float, config: ScoringConfig = DEFAULT_SCORING) -> str:
    for threshold, letter in config.grade_thresholds:
        if score >= threshold:
            return letter
    return config.grade_floor


def comparison_label(score: float, config: ScoringConfig = DEFAULT_SCORING) -> str:
    for threshold, label in config.label_thresholds:
        if score >= threshold:
            return label
    return config.label_floor


# (features, baseline shares) -> contribution estimate in roughly [-1, 1]
ContributionModel = Callable[[Mapping[str, float], Mapping[str, float]], float]

SHARE_KEYS = ("gold_share", "damage_share", "vision_per_min", "kda")


def share_delta_model(features: Mapping[str, float], baseline_shares: Mapping[str, float]) -> float:
    """Relative over-performance on the share metrics, squashed with tanh."""
    deltas = []
    for k in SHARE_KEYS:
        base = baseline_shares.get(k)
        if base:
            deltas.append((features.get(k, 0.0) - base) / base)
    if not deltas:
        return 0.0
    return math.tanh(sum(deltas) / len(deltas))


@dataclass(frozen=True)
class ScoreResult:
    score: int
    grade: str
    breakdown: Dict[str, float] = field(default_factory=dict)
    comparison: str = "AVERAGE"
    contribution: float = 0.0
    sample_size: int = 0
    raw_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "grade": self.grade,
            "breakdown": dict(self.breakdown),
            "comparison": self.comparison,
            "contribution": self.contribution,
            "sample_size": self.sample_size,
        }


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def lane_z(lane: LaneDeltas) -> float:
    return (
        lane.csd15 / LANE_NORMALIZERS["csd15"]
        + lane.gd15 / LANE_NORMALIZERS["gd15"]
        + lane.xpd15 / LANE_NORMALIZERS["xpd15"]
    ) / 3.0


def z_scores(f: ParticipantFeatures, baselines: Mapping[str, float], config: ScoringConfig = DEFAULT_SCORING) -> Dict[str, float]:
    """Unclipped z-score per metric; damage and gold take the better of share and per-minute."""

    def z(value: float, base: float) -> float:
        return (value - base) / max(base * config.dispersion_ratio, config.dispersion_floor)

    out = {
        "kda": z(f.kda, baselines["kda"]),
        "damage": max(z(f.damage_share, baselines["damage_share"]), z(f.damage_per_min, baselines["damage_per_min"])),
        "gold": max(z(f.gold_share, baselines["gold_share"]), z(f.gold_per_min, baselines["gold_per_min"])),
        "vision": z(f.vision_per_min, baselines["vision_per_min"]),
        "cs": z(f.cs_per_min, baselines["cs_per_min"]),
        "objective": z(f.objectives, baselines["objectives"]),
        "utility": z(f.utility, baselines["utility"]),
    }
    if f.lane is not None:
        out["lane"] = lane_z(f.lane)
    return out


def transform(z: float, steepness: float = 1.7) -> float:
    return 100.0 / (1.0 + math.exp(-steepness * z))


def score_participant(
    features: ParticipantFeatures,
    baselines: Mapping[str, float],
    role: Optional[str],
    win: bool,
    config: ScoringConfig = DEFAULT_SCORING,
    archetype: Optional[str] = None,
    matchup_win_rate: Optional[float] = None,
    sample_size: int = 0,
    contribution_model: Optional[ContributionModel] = None,
) -> ScoreResult:
    """Score one participant against its baselines. Pure given its arguments."""
    weights = config.weights_for(role, archetype)
    zs = {k: _clamp(v, -config.z_clip, config.z_clip) for k, v in z_scores(features, baselines, config).items()}

    total = 0.0
    total_weight = 0.0
    for key, w in weights.items():
        total += zs.get(key, 0.0) * w
        total_weight += w
    if "lane" in zs:
        total += zs["lane"] * config.lane_weight
        total_weight += config.lane_weight
    avg_z = total / total_weight if total_weight > 0 else 0.0

    final = transform(avg_z, config.logistic_steepness)
    if win:
        final += config.win_bonus
    if matchup_win_rate is not None:
        lo, hi = config.difficulty_bounds
        final *= _clamp(config.difficulty_pivot / max(config.difficulty_floor_wr, matchup_win_rate), lo, hi)
    final = _clamp(final, 0.0, 100.0)

    contribution = 0.0
    if contribution_model is not None:
        shares = {k: baselines[k] for k in SHARE_KEYS}
        try:
            contribution = float(contribution_model(features.as_dict(), shares))
        except Exception:
            logger.warning("contribution model failed; scoring without it", exc_info=True)
            contribution = 0.0
    if contribution > config.contribution_threshold:
        final = _clamp(final + config.contribution_bonus, 0.0, 100.0)

    # grade and label follow the displayed integer score
    shown = int(round(final))
    return ScoreResult(
        score=shown,
        grade=grade(shown, config),
        breakdown={k: round(v, 2) for k, v in zs.items()},
        comparison=comparison_label(shown, config),
        contribution=round(contribution, 3),
        sample_size=sample_size,
        raw_score=final,
    )


def score_from_match(
    match: Dict[str, Any],
    participant_id: int,
    sources: BaselineSources,
    timeline: Optional[TimelineResult] = None,
    reference: Optional[ReferenceData] = None,
    config: ScoringConfig = DEFAULT_SCORING,
    contribution_model: Optional[ContributionModel] = None,
    weighted_deaths: Optional[float] = None,
) -> ScoreResult:
    """Extract features for one participant of a raw match and score them."""
    info = match.get("info") or {}
    p = next((x for x in info.get("participants", []) or [] if int(x.get("participantId") or 0) == participant_id), None)
    if p is None:
        raise KeyError(f"participant {participant_id} not in match")
    role = participant_role(p)
    team = team_totals(info).get(int(p.get("teamId") or 0), TeamTotals())

    lane = None
    if timeline is not None and timeline.available:
        op = lane_opponent(info, p)
        lane = lane_deltas_at(timeline.timeline or {}, participant_id, int(op["participantId"]) if op else None)

    features = extract_features(p, float(info.get("gameDuration") or 0), team, weighted_deaths, lane)
    archetype = reference.archetype_of(p.get("championName") or "") if reference else None
    return score_participant(
        features,
        sources.baselines(role, config.prior_strength),
        role,
        bool(p.get("win")),
        config,
        archetype=archetype,
        matchup_win_rate=sources.matchup_win_rate,
        sample_size=sources.sample_size,
        contribution_model=contribution_model,
    )

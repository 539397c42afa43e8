from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .buckets import ROLES
from .timeline import LaneDeltas

ROLE_ALIASES = {"MIDDLE": "MID", "BOTTOM": "ADC", "UTILITY": "SUPPORT"}

# Damage/gold shares are computed against these team-wide sums
TEAM_IDS = (100, 200)


def normalize_role(position: Optional[str]) -> Optional[str]:
    """Map a Riot position label to a canonical role, or None if it is not one."""
    pos = (position or "").strip().upper()
    pos = ROLE_ALIASES.get(pos, pos)
    return pos if pos in ROLES else None


def participant_role(p: Dict[str, Any]) -> Optional[str]:
    return normalize_role(p.get("teamPosition"))


@dataclass(frozen=True)
class TeamTotals:
    damage: float = 0.0
    gold: float = 0.0


def team_totals(info: Dict[str, Any]) -> Dict[int, TeamTotals]:
    sums: Dict[int, Dict[str, float]] = {t: {"damage": 0.0, "gold": 0.0} for t in TEAM_IDS}
    for p in info.get("participants", []) or []:
        tid = int(p.get("teamId") or 0)
        s = sums.setdefault(tid, {"damage": 0.0, "gold": 0.0})
        s["damage"] += float(p.get("totalDamageDealtToChampions") or 0)
        s["gold"] += float(p.get("goldEarned") or 0)
    return {t: TeamTotals(s["damage"], s["gold"]) for t, s in sums.items()}


def lane_opponent(info: Dict[str, Any], p: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """First enemy occupying the same canonical role."""
    role = participant_role(p)
    if role is None:
        return None
    for op in info.get("participants", []) or []:
        if op.get("teamId") != p.get("teamId") and participant_role(op) == role:
            return op
    return None


def cs_total(p: Dict[str, Any]) -> int:
    return int((p.get("totalMinionsKilled") or 0) + (p.get("neutralMinionsKilled") or 0))


def objective_takedowns(p: Dict[str, Any]) -> int:
    ch = p.get("challenges") or {}
    return int(
        (ch.get("dragonTakedowns") or 0)
        + (ch.get("baronTakedowns") or 0)
        + (ch.get("turretTakedowns") or 0)
        + (ch.get("inhibitorTakedowns") or 0)
    )


def _minutes(duration_s: float) -> float:
    return max(1.0, (duration_s or 1) / 60.0)


@dataclass(frozen=True)
class ParticipantFeatures:
    kda: float
    damage_share: float
    damage_per_min: float
    gold_share: float
    gold_per_min: float
    cs_per_min: float
    vision_per_min: float
    objectives: float
    utility: float
    lane: Optional[LaneDeltas] = None

    def as_dict(self) -> Dict[str, float]:
        out = asdict(self)
        out.pop("lane")
        return out


def extract_features(
    p: Dict[str, Any],
    duration_s: float,
    team: TeamTotals,
    weighted_deaths: Optional[float] = None,
    lane: Optional[LaneDeltas] = None,
) -> ParticipantFeatures:
    """Per-match features for one participant; ``weighted_deaths`` replaces raw deaths in KDA."""
    minutes = _minutes(duration_s)
    deaths = weighted_deaths if weighted_deaths is not None else float(p.get("deaths") or 0)
    damage = float(p.get("totalDamageDealtToChampions") or 0)
    gold = float(p.get("goldEarned") or 0)
    support_output = float(p.get("totalHealsOnTeammates") or 0) + float(p.get("totalDamageShieldedOnTeammates") or 0)
    return ParticipantFeatures(
        kda=(int(p.get("kills") or 0) + int(p.get("assists") or 0)) / max(1.0, deaths),
        damage_share=damage / max(1.0, team.damage),
        damage_per_min=damage / minutes,
        gold_share=gold / max(1.0, team.gold),
        gold_per_min=gold / minutes,
        cs_per_min=cs_total(p) / minutes,
        vision_per_min=float(p.get("visionScore") or 0) / minutes,
        objectives=float(objective_takedowns(p)),
        utility=float(p.get("timeCCingOthers") or 0) / minutes + support_output / 1000.0,
        lane=lane,
    )


def valid_participants(info: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [p for p in info.get("participants", []) or [] if participant_role(p) is not None]

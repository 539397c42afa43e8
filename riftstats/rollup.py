from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from statistics import pstdev
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from dateutil import parser as dateparser

from .features import cs_total


HEATMAP_DAYS = 120
TEAMMATE_WINDOW = 20
TOP_N = 5
CONSISTENCY_MIN_GAMES = 5

# axis -> breakdown metric it averages
PROFILE_AXES = (
    ("combat", "damage"),
    ("objectives", "objective"),
    ("vision", "vision"),
    ("farming", "cs"),
    ("survival", "kda"),
)


@dataclass(frozen=True)
class TeammateSummary:
    name: str
    tag: str
    win: bool
    puuid: Optional[str] = None


@dataclass(frozen=True)
class ScoredMatch:
    """One already-scored match from the tracked player's point of view."""

    match_id: str
    champion: str
    win: bool
    game_creation: Union[int, float, str, datetime, None] = None
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    cs: int = 0
    gold: int = 0
    damage: int = 0
    score: Optional[float] = None
    breakdown: Dict[str, float] = field(default_factory=dict)
    teammates: Sequence[TeammateSummary] = ()

    @classmethod
    def from_match(
        cls,
        match: Dict[str, Any],
        puuid: str,
        score: Optional[float] = None,
        breakdown: Optional[Dict[str, float]] = None,
    ) -> "ScoredMatch":
        info = match.get("info") or {}
        parts = info.get("participants", []) or []
        me = next((p for p in parts if p.get("puuid") == puuid), None)
        if me is None:
            raise KeyError("PUUID not in match participants")
        mates = [
            TeammateSummary(p.get("riotIdGameName") or p.get("summonerName") or "", p.get("riotIdTagline") or "", bool(p.get("win")), p.get("puuid"))
            for p in parts
            if p.get("teamId") == me.get("teamId") and p.get("puuid") != puuid
        ]
        return cls(
            match_id=(match.get("metadata") or {}).get("matchId") or "",
            champion=me.get("championName") or "",
            win=bool(me.get("win")),
            game_creation=info.get("gameCreation"),
            kills=int(me.get("kills") or 0),
            deaths=int(me.get("deaths") or 0),
            assists=int(me.get("assists") or 0),
            cs=cs_total(me),
            gold=int(me.get("goldEarned") or 0),
            damage=int(me.get("totalDamageDealtToChampions") or 0),
            score=score,
            breakdown=dict(breakdown or {}),
            teammates=tuple(mates),
        )


def match_day(value: Union[int, float, str, datetime, None]) -> Optional[date]:
    """UTC calendar day of a creation timestamp (epoch ms, ISO string or datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        try:
            dt = dateparser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).date()


def champion_pool(matches: Iterable[ScoredMatch], top: int = TOP_N) -> List[Dict[str, Any]]:
    pool: Dict[str, Dict[str, Any]] = OrderedDict()
    for m in matches:
        c = pool.setdefault(
            m.champion,
            {"champion": m.champion, "matches": 0, "wins": 0, "kills": 0, "deaths": 0, "assists": 0, "cs": 0, "gold": 0, "damage": 0},
        )
        c["matches"] += 1
        c["wins"] += 1 if m.win else 0
        for k in ("kills", "deaths", "assists", "cs", "gold", "damage"):
            c[k] += getattr(m, k)
    out = []
    for c in pool.values():
        out.append({**c, "kda": (c["kills"] + c["assists"]) / max(1, c["deaths"])})
    # stable sort keeps first-seen (most recent) order among ties
    out.sort(key=lambda c: c["matches"], reverse=True)
    return out[:top]


def teammate_affinity(matches: Sequence[ScoredMatch], window: int = TEAMMATE_WINDOW, top: int = TOP_N) -> List[Dict[str, Any]]:
    mates: Dict[str, Dict[str, Any]] = OrderedDict()
    for m in list(matches)[:window]:
        for tm in m.teammates:
            t = mates.setdefault(f"{tm.name}#{tm.tag}", {"name": tm.name, "tag": tm.tag, "puuid": tm.puuid, "matches": 0, "wins": 0})
            t["matches"] += 1
            t["wins"] += 1 if tm.win else 0
    out = [
        {**t, "losses": t["matches"] - t["wins"], "win_rate": round(100 * t["wins"] / t["matches"])}
        for t in mates.values()
    ]
    out.sort(key=lambda t: t["matches"], reverse=True)
    return out[:top]


def heat_intensity(games: int, wins: int) -> int:
    if games == 0:
        return 0
    wr = wins / games
    if games < 3:
        return 2 if wr >= 0.5 else 1
    if wr < 0.4:
        return 2
    if wr <= 0.6:
        return 3
    return 4


def activity_heatmap(matches: Iterable[ScoredMatch], today: Optional[date] = None, days: int = HEATMAP_DAYS) -> List[Dict[str, Any]]:
    """One entry per day of the trailing window ending ``today``, oldest first."""
    today = today or datetime.now(timezone.utc).date()
    per_day: Dict[date, List[int]] = {}
    for m in matches:
        d = match_day(m.game_creation)
        if d is None:
            continue
        counts = per_day.setdefault(d, [0, 0])
        counts[0] += 1
        counts[1] += 1 if m.win else 0
    out = []
    for i in range(days - 1, -1, -1):
        d = today - timedelta(days=i)
        games, wins = per_day.get(d, (0, 0))
        out.append(
            {
                "date": d.isoformat(),
                "games": games,
                "wins": wins,
                "losses": games - wins,
                "intensity": heat_intensity(games, wins),
            }
        )
    return out


def _axis(avg: float) -> float:
    return max(0.0, min(100.0, 50.0 + 20.0 * avg))


def performance_profile(matches: Iterable[ScoredMatch]) -> Dict[str, float]:
    scored = [m for m in matches if m.breakdown]
    if not scored:
        return {axis: 50.0 for axis, _ in PROFILE_AXES}
    return {
        axis: _axis(sum(m.breakdown.get(metric, 0.0) for m in scored) / len(scored))
        for axis, metric in PROFILE_AXES
    }


def consistency(scores: Sequence[float]) -> str:
    if len(scores) < CONSISTENCY_MIN_GAMES:
        return "Average"
    sd = pstdev(scores)
    if sd < 8:
        return "Rock Solid"
    if sd > 18:
        return "Coinflip"
    return "Average"


def lp_history(snapshots: Iterable[Dict[str, Any]], queue: str = "RANKED_SOLO_5x5") -> List[Dict[str, Any]]:
    out = []
    for s in snapshots:
        if s.get("queueType") != queue:
            continue
        d = match_day(s.get("timestamp"))
        out.append(
            {
                "date": d.isoformat() if d else None,
                "lp": s.get("leaguePoints"),
                "tier": s.get("tier"),
                "rank": s.get("rank"),
            }
        )
    return out


def summarize(
    matches: Sequence[ScoredMatch],
    snapshots: Iterable[Dict[str, Any]] = (),
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Full player rollup over matches ordered most recent first."""
    scores = [m.score for m in matches if m.breakdown and m.score is not None]
    profile: Dict[str, Any] = dict(performance_profile(matches))
    profile["consistency"] = consistency(scores)
    return {
        "champions": champion_pool(matches),
        "teammates": teammate_affinity(matches),
        "heatmap": activity_heatmap(matches, today),
        "lp_history": lp_history(snapshots),
        "performance": profile,
    }

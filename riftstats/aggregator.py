from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .buckets import (
    BucketDelta,
    BucketKey,
    ScannedMatch,
    duration_bucket,
)
from .builds import item_contributions, mine_build
from .ddragon import ReferenceData
from .features import TeamTotals, cs_total, lane_opponent, objective_takedowns, participant_role, team_totals, valid_participants
from .freqmap import FrequencyMap
from .store import Store
from .timeline import TimelineResult, skill_order

logger = logging.getLogger(__name__)

# Lane pairings that get a duo bucket, in either order
VALID_DUOS = (
    frozenset({"MID", "JUNGLE"}),
    frozenset({"ADC", "SUPPORT"}),
    frozenset({"TOP", "JUNGLE"}),
)

STATUS_PROCESSED = "processed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class ProcessResult:
    match_id: str
    status: str
    reason: Optional[str] = None
    patch: Optional[str] = None


def is_duo(role_a: Optional[str], role_b: Optional[str]) -> bool:
    if not role_a or not role_b:
        return False
    return frozenset({role_a, role_b}) in VALID_DUOS


def patch_of(info: Dict[str, Any]) -> str:
    """``14.3.562.1234`` -> ``14.3``"""
    return ".".join(str(info.get("gameVersion") or "").split(".")[:2])


def rune_contributions(p: Dict[str, Any], win: bool) -> FrequencyMap:
    fm = FrequencyMap()
    perks = p.get("perks") or {}
    styles = perks.get("styles") or []
    stat = perks.get("statPerks") or {}
    stat_ids = [stat.get(k) for k in ("offense", "flex", "defense") if stat.get(k)]
    by_desc = {s.get("description"): s for s in styles}
    primary, sub = by_desc.get("primaryStyle"), by_desc.get("subStyle")
    if primary and sub:
        p_ids = "-".join(str(s.get("perk")) for s in primary.get("selections") or [])
        s_ids = "-".join(str(s.get("perk")) for s in sub.get("selections") or [])
        page = f"{primary.get('style')}-{sub.get('style')}-{p_ids}-{s_ids}-{'-'.join(str(i) for i in stat_ids)}"
        fm.record(f"page_{page}", win)
    for style in styles:
        for sel in style.get("selections") or []:
            if sel.get("perk"):
                fm.record(sel["perk"], win)
    for sid in stat_ids:
        fm.record(sid, win)
    return fm


def spell_contributions(p: Dict[str, Any], win: bool) -> FrequencyMap:
    fm = FrequencyMap()
    for slot in ("summoner1Id", "summoner2Id"):
        if p.get(slot):
            fm.record(p[slot], win)
    return fm


def skill_order_contributions(timeline: TimelineResult, participant_id: int, win: bool) -> FrequencyMap:
    fm = FrequencyMap()
    if timeline.available:
        order = skill_order(timeline.timeline or {}, participant_id)
        if order:
            fm.record(order, win)
    return fm


def participant_counters(p: Dict[str, Any], duration_s: float, team: TeamTotals) -> Dict[str, float]:
    minutes = max(1.0, (duration_s or 1) / 60.0)
    damage = float(p.get("totalDamageDealtToChampions") or 0)
    gold = float(p.get("goldEarned") or 0)
    damage_share = damage / max(1.0, team.damage)
    return {
        "matches": 1,
        "wins": 1 if p.get("win") else 0,
        "total_kills": int(p.get("kills") or 0),
        "total_deaths": int(p.get("deaths") or 0),
        "total_assists": int(p.get("assists") or 0),
        "total_damage": int(damage),
        "total_gold": int(gold),
        "total_cs": cs_total(p),
        "total_vision": int(p.get("visionScore") or 0),
        "total_duration": int(duration_s or 0),
        "total_damage_share": damage_share,
        "total_gold_share": gold / max(1.0, team.gold),
        "total_vision_per_min": float(p.get("visionScore") or 0) / minutes,
        "total_objectives": float(objective_takedowns(p)),
        "total_damage_share_sq": damage_share ** 2,
    }


def ban_deltas(info: Dict[str, Any], reference: ReferenceData, tier: str, patch: str, db: str) -> List[BucketDelta]:
    out: List[BucketDelta] = []
    for team in info.get("teams", []) or []:
        for ban in team.get("bans", []) or []:
            cid = int(ban.get("championId") or -1)
            if cid == -1:
                continue
            name = reference.champion_name(cid)
            if not name:
                logger.warning("ban of unknown champion id %s on patch %s ignored", cid, patch)
                continue
            out.append(BucketDelta(BucketKey.for_ban(name, tier, patch, db), {"bans": 1}))
    return out


def participant_deltas(
    p: Dict[str, Any],
    info: Dict[str, Any],
    timeline: TimelineResult,
    tier: str,
    patch: str,
    db: str,
    teams: Mapping[int, TeamTotals],
    reference: ReferenceData,
) -> List[BucketDelta]:
    role = participant_role(p)
    if role is None:
        return []
    champ = p.get("championName")
    win = bool(p.get("win"))
    duration = float(info.get("gameDuration") or 0)
    counters = participant_counters(p, duration, teams.get(int(p.get("teamId") or 0), TeamTotals()))

    build = mine_build(p, timeline, reference.items)
    freq = {
        "items": item_contributions(build, win),
        "runes": rune_contributions(p, win),
        "spells": spell_contributions(p, win),
        "skill_order": skill_order_contributions(timeline, int(p.get("participantId") or 0), win),
    }
    out = [BucketDelta(BucketKey.for_champion(champ, role, tier, patch, db), counters, freq)]

    op = lane_opponent(info, p)
    if op is not None:
        out.append(BucketDelta(BucketKey.for_matchup(champ, op.get("championName"), role, tier, patch, db), counters))

    for mate in info.get("participants", []) or []:
        if mate.get("teamId") != p.get("teamId") or mate.get("participantId") == p.get("participantId"):
            continue
        mate_role = participant_role(mate)
        if is_duo(role, mate_role):
            key = BucketKey.for_duo(champ, role, mate.get("championName"), mate_role, tier, patch)
            out.append(BucketDelta(key, {"matches": 1, "wins": counters["wins"]}))
    return out


def coalesce(deltas: List[BucketDelta]) -> List[BucketDelta]:
    """Merge deltas that target the same bucket, keeping first-seen order."""
    merged: Dict[BucketKey, BucketDelta] = {}
    for d in deltas:
        merged[d.key] = merged[d.key].merge(d) if d.key in merged else d
    return list(merged.values())


def match_deltas(match: Dict[str, Any], timeline: TimelineResult, tier: str, reference: ReferenceData) -> List[BucketDelta]:
    """Every bucket increment one match contributes. Pure; touches no store."""
    info = match.get("info") or {}
    patch = patch_of(info)
    db = duration_bucket(float(info.get("gameDuration") or 0))
    teams = team_totals(info)
    deltas = ban_deltas(info, reference, tier, patch, db)
    for p in valid_participants(info):
        deltas.extend(participant_deltas(p, info, timeline, tier, patch, db, teams, reference))
    return coalesce(deltas)


def process_match(
    store: Store,
    match: Dict[str, Any],
    timeline: TimelineResult,
    tier: str,
    reference: ReferenceData,
    min_duration_s: int = 300,
) -> ProcessResult:
    t0 = time.perf_counter()
    match_id = (match.get("metadata") or {}).get("matchId") or ""
    if not match_id:
        raise ValueError("match JSON has no metadata.matchId")
    if store.find_scanned(match_id) is not None:
        return ProcessResult(match_id, STATUS_SKIPPED, "already scanned")
    info = match.get("info") or {}
    patch = patch_of(info)
    record = ScannedMatch(match_id, patch, tier)

    if float(info.get("gameDuration") or 0) < min_duration_s:
        store.apply_match(record, [])
        return ProcessResult(match_id, STATUS_SKIPPED, "remake", patch)

    if not timeline.available:
        logger.warning("%s: timeline unavailable (%s); build order and skill order skipped", match_id, timeline.reason)
    deltas = match_deltas(match, timeline, tier, reference)
    if not store.apply_match(record, deltas):
        return ProcessResult(match_id, STATUS_SKIPPED, "already scanned", patch)
    logger.debug("%s: %d bucket writes in %.1f ms", match_id, len(deltas), (time.perf_counter() - t0) * 1000)
    return ProcessResult(match_id, STATUS_PROCESSED, None, patch)

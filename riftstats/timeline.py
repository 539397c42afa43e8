from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

MS = 1000

ITEM_EVENT_TYPES = ("ITEM_PURCHASED", "ITEM_SOLD", "ITEM_UNDO")
SKILL_KEYS = {1: "Q", 2: "W", 3: "E", 4: "R"}


@dataclass(frozen=True)
class TimelineResult:
    """Either a parsed timeline or the reason it could not be obtained."""

    timeline: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @classmethod
    def present(cls, timeline: Dict[str, Any]) -> "TimelineResult":
        return cls(timeline=timeline)

    @classmethod
    def absent(cls, reason: str) -> "TimelineResult":
        return cls(timeline=None, reason=reason)

    @property
    def available(self) -> bool:
        return self.timeline is not None


@dataclass(frozen=True)
class LaneDeltas:
    csd15: float
    gd15: float
    xpd15: float


def iter_events(timeline: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    for fr in timeline.get("info", {}).get("frames", []) or []:
        for ev in fr.get("events", []) or []:
            yield ev


def item_events(timeline: Dict[str, Any], participant_id: int) -> List[Dict[str, Any]]:
    return [
        ev
        for ev in iter_events(timeline)
        if ev.get("type") in ITEM_EVENT_TYPES and int(ev.get("participantId") or 0) == participant_id
    ]


def _undo_item_id(ev: Dict[str, Any]) -> int:
    # Purchase undos carry the item in beforeId, sale undos in afterId
    return int(ev.get("beforeId") or 0) or int(ev.get("afterId") or 0)


def clean_item_events(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop undone purchases/sales, keeping the order of everything else.

    An ITEM_UNDO only ever cancels the latest surviving event, and only when that
    event is a purchase or sale of the same item. Anything else is ignored.
    """
    clean: List[Dict[str, Any]] = []
    for ev in events:
        typ = ev.get("type")
        if typ in ("ITEM_PURCHASED", "ITEM_SOLD"):
            clean.append(ev)
        elif typ == "ITEM_UNDO" and clean:
            undone = _undo_item_id(ev)
            if undone and int(clean[-1].get("itemId") or 0) == undone:
                clean.pop()
    return clean


def skill_order(timeline: Dict[str, Any], participant_id: int) -> str:
    keys = []
    for ev in iter_events(timeline):
        if ev.get("type") != "SKILL_LEVEL_UP" or int(ev.get("participantId") or 0) != participant_id:
            continue
        slot = int(ev.get("skillSlot") or 0)
        if slot in SKILL_KEYS:
            keys.append(SKILL_KEYS[slot])
    return "-".join(keys)


def find_frame_at(timeline: Dict[str, Any], ms: int) -> Dict[str, Any]:
    frames = timeline.get("info", {}).get("frames", []) or []
    if not frames:
        return {}
    return min(frames, key=lambda f: abs(int(f.get("timestamp") or 0) - ms))


def _cs(pf: Dict[str, Any]) -> int:
    return int((pf.get("minionsKilled") or 0) + (pf.get("jungleMinionsKilled") or 0))


def lane_deltas_at(timeline: Dict[str, Any], participant_id: int, opponent_id: Optional[int], minute: int = 15) -> Optional[LaneDeltas]:
    """cs/gold/xp differences against the lane opponent at ``minute``.

    None when there is no opponent or the game ended before that minute.
    """
    if not opponent_id:
        return None
    frames = timeline.get("info", {}).get("frames", []) or []
    target = minute * 60 * MS
    if not frames or max(int(f.get("timestamp") or 0) for f in frames) < target:
        return None
    pfs = find_frame_at(timeline, target).get("participantFrames", {}) or {}
    me = pfs.get(str(participant_id)) or {}
    op = pfs.get(str(opponent_id)) or {}
    if not me or not op:
        return None
    return LaneDeltas(
        csd15=float(_cs(me) - _cs(op)),
        gd15=float((me.get("totalGold") or 0) - (op.get("totalGold") or 0)),
        xpd15=float((me.get("xp") or 0) - (op.get("xp") or 0)),
    )

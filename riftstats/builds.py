from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .ddragon import ItemInfo
from .freqmap import FrequencyMap
from .timeline import TimelineResult, clean_item_events, item_events

# Trinkets, wards, consumables and support-quest items never count as build items
IGNORED_ITEMS = frozenset(
    {3340, 3363, 3364, 3330, 2003, 2055, 2140, 2138, 2139, 1054, 1055, 1056, 1082, 1083, 1101, 1102, 1103}
)
VISION_ITEMS = frozenset({3340, 3363, 3364, 3330, 2055, 2049, 2045, 2044})

START_WINDOW_MS = 60_000
CORE_SIZE = 3
SLOT_POSITIONS = (3, 4, 5)

ITEM_SLOTS = ("item0", "item1", "item2", "item3", "item4", "item5")


def final_items(p: Dict[str, Any]) -> List[int]:
    ids = [int(p.get(slot) or 0) for slot in ITEM_SLOTS]
    return sorted(i for i in ids if i and i not in IGNORED_ITEMS)


def join_ids(ids: Sequence[int]) -> str:
    return "-".join(str(i) for i in ids)


def starting_items(clean_events: Sequence[Dict[str, Any]]) -> List[int]:
    ids = [
        int(ev.get("itemId") or 0)
        for ev in clean_events
        if ev.get("type") == "ITEM_PURCHASED"
        and int(ev.get("timestamp") or 0) <= START_WINDOW_MS
        and int(ev.get("itemId") or 0) not in VISION_ITEMS
    ]
    return sorted(i for i in ids if i)


def _is_finished(item_id: int, items: Mapping[int, ItemInfo]) -> bool:
    info = items.get(item_id)
    if info is None:
        # unknown to the reference data: assume finished rather than drop it
        return True
    return info.is_boots or not info.into


def build_path(clean_events: Sequence[Dict[str, Any]], final: Sequence[int], items: Mapping[int, ItemInfo]) -> List[int]:
    """Purchase order of finished items that survived to the end, first occurrence only."""
    final_set = set(final)
    path: List[int] = []
    for ev in clean_events:
        if ev.get("type") != "ITEM_PURCHASED":
            continue
        iid = int(ev.get("itemId") or 0)
        if iid in final_set and iid not in path and _is_finished(iid, items):
            path.append(iid)
    return path


@dataclass(frozen=True)
class BuildPath:
    final: Tuple[int, ...]
    # None when the timeline was unavailable; empty when it was but had nothing
    starting: Optional[Tuple[int, ...]] = None
    path: Optional[Tuple[int, ...]] = None

    @property
    def final_key(self) -> str:
        return join_ids(self.final)

    @property
    def starting_key(self) -> Optional[str]:
        return f"start_{join_ids(self.starting)}" if self.starting else None

    @property
    def core(self) -> Tuple[int, ...]:
        return tuple((self.path or ())[:CORE_SIZE])

    @property
    def core_key(self) -> Optional[str]:
        return f"core_{join_ids(self.core)}" if self.core else None

    def slot_keys(self) -> List[str]:
        core_key = self.core_key
        if not core_key or not self.path:
            return []
        return [f"{core_key}_slot{idx + 1}_{self.path[idx]}" for idx in SLOT_POSITIONS if idx < len(self.path)]


def mine_build(p: Dict[str, Any], timeline: TimelineResult, items: Mapping[int, ItemInfo]) -> BuildPath:
    final = tuple(final_items(p))
    if not timeline.available:
        return BuildPath(final)
    events = clean_item_events(item_events(timeline.timeline or {}, int(p.get("participantId") or 0)))
    return BuildPath(final, tuple(starting_items(events)), tuple(build_path(events, final, items)))


def item_contributions(build: BuildPath, win: bool) -> FrequencyMap:
    fm = FrequencyMap()
    # a one-item build key would collide with that item's own entry
    if len(build.final) > 1:
        fm.record(build.final_key, win)
    for iid in dict.fromkeys(build.final):
        fm.record(iid, win)
    for key in (build.starting_key, build.core_key):
        if key:
            fm.record(key, win)
    for key in build.slot_keys():
        fm.record(key, win)
    return fm

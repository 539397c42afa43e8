from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .buckets import KIND_BAN, KIND_CHAMPION, KIND_DUO, KIND_MATCHUP, ROLE_ALL, StatBucket
from .freqmap import FrequencyMap, WinCount, merge_all
from .store import Store


TIERS = (
    "IRON",
    "BRONZE",
    "SILVER",
    "GOLD",
    "PLATINUM",
    "EMERALD",
    "DIAMOND",
    "MASTER",
    "GRANDMASTER",
    "CHALLENGER",
)

# (min win rate %, letter); S+ additionally needs a pick rate above 1%
TIER_LETTERS = ((52.0, "S"), (51.0, "A+"), (50.0, "A"), (48.0, "B"), (45.0, "C"))


def target_tiers(rank: str) -> List[str]:
    """``rank`` and every tier above it; ``ALL`` (or an unknown rank) means every tier."""
    r = (rank or "ALL").upper()
    if r not in TIERS:
        return list(TIERS)
    return list(TIERS[TIERS.index(r):])


def tier_letter(win_rate: float, pick_rate: float) -> str:
    if win_rate >= 53.0 and pick_rate > 1.0:
        return "S+"
    for threshold, letter in TIER_LETTERS:
        if win_rate >= threshold:
            return letter
    return "D"


def _pct(wins: int, matches: int) -> float:
    return 100.0 * wins / matches if matches else 0.0


def _ids(raw: str) -> List[int]:
    return [int(x) for x in raw.split("-") if x.isdigit()]


def _entry(wc: WinCount, **extra: Any) -> Dict[str, Any]:
    return {**extra, "wins": wc.wins, "matches": wc.matches, "win_rate": _pct(wc.wins, wc.matches)}


def _by_matches(entries: List[Dict[str, Any]], top: Optional[int] = None) -> List[Dict[str, Any]]:
    entries.sort(key=lambda e: e["matches"], reverse=True)
    return entries if top is None else entries[:top]


def core_builds(items: FrequencyMap) -> List[Dict[str, Any]]:
    out = [
        _entry(wc, key=k, path=_ids(k[len("core_"):]))
        for k, wc in items.with_prefix("core_")
        # slot entries share the prefix
        if "_slot" not in k
    ]
    return _by_matches(out)


def slot_options(items: FrequencyMap, core_key: Optional[str], top: int = 5) -> Dict[str, List[Dict[str, Any]]]:
    out: Dict[str, List[Dict[str, Any]]] = {}
    for slot in ("slot4", "slot5", "slot6"):
        if not core_key:
            out[slot] = []
            continue
        opts = [_entry(wc, id=int(k.rsplit("_", 1)[-1])) for k, wc in items.with_prefix(f"{core_key}_{slot}_")]
        out[slot] = _by_matches(opts, top)
    return out


def starting_sets(items: FrequencyMap, top: int = 3) -> List[Dict[str, Any]]:
    return _by_matches([_entry(wc, items=_ids(k[len("start_"):])) for k, wc in items.with_prefix("start_")], top)


def skill_orders(orders: FrequencyMap, top: int = 3) -> List[Dict[str, Any]]:
    return _by_matches([_entry(wc, path=k) for k, wc in orders.items()], top)


def rune_pages(runes: FrequencyMap, top: int = 3) -> List[Dict[str, Any]]:
    out = []
    for k, wc in runes.with_prefix("page_"):
        parts = _ids(k[len("page_"):])
        if len(parts) < 2:
            continue
        out.append(_entry(wc, primary_style=parts[0], sub_style=parts[1], perks=parts[2:]))
    return _by_matches(out, top)


def _latest_patch(buckets: List[StatBucket]) -> str:
    def version(p: str):
        return tuple(int(x) if x.isdigit() else 0 for x in p.split("."))

    return max((b.key.patch for b in buckets), key=version, default="Unknown")


@dataclass
class ChampionDetail:
    champion: str
    role: str
    rank: str
    patch: str
    tier: str
    matches: int
    wins: int
    win_rate: float
    pick_rate: float
    ban_rate: float
    total_matches: int
    items: FrequencyMap = field(default_factory=FrequencyMap)
    runes: FrequencyMap = field(default_factory=FrequencyMap)
    spells: FrequencyMap = field(default_factory=FrequencyMap)
    skill_order: FrequencyMap = field(default_factory=FrequencyMap)
    matchups: List[Dict[str, Any]] = field(default_factory=list)
    duos: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def item_paths(self) -> List[Dict[str, Any]]:
        return core_builds(self.items)

    @property
    def slots(self) -> Dict[str, List[Dict[str, Any]]]:
        paths = self.item_paths
        return slot_options(self.items, paths[0]["key"] if paths else None)

    @property
    def top_skill_path(self) -> List[str]:
        orders = skill_orders(self.skill_order)
        return orders[0]["path"].split("-") if orders else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "champion": self.champion,
            "role": self.role,
            "rank": self.rank,
            "patch": self.patch,
            "tier": self.tier,
            "matches": self.matches,
            "wins": self.wins,
            "win_rate": self.win_rate,
            "pick_rate": self.pick_rate,
            "ban_rate": self.ban_rate,
            "total_matches": self.total_matches,
            "item_paths": self.item_paths,
            "starting_items": starting_sets(self.items),
            **self.slots,
            "skill_orders": skill_orders(self.skill_order),
            "top_skill_path": self.top_skill_path,
            "rune_pages": rune_pages(self.runes),
            "matchups": self.matchups,
            "duos": self.duos,
        }


def _role_filter(role: str) -> Optional[str]:
    return None if not role or role.upper() == ROLE_ALL else role.upper()


def matchup_table(store: Store, champion: str, role: str, tiers: List[str]) -> List[Dict[str, Any]]:
    acc: Dict[str, WinCount] = {}
    for b in store.list_buckets(KIND_MATCHUP, champion=champion, role=_role_filter(role), tiers=tiers):
        acc[b.key.opponent] = acc.get(b.key.opponent, WinCount()) + WinCount(b.wins, b.matches)
    out = [_entry(wc, opponent=op) for op, wc in acc.items() if wc.matches]
    out.sort(key=lambda e: e["win_rate"])
    return out


def duo_table(store: Store, champion: str, role: str, tiers: List[str]) -> List[Dict[str, Any]]:
    acc: Dict[tuple, WinCount] = {}
    for b in store.list_buckets(KIND_DUO, champion=champion, role=_role_filter(role), tiers=tiers):
        k = (b.key.partner, b.key.partner_role)
        acc[k] = acc.get(k, WinCount()) + WinCount(b.wins, b.matches)
    out = [_entry(wc, partner=p, partner_role=pr) for (p, pr), wc in acc.items() if wc.matches]
    return _by_matches(out)


def champion_detail(store: Store, champion: str, role: str = ROLE_ALL, rank: str = "ALL") -> Optional[ChampionDetail]:
    """Everything stored about one champion for the given role and rank and above, or None if unseen."""
    tiers = target_tiers(rank)
    buckets = store.list_buckets(KIND_CHAMPION, champion=champion, role=_role_filter(role), tiers=tiers, with_freq=True)
    if not buckets:
        return None
    matches = sum(b.matches for b in buckets)
    wins = sum(b.wins for b in buckets)
    total = store.count_scanned(tiers)
    bans = sum(b.bans for b in store.list_buckets(KIND_BAN, champion=champion, tiers=tiers))

    win_rate = _pct(wins, matches)
    pick_rate = _pct(matches, total)
    return ChampionDetail(
        champion=champion,
        role=(role or ROLE_ALL).upper(),
        rank=(rank or "ALL").upper(),
        patch=_latest_patch(buckets),
        tier=tier_letter(win_rate, pick_rate),
        matches=matches,
        wins=wins,
        win_rate=win_rate,
        pick_rate=pick_rate,
        ban_rate=_pct(bans, total),
        total_matches=total,
        items=merge_all(b.frequency("items") for b in buckets),
        runes=merge_all(b.frequency("runes") for b in buckets),
        spells=merge_all(b.frequency("spells") for b in buckets),
        skill_order=merge_all(b.frequency("skill_order") for b in buckets),
        matchups=matchup_table(store, champion, role, tiers),
        duos=duo_table(store, champion, role, tiers),
    )

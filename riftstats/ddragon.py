from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

import httpx

from .config import cache_dir

logger = logging.getLogger(__name__)

CDN = "https://ddragon.leagueoflegends.com"


@dataclass(frozen=True)
class ItemInfo:
    tags: FrozenSet[str] = frozenset()
    into: Tuple[int, ...] = ()

    @property
    def is_boots(self) -> bool:
        return "Boots" in self.tags


@dataclass(frozen=True)
class ChampionInfo:
    name: str
    tags: Tuple[str, ...] = ()

    @property
    def archetype(self) -> Optional[str]:
        return self.tags[0] if self.tags else None


@dataclass(frozen=True)
class ReferenceData:
    version: str
    champions: Dict[int, ChampionInfo] = field(default_factory=dict)
    items: Dict[int, ItemInfo] = field(default_factory=dict)

    def champion_name(self, champion_id: int) -> Optional[str]:
        info = self.champions.get(int(champion_id))
        return info.name if info else None

    def archetype_of(self, champion_name: str) -> Optional[str]:
        for info in self.champions.values():
            if info.name == champion_name:
                return info.archetype
        return None


def parse_champions(data: Dict[str, Any]) -> Dict[int, ChampionInfo]:
    out: Dict[int, ChampionInfo] = {}
    for obj in (data.get("data") or {}).values():
        try:
            out[int(obj.get("key"))] = ChampionInfo(name=obj.get("id"), tags=tuple(obj.get("tags") or ()))
        except (TypeError, ValueError):
            continue
    return out


def parse_items(data: Dict[str, Any]) -> Dict[int, ItemInfo]:
    out: Dict[int, ItemInfo] = {}
    for iid, obj in (data.get("data") or {}).items():
        try:
            into = tuple(int(x) for x in obj.get("into") or ())
            out[int(iid)] = ItemInfo(tags=frozenset(obj.get("tags") or ()), into=into)
        except (TypeError, ValueError):
            continue
    return out


def _http() -> httpx.Client:
    return httpx.Client(timeout=10)


def version_for_patch(patch: str) -> str:
    # Data Dragon publishes every patch as <major>.<minor>.1
    return f"{patch}.1"


def _fetch_json(ver: str, name: str, root: Path) -> Dict[str, Any]:
    d = root / ver
    d.mkdir(parents=True, exist_ok=True)
    p = d / name
    if not p.exists():
        url = f"{CDN}/cdn/{ver}/data/en_US/{name}"
        with _http() as h:
            r = h.get(url)
            r.raise_for_status()
        # readers only ever see a complete file
        tmp = d / f".{name}.{os.getpid()}.{threading.get_ident()}.tmp"
        tmp.write_bytes(r.content)
        os.replace(tmp, p)
        logger.debug("ddragon: cached %s for %s", name, ver)
    return json.loads(p.read_text(encoding="utf-8"))


_REF_CACHE: Dict[str, ReferenceData] = {}
_REF_LOCK = threading.Lock()


def load_reference(ver: str, root: Optional[Path] = None) -> ReferenceData:
    """Champion and item lookups for a game-content version, cached on disk and in process.

    Safe to call from many ingest workers at once; a cold version is downloaded by one of them.
    """
    ref = _REF_CACHE.get(ver)
    if ref is not None:
        return ref
    with _REF_LOCK:
        if ver in _REF_CACHE:
            return _REF_CACHE[ver]
        base = root or (cache_dir() / "ddragon")
        ref = ReferenceData(
            version=ver,
            champions=parse_champions(_fetch_json(ver, "champion.json", base)),
            items=parse_items(_fetch_json(ver, "item.json", base)),
        )
        _REF_CACHE[ver] = ref
    return ref

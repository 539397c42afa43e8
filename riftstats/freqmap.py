from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple


@dataclass(frozen=True)
class WinCount:
    wins: int = 0
    matches: int = 0

    def __post_init__(self) -> None:
        if self.matches < 0 or self.wins < 0 or self.wins > self.matches:
            raise ValueError(f"invalid win count wins={self.wins} matches={self.matches}")

    def __add__(self, other: "WinCount") -> "WinCount":
        return WinCount(self.wins + other.wins, self.matches + other.matches)

    @property
    def win_rate(self) -> float:
        return self.wins / self.matches if self.matches else 0.0

    def to_dict(self) -> Dict[str, int]:
        return {"wins": self.wins, "matches": self.matches}


class FrequencyMap(Mapping[str, WinCount]):
    """Opaque string key -> WinCount, merged by field-wise sum.

    ``merge`` is commutative and associative, so stored maps can be combined in any
    order. ``record`` is the only mutator and is meant for building one
    participant's contribution before it is handed to the store.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[str, WinCount]] = None) -> None:
        self._entries: Dict[str, WinCount] = {}
        for k, v in (entries or {}).items():
            self._entries[str(k)] = v

    def __getitem__(self, key: str) -> WinCount:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FrequencyMap):
            return self._entries == other._entries
        if isinstance(other, Mapping):
            return self._entries == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"FrequencyMap({self._entries!r})"

    def record(self, key: Any, win: bool) -> None:
        k = str(key)
        self._entries[k] = self._entries.get(k, WinCount()) + WinCount(1 if win else 0, 1)

    def merge(self, other: Mapping[str, WinCount]) -> "FrequencyMap":
        out = dict(self._entries)
        for k, v in other.items():
            out[k] = out[k] + v if k in out else v
        return FrequencyMap(out)

    __add__ = merge

    def with_prefix(self, prefix: str) -> Iterable[Tuple[str, WinCount]]:
        return ((k, v) for k, v in self._entries.items() if k.startswith(prefix))

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {k: v.to_dict() for k, v in self._entries.items()}

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Mapping[str, Any]]]) -> "FrequencyMap":
        return cls({k: WinCount(int(v.get("wins") or 0), int(v.get("matches") or 0)) for k, v in (raw or {}).items()})


def merge_all(maps: Iterable[Mapping[str, WinCount]]) -> FrequencyMap:
    out = FrequencyMap()
    for m in maps:
        out = out.merge(m)
    return out

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .config import get_api_key
from .timeline import TimelineResult

logger = logging.getLogger(__name__)

ROUTING_PREFIXES = (
    (("na", "br", "la"), "americas"),
    (("kr", "jp"), "asia"),
    (("oc", "ph", "sg", "th", "tw", "vn"), "sea"),
)
DEFAULT_ROUTING = "europe"


def routing_for_platform(platform: str) -> str:
    """Regional routing value for a platform id, e.g. ``na1`` -> ``americas``."""
    p = (platform or "").lower()
    for prefixes, routing in ROUTING_PREFIXES:
        if p.startswith(prefixes):
            return routing
    return DEFAULT_ROUTING


def _base(host: str) -> str:
    return f"https://{host}.api.riotgames.com"


@dataclass
class RiotClient:
    platform: str
    api_key: str
    max_retries: int = 3

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "RiotClient":
        key = get_api_key(cfg)
        if not key:
            raise RuntimeError("No Riot API key found; set RIOT_API_KEY or run auth")
        return cls(platform=cfg["riot"]["platform"], api_key=key)

    @property
    def routing(self) -> str:
        return routing_for_platform(self.platform)

    def _headers(self) -> Dict[str, str]:
        return {"X-Riot-Token": self.api_key}

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        attempts = 0
        while True:
            _RATE_LIMITER.acquire()
            resp = requests.get(url, headers=self._headers(), params=params, timeout=15)
            if resp.status_code == 429 and attempts < self.max_retries:
                attempts += 1
                retry = int(resp.headers.get("Retry-After", "2"))
                logger.warning("rate limited on %s; retrying in %ss", url, retry + 1)
                time.sleep(retry + 1)
                continue
            resp.raise_for_status()
            return resp.json()

    def verify_key(self) -> bool:
        """True if the key is accepted by the platform status endpoint, False on 401/403."""
        url = f"{_base(self.platform)}/lol/status/v4/platform-data"
        resp = requests.get(url, headers=self._headers(), timeout=10)
        if resp.status_code in (401, 403):
            return False
        if resp.status_code == 429:
            return True
        resp.raise_for_status()
        return True

    # Match V5
    def match_ids_by_puuid(self, puuid: str, start: int = 0, count: int = 20, queue: Optional[int] = None) -> List[str]:
        url = f"{_base(self.routing)}/lol/match/v5/matches/by-puuid/{puuid}/ids"
        params: Dict[str, Any] = {"start": start, "count": count}
        if queue is not None:
            params["queue"] = queue
        return self._get(url, params=params)

    def get_match(self, match_id: str) -> Dict[str, Any]:
        url = f"{_base(self.routing)}/lol/match/v5/matches/{match_id}"
        return self._get(url)

    def get_timeline(self, match_id: str) -> Dict[str, Any]:
        url = f"{_base(self.routing)}/lol/match/v5/matches/{match_id}/timeline"
        return self._get(url)

    def get_timeline_result(self, match_id: str) -> TimelineResult:
        try:
            return TimelineResult.present(self.get_timeline(match_id))
        except (requests.RequestException, ValueError) as exc:
            return TimelineResult.absent(f"{type(exc).__name__}: {exc}")


class _RateLimiter:
    """Process-wide token gate: 20 req / 1s and 100 req / 120s (development key limits)."""

    def __init__(self, per_sec: int = 20, per_120s: int = 100) -> None:
        self.per_sec = per_sec
        self.per_120s = per_120s
        self._q1: deque = deque()
        self._q2: deque = deque()
        self._lock = threading.Lock()

    def acquire(self) -> None:
        while True:
            wait = self._try_acquire()
            if wait <= 0:
                return
            time.sleep(min(wait, 0.1))

    def _try_acquire(self) -> float:
        now = time.monotonic()
        with self._lock:
            while self._q1 and now - self._q1[0] > 1.0:
                self._q1.popleft()
            while self._q2 and now - self._q2[0] > 120.0:
                self._q2.popleft()
            if len(self._q1) >= self.per_sec or len(self._q2) >= self.per_120s:
                t1 = (1.0 - (now - self._q1[0])) if self._q1 else 0.05
                t2 = (120.0 - (now - self._q2[0])) if self._q2 else 0.05
                return max(min(t1, t2), 0.01)
            self._q1.append(now)
            self._q2.append(now)
            return 0.0


_RATE_LIMITER = _RateLimiter()

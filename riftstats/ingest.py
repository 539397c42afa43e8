from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .aggregator import STATUS_FAILED, STATUS_PROCESSED, STATUS_SKIPPED, ProcessResult, patch_of, process_match
from .ddragon import ReferenceData, load_reference, version_for_patch
from .riot import RiotClient
from .store import Store
from .timeline import TimelineResult

logger = logging.getLogger(__name__)

ReferenceLoader = Callable[[str], ReferenceData]


class MatchUnavailableError(RuntimeError):
    """The match JSON itself could not be fetched; only this match is abandoned."""


def reference_for(match: Dict[str, Any], loader: ReferenceLoader = load_reference) -> ReferenceData:
    return loader(version_for_patch(patch_of(match.get("info") or {})))


def ingest_document(
    store: Store,
    match: Dict[str, Any],
    timeline: TimelineResult,
    tier: str,
    min_duration_s: int = 300,
    loader: ReferenceLoader = load_reference,
) -> ProcessResult:
    """Aggregate an already-fetched match (e.g. loaded from disk)."""
    return process_match(store, match, timeline, tier, reference_for(match, loader), min_duration_s)


def ingest_match(
    client: RiotClient,
    store: Store,
    match_id: str,
    tier: str,
    min_duration_s: int = 300,
    loader: ReferenceLoader = load_reference,
) -> ProcessResult:
    if store.find_scanned(match_id) is not None:
        return ProcessResult(match_id, STATUS_SKIPPED, "already scanned")
    try:
        match = client.get_match(match_id)
    except (requests.RequestException, ValueError) as exc:
        raise MatchUnavailableError(f"{match_id}: {exc}") from exc
    timeline = client.get_timeline_result(match_id)
    return ingest_document(store, match, timeline, tier, min_duration_s, loader)


def ingest_batch(
    client: RiotClient,
    store: Store,
    match_ids: Iterable[str],
    tier: str,
    concurrency: int = 3,
    min_duration_s: int = 300,
    loader: ReferenceLoader = load_reference,
    on_result: Optional[Callable[[ProcessResult], None]] = None,
) -> List[ProcessResult]:
    """Process many matches with at most ``concurrency`` in flight.

    A failing match is logged and reported as ``failed``; its siblings carry on.
    Results come back in input order.
    """
    ids = list(dict.fromkeys(match_ids))
    t0 = time.perf_counter()

    def run(mid: str) -> ProcessResult:
        try:
            res = ingest_match(client, store, mid, tier, min_duration_s, loader)
        except Exception as exc:
            logger.exception("match %s failed", mid)
            res = ProcessResult(mid, STATUS_FAILED, f"{type(exc).__name__}: {exc}")
        if on_result is not None:
            on_result(res)
        return res

    with ThreadPoolExecutor(max_workers=max(1, int(concurrency))) as pool:
        results = list(pool.map(run, ids))

    counts: Dict[str, int] = {STATUS_PROCESSED: 0, STATUS_SKIPPED: 0, STATUS_FAILED: 0}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    logger.info(
        "batch of %d matches: %d processed, %d skipped, %d failed in %.1fs",
        len(ids),
        counts[STATUS_PROCESSED],
        counts[STATUS_SKIPPED],
        counts[STATUS_FAILED],
        time.perf_counter() - t0,
    )
    return results

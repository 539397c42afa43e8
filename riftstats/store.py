from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from .buckets import (
    COUNTERS,
    FREQ_FIELDS,
    KEY_COLUMNS,
    BucketDelta,
    BucketKey,
    ScannedMatch,
    StatBucket,
)
from .config import db_path
from .freqmap import FrequencyMap, WinCount


class BucketIntegrityError(RuntimeError):
    """A write would leave a bucket with wins > matches or negative counts."""


_KEY_DDL = ",\n        ".join(f"{c} TEXT NOT NULL DEFAULT ''" for c in KEY_COLUMNS)
_KEY_LIST = ", ".join(KEY_COLUMNS)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    # one row per bucket; every counter is a plain sum
    f"""
    CREATE TABLE IF NOT EXISTS buckets (
        {_KEY_DDL},
        matches INTEGER NOT NULL DEFAULT 0,
        wins INTEGER NOT NULL DEFAULT 0,
        bans INTEGER NOT NULL DEFAULT 0,
        total_kills INTEGER NOT NULL DEFAULT 0,
        total_deaths INTEGER NOT NULL DEFAULT 0,
        total_assists INTEGER NOT NULL DEFAULT 0,
        total_damage INTEGER NOT NULL DEFAULT 0,
        total_gold INTEGER NOT NULL DEFAULT 0,
        total_cs INTEGER NOT NULL DEFAULT 0,
        total_vision INTEGER NOT NULL DEFAULT 0,
        total_duration INTEGER NOT NULL DEFAULT 0,
        total_damage_share REAL NOT NULL DEFAULT 0,
        total_gold_share REAL NOT NULL DEFAULT 0,
        total_vision_per_min REAL NOT NULL DEFAULT 0,
        total_objectives REAL NOT NULL DEFAULT 0,
        total_damage_share_sq REAL NOT NULL DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY ({_KEY_LIST}),
        CHECK (matches >= 0 AND bans >= 0 AND wins >= 0 AND wins <= matches)
    )
    """,
    # nested frequency maps (items/runes/spells/skill_order), one row per entry
    f"""
    CREATE TABLE IF NOT EXISTS bucket_freq (
        {_KEY_DDL},
        field TEXT NOT NULL,
        entry TEXT NOT NULL,
        wins INTEGER NOT NULL DEFAULT 0,
        matches INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY ({_KEY_LIST}, field, entry),
        CHECK (wins >= 0 AND wins <= matches)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_buckets_champion ON buckets(kind, champion, role, tier)
    """,
    """
    CREATE TABLE IF NOT EXISTS scanned_matches (
        match_id TEXT PRIMARY KEY,
        patch TEXT,
        tier TEXT,
        scanned_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_scanned_tier ON scanned_matches(tier)
    """,
]


def _raise_integrity(exc: sqlite3.IntegrityError, key: BucketKey) -> None:
    if "CHECK" in str(exc):
        raise BucketIntegrityError(f"bucket {key.as_tuple()} would violate wins <= matches") from exc
    raise exc


@dataclass
class Store:
    db_path: str = db_path()
    timeout_s: float = 30.0

    def __post_init__(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as con:
            cur = con.cursor()
            for stmt in SCHEMA:
                cur.execute(stmt)
            cur.execute("INSERT OR IGNORE INTO meta(key,value) VALUES('schema_version','1')")
            con.commit()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        con = sqlite3.connect(self.db_path, timeout=self.timeout_s)
        con.row_factory = sqlite3.Row
        try:
            con.execute("PRAGMA journal_mode=WAL")
            con.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.DatabaseError:
            pass
        try:
            yield con
        finally:
            con.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All-or-nothing unit of work; the write lock is taken up front."""
        with self.connect() as con:
            con.execute("BEGIN IMMEDIATE")
            try:
                yield con
            except BaseException:
                con.rollback()
                raise
            con.commit()

    # Bucket store contract
    def find_bucket(self, key: BucketKey, con: Optional[sqlite3.Connection] = None) -> Optional[StatBucket]:
        if con is None:
            with self.connect() as own:
                return self.find_bucket(key, own)
        where = " AND ".join(f"{c}=?" for c in KEY_COLUMNS)
        row = con.execute(f"SELECT * FROM buckets WHERE {where}", key.as_tuple()).fetchone()
        if row is None:
            return None
        freq_rows = con.execute(
            f"SELECT field, entry, wins, matches FROM bucket_freq WHERE {where}", key.as_tuple()
        ).fetchall()
        return _bucket_from_rows(key, row, freq_rows)

    def upsert_create(self, key: BucketKey, initial: BucketDelta, con: Optional[sqlite3.Connection] = None) -> bool:
        """Create the bucket with ``initial`` counters if absent. Returns True when created."""
        if con is None:
            with self.connect() as own:
                created = self.upsert_create(key, initial, own)
                own.commit()
                return created
        cols = list(KEY_COLUMNS) + list(initial.counters)
        vals = list(key.as_tuple()) + [initial.counters[c] for c in initial.counters]
        try:
            cur = con.execute(
                f"INSERT INTO buckets({','.join(cols)}) VALUES({','.join(['?'] * len(cols))}) "
                f"ON CONFLICT({_KEY_LIST}) DO NOTHING",
                vals,
            )
        except sqlite3.IntegrityError as exc:
            _raise_integrity(exc, key)
        created = cur.rowcount == 1
        if created:
            self._increment_freq(con, key, initial.freq)
        return created

    def upsert_increment(self, key: BucketKey, delta: BucketDelta, con: Optional[sqlite3.Connection] = None) -> None:
        """Create-or-add in one statement; never a read-modify-write."""
        if delta.key != key:
            raise ValueError("delta belongs to another bucket")
        if con is None:
            with self.connect() as own:
                self.upsert_increment(key, delta, own)
                own.commit()
                return
        counters = {c: v for c, v in delta.counters.items() if v}
        cols = list(KEY_COLUMNS) + list(counters)
        vals = list(key.as_tuple()) + list(counters.values())
        sets = [f"{c}={c}+excluded.{c}" for c in counters] + ["updated_at=datetime('now')"]
        try:
            con.execute(
                f"INSERT INTO buckets({','.join(cols)}) VALUES({','.join(['?'] * len(cols))}) "
                f"ON CONFLICT({_KEY_LIST}) DO UPDATE SET {', '.join(sets)}",
                vals,
            )
        except sqlite3.IntegrityError as exc:
            _raise_integrity(exc, key)
        self._increment_freq(con, key, delta.freq)

    def _increment_freq(self, con: sqlite3.Connection, key: BucketKey, freq: Mapping[str, FrequencyMap]) -> None:
        rows = []
        for fname, fmap in freq.items():
            for entry, wc in fmap.items():
                rows.append((*key.as_tuple(), fname, entry, wc.wins, wc.matches))
        if not rows:
            return
        try:
            con.executemany(
                f"""
                INSERT INTO bucket_freq({_KEY_LIST}, field, entry, wins, matches)
                VALUES({','.join(['?'] * (len(KEY_COLUMNS) + 4))})
                ON CONFLICT({_KEY_LIST}, field, entry) DO UPDATE SET
                    wins=wins+excluded.wins,
                    matches=matches+excluded.matches
                """,
                rows,
            )
        except sqlite3.IntegrityError as exc:
            _raise_integrity(exc, key)

    def find_scanned(self, match_id: str, con: Optional[sqlite3.Connection] = None) -> Optional[ScannedMatch]:
        if con is None:
            with self.connect() as own:
                return self.find_scanned(match_id, own)
        row = con.execute("SELECT match_id, patch, tier FROM scanned_matches WHERE match_id=?", (match_id,)).fetchone()
        return ScannedMatch(row["match_id"], row["patch"], row["tier"]) if row else None

    def create_scanned(self, record: ScannedMatch, con: Optional[sqlite3.Connection] = None) -> None:
        if con is None:
            with self.connect() as own:
                self.create_scanned(record, own)
                own.commit()
                return
        # write-once: a second insert for the same match is an error
        con.execute(
            "INSERT INTO scanned_matches(match_id, patch, tier) VALUES(?,?,?)",
            (record.match_id, record.patch, record.tier),
        )

    def apply_match(self, record: ScannedMatch, deltas: Sequence[BucketDelta]) -> bool:
        """Apply every delta of one match plus its marker atomically.

        Returns False without touching anything if the match was already scanned.
        """
        with self.transaction() as con:
            if self.find_scanned(record.match_id, con) is not None:
                return False
            for d in deltas:
                self.upsert_increment(d.key, d, con)
            self.create_scanned(record, con)
        return True

    # Queries
    def list_buckets(
        self,
        kind: str,
        champion: Optional[str] = None,
        role: Optional[str] = None,
        tiers: Optional[Iterable[str]] = None,
        with_freq: bool = False,
    ) -> List[StatBucket]:
        q = "SELECT * FROM buckets WHERE kind=?"
        params: list[Any] = [kind]
        if champion is not None:
            q += " AND champion=?"
            params.append(champion)
        if role is not None:
            q += " AND role=?"
            params.append(role)
        tier_list = list(tiers) if tiers is not None else None
        if tier_list is not None:
            if not tier_list:
                return []
            q += f" AND tier IN ({','.join(['?'] * len(tier_list))})"
            params.extend(tier_list)
        out: List[StatBucket] = []
        with self.connect() as con:
            rows = con.execute(q, params).fetchall()
            for row in rows:
                key = BucketKey(*(row[c] for c in KEY_COLUMNS))
                freq_rows: list = []
                if with_freq:
                    where = " AND ".join(f"{c}=?" for c in KEY_COLUMNS)
                    freq_rows = con.execute(
                        f"SELECT field, entry, wins, matches FROM bucket_freq WHERE {where}", key.as_tuple()
                    ).fetchall()
                out.append(_bucket_from_rows(key, row, freq_rows))
        return out

    def count_scanned(self, tiers: Optional[Iterable[str]] = None) -> int:
        q = "SELECT COUNT(1) FROM scanned_matches"
        params: list[Any] = []
        tier_list = list(tiers) if tiers is not None else None
        if tier_list is not None:
            if not tier_list:
                return 0
            q += f" WHERE tier IN ({','.join(['?'] * len(tier_list))})"
            params.extend(tier_list)
        with self.connect() as con:
            return int(con.execute(q, params).fetchone()[0])

    def get_meta(self, key: str) -> Optional[str]:
        with self.connect() as con:
            row = con.execute("SELECT value FROM meta WHERE key=?", (key,)).fetchone()
            return row[0] if row else None

    def set_meta(self, key: str, value: str) -> None:
        with self.connect() as con:
            con.execute(
                "INSERT INTO meta(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )
            con.commit()


def _bucket_from_rows(key: BucketKey, row: sqlite3.Row, freq_rows: Iterable[sqlite3.Row]) -> StatBucket:
    counters: Dict[str, float] = {c: row[c] for c in COUNTERS}
    entries: Dict[str, Dict[str, WinCount]] = {f: {} for f in FREQ_FIELDS}
    for fr in freq_rows:
        entries.setdefault(fr["field"], {})[fr["entry"]] = WinCount(int(fr["wins"]), int(fr["matches"]))
    return StatBucket(key, counters, {f: FrequencyMap(e) for f, e in entries.items()})

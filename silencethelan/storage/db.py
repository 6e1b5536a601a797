"""DuckDB storage for managed access-control rules.

The store hands out live ``Rule`` objects and tracks them by rule id, so a
rule fetched twice is the same object and pending edits survive a second
fetch. ``save()`` writes every modified rule in one transaction: either all
edits are committed, or the transaction is rolled back and the tracked
objects are restored to their last persisted values.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb

from silencethelan.errors import StoreUnavailable
from silencethelan.identity import normalize
from silencethelan.models import Rule

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_RULE_COLUMNS = (
    "rule_id, person_name, activity_name, is_selected, is_blocked, "
    "name, action, last_synced"
)

# Fields written back by save(); last_synced is stamped, not compared
_PERSISTED_FIELDS = ("person_name", "activity_name", "is_selected", "is_blocked", "name", "action")


def _snapshot(rule: Rule) -> tuple:
    return tuple(getattr(rule, f) for f in _PERSISTED_FIELDS)


def _to_utc_naive(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class RuleStore:
    """DuckDB-backed storage for managed rules."""

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        """Initialize the rule store.

        Args:
            db_path: Path to the DuckDB database file. Use ":memory:" for in-memory.
            read_only: If True, open in read-only mode.
        """
        self.db_path = db_path
        self.read_only = read_only
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        # rule_id -> (live rule, last persisted snapshot)
        self._tracked: dict[str, tuple[Rule, tuple]] = {}
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        db_str = str(self.db_path) if self.db_path != Path(":memory:") else ":memory:"
        try:
            self._conn = duckdb.connect(db_str, read_only=self.read_only)
            if not self.read_only:
                self._ensure_schema()
        except duckdb.Error as e:
            raise StoreUnavailable(f"Cannot open rule store {db_str}: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
        self._tracked.clear()

    def __enter__(self) -> "RuleStore":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get the database connection, raising if not connected."""
        if self._conn is None:
            raise StoreUnavailable("RuleStore not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def writer(self) -> Iterator["RuleStore"]:
        """Hold the single-writer lock across a fetch-mutate-save sequence.

        The lock is re-entrant; save() and the mutating helpers take it too.
        """
        with self._lock:
            yield self

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        result = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current_version = result[0] if result and result[0] else 0

        if current_version < SCHEMA_VERSION:
            self._apply_schema()
            self.conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                [SCHEMA_VERSION]
            )

    def _apply_schema(self) -> None:
        """Apply the database schema."""
        # Insertion order is the order callers see rules in
        self.conn.execute("CREATE SEQUENCE IF NOT EXISTS rule_seq START 1")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS rules (
                rule_id VARCHAR PRIMARY KEY,
                seq BIGINT DEFAULT nextval('rule_seq'),
                person_name VARCHAR NOT NULL,
                activity_name VARCHAR NOT NULL,
                is_selected BOOLEAN NOT NULL DEFAULT FALSE,
                is_blocked BOOLEAN NOT NULL DEFAULT FALSE,
                name VARCHAR,
                action VARCHAR NOT NULL DEFAULT 'BLOCK',
                last_synced TIMESTAMP NOT NULL  -- UTC, naive
            )
        """)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, predicate: Optional[Callable[[Rule], bool]] = None) -> list[Rule]:
        """Fetch rules in insertion order, optionally filtered by a predicate.

        Raises:
            StoreUnavailable: If the database cannot be read
        """
        with self._lock:
            try:
                rows = self.conn.execute(
                    f"SELECT {_RULE_COLUMNS} FROM rules ORDER BY seq"
                ).fetchall()
            except duckdb.Error as e:
                raise StoreUnavailable(f"Failed to fetch rules: {e}") from e

            rules = [self._track(row) for row in rows]

        if predicate is None:
            return rules
        return [rule for rule in rules if predicate(rule)]

    def fetch_selected(self) -> list[Rule]:
        """Fetch all rules currently managed by the app."""
        return self.fetch(lambda rule: rule.is_selected)

    def get(self, rule_id: str) -> Optional[Rule]:
        """Fetch a single rule by id, or None."""
        for rule in self.fetch(lambda r: r.rule_id == rule_id):
            return rule
        return None

    def _track(self, row: tuple) -> Rule:
        """Return the live object for a row, refreshing it unless it has pending edits."""
        fresh = Rule(
            rule_id=row[0],
            person_name=row[1],
            activity_name=row[2],
            is_selected=row[3],
            is_blocked=row[4],
            name=row[5],
            action=row[6],
            last_synced=row[7].replace(tzinfo=timezone.utc),
        )

        entry = self._tracked.get(fresh.rule_id)
        if entry is None:
            self._tracked[fresh.rule_id] = (fresh, _snapshot(fresh))
            return fresh

        live, persisted = entry
        if _snapshot(live) != persisted:
            # Pending edits win until save() or discard()
            return live

        for f in _PERSISTED_FIELDS + ("last_synced",):
            setattr(live, f, getattr(fresh, f))
        self._tracked[live.rule_id] = (live, _snapshot(live))
        return live

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def has_changes(self) -> bool:
        return any(_snapshot(rule) != persisted for rule, persisted in self._tracked.values())

    def save(self) -> int:
        """Persist every modified tracked rule in a single transaction.

        Returns:
            Number of rules written

        Raises:
            StoreUnavailable: If the write fails. Nothing is committed and
                the tracked rules are restored to their persisted values.
        """
        with self._lock:
            dirty = [
                rule
                for rule, persisted in self._tracked.values()
                if _snapshot(rule) != persisted
            ]
            if not dirty:
                return 0

            now = datetime.now(timezone.utc)
            try:
                self.conn.begin()
                for rule in dirty:
                    self._write_rule(rule, now)
                self.conn.commit()
            except duckdb.Error as e:
                logger.error(f"Rule save failed, rolling back {len(dirty)} change(s): {e}")
                self._rollback()
                raise StoreUnavailable(f"Failed to save rules: {e}") from e

            for rule in dirty:
                rule.last_synced = now
                self._tracked[rule.rule_id] = (rule, _snapshot(rule))

            logger.debug(f"Saved {len(dirty)} rule(s)")
            return len(dirty)

    def discard(self) -> None:
        """Drop pending edits, restoring tracked rules to their persisted values."""
        with self._lock:
            for rule, persisted in self._tracked.values():
                for f, value in zip(_PERSISTED_FIELDS, persisted):
                    setattr(rule, f, value)

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except duckdb.Error as e:
            # No open transaction (begin itself failed)
            logger.debug(f"Rollback skipped: {e}")
        self.discard()

    def _write_rule(self, rule: Rule, synced_at: datetime) -> None:
        self.conn.execute("""
            UPDATE rules SET
                person_name = ?,
                activity_name = ?,
                is_selected = ?,
                is_blocked = ?,
                name = ?,
                action = ?,
                last_synced = ?
            WHERE rule_id = ?
        """, [
            rule.person_name,
            rule.activity_name,
            rule.is_selected,
            rule.is_blocked,
            rule.name,
            rule.action,
            _to_utc_naive(synced_at),
            rule.rule_id,
        ])

    def add_rule(self, rule: Rule) -> str:
        """Insert a rule, or replace the stored fields of an existing rule id.

        Returns:
            The rule id
        """
        return self.add_rules([rule])[0]

    def add_rules(self, rules: list[Rule]) -> list[str]:
        """Insert or replace several rules in one transaction."""
        with self._lock:
            try:
                self.conn.begin()
                for rule in rules:
                    self.conn.execute("""
                        INSERT INTO rules (
                            rule_id, person_name, activity_name, is_selected,
                            is_blocked, name, action, last_synced
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT (rule_id) DO UPDATE SET
                            person_name = EXCLUDED.person_name,
                            activity_name = EXCLUDED.activity_name,
                            is_selected = EXCLUDED.is_selected,
                            is_blocked = EXCLUDED.is_blocked,
                            name = EXCLUDED.name,
                            action = EXCLUDED.action,
                            last_synced = EXCLUDED.last_synced
                    """, [
                        rule.rule_id,
                        rule.person_name,
                        rule.activity_name,
                        rule.is_selected,
                        rule.is_blocked,
                        rule.name,
                        rule.action,
                        _to_utc_naive(rule.last_synced),
                    ])
                self.conn.commit()
            except duckdb.Error as e:
                self._rollback()
                raise StoreUnavailable(f"Failed to add rules: {e}") from e

            # Stored values replace whatever was tracked for these ids
            for rule in rules:
                self._tracked.pop(rule.rule_id, None)

        logger.info(f"Stored {len(rules)} rule(s)")
        return [rule.rule_id for rule in rules]

    def remove_rule(self, rule_id: str) -> bool:
        """Delete a rule. Returns True if a rule was removed."""
        with self._lock:
            try:
                result = self.conn.execute(
                    "DELETE FROM rules WHERE rule_id = ? RETURNING rule_id", [rule_id]
                ).fetchall()
            except duckdb.Error as e:
                raise StoreUnavailable(f"Failed to remove rule {rule_id}: {e}") from e
            self._tracked.pop(rule_id, None)
        return len(result) > 0

    def set_selected(self, rule_id: str, selected: bool) -> bool:
        """Add a rule to, or drop it from, the managed set.

        Returns:
            True if the rule exists
        """
        with self._lock:
            rule = self.get(rule_id)
            if rule is None:
                return False
            rule.is_selected = selected
            self.save()
        return True

    def get_stats(self) -> dict:
        """Get rule counts for display."""
        try:
            result = self.conn.execute("""
                SELECT
                    COUNT(*),
                    COALESCE(SUM(CASE WHEN is_selected THEN 1 ELSE 0 END), 0),
                    COALESCE(SUM(CASE WHEN is_selected AND is_blocked THEN 1 ELSE 0 END), 0)
                FROM rules
            """).fetchone()
            names = self.conn.execute(
                "SELECT DISTINCT person_name FROM rules WHERE is_selected"
            ).fetchall()
        except duckdb.Error as e:
            raise StoreUnavailable(f"Failed to read rule stats: {e}") from e

        total, selected, blocked = result if result else (0, 0, 0)
        # Person keys fold with normalize(), same as the catalog
        persons = len({normalize(name) for (name,) in names})
        return {
            "total_rules": total,
            "selected_rules": selected,
            "blocked_rules": blocked,
            "persons": persons,
        }

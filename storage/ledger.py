"""
SQLite-backed contribution ledger.
Stores accumulated Action totals keyed by (developer, resource, action type) and the
calibrated category/type weights. One connection is shared between threads and
guarded by a re-entrant lock; every write is a single atomic statement.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from typing import Optional, Any, Dict, List, Iterable, Union

from actions.models import Action, ActionCategory, ActionType
from errors import InvariantViolation

logger = logging.getLogger(__name__)

DB_PATH = None  # can be overridden by caller

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS contrib_action (
    developer_id TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    action_type TEXT NOT NULL,
    category TEXT NOT NULL,
    total INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (developer_id, resource_id, action_type)
);
CREATE INDEX IF NOT EXISTS idx_contrib_action_resource ON contrib_action (resource_id, category);
CREATE TABLE IF NOT EXISTS contrib_weight (
    weight_key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    weight REAL NOT NULL,
    updated REAL NOT NULL
);
"""

# noinspection SqlResolve
SQL_UPSERT = """
INSERT INTO contrib_action (developer_id, resource_id, action_type, category, total)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (developer_id, resource_id, action_type)
DO UPDATE SET total = total + excluded.total
"""

WeightTarget = Union[ActionCategory, ActionType]


def weight_key(target: WeightTarget) -> str:
    if isinstance(target, ActionCategory):
        return f"category:{target.value}"
    if isinstance(target, ActionType):
        return f"type:{target.name}"
    raise InvariantViolation(f"Cannot resolve a weight for {target!r}")


def _action_type(mnemonic: str) -> Optional[ActionType]:
    at = ActionType.from_mnemonic(mnemonic)
    if at is None:
        logger.warning("Ignoring ledger row with unknown action type %r", mnemonic)
    return at


class ContributionLedger:
    def __init__(self, path: Optional[str] = None):
        """Open (or create) a ledger.

        :param path: SQLite file path or None for in-memory. An existing file is
            resumed as-is, nothing is recomputed.
        """
        self.path = path or DB_PATH or ':memory:'
        # autocommit mode; transactions are opened explicitly by transaction()/savepoint()
        self.conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._sp_counter = 0
        self._init_db()

    def _init_db(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.executescript(SQL_CREATE)

    def close(self):
        with self._lock:
            if self.conn is not None:
                try:
                    self.conn.close()
                finally:
                    self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- transactions ---

    @contextmanager
    def transaction(self):
        """Group writes into one atomic unit. Nested calls join the outer transaction.

        The lock is held for the whole block, so a resource's writes never interleave
        with another resource's writes.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            if outermost:
                self.conn.execute('BEGIN IMMEDIATE')
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if outermost:
                    self.conn.execute('ROLLBACK')
                raise
            else:
                self._tx_depth -= 1
                if outermost:
                    self.conn.execute('COMMIT')

    @contextmanager
    def savepoint(self):
        """Scope a single update: on error only the work inside the block is undone."""
        with self._lock:
            self._sp_counter += 1
            name = f"sp_{self._sp_counter}"
            self.conn.execute(f'SAVEPOINT {name}')
            try:
                yield self
            except BaseException:
                self.conn.execute(f'ROLLBACK TO {name}')
                self.conn.execute(f'RELEASE {name}')
                raise
            else:
                self.conn.execute(f'RELEASE {name}')

    # --- actions ---

    def upsert(self, developer_id: str, resource_id: str, action_type: ActionType, delta: int) -> int:
        """Add delta to the action's running total, creating the row on first use.

        Returns the total after the update.
        """
        if not isinstance(action_type, ActionType):
            raise InvariantViolation(f"Unknown action type {action_type!r}")
        if not developer_id:
            raise InvariantViolation(f"Action {action_type.name} on {resource_id} has no developer")
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(SQL_UPSERT, (developer_id, str(resource_id), action_type.name, action_type.category.value, int(delta)))
            cur.execute(
                'SELECT total FROM contrib_action WHERE developer_id = ? AND resource_id = ? AND action_type = ?',
                (developer_id, str(resource_id), action_type.name),
            )
            return int(cur.fetchone()[0])

    def get_action(self, developer_id: str, resource_id: str, action_type: ActionType) -> Optional[Action]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                'SELECT total FROM contrib_action WHERE developer_id = ? AND resource_id = ? AND action_type = ?',
                (developer_id, str(resource_id), action_type.name),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Action(developer_id, str(resource_id), action_type, int(row[0]))

    def actions_for_resource(self, resource_id: str, category: Optional[ActionCategory] = None) -> List[Action]:
        sql = 'SELECT developer_id, action_type, total FROM contrib_action WHERE resource_id = ?'
        params: List[Any] = [str(resource_id)]
        if category is not None:
            sql += ' AND category = ?'
            params.append(category.value)
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(sql + ' ORDER BY developer_id, action_type', params)
            rows = cur.fetchall()
        actions = []
        for dev, mnemonic, total in rows:
            at = _action_type(mnemonic)
            if at is not None:
                actions.append(Action(dev, str(resource_id), at, int(total)))
        return actions

    def exists(self, resource_id: str, category: ActionCategory) -> bool:
        """True once any action references the resource within the category."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT 1 FROM contrib_action WHERE resource_id = ? AND category = ? LIMIT 1', (str(resource_id), category.value))
            return cur.fetchone() is not None

    # --- aggregates ---

    def total_actions(self) -> int:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COALESCE(SUM(total), 0) FROM contrib_action')
            return int(cur.fetchone()[0])

    def total_actions_per_category(self, category: ActionCategory) -> int:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COALESCE(SUM(total), 0) FROM contrib_action WHERE category = ?', (category.value,))
            return int(cur.fetchone()[0])

    def total_actions_per_type(self, action_type: ActionType) -> int:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COALESCE(SUM(total), 0) FROM contrib_action WHERE action_type = ?', (action_type.name,))
            return int(cur.fetchone()[0])

    def total_actions_per_type_per_developer(self, action_type: ActionType, developer_id: str) -> int:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                'SELECT COALESCE(SUM(total), 0) FROM contrib_action WHERE action_type = ? AND developer_id = ?',
                (action_type.name, developer_id),
            )
            return int(cur.fetchone()[0])

    def developer_totals(self, developer_id: str) -> Dict[ActionType, int]:
        """Per-type totals for one developer, summed over all resources."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                'SELECT action_type, SUM(total) FROM contrib_action WHERE developer_id = ? GROUP BY action_type',
                (developer_id,),
            )
            rows = cur.fetchall()
        totals: Dict[ActionType, int] = {}
        for mnemonic, total in rows:
            at = _action_type(mnemonic)
            if at is not None:
                totals[at] = int(total or 0)
        return totals

    def type_totals(self) -> Dict[ActionType, int]:
        """Global per-type totals read in one statement, so they are mutually consistent."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT action_type, SUM(total) FROM contrib_action GROUP BY action_type')
            rows = cur.fetchall()
        totals: Dict[ActionType, int] = {}
        for mnemonic, total in rows:
            at = _action_type(mnemonic)
            if at is not None:
                totals[at] = int(total or 0)
        return totals

    def developers(self) -> List[str]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT DISTINCT developer_id FROM contrib_action ORDER BY developer_id')
            return [r[0] for r in cur.fetchall()]

    # --- weights ---

    def get_weight(self, target: WeightTarget) -> Optional[float]:
        key = weight_key(target)
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT weight FROM contrib_weight WHERE weight_key = ?', (key,))
            row = cur.fetchone()
        return float(row[0]) if row else None

    def set_weight(self, target: WeightTarget, value: float):
        """Overwrite a weight. Only the calibrator is expected to call this."""
        key = weight_key(target)
        kind = 'category' if isinstance(target, ActionCategory) else 'type'
        with self._lock:
            self.conn.execute('REPLACE INTO contrib_weight (weight_key, kind, weight, updated) VALUES (?, ?, ?, ?)',
                              (key, kind, float(value), time.time()))

    def weights(self) -> Dict[str, float]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT weight_key, weight FROM contrib_weight ORDER BY weight_key')
            return {k: float(w) for k, w in cur.fetchall()}

    # --- cleanup ---

    def delete_resource_actions(self, resource_ids: Iterable[str], category: ActionCategory) -> int:
        """Delete every action keyed to the given resources within a category. Returns rows deleted."""
        ids = [(str(r), category.value) for r in resource_ids]
        if not ids:
            return 0
        with self._lock:
            before = self.conn.total_changes
            self.conn.executemany('DELETE FROM contrib_action WHERE resource_id = ? AND category = ?', ids)
            return self.conn.total_changes - before

    # noinspection SqlWithoutWhere
    def clear_weights(self) -> int:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('DELETE FROM contrib_weight')
            return cur.rowcount

    # noinspection SqlWithoutWhere
    def clear(self):
        """Remove every action and weight row."""
        with self._lock:
            self.conn.execute('DELETE FROM contrib_action')
            self.conn.execute('DELETE FROM contrib_weight')

    def stats(self) -> Dict[str, Any]:
        """Return row counts and the global action total."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COUNT(1), COUNT(DISTINCT developer_id), COUNT(DISTINCT resource_id) FROM contrib_action')
            rows, developers, resources = cur.fetchone()
            cur.execute('SELECT COUNT(1) FROM contrib_weight')
            weights = cur.fetchone()[0]
        return {
            'path': self.path,
            'actions': int(rows or 0),
            'developers': int(developers or 0),
            'resources': int(resources or 0),
            'weights': int(weights or 0),
            'total_actions': self.total_actions(),
        }


__all__ = ["ContributionLedger", "weight_key"]

"""SQLite-backed AlertStore.

The active-alert invariant is a partial unique index on
``(site_id, rule_type) WHERE is_active = 1``, so the database itself
rejects a second active alert even if two writers race.

sqlite3 is blocking: every statement runs in a worker thread via
asyncio.to_thread, serialized by an asyncio.Lock.  Any sqlite3 failure
other than the uniqueness violation surfaces as StoreUnavailable.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from farm_alert.domain.alert import Alert, AlertDraft
from farm_alert.domain.enums import RuleType, Severity
from farm_alert.domain.errors import ConflictError, StoreUnavailable
from farm_alert.foundation.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"

_COLUMNS = (
    "alert_id, site_id, owner_id, rule_type, severity, title, description, "
    "recommendation, is_active, triggered_at, acknowledged_at, source_snapshot_id, "
    "affected_crops, estimated_savings"
)


def _ts(value: datetime) -> str:
    # Fixed-width UTC text so string comparison matches time order
    return ensure_utc(value).strftime(_TS_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


class SqliteAlertStore:
    """AlertStore persisted in a SQLite database file.

    Args:
        path: Database file path, or ``":memory:"``.
        clock: Source of "now" for triggered_at, acknowledged_at and TTL math.
    """

    def __init__(self, path: str, clock: Clock = utc_now) -> None:
        self._path = path
        self._clock = clock
        self._lock = asyncio.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self._create_tables()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Cannot open alert database {path!r}: {exc}") from exc

    def _create_tables(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS alerts (
                alert_id TEXT PRIMARY KEY,
                site_id TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                rule_type TEXT NOT NULL,
                severity TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                recommendation TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                triggered_at TEXT NOT NULL,
                acknowledged_at TEXT,
                source_snapshot_id TEXT,
                affected_crops TEXT NOT NULL DEFAULT '[]',
                estimated_savings REAL NOT NULL DEFAULT 0
            )
            """
        )
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_alerts_active_pair "
            "ON alerts(site_id, rule_type) WHERE is_active = 1"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_alerts_pair_triggered "
            "ON alerts(site_id, rule_type, triggered_at)"
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_alerts_owner ON alerts(owner_id)")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ── Lookups ──────────────────────────────────────────────────────────

    async def find_active(self, site_id: str, rule_type: RuleType) -> Alert | None:
        rows = await self._query(
            f"SELECT {_COLUMNS} FROM alerts "
            "WHERE site_id = ? AND rule_type = ? AND is_active = 1",
            (site_id, rule_type.value),
        )
        return self._row_to_alert(rows[0]) if rows else None

    async def find_recently_triggered(
        self, site_id: str, rule_type: RuleType, within: timedelta,
    ) -> Alert | None:
        cutoff = _ts(self._clock() - within)
        rows = await self._query(
            f"SELECT {_COLUMNS} FROM alerts "
            "WHERE site_id = ? AND rule_type = ? AND triggered_at >= ? "
            "ORDER BY triggered_at DESC LIMIT 1",
            (site_id, rule_type.value, cutoff),
        )
        return self._row_to_alert(rows[0]) if rows else None

    async def get(self, alert_id: UUID) -> Alert | None:
        rows = await self._query(
            f"SELECT {_COLUMNS} FROM alerts WHERE alert_id = ?", (str(alert_id),),
        )
        return self._row_to_alert(rows[0]) if rows else None

    async def list_for_owner(
        self, owner_id: str, limit: int = 50, active_only: bool = False,
    ) -> list[Alert]:
        sql = f"SELECT {_COLUMNS} FROM alerts WHERE owner_id = ?"
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY triggered_at DESC LIMIT ?"
        rows = await self._query(sql, (owner_id, limit))
        return [self._row_to_alert(r) for r in rows]

    # ── Mutations ────────────────────────────────────────────────────────

    async def insert(self, draft: AlertDraft) -> Alert:
        alert = Alert(
            **draft.model_dump(),
            alert_id=uuid4(),
            is_active=True,
            triggered_at=self._clock(),
        )
        params = (
            str(alert.alert_id),
            alert.site_id,
            alert.owner_id,
            alert.rule_type.value,
            alert.severity.value,
            alert.title,
            alert.description,
            alert.recommendation,
            1,
            _ts(alert.triggered_at),
            None,
            str(alert.source_snapshot_id) if alert.source_snapshot_id else None,
            json.dumps(alert.affected_crops),
            alert.estimated_savings,
        )
        placeholders = ", ".join("?" * len(params))

        def _insert() -> None:
            try:
                self._conn.execute(
                    f"INSERT INTO alerts ({_COLUMNS}) VALUES ({placeholders})",
                    params,
                )
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ConflictError(draft.site_id, draft.rule_type.value) from exc

        await self._run(_insert)
        logger.debug("Inserted alert %s", alert.summary())
        # Round-trip through the fixed-width format so callers see stored precision
        return alert.model_copy(update={"triggered_at": _parse_ts(params[9])})

    async def deactivate_older_than(self, ttl: timedelta) -> int:
        cutoff = _ts(self._clock() - ttl)
        changed = await self._execute(
            "UPDATE alerts SET is_active = 0 WHERE is_active = 1 AND triggered_at < ?",
            (cutoff,),
        )
        if changed:
            logger.info("Deactivated %d alert(s) older than %s", changed, ttl)
        return changed

    async def acknowledge(self, alert_id: UUID, owner_id: str) -> bool:
        changed = await self._execute(
            "UPDATE alerts SET acknowledged_at = ?, is_active = 0 "
            "WHERE alert_id = ? AND owner_id = ? AND acknowledged_at IS NULL",
            (_ts(self._clock()), str(alert_id), owner_id),
        )
        return changed > 0

    # ── Internals ────────────────────────────────────────────────────────

    async def _run(self, fn: Callable[[], T]) -> T:
        async with self._lock:
            try:
                return await asyncio.to_thread(fn)
            except ConflictError:
                raise
            except sqlite3.Error as exc:
                raise StoreUnavailable(f"Alert database error: {exc}") from exc

    async def _query(self, sql: str, params: tuple[Any, ...]) -> list[tuple]:
        return await self._run(lambda: self._conn.execute(sql, params).fetchall())

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        def _write() -> int:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
            return cur.rowcount

        return await self._run(_write)

    @staticmethod
    def _row_to_alert(row: tuple) -> Alert:
        (alert_id, site_id, owner_id, rule_type, severity, title, description,
         recommendation, is_active, triggered_at, acknowledged_at, snapshot_id,
         crops, savings) = row
        return Alert(
            alert_id=UUID(alert_id),
            site_id=site_id,
            owner_id=owner_id,
            rule_type=RuleType(rule_type),
            severity=Severity(severity),
            title=title,
            description=description,
            recommendation=recommendation,
            is_active=bool(is_active),
            triggered_at=_parse_ts(triggered_at),
            acknowledged_at=_parse_ts(acknowledged_at),
            source_snapshot_id=UUID(snapshot_id) if snapshot_id else None,
            affected_crops=json.loads(crops),
            estimated_savings=savings,
        )

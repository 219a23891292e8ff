from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from quick_delivery.models import ConfigEntity, DeliveryResult


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class ConfigStore(AbstractContextManager["ConfigStore"]):
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Batch runs may use the store from worker threads; every access holds _lock.
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS platform_configs (
                    platform_code TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS delivery_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    platform_code TEXT,
                    started_at TEXT NOT NULL,
                    ended_at TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    total_scanned INTEGER,
                    skipped_count INTEGER,
                    success_count INTEGER,
                    failed_count INTEGER,
                    error_kind TEXT,
                    error_message TEXT,
                    remark TEXT
                )
                """
            )

    def load_by_platform_code(self, platform_code: str) -> ConfigEntity | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT platform_code, payload, updated_at FROM platform_configs WHERE platform_code = ?",
                (platform_code,),
            ).fetchone()
        if row is None:
            return None
        return ConfigEntity(
            platform_code=str(row["platform_code"]),
            payload=json.loads(row["payload"]),
            updated_at=str(row["updated_at"]),
        )

    def save_config(
        self,
        platform_code: str,
        payload: dict[str, Any],
        updated_at_utc: str | None = None,
    ) -> None:
        updated_at = updated_at_utc or _utc_now_iso()
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO platform_configs (platform_code, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(platform_code) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (platform_code, json.dumps(payload, ensure_ascii=False), updated_at),
            )

    def list_platform_codes(self) -> list[str]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT platform_code FROM platform_configs ORDER BY platform_code"
            ).fetchall()
        return [str(row["platform_code"]) for row in rows]

    def log_delivery(self, result: DeliveryResult) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO delivery_logs (
                    platform_code, started_at, ended_at, success, total_scanned,
                    skipped_count, success_count, failed_count, error_kind,
                    error_message, remark
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.platform.code if result.platform else None,
                    result.started_at.isoformat(),
                    result.ended_at.isoformat(),
                    int(result.success),
                    result.total_scanned,
                    result.skipped_count,
                    result.success_count,
                    result.failed_count,
                    result.error_kind.value if result.error_kind else None,
                    result.error_message,
                    result.remark,
                ),
            )

    def count_delivery_logs(self, platform_code: str | None = None) -> int:
        query = "SELECT COUNT(*) AS c FROM delivery_logs"
        params: tuple[str, ...] = ()
        if platform_code is not None:
            query += " WHERE platform_code = ?"
            params = (platform_code,)
        with self._lock:
            row = self.conn.execute(query, params).fetchone()
        return int(row["c"]) if row else 0

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

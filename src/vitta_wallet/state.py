from __future__ import annotations

import json
import logging
import shutil
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .models import Card, MuteState, Reminder, ReminderStatus


logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WalletStore:
    """
    Local persistence for cards, planned reminders and mute state (one SQLite file).

    Every write runs in its own transaction: a failed reminder upsert rolls back and leaves the
    previously stored schedule untouched, and since planning is idempotent the caller can retry.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._backup_path = self.db_path.with_name(self.db_path.name + ".bak")

        self._conn = self._open_or_restore()
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._ensure_schema()

        self._maybe_backup(if_missing=True)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "WalletStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- file health -------------------------------------------------------

    def _open_or_restore(self) -> sqlite3.Connection:
        """
        Open the DB. If it's unreadable, move it aside and fall back to the last backup.

        Reminders are derived data, so even a fresh DB is recoverable by re-planning; cards are the
        part worth restoring.
        """
        if self.db_path.exists():
            try:
                conn = sqlite3.connect(self.db_path)
                if self._connection_is_healthy(conn):
                    return conn
                conn.close()
                raise sqlite3.DatabaseError("SQLite quick_check failed")
            except sqlite3.DatabaseError as e:
                logger.warning("Wallet DB appears corrupted; attempting restore from backup. (%s)", e)
                self._quarantine_db_files()

                if self._backup_path.exists():
                    try:
                        shutil.copy2(self._backup_path, self.db_path)
                        conn = sqlite3.connect(self.db_path)
                        if self._connection_is_healthy(conn):
                            logger.warning("Restored wallet DB from backup: %s", self._backup_path)
                            return conn
                        conn.close()
                    except (OSError, sqlite3.DatabaseError):
                        logger.warning("Failed to restore wallet DB from backup; creating a fresh DB.", exc_info=True)
                else:
                    logger.warning("No wallet DB backup found; creating a fresh DB.")

        return sqlite3.connect(self.db_path)

    def _connection_is_healthy(self, conn: sqlite3.Connection) -> bool:
        try:
            _ = conn.execute("PRAGMA schema_version;").fetchone()
            row = conn.execute("PRAGMA quick_check;").fetchone()
            return bool(row and row[0] == "ok")
        except sqlite3.DatabaseError:
            return False

    def _quarantine_db_files(self) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        for p in (self.db_path, Path(str(self.db_path) + "-wal"), Path(str(self.db_path) + "-shm")):
            try:
                if p.exists():
                    p.replace(p.with_name(p.name + f".corrupt-{stamp}"))
            except OSError:
                logger.debug("Failed to quarantine path=%s", p, exc_info=True)

    def _maybe_backup(self, *, if_missing: bool) -> None:
        if if_missing and self._backup_path.exists():
            return
        try:
            self.backup()
        except (OSError, sqlite3.Error):
            logger.debug("Failed to write wallet DB backup.", exc_info=True)

    def backup(self) -> None:
        """Write/refresh `<db_path>.bak` using SQLite's online backup API."""
        tmp = self._backup_path.with_name(self._backup_path.name + ".tmp")
        if tmp.exists():
            tmp.unlink()

        dst = sqlite3.connect(tmp)
        try:
            self._conn.backup(dst)
            dst.commit()
        finally:
            dst.close()

        tmp.replace(self._backup_path)

    def _migrate_reminder_mutes(self) -> None:
        """Older DBs keyed mutes on user_id alone; rebuild with a per-card key ('' = every card)."""
        cols = {row[1] for row in self._conn.execute("PRAGMA table_info(reminder_mutes);").fetchall()}
        if not cols or "card_key" in cols:
            return
        logger.info("Migrating reminder_mutes to per-card mutes")
        self._conn.execute("ALTER TABLE reminder_mutes RENAME TO reminder_mutes_old;")
        self._conn.execute(
            """
            CREATE TABLE reminder_mutes (
              user_id TEXT NOT NULL,
              card_key TEXT NOT NULL DEFAULT '',
              muted INTEGER NOT NULL,
              muted_until TEXT,
              updated_at TEXT NOT NULL,
              PRIMARY KEY (user_id, card_key)
            );
            """
        )
        self._conn.execute(
            """
            INSERT INTO reminder_mutes(user_id, card_key, muted, muted_until, updated_at)
            SELECT user_id, '', muted, muted_until, updated_at FROM reminder_mutes_old;
            """
        )
        self._conn.execute("DROP TABLE reminder_mutes_old;")

    def _ensure_schema(self) -> None:
        with self._conn:
            self._migrate_reminder_mutes()
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cards (
                  user_id TEXT NOT NULL,
                  card_key TEXT NOT NULL,
                  payload TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  PRIMARY KEY (user_id, card_key)
                );
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                  key TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  card_key TEXT NOT NULL,
                  reminder_type TEXT NOT NULL,
                  due_date TEXT NOT NULL,
                  target_datetime TEXT NOT NULL,
                  lead_time_days INTEGER NOT NULL,
                  status TEXT NOT NULL DEFAULT 'scheduled',
                  priority INTEGER NOT NULL DEFAULT 0,
                  payload TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS reminders_user_target_idx ON reminders (user_id, target_datetime);"
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reminder_mutes (
                  user_id TEXT NOT NULL,
                  card_key TEXT NOT NULL DEFAULT '',
                  muted INTEGER NOT NULL,
                  muted_until TEXT,
                  updated_at TEXT NOT NULL,
                  PRIMARY KEY (user_id, card_key)
                );
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  kind TEXT NOT NULL,
                  started_at TEXT NOT NULL,
                  finished_at TEXT,
                  ok INTEGER,
                  message TEXT
                );
                """
            )

    # -- cards -------------------------------------------------------------

    def upsert_cards(self, user_id: str, cards: Iterable[Card]) -> int:
        _require_user(user_id)
        now = _utc_now()
        known = {
            row["card_key"]: Card.model_validate_json(row["payload"]).created_at
            for row in self._conn.execute("SELECT card_key, payload FROM cards WHERE user_id = ?;", (user_id,))
        }
        rows = []
        for card in cards:
            if card.created_at is None:
                # Re-imports keep the first creation time (it breaks reward ties).
                created = known.get(card.card_key()) or datetime.now(timezone.utc)
                card = card.model_copy(update={"created_at": created})
            rows.append((user_id, card.card_key(), card.model_dump_json(), now, now))

        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO cards(user_id, card_key, payload, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, card_key) DO UPDATE SET
                  payload = excluded.payload,
                  updated_at = excluded.updated_at;
                """,
                rows,
            )
        logger.info("Stored %d cards for user=%s", len(rows), user_id)
        return len(rows)

    def get_user_cards(self, user_id: str) -> list[Card]:
        _require_user(user_id)
        rows = self._conn.execute(
            "SELECT payload FROM cards WHERE user_id = ? ORDER BY created_at, rowid;",
            (user_id,),
        ).fetchall()
        return [Card.model_validate_json(row["payload"]) for row in rows]

    def delete_card(self, user_id: str, card_key: str) -> bool:
        _require_user(user_id)
        with self._conn:
            cur = self._conn.execute(
                "DELETE FROM cards WHERE user_id = ? AND card_key = ?;",
                (user_id, card_key),
            )
            self._conn.execute(
                "DELETE FROM reminders WHERE user_id = ? AND card_key = ?;",
                (user_id, card_key),
            )
            self._conn.execute(
                "DELETE FROM reminder_mutes WHERE user_id = ? AND card_key = ?;",
                (user_id, card_key),
            )
        return cur.rowcount > 0

    # -- reminders ---------------------------------------------------------

    def upsert_reminders(self, user_id: str, reminders: Sequence[Reminder]) -> int:
        """
        Insert or refresh planned reminders, keyed by `Reminder.reminder_key()`.

        An existing row keeps its status, so a reminder already sent this cycle is not re-armed by
        re-planning.
        """
        _require_user(user_id)
        now = _utc_now()
        rows = []
        for r in reminders:
            if r.user_id != user_id:
                r = r.model_copy(update={"user_id": user_id})
            rows.append(
                (
                    r.reminder_key(),
                    user_id,
                    r.card_key,
                    r.reminder_type,
                    r.due_date.isoformat(),
                    r.target_datetime.isoformat(),
                    r.lead_time_days,
                    r.status,
                    r.priority,
                    r.payload.model_dump_json(),
                    now,
                    now,
                )
            )

        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO reminders(
                  key, user_id, card_key, reminder_type, due_date, target_datetime,
                  lead_time_days, status, priority, payload, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                  target_datetime = CASE WHEN reminders.status = 'snoozed'
                                         THEN reminders.target_datetime
                                         ELSE excluded.target_datetime END,
                  priority = excluded.priority,
                  payload = excluded.payload,
                  updated_at = excluded.updated_at;
                """,
                rows,
            )
        return len(rows)

    def prune_scheduled_reminders(self, user_id: str, keep_keys: Iterable[str]) -> int:
        """Drop still-scheduled reminders that the latest plan no longer contains."""
        _require_user(user_id)
        keep = set(keep_keys)
        rows = self._conn.execute(
            "SELECT key FROM reminders WHERE user_id = ? AND status = 'scheduled';",
            (user_id,),
        ).fetchall()
        stale = [(row["key"],) for row in rows if row["key"] not in keep]
        if stale:
            with self._conn:
                self._conn.executemany("DELETE FROM reminders WHERE key = ?;", stale)
        return len(stale)

    def list_reminders(
        self,
        user_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Sequence[ReminderStatus] = ("scheduled",),
        limit: int = 100,
    ) -> list[Reminder]:
        _require_user(user_id)
        query = "SELECT * FROM reminders WHERE user_id = ?"
        params: list[object] = [user_id]
        if statuses:
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        if start is not None:
            query += " AND target_datetime >= ?"
            params.append(start.isoformat())
        if end is not None:
            query += " AND target_datetime <= ?"
            params.append(end.isoformat())
        query += " ORDER BY target_datetime, card_key, lead_time_days LIMIT ?;"
        params.append(limit)

        return [_row_to_reminder(row) for row in self._conn.execute(query, params).fetchall()]

    def update_reminder_status(
        self,
        key: str,
        status: ReminderStatus,
        *,
        target_datetime: Optional[datetime] = None,
    ) -> bool:
        now = _utc_now()
        with self._conn:
            if target_datetime is None:
                cur = self._conn.execute(
                    "UPDATE reminders SET status = ?, updated_at = ? WHERE key = ?;",
                    (status, now, key),
                )
            else:
                cur = self._conn.execute(
                    "UPDATE reminders SET status = ?, target_datetime = ?, updated_at = ? WHERE key = ?;",
                    (status, target_datetime.isoformat(), now, key),
                )
        return cur.rowcount > 0

    def snooze_reminder(self, key: str, until: datetime) -> bool:
        return self.update_reminder_status(key, "snoozed", target_datetime=until)

    def delete_reminder(self, key: str) -> bool:
        with self._conn:
            cur = self._conn.execute("DELETE FROM reminders WHERE key = ?;", (key,))
        return cur.rowcount > 0

    # -- mute --------------------------------------------------------------

    def mute_reminders(
        self,
        user_id: str,
        duration_days: Optional[int] = None,
        *,
        card_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MuteState:
        """
        Suppress delivery for `duration_days`, or until `unmute_reminders` when None.

        Without `card_key` every card is muted; with it only that card's reminders are. The stored
        schedule is untouched; planning continues as usual while muted.
        """
        _require_user(user_id)
        if duration_days is not None and (isinstance(duration_days, bool) or int(duration_days) != duration_days or duration_days <= 0):
            raise ValueError("duration_days must be a positive whole number of days (or None for indefinite)")

        until = None
        if duration_days is not None:
            until = (now or datetime.now()) + timedelta(days=int(duration_days))

        state = MuteState(card_key=card_key or None, muted=True, muted_until=until)
        self._write_mute(user_id, state)
        logger.info(
            "Muted reminders user=%s card=%s until=%s",
            user_id,
            card_key or "*",
            until.isoformat() if until else "indefinitely",
        )
        return state

    def unmute_reminders(self, user_id: str, card_key: Optional[str] = None) -> MuteState:
        """Clear the user-wide mute, or only `card_key`'s mute. The other scope is left alone."""
        _require_user(user_id)
        state = MuteState(card_key=card_key or None)
        self._write_mute(user_id, state)
        logger.info("Unmuted reminders user=%s card=%s", user_id, card_key or "*")
        return state

    def get_mute_state(self, user_id: str, card_key: Optional[str] = None) -> MuteState:
        _require_user(user_id)
        row = self._conn.execute(
            "SELECT card_key, muted, muted_until FROM reminder_mutes WHERE user_id = ? AND card_key = ?;",
            (user_id, card_key or ""),
        ).fetchone()
        if not row:
            return MuteState(card_key=card_key or None)
        return _row_to_mute(row)

    def get_card_mutes(self, user_id: str) -> dict[str, MuteState]:
        """Per-card mutes that are still switched on, keyed by card."""
        _require_user(user_id)
        rows = self._conn.execute(
            "SELECT card_key, muted, muted_until FROM reminder_mutes WHERE user_id = ? AND card_key != '' AND muted = 1;",
            (user_id,),
        ).fetchall()
        return {row["card_key"]: _row_to_mute(row) for row in rows}

    def _write_mute(self, user_id: str, state: MuteState) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO reminder_mutes(user_id, card_key, muted, muted_until, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, card_key) DO UPDATE SET
                  muted = excluded.muted,
                  muted_until = excluded.muted_until,
                  updated_at = excluded.updated_at;
                """,
                (
                    user_id,
                    state.card_key or "",
                    1 if state.muted else 0,
                    state.muted_until.isoformat() if state.muted_until else None,
                    _utc_now(),
                ),
            )

    # -- runs --------------------------------------------------------------

    def record_run_start(self, kind: str) -> int:
        with self._conn:
            cur = self._conn.execute("INSERT INTO runs(kind, started_at) VALUES (?, ?);", (kind, _utc_now()))
        return int(cur.lastrowid)

    def record_run_finish(self, run_id: int, *, ok: bool, message: Optional[str] = None) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE runs SET finished_at = ?, ok = ?, message = ? WHERE id = ?;",
                (_utc_now(), 1 if ok else 0, message, run_id),
            )

        # Only snapshot after a good run so the backup stays last-known-good.
        if ok:
            self._maybe_backup(if_missing=False)


def _require_user(user_id: str) -> None:
    if not (user_id or "").strip():
        raise ValueError("user_id is required")


def _row_to_reminder(row: sqlite3.Row) -> Reminder:
    return Reminder.model_validate(
        {
            "user_id": row["user_id"],
            "card_key": row["card_key"],
            "reminder_type": row["reminder_type"],
            "due_date": row["due_date"],
            "target_datetime": row["target_datetime"],
            "lead_time_days": row["lead_time_days"],
            "status": row["status"],
            "priority": row["priority"],
            "payload": json.loads(row["payload"]),
        }
    )


def _row_to_mute(row: sqlite3.Row) -> MuteState:
    return MuteState(
        card_key=row["card_key"] or None,
        muted=bool(row["muted"]),
        muted_until=datetime.fromisoformat(row["muted_until"]) if row["muted_until"] else None,
    )

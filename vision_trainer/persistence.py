from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import PersistenceFailure
from .results import SessionResult

SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """A stored session, as read back for progress tracking."""

    id: int
    user_id: str
    module_id: str
    difficulty: int
    total_score: int
    accuracy: float
    avg_reaction_ms: int
    best_reaction_ms: int
    total_attempts: int
    correct_count: int
    max_combo: int
    duration_s: float
    created_at_utc: str

    @property
    def played_on(self) -> str:
        """UTC calendar day, YYYY-MM-DD."""
        return self.created_at_utc[:10]


def open_db(path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session_result (
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                module_id TEXT NOT NULL,
                difficulty INTEGER NOT NULL,
                total_score INTEGER NOT NULL,
                accuracy REAL NOT NULL,
                avg_reaction_ms INTEGER NOT NULL,
                best_reaction_ms INTEGER NOT NULL,
                total_attempts INTEGER NOT NULL,
                correct_count INTEGER NOT NULL,
                max_combo INTEGER NOT NULL,
                duration_s REAL NOT NULL,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS round_event (
                id INTEGER PRIMARY KEY,
                session_id INTEGER NOT NULL REFERENCES session_result(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                round_id TEXT NOT NULL,
                stimulus_kind TEXT NOT NULL,
                displayed_number INTEGER,
                verdict TEXT NOT NULL,
                is_correct INTEGER NOT NULL,
                counts_as_attempt INTEGER NOT NULL,
                reaction_ms INTEGER,
                points INTEGER NOT NULL,
                resolved_at_ms INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS badge (
                user_id TEXT NOT NULL,
                badge_key TEXT NOT NULL,
                earned_at_utc TEXT NOT NULL,
                PRIMARY KEY (user_id, badge_key)
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_session_result_user ON session_result(user_id, created_at_utc);"
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_round_event_session_seq ON round_event(session_id, seq);")
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteResultStore:
    """Result sink + history source backed by a local SQLite file.

    Every public call opens and closes its own connection, so the store can be
    shared freely. sqlite errors surface as PersistenceFailure.
    """

    def __init__(self, db_path: Path | str, *, utc_now: Callable[[], str] | None = None) -> None:
        self._db_path = Path(db_path)
        self._utc_now = utc_now or _utc_now_iso

    @property
    def db_path(self) -> Path:
        return self._db_path

    def record(self, result: SessionResult, *, user_id: str) -> None:
        self._run(lambda conn: _insert_result(conn=conn, result=result, user_id=user_id, now=self._utc_now()))

    def history(self, user_id: str, *, module_id: str | None = None) -> list[HistoryRecord]:
        """Stored sessions for ``user_id``, oldest first."""

        sql = (
            "SELECT id, user_id, module_id, difficulty, total_score, accuracy, avg_reaction_ms, "
            "best_reaction_ms, total_attempts, correct_count, max_combo, duration_s, created_at_utc "
            "FROM session_result WHERE user_id = ?"
        )
        params: tuple[object, ...] = (user_id,)
        if module_id is not None:
            sql += " AND module_id = ?"
            params += (module_id,)
        sql += " ORDER BY created_at_utc, id"

        rows = self._run(lambda conn: conn.execute(sql, params).fetchall())
        return [_row_to_record(r) for r in rows]

    def round_count(self, session_id: int) -> int:
        row = self._run(
            lambda conn: conn.execute("SELECT COUNT(*) FROM round_event WHERE session_id = ?", (session_id,)).fetchone()
        )
        return int(row[0])

    def earned_badges(self, user_id: str) -> set[str]:
        rows = self._run(lambda conn: conn.execute("SELECT badge_key FROM badge WHERE user_id = ?", (user_id,)).fetchall())
        return {str(r[0]) for r in rows}

    def award_badges(self, user_id: str, keys: Iterable[str]) -> None:
        now = self._utc_now()

        def _insert(conn: sqlite3.Connection) -> None:
            with conn:
                for key in keys:
                    conn.execute(
                        "INSERT OR IGNORE INTO badge(user_id, badge_key, earned_at_utc) VALUES (?, ?, ?)",
                        (user_id, str(key), now),
                    )

        self._run(_insert)

    def _run(self, op: Callable[[sqlite3.Connection], object]):
        try:
            conn = open_db(self._db_path)
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"cannot open {self._db_path}: {exc}") from exc
        try:
            return op(conn)
        except sqlite3.Error as exc:
            raise PersistenceFailure(str(exc)) from exc
        finally:
            conn.close()


def _insert_result(*, conn: sqlite3.Connection, result: SessionResult, user_id: str, now: str) -> int:
    with conn:
        cur = conn.execute(
            """
            INSERT INTO session_result(
                user_id, module_id, difficulty, total_score, accuracy,
                avg_reaction_ms, best_reaction_ms, total_attempts, correct_count,
                max_combo, duration_s, created_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(user_id),
                str(result.module_id),
                int(result.difficulty),
                int(result.total_score),
                float(result.accuracy),
                int(result.avg_reaction_ms),
                int(result.best_reaction_ms),
                int(result.total_attempts),
                int(result.correct_count),
                int(result.max_combo),
                float(result.duration_s),
                now,
            ),
        )
        session_id = int(cur.lastrowid)

        for seq, o in enumerate(result.rounds):
            # Map RoundOutcome -> persistence schema.
            conn.execute(
                """
                INSERT INTO round_event(
                    session_id, seq, round_id, stimulus_kind, displayed_number, verdict,
                    is_correct, counts_as_attempt, reaction_ms, points, resolved_at_ms
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    seq,
                    o.round.id,
                    str(o.round.kind.value),
                    o.round.displayed_number,
                    str(o.verdict.value),
                    1 if o.is_correct else 0,
                    1 if o.counts_as_attempt else 0,
                    None if o.reaction_ms is None else int(round(o.reaction_ms)),
                    int(o.points_awarded),
                    int(round(o.resolved_at_ms)),
                ),
            )

    return session_id


def _row_to_record(row: tuple) -> HistoryRecord:
    return HistoryRecord(
        id=int(row[0]),
        user_id=str(row[1]),
        module_id=str(row[2]),
        difficulty=int(row[3]),
        total_score=int(row[4]),
        accuracy=float(row[5]),
        avg_reaction_ms=int(row[6]),
        best_reaction_ms=int(row[7]),
        total_attempts=int(row[8]),
        correct_count=int(row[9]),
        max_combo=int(row[10]),
        duration_s=float(row[11]),
        created_at_utc=str(row[12]),
    )

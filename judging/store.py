"""
SQLite repository for the judging coordinator.

One connection per unit of work; ``connect`` commits on success and turns any
``sqlite3.Error`` into a ``StoreError`` after rolling back. Reads always hit
the database. Listings also remember their last good result so display code
can ask for ``allow_stale=True`` when the database is briefly unavailable.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .errors import NotFoundError, StoreError
from .models import Admin, Criterion, Group, Judge, Principal, Role, Student, SuperJudge, Topic

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS groups (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS students (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    group_id TEXT
);

CREATE TABLE IF NOT EXISTS judges (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS super_judges (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL
);

-- no foreign keys: imports may leave references dangling for a while,
-- validate_assignments reports them
CREATE TABLE IF NOT EXISTS group_judges (
    group_id TEXT NOT NULL,
    judge_id TEXT NOT NULL,
    PRIMARY KEY (group_id, judge_id)
);

CREATE TABLE IF NOT EXISTS criteria (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS topics (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    group_id TEXT NOT NULL,
    time_limit INTEGER
);

CREATE TABLE IF NOT EXISTS scores (
    student_id TEXT NOT NULL,
    judge_id TEXT NOT NULL,
    criterion_id TEXT NOT NULL,
    score INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (student_id, judge_id, criterion_id)
);

CREATE TABLE IF NOT EXISTS submissions (
    student_id TEXT NOT NULL,
    judge_id TEXT NOT NULL,
    submitted_at TEXT NOT NULL,
    PRIMARY KEY (student_id, judge_id)
);

CREATE TABLE IF NOT EXISTS judge_notes (
    student_id TEXT NOT NULL,
    judge_id TEXT NOT NULL,
    notes TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (student_id, judge_id)
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    principal_id TEXT NOT NULL,
    role TEXT NOT NULL,
    display_name TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
"""

# Columns added to criteria after the first release
_CRITERIA_MIGRATIONS = (
    ("min_score", "ALTER TABLE criteria ADD COLUMN min_score INTEGER"),
    ("max_score", "ALTER TABLE criteria ADD COLUMN max_score INTEGER"),
    ("is_penalty", "ALTER TABLE criteria ADD COLUMN is_penalty INTEGER NOT NULL DEFAULT 0"),
    ("position", "ALTER TABLE criteria ADD COLUMN position INTEGER NOT NULL DEFAULT 0"),
)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def new_id() -> str:
    return str(uuid.uuid4())


def natural_key(name: str) -> Tuple:
    """Sort key that puts Grade 2 before Grade 10."""
    parts = re.split(r"(\d+)", name.casefold())
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)


def _criterion(row: sqlite3.Row) -> Criterion:
    return Criterion(
        id=row["id"],
        name=row["name"],
        min_score=row["min_score"],
        max_score=row["max_score"],
        is_penalty=bool(row["is_penalty"]),
        position=row["position"],
    )


def _group(row: sqlite3.Row) -> Group:
    return Group(id=row["id"], name=row["name"])


def _student(row: sqlite3.Row) -> Student:
    return Student(id=row["id"], name=row["name"], group_id=row["group_id"])


def _judge(row: sqlite3.Row) -> Judge:
    return Judge(id=row["id"], name=row["name"], username=row["username"], password_hash=row["password_hash"])


def _super_judge(row: sqlite3.Row) -> SuperJudge:
    return SuperJudge(id=row["id"], name=row["name"], username=row["username"], password_hash=row["password_hash"])


def _admin(row: sqlite3.Row) -> Admin:
    return Admin(id=row["id"], name=row["name"], username=row["username"], password_hash=row["password_hash"])


def _topic(row: sqlite3.Row) -> Topic:
    return Topic(id=row["id"], name=row["name"], group_id=row["group_id"], time_limit=row["time_limit"])


class JudgingStore:
    def __init__(self, path: str):
        self.path = path
        self._last_known: Dict[str, list] = {}

    # -----------------------
    # Connection handling
    # -----------------------
    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.path, timeout=30)
        except sqlite3.Error as e:
            logger.error("Cannot open database %s: %s", self.path, e)
            raise StoreError(f"Cannot open database: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database error: %s", e)
            raise StoreError(f"Database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA)
            # Simple migration safety if an older criteria table exists
            cols = [r["name"] for r in conn.execute("PRAGMA table_info(criteria)").fetchall()]
            for column, ddl in _CRITERIA_MIGRATIONS:
                if column not in cols:
                    conn.execute(ddl)
        logger.info("Database ready at %s", self.path)

    def _listing(self, key: str, sql: str, factory: Callable, allow_stale: bool) -> list:
        try:
            with self.connect() as conn:
                items = [factory(r) for r in conn.execute(sql).fetchall()]
        except StoreError:
            if allow_stale and key in self._last_known:
                logger.warning("Serving last known %s after a store failure", key)
                return list(self._last_known[key])
            raise
        self._last_known[key] = items
        return list(items)

    def _fetch_one(self, sql: str, params: tuple, factory: Callable):
        with self.connect() as conn:
            row = conn.execute(sql, params).fetchone()
        return factory(row) if row else None

    # -----------------------
    # Groups
    # -----------------------
    def get_groups(self, allow_stale: bool = False) -> List[Group]:
        groups = self._listing("groups", "SELECT id, name FROM groups", _group, allow_stale)
        return sorted(groups, key=lambda g: (natural_key(g.name), g.id))

    def get_group(self, group_id: str) -> Optional[Group]:
        return self._fetch_one("SELECT id, name FROM groups WHERE id=?", (group_id,), _group)

    def get_group_by_name(self, name: str) -> Optional[Group]:
        return self._fetch_one(
            "SELECT id, name FROM groups WHERE lower(trim(name))=lower(trim(?))", (name,), _group
        )

    def add_group(self, name: str) -> Group:
        group = Group(id=new_id(), name=name.strip())
        with self.connect() as conn:
            conn.execute("INSERT INTO groups(id, name, created_at) VALUES(?,?,?)", (group.id, group.name, now_iso()))
        return group

    def rename_group(self, group_id: str, name: str) -> Group:
        with self.connect() as conn:
            cur = conn.execute("UPDATE groups SET name=? WHERE id=?", (name.strip(), group_id))
            if cur.rowcount == 0:
                raise NotFoundError("group", group_id)
        return Group(id=group_id, name=name.strip())

    def delete_group(self, group_id: str) -> Dict[str, int]:
        """Detach students, detach judges, drop topics, then drop the group.

        All four steps share one transaction.
        """
        with self.connect() as conn:
            if not conn.execute("SELECT 1 FROM groups WHERE id=?", (group_id,)).fetchone():
                raise NotFoundError("group", group_id)
            students = conn.execute("UPDATE students SET group_id=NULL WHERE group_id=?", (group_id,)).rowcount
            judges = conn.execute("DELETE FROM group_judges WHERE group_id=?", (group_id,)).rowcount
            topics = conn.execute("DELETE FROM topics WHERE group_id=?", (group_id,)).rowcount
            conn.execute("DELETE FROM groups WHERE id=?", (group_id,))
        return {"students_detached": students, "judges_detached": judges, "topics_deleted": topics}

    # -----------------------
    # Students
    # -----------------------
    def get_students(self, allow_stale: bool = False) -> List[Student]:
        return self._listing(
            "students", "SELECT id, name, group_id FROM students ORDER BY name", _student, allow_stale
        )

    def get_student(self, student_id: str) -> Optional[Student]:
        return self._fetch_one("SELECT id, name, group_id FROM students WHERE id=?", (student_id,), _student)

    def get_students_in_group(self, group_id: str) -> List[Student]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT id, name, group_id FROM students WHERE group_id=? ORDER BY name", (group_id,)
            ).fetchall()
        return [_student(r) for r in rows]

    def get_students_in_groups(self, group_ids: Iterable[str]) -> List[Student]:
        ids = list(group_ids)
        if not ids:
            return []
        placeholders = ",".join(["?"] * len(ids))
        with self.connect() as conn:
            rows = conn.execute(
                f"SELECT id, name, group_id FROM students WHERE group_id IN ({placeholders}) ORDER BY name",
                tuple(ids),
            ).fetchall()
        return [_student(r) for r in rows]

    def add_student(self, name: str, group_id: Optional[str] = None) -> Student:
        student = Student(id=new_id(), name=name.strip(), group_id=group_id)
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO students(id, name, group_id) VALUES(?,?,?)", (student.id, student.name, group_id)
            )
        return student

    def update_student_group(self, student_id: str, group_id: Optional[str]) -> Student:
        with self.connect() as conn:
            conn.execute("UPDATE students SET group_id=? WHERE id=?", (group_id, student_id))
            row = conn.execute("SELECT id, name, group_id FROM students WHERE id=?", (student_id,)).fetchone()
        if not row:
            raise NotFoundError("student", student_id)
        return _student(row)

    def remove_student(self, student_id: str) -> None:
        with self.connect() as conn:
            if conn.execute("DELETE FROM students WHERE id=?", (student_id,)).rowcount == 0:
                raise NotFoundError("student", student_id)
            conn.execute("DELETE FROM scores WHERE student_id=?", (student_id,))
            conn.execute("DELETE FROM submissions WHERE student_id=?", (student_id,))
            conn.execute("DELETE FROM judge_notes WHERE student_id=?", (student_id,))

    # -----------------------
    # Judges, super judges, admins
    # -----------------------
    def get_judges(self, allow_stale: bool = False) -> List[Judge]:
        return self._listing(
            "judges", "SELECT id, name, username, password_hash FROM judges ORDER BY name", _judge, allow_stale
        )

    def get_judge(self, judge_id: str) -> Optional[Judge]:
        return self._fetch_one(
            "SELECT id, name, username, password_hash FROM judges WHERE id=?", (judge_id,), _judge
        )

    def get_judge_by_username(self, username: str) -> Optional[Judge]:
        return self._fetch_one(
            "SELECT id, name, username, password_hash FROM judges WHERE username=?", (username,), _judge
        )

    def add_judge(self, name: str, username: str, password_hash: str) -> Judge:
        judge = Judge(id=new_id(), name=name.strip(), username=username.strip(), password_hash=password_hash)
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO judges(id, name, username, password_hash) VALUES(?,?,?,?)",
                (judge.id, judge.name, judge.username, password_hash),
            )
        return judge

    def update_judge(self, judge_id: str, name: str, username: str, password_hash: Optional[str] = None) -> Judge:
        with self.connect() as conn:
            if password_hash:
                cur = conn.execute(
                    "UPDATE judges SET name=?, username=?, password_hash=? WHERE id=?",
                    (name.strip(), username.strip(), password_hash, judge_id),
                )
            else:
                cur = conn.execute(
                    "UPDATE judges SET name=?, username=? WHERE id=?", (name.strip(), username.strip(), judge_id)
                )
            if cur.rowcount == 0:
                raise NotFoundError("judge", judge_id)
            row = conn.execute("SELECT id, name, username, password_hash FROM judges WHERE id=?", (judge_id,)).fetchone()
        return _judge(row)

    def remove_judge(self, judge_id: str) -> None:
        with self.connect() as conn:
            if conn.execute("DELETE FROM judges WHERE id=?", (judge_id,)).rowcount == 0:
                raise NotFoundError("judge", judge_id)
            conn.execute("DELETE FROM group_judges WHERE judge_id=?", (judge_id,))
            conn.execute("DELETE FROM scores WHERE judge_id=?", (judge_id,))
            conn.execute("DELETE FROM submissions WHERE judge_id=?", (judge_id,))
            conn.execute("DELETE FROM judge_notes WHERE judge_id=?", (judge_id,))
            conn.execute("DELETE FROM sessions WHERE principal_id=?", (judge_id,))

    def get_super_judges(self) -> List[SuperJudge]:
        return self._listing(
            "super_judges",
            "SELECT id, name, username, password_hash FROM super_judges ORDER BY name",
            _super_judge,
            False,
        )

    def get_super_judge_by_username(self, username: str) -> Optional[SuperJudge]:
        return self._fetch_one(
            "SELECT id, name, username, password_hash FROM super_judges WHERE username=?", (username,), _super_judge
        )

    def add_super_judge(self, name: str, username: str, password_hash: str) -> SuperJudge:
        sj = SuperJudge(id=new_id(), name=name.strip(), username=username.strip(), password_hash=password_hash)
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO super_judges(id, name, username, password_hash) VALUES(?,?,?,?)",
                (sj.id, sj.name, sj.username, password_hash),
            )
        return sj

    def remove_super_judge(self, super_judge_id: str) -> None:
        with self.connect() as conn:
            if conn.execute("DELETE FROM super_judges WHERE id=?", (super_judge_id,)).rowcount == 0:
                raise NotFoundError("super judge", super_judge_id)
            conn.execute("DELETE FROM sessions WHERE principal_id=?", (super_judge_id,))

    def get_admin_by_username(self, username: str) -> Optional[Admin]:
        return self._fetch_one(
            "SELECT id, name, username, password_hash FROM admin_users WHERE username=?", (username,), _admin
        )

    def add_admin(self, name: str, username: str, password_hash: str) -> Admin:
        admin = Admin(id=new_id(), name=name, username=username.strip(), password_hash=password_hash)
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO admin_users(id, name, username, password_hash) VALUES(?,?,?,?)",
                (admin.id, admin.name, admin.username, password_hash),
            )
        return admin

    # -----------------------
    # Criteria
    # -----------------------
    def get_criteria(self, allow_stale: bool = False) -> List[Criterion]:
        return self._listing(
            "criteria",
            "SELECT id, name, min_score, max_score, is_penalty, position FROM criteria ORDER BY position, name",
            _criterion,
            allow_stale,
        )

    def get_criterion(self, criterion_id: str) -> Optional[Criterion]:
        return self._fetch_one(
            "SELECT id, name, min_score, max_score, is_penalty, position FROM criteria WHERE id=?",
            (criterion_id,),
            _criterion,
        )

    def add_criterion(
        self,
        name: str,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
        is_penalty: bool = False,
    ) -> Criterion:
        with self.connect() as conn:
            position = conn.execute("SELECT COALESCE(MAX(position), 0) + 1 AS p FROM criteria").fetchone()["p"]
            criterion = Criterion(
                id=new_id(),
                name=name.strip(),
                min_score=min_score,
                max_score=max_score,
                is_penalty=bool(is_penalty),
                position=position,
            )
            conn.execute(
                "INSERT INTO criteria(id, name, min_score, max_score, is_penalty, position) VALUES(?,?,?,?,?,?)",
                (criterion.id, criterion.name, min_score, max_score, int(criterion.is_penalty), position),
            )
        return criterion

    def update_criterion_range(self, criterion_id: str, min_score: int, max_score: int) -> Criterion:
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE criteria SET min_score=?, max_score=? WHERE id=?", (min_score, max_score, criterion_id)
            )
            if cur.rowcount == 0:
                raise NotFoundError("criterion", criterion_id)
        return self.get_criterion(criterion_id)

    def remove_criterion(self, criterion_id: str) -> None:
        with self.connect() as conn:
            if conn.execute("DELETE FROM criteria WHERE id=?", (criterion_id,)).rowcount == 0:
                raise NotFoundError("criterion", criterion_id)
            conn.execute("DELETE FROM scores WHERE criterion_id=?", (criterion_id,))

    # -----------------------
    # Topics
    # -----------------------
    def get_topics(self) -> List[Topic]:
        return self._listing(
            "topics", "SELECT id, name, group_id, time_limit FROM topics ORDER BY name", _topic, False
        )

    def get_topics_by_group(self, group_id: str) -> List[Topic]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT id, name, group_id, time_limit FROM topics WHERE group_id=? ORDER BY name", (group_id,)
            ).fetchall()
        return [_topic(r) for r in rows]

    def add_topic(self, name: str, group_id: str, time_limit: Optional[int] = None) -> Topic:
        topic = Topic(id=new_id(), name=name.strip(), group_id=group_id, time_limit=time_limit)
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO topics(id, name, group_id, time_limit) VALUES(?,?,?,?)",
                (topic.id, topic.name, group_id, time_limit),
            )
        return topic

    def remove_topic(self, topic_id: str) -> None:
        with self.connect() as conn:
            if conn.execute("DELETE FROM topics WHERE id=?", (topic_id,)).rowcount == 0:
                raise NotFoundError("topic", topic_id)

    # -----------------------
    # Judge <-> group links
    # -----------------------
    def get_group_judges(self, group_id: str) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute("SELECT judge_id FROM group_judges WHERE group_id=?", (group_id,)).fetchall()
        return [r["judge_id"] for r in rows]

    def get_judge_groups(self, judge_id: str) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute("SELECT group_id FROM group_judges WHERE judge_id=?", (judge_id,)).fetchall()
        return [r["group_id"] for r in rows]

    def get_group_judge_links(self) -> List[Tuple[str, str]]:
        with self.connect() as conn:
            rows = conn.execute("SELECT group_id, judge_id FROM group_judges").fetchall()
        return [(r["group_id"], r["judge_id"]) for r in rows]

    def assign_judge_to_group(self, judge_id: str, group_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO group_judges(group_id, judge_id) VALUES(?,?)", (group_id, judge_id)
            )
        return cur.rowcount > 0

    def remove_judge_from_group(self, judge_id: str, group_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM group_judges WHERE group_id=? AND judge_id=?", (group_id, judge_id))
        return cur.rowcount > 0

    # -----------------------
    # Scores
    # -----------------------
    def get_score(self, student_id: str, judge_id: str, criterion_id: str) -> Optional[int]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT score FROM scores WHERE student_id=? AND judge_id=? AND criterion_id=?",
                (student_id, judge_id, criterion_id),
            ).fetchone()
        return None if row is None else int(row["score"])

    def set_score(self, student_id: str, judge_id: str, criterion_id: str, score: int) -> bool:
        """Upsert unless the pair is submitted; returns False when locked.

        The lock check and the write share one transaction.
        """
        with self.connect() as conn:
            if self._is_submitted(conn, student_id, judge_id):
                return False
            conn.execute(
                """
                INSERT INTO scores(student_id, judge_id, criterion_id, score, updated_at)
                VALUES(?,?,?,?,?)
                ON CONFLICT(student_id, judge_id, criterion_id)
                DO UPDATE SET score=excluded.score, updated_at=excluded.updated_at
                """,
                (student_id, judge_id, criterion_id, int(score), now_iso()),
            )
        return True

    def delete_score(self, student_id: str, judge_id: str, criterion_id: str) -> bool:
        with self.connect() as conn:
            if self._is_submitted(conn, student_id, judge_id):
                return False
            conn.execute(
                "DELETE FROM scores WHERE student_id=? AND judge_id=? AND criterion_id=?",
                (student_id, judge_id, criterion_id),
            )
        return True

    def scores_for_pair(self, student_id: str, judge_id: str) -> Dict[str, int]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT criterion_id, score FROM scores WHERE student_id=? AND judge_id=?", (student_id, judge_id)
            ).fetchall()
        return {r["criterion_id"]: int(r["score"]) for r in rows}

    def scores_for_student(self, student_id: str) -> Dict[str, Dict[str, int]]:
        out: Dict[str, Dict[str, int]] = {}
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT judge_id, criterion_id, score FROM scores WHERE student_id=?", (student_id,)
            ).fetchall()
        for r in rows:
            out.setdefault(r["judge_id"], {})[r["criterion_id"]] = int(r["score"])
        return out

    def get_all_scores(self) -> List[Tuple[str, str, str, int]]:
        with self.connect() as conn:
            rows = conn.execute("SELECT student_id, judge_id, criterion_id, score FROM scores").fetchall()
        return [(r["student_id"], r["judge_id"], r["criterion_id"], int(r["score"])) for r in rows]

    # -----------------------
    # Submissions
    # -----------------------
    @staticmethod
    def _is_submitted(conn: sqlite3.Connection, student_id: str, judge_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM submissions WHERE student_id=? AND judge_id=?", (student_id, judge_id)
        ).fetchone()
        return row is not None

    def is_submitted(self, student_id: str, judge_id: str) -> bool:
        with self.connect() as conn:
            return self._is_submitted(conn, student_id, judge_id)

    def submit(self, student_id: str, judge_id: str) -> bool:
        """Returns True when a new lock was created."""
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO submissions(student_id, judge_id, submitted_at) VALUES(?,?,?)",
                (student_id, judge_id, now_iso()),
            )
        return cur.rowcount > 0

    def submit_many(self, pairs: Iterable[Tuple[str, str]]) -> int:
        stamp = now_iso()
        created = 0
        with self.connect() as conn:
            for student_id, judge_id in pairs:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO submissions(student_id, judge_id, submitted_at) VALUES(?,?,?)",
                    (student_id, judge_id, stamp),
                )
                created += cur.rowcount
        return created

    def unlock(self, student_id: str, judge_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute(
                "DELETE FROM submissions WHERE student_id=? AND judge_id=?", (student_id, judge_id)
            )
        return cur.rowcount > 0

    def submitted_judges(self, student_id: str) -> Set[str]:
        with self.connect() as conn:
            rows = conn.execute("SELECT judge_id FROM submissions WHERE student_id=?", (student_id,)).fetchall()
        return {r["judge_id"] for r in rows}

    def get_all_submissions(self) -> Set[Tuple[str, str]]:
        with self.connect() as conn:
            rows = conn.execute("SELECT student_id, judge_id FROM submissions").fetchall()
        return {(r["student_id"], r["judge_id"]) for r in rows}

    # -----------------------
    # Notes
    # -----------------------
    def get_note(self, student_id: str, judge_id: str) -> Optional[str]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT notes FROM judge_notes WHERE student_id=? AND judge_id=?", (student_id, judge_id)
            ).fetchone()
        return row["notes"] if row else None

    def set_note(self, student_id: str, judge_id: str, notes: str) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO judge_notes(student_id, judge_id, notes, updated_at)
                VALUES(?,?,?,?)
                ON CONFLICT(student_id, judge_id) DO UPDATE SET notes=excluded.notes, updated_at=excluded.updated_at
                """,
                (student_id, judge_id, notes, now_iso()),
            )

    # -----------------------
    # Sessions
    # -----------------------
    def create_session(self, token: str, principal: Principal, ttl: timedelta) -> None:
        expires = (datetime.now(timezone.utc) + ttl).isoformat(timespec="seconds")
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO sessions(token, principal_id, role, display_name, expires_at) VALUES(?,?,?,?,?)",
                (token, principal.id, principal.role.value, principal.display_name, expires),
            )

    def get_session(self, token: str) -> Optional[Principal]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT principal_id, role, display_name, expires_at FROM sessions WHERE token=?", (token,)
            ).fetchone()
            if not row:
                return None
            if datetime.fromisoformat(row["expires_at"]) <= datetime.now(timezone.utc):
                conn.execute("DELETE FROM sessions WHERE token=?", (token,))
                return None
        return Principal(id=row["principal_id"], role=Role(row["role"]), display_name=row["display_name"])

    def delete_session(self, token: str) -> None:
        with self.connect() as conn:
            conn.execute("DELETE FROM sessions WHERE token=?", (token,))

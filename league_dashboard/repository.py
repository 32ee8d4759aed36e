"""SQLite repository for the league_dashboard domain models."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .models import (
    AuditEntry,
    Division,
    DraftRecord,
    PlayerName,
    Season,
    Signup,
    Team,
    User,
    WaitlistEntry,
    Week1Slot,
    Week2Slot,
)


# Columns an admin may change through ``update_user``.
EDITABLE_USER_COLUMNS = frozenset(
    {
        "first_name",
        "last_name",
        "preferred_name",
        "email",
        "phone",
        "experience",
        "assessment",
        "height",
        "skill_setter",
        "skill_hitter",
        "skill_passer",
        "skill_other",
        "male",
        "captain_eligible",
        "picture",
        "seasons_list",
        "notification_list",
    }
)


def _to_bool(value: int) -> bool:
    return bool(value)


def _to_optional_bool(value: Optional[int]) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def _from_optional_bool(value: Optional[bool]) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _iso_datetime(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat(timespec="seconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _placeholders(values: Sequence[object]) -> str:
    return ",".join("?" for _ in values)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        old_id=row["old_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        preferred_name=row["preferred_name"],
        email=row["email"],
        phone=row["phone"],
        experience=row["experience"],
        assessment=row["assessment"],
        height=row["height"],
        skill_setter=_to_optional_bool(row["skill_setter"]),
        skill_hitter=_to_optional_bool(row["skill_hitter"]),
        skill_passer=_to_optional_bool(row["skill_passer"]),
        skill_other=_to_optional_bool(row["skill_other"]),
        male=_to_optional_bool(row["male"]),
        role=row["role"],
        captain_eligible=_to_bool(row["captain_eligible"]),
        picture=row["picture"],
        seasons_list=row["seasons_list"],
        notification_list=row["notification_list"],
        created_at=_parse_datetime(row["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
    )


def _row_to_season(row: sqlite3.Row) -> Season:
    return Season(
        id=row["id"],
        code=row["code"],
        year=row["year"],
        name=row["season"],
        phase=row["phase"],
        registration_open=_to_bool(row["registration_open"]),
        late_date=row["late_date"],
        tryout_1_date=row["tryout_1_date"],
        tryout_1_s1_time=row["tryout_1_s1_time"],
        tryout_1_s2_time=row["tryout_1_s2_time"],
        tryout_2_date=row["tryout_2_date"],
        tryout_2_s1_time=row["tryout_2_s1_time"],
        tryout_2_s2_time=row["tryout_2_s2_time"],
        tryout_2_s3_time=row["tryout_2_s3_time"],
        season_amount=row["season_amount"],
        late_amount=row["late_amount"],
        max_players=row["max_players"],
    )


def _row_to_signup(row: sqlite3.Row) -> Signup:
    return Signup(
        id=row["signup_id"],
        season_id=row["season"],
        player_id=row["player"],
        created_at=_parse_datetime(row["signup_created_at"]),
        age=row["age"],
        captain=row["captain"],
        pair=_to_optional_bool(row["pair"]),
        pair_pick=row["pair_pick"],
        pair_reason=row["pair_reason"],
        dates_missing=row["dates_missing"],
        play_first_week=_to_optional_bool(row["play_1st_week"]),
        amount_paid=row["amount_paid"],
    )


_SIGNUP_COLUMNS = """
    s.id AS signup_id,
    s.season,
    s.player,
    s.age,
    s.captain,
    s.pair,
    s.pair_pick,
    s.pair_reason,
    s.dates_missing,
    s.play_1st_week,
    s.amount_paid,
    s.created_at AS signup_created_at
"""


class LeagueRepository:
    """Persistence layer backed by SQLite.

    Every public method opens its own connection. A method that writes several
    rows does so inside that single connection, so the batch commits as a whole
    or not at all.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create tables if they do not already exist."""

        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    old_id INTEGER,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    preferred_name TEXT,
                    email TEXT NOT NULL UNIQUE,
                    phone TEXT,
                    experience TEXT,
                    assessment TEXT,
                    height INTEGER,
                    skill_setter INTEGER,
                    skill_hitter INTEGER,
                    skill_passer INTEGER,
                    skill_other INTEGER,
                    male INTEGER,
                    role TEXT,
                    captain_eligible INTEGER NOT NULL DEFAULT 1,
                    picture TEXT,
                    seasons_list TEXT,
                    notification_list TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS seasons (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    code TEXT NOT NULL,
                    year INTEGER NOT NULL,
                    season TEXT NOT NULL,
                    phase TEXT NOT NULL DEFAULT 'off_season',
                    registration_open INTEGER NOT NULL DEFAULT 0,
                    late_date TEXT,
                    tryout_1_date TEXT,
                    tryout_1_s1_time TEXT,
                    tryout_1_s2_time TEXT,
                    tryout_2_date TEXT,
                    tryout_2_s1_time TEXT,
                    tryout_2_s2_time TEXT,
                    tryout_2_s3_time TEXT,
                    season_amount TEXT,
                    late_amount TEXT,
                    max_players TEXT
                );

                CREATE TABLE IF NOT EXISTS divisions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    level INTEGER NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1
                );

                CREATE TABLE IF NOT EXISTS signups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    player TEXT NOT NULL,
                    age TEXT,
                    captain TEXT,
                    pair INTEGER,
                    pair_pick TEXT,
                    pair_reason TEXT,
                    dates_missing TEXT,
                    play_1st_week INTEGER,
                    amount_paid TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (player) REFERENCES users (id),
                    FOREIGN KEY (pair_pick) REFERENCES users (id)
                );

                CREATE TABLE IF NOT EXISTS teams (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    captain TEXT NOT NULL,
                    division INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    number INTEGER,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (captain) REFERENCES users (id),
                    FOREIGN KEY (division) REFERENCES divisions (id)
                );

                CREATE TABLE IF NOT EXISTS drafts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    team INTEGER NOT NULL,
                    user TEXT NOT NULL,
                    round INTEGER NOT NULL,
                    overall INTEGER NOT NULL,
                    FOREIGN KEY (team) REFERENCES teams (id) ON DELETE CASCADE,
                    FOREIGN KEY (user) REFERENCES users (id)
                );

                CREATE TABLE IF NOT EXISTS week1_rosters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    user TEXT NOT NULL,
                    session_number INTEGER NOT NULL,
                    court_number INTEGER NOT NULL,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (user) REFERENCES users (id)
                );

                CREATE TABLE IF NOT EXISTS week2_rosters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    user TEXT NOT NULL,
                    division INTEGER NOT NULL,
                    team_number INTEGER NOT NULL,
                    is_captain INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (user) REFERENCES users (id),
                    FOREIGN KEY (division) REFERENCES divisions (id)
                );

                CREATE TABLE IF NOT EXISTS waitlist (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    user TEXT NOT NULL,
                    approved INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    UNIQUE (season, user),
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (user) REFERENCES users (id)
                );

                CREATE TABLE IF NOT EXISTS evaluations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    player TEXT NOT NULL,
                    division INTEGER NOT NULL,
                    evaluator TEXT NOT NULL,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (player) REFERENCES users (id),
                    FOREIGN KEY (division) REFERENCES divisions (id),
                    FOREIGN KEY (evaluator) REFERENCES users (id)
                );

                CREATE TABLE IF NOT EXISTS commissioners (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    season INTEGER NOT NULL,
                    commissioner TEXT NOT NULL,
                    division INTEGER NOT NULL,
                    FOREIGN KEY (season) REFERENCES seasons (id),
                    FOREIGN KEY (commissioner) REFERENCES users (id),
                    FOREIGN KEY (division) REFERENCES divisions (id)
                );

                CREATE TABLE IF NOT EXISTS audit_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user TEXT NOT NULL,
                    action TEXT NOT NULL,
                    entity_type TEXT,
                    entity_id TEXT,
                    summary TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )

    # User operations ---------------------------------------------------
    def add_user(self, user: User) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO users (
                    id, old_id, first_name, last_name, preferred_name, email,
                    phone, experience, assessment, height,
                    skill_setter, skill_hitter, skill_passer, skill_other,
                    male, role, captain_eligible, picture,
                    seasons_list, notification_list, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.old_id,
                    user.first_name,
                    user.last_name,
                    user.preferred_name,
                    user.email,
                    user.phone,
                    user.experience,
                    user.assessment,
                    user.height,
                    _from_optional_bool(user.skill_setter),
                    _from_optional_bool(user.skill_hitter),
                    _from_optional_bool(user.skill_passer),
                    _from_optional_bool(user.skill_other),
                    _from_optional_bool(user.male),
                    user.role,
                    int(user.captain_eligible),
                    user.picture,
                    user.seasons_list,
                    user.notification_list,
                    _iso_datetime(user.created_at),
                    _iso_datetime(user.updated_at),
                ),
            )

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return _row_to_user(row)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        query = f"SELECT * FROM users WHERE id IN ({_placeholders(ids)})"
        with self._connection() as conn:
            rows = conn.execute(query, ids).fetchall()
        return {row["id"]: _row_to_user(row) for row in rows}

    def get_user_role(self, user_id: str) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute("SELECT role FROM users WHERE id = ?", (user_id,)).fetchone()
        return row["role"] if row else None

    def email_in_use(self, email: str, *, exclude_user_id: Optional[str] = None) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE LOWER(email) = LOWER(?) AND id != ?",
                (email, exclude_user_id or ""),
            ).fetchone()
        return row is not None

    def update_user(self, user_id: str, changes: Mapping[str, object]) -> bool:
        """Apply ``changes`` to one user row; unknown columns raise ``ValueError``."""

        unknown = set(changes) - EDITABLE_USER_COLUMNS
        if unknown:
            raise ValueError(f"Columns not editable: {', '.join(sorted(unknown))}")
        if not changes:
            return self.get_user(user_id) is not None

        columns = sorted(changes)
        values: List[object] = []
        for column in columns:
            value = changes[column]
            values.append(int(value) if isinstance(value, bool) else value)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        with self._connection() as conn:
            cursor = conn.execute(
                f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                (*values, _iso_datetime(datetime.utcnow()), user_id),
            )
        return cursor.rowcount > 0

    def search_users(
        self, query: str, *, limit: int, offset: int
    ) -> Tuple[int, List[User]]:
        """Return the total match count and one page of users."""

        where = ""
        params: List[object] = []
        if query:
            pattern = f"%{_escape_like(query.lower())}%"
            where = r"""
                WHERE CAST(old_id AS TEXT) LIKE ? ESCAPE '\'
                   OR LOWER(first_name) LIKE ? ESCAPE '\'
                   OR LOWER(last_name) LIKE ? ESCAPE '\'
                   OR LOWER(COALESCE(preferred_name, '')) LIKE ? ESCAPE '\'
                   OR LOWER(email) LIKE ? ESCAPE '\'
            """
            params = [pattern] * 5
        with self._connection() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM users {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM users {where} ORDER BY last_name, first_name LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
        return total, [_row_to_user(row) for row in rows]

    # Session operations ------------------------------------------------
    def add_session(self, token: str, user_id: str, *, expires_at: datetime) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO sessions (token, user_id, expires_at) VALUES (?, ?, ?)",
                (token, user_id, _iso_datetime(expires_at)),
            )

    def get_session_user_id(self, token: str, *, now: Optional[datetime] = None) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT user_id, expires_at FROM sessions WHERE token = ?", (token,)
            ).fetchone()
        if row is None:
            return None
        if _parse_datetime(row["expires_at"]) <= (now or datetime.utcnow()):
            return None
        return row["user_id"]

    # Season operations -------------------------------------------------
    def create_season(
        self,
        code: str,
        *,
        year: int,
        name: str,
        phase: str = "off_season",
        registration_open: bool = False,
        **schedule: Optional[str],
    ) -> Season:
        columns = ["code", "year", "season", "phase", "registration_open", *schedule]
        values = [code, year, name, phase, int(registration_open), *schedule.values()]
        with self._connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO seasons ({', '.join(columns)}) VALUES ({_placeholders(values)})",
                values,
            )
            season_id = cursor.lastrowid
        season = self.get_season(season_id)
        assert season is not None
        return season

    def get_season(self, season_id: int) -> Optional[Season]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM seasons WHERE id = ?", (season_id,)).fetchone()
        if row is None:
            return None
        return _row_to_season(row)

    def get_latest_season(self) -> Optional[Season]:
        """The current season is the most recently created one."""

        with self._connection() as conn:
            row = conn.execute("SELECT * FROM seasons ORDER BY id DESC LIMIT 1").fetchone()
        if row is None:
            return None
        return _row_to_season(row)

    # Division operations -----------------------------------------------
    def create_division(self, name: str, *, level: int, active: bool = True) -> Division:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO divisions (name, level, active) VALUES (?, ?, ?)",
                (name, level, int(active)),
            )
        return Division(id=cursor.lastrowid, name=name, level=level, active=active)

    def list_divisions(self, *, active_only: bool = False) -> List[Division]:
        query = "SELECT * FROM divisions"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY level"
        with self._connection() as conn:
            rows = conn.execute(query).fetchall()
        return [
            Division(id=row["id"], name=row["name"], level=row["level"], active=_to_bool(row["active"]))
            for row in rows
        ]

    def get_division(self, division_id: int) -> Optional[Division]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM divisions WHERE id = ?", (division_id,)).fetchone()
        if row is None:
            return None
        return Division(id=row["id"], name=row["name"], level=row["level"], active=_to_bool(row["active"]))

    # Signup operations -------------------------------------------------
    def create_signup(
        self,
        season_id: int,
        player_id: str,
        *,
        pair_pick: Optional[str] = None,
        pair_reason: Optional[str] = None,
        dates_missing: Optional[str] = None,
        play_first_week: Optional[bool] = None,
        age: Optional[str] = None,
        captain: Optional[str] = None,
        amount_paid: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO signups (
                    season, player, age, captain, pair, pair_pick, pair_reason,
                    dates_missing, play_1st_week, amount_paid, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    season_id,
                    player_id,
                    age,
                    captain,
                    int(pair_pick is not None),
                    pair_pick,
                    pair_reason,
                    dates_missing,
                    _from_optional_bool(play_first_week),
                    amount_paid,
                    _iso_datetime(created_at or datetime.utcnow()),
                ),
            )
        return cursor.lastrowid

    def list_signed_up_players(self, season_id: int) -> List[Tuple[User, Signup]]:
        """Signed-up players of a season, ordered by last then first name."""

        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT u.*, {_SIGNUP_COLUMNS}
                FROM signups s
                JOIN users u ON u.id = s.player
                WHERE s.season = ?
                ORDER BY u.last_name, u.first_name
                """,
                (season_id,),
            ).fetchall()
        return [(_row_to_user(row), _row_to_signup(row)) for row in rows]

    def get_signup(self, season_id: int, signup_id: int) -> Optional[Signup]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_SIGNUP_COLUMNS} FROM signups s WHERE s.id = ? AND s.season = ?",
                (signup_id, season_id),
            ).fetchone()
        if row is None:
            return None
        return _row_to_signup(row)

    def signed_up_user_ids(self, season_id: int, user_ids: Iterable[str]) -> Set[str]:
        ids = sorted(set(user_ids))
        if not ids:
            return set()
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT DISTINCT player FROM signups WHERE season = ? AND player IN ({_placeholders(ids)})",
                (season_id, *ids),
            ).fetchall()
        return {row["player"] for row in rows}

    def delete_signup(self, season_id: int, signup_id: int) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM signups WHERE id = ? AND season = ?", (signup_id, season_id)
            )
        return cursor.rowcount > 0

    # Team operations ---------------------------------------------------
    def create_team(
        self,
        season_id: int,
        *,
        captain_id: str,
        division_id: int,
        name: str,
        number: Optional[int] = None,
    ) -> Team:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO teams (season, captain, division, name, number) VALUES (?, ?, ?, ?, ?)",
                (season_id, captain_id, division_id, name, number),
            )
        return Team(
            id=cursor.lastrowid,
            season_id=season_id,
            captain_id=captain_id,
            division_id=division_id,
            name=name,
            number=number,
        )

    def list_teams(self, season_id: int, *, division_id: Optional[int] = None) -> List[Team]:
        query = "SELECT * FROM teams WHERE season = ?"
        params: List[object] = [season_id]
        if division_id is not None:
            query += " AND division = ?"
            params.append(division_id)
        query += " ORDER BY number, id"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            Team(
                id=row["id"],
                season_id=row["season"],
                captain_id=row["captain"],
                division_id=row["division"],
                name=row["name"],
                number=row["number"],
            )
            for row in rows
        ]

    def captain_division_by_user(self, season_id: int) -> Dict[str, int]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT captain, division FROM teams WHERE season = ?", (season_id,)
            ).fetchall()
        return {row["captain"]: row["division"] for row in rows}

    def is_captain_for_season(self, user_id: str, season_id: int) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id FROM teams WHERE season = ? AND captain = ? LIMIT 1",
                (season_id, user_id),
            ).fetchone()
        return row is not None

    def save_division_teams(
        self,
        season_id: int,
        division_id: int,
        teams: Sequence[Tuple[str, str]],
    ) -> bool:
        """Upsert ``(captain_id, name)`` pairs as teams numbered 1..n.

        Teams numbered beyond ``len(teams)`` are deleted. Returns ``True`` when
        the division already had teams.
        """

        with self._connection() as conn:
            existing = conn.execute(
                "SELECT id, number FROM teams WHERE season = ? AND division = ? ORDER BY number",
                (season_id, division_id),
            ).fetchall()
            existing_by_number = {
                row["number"]: row["id"] for row in existing if row["number"] is not None
            }
            for index, (captain_id, name) in enumerate(teams, start=1):
                team_id = existing_by_number.pop(index, None)
                if team_id is not None:
                    conn.execute(
                        "UPDATE teams SET captain = ?, name = ? WHERE id = ?",
                        (captain_id, name, team_id),
                    )
                else:
                    conn.execute(
                        "INSERT INTO teams (season, captain, division, name, number) VALUES (?, ?, ?, ?, ?)",
                        (season_id, captain_id, division_id, name, index),
                    )
            stale = list(existing_by_number.values())
            if stale:
                conn.execute(f"DELETE FROM teams WHERE id IN ({_placeholders(stale)})", stale)
        return bool(existing)

    # Draft operations --------------------------------------------------
    def add_draft(self, team_id: int, user_id: str, *, round: int, overall: int) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO drafts (team, user, round, overall) VALUES (?, ?, ?, ?)",
                (team_id, user_id, round, overall),
            )
        return cursor.lastrowid

    def insert_drafts(self, picks: Sequence[Tuple[int, str, int, int]]) -> None:
        """Insert ``(team_id, user_id, round, overall)`` rows in one transaction."""

        with self._connection() as conn:
            conn.executemany(
                "INSERT INTO drafts (team, user, round, overall) VALUES (?, ?, ?, ?)",
                picks,
            )

    def list_draft_history(self, user_ids: Optional[Iterable[str]] = None) -> List[DraftRecord]:
        """Draft records, newest season first, best overall first within a season."""

        query = """
            SELECT d.user, d.team, d.round, d.overall,
                   s.id AS season_id, s.season AS season_name, s.year AS season_year,
                   v.name AS division_name, v.level AS division_level, t.captain
            FROM drafts d
            JOIN teams t ON t.id = d.team
            JOIN seasons s ON s.id = t.season
            JOIN divisions v ON v.id = t.division
        """
        params: List[object] = []
        if user_ids is not None:
            ids = sorted(set(user_ids))
            if not ids:
                return []
            query += f" WHERE d.user IN ({_placeholders(ids)})"
            params = list(ids)
        query += " ORDER BY s.id DESC, d.overall"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            DraftRecord(
                user_id=row["user"],
                team_id=row["team"],
                season_id=row["season_id"],
                season_name=row["season_name"],
                season_year=row["season_year"],
                division_name=row["division_name"],
                captain_id=row["captain"],
                round=row["round"],
                overall=row["overall"],
                division_level=row["division_level"],
            )
            for row in rows
        ]

    def drafted_user_ids(self, user_ids: Iterable[str]) -> Set[str]:
        ids = sorted(set(user_ids))
        if not ids:
            return set()
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT DISTINCT user FROM drafts WHERE user IN ({_placeholders(ids)})", ids
            ).fetchall()
        return {row["user"] for row in rows}

    def captain_season_counts(self, captain_ids: Iterable[str]) -> Dict[str, int]:
        ids = sorted(set(captain_ids))
        if not ids:
            return {}
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT captain, COUNT(DISTINCT season) AS seasons
                FROM teams WHERE captain IN ({_placeholders(ids)})
                GROUP BY captain
                """,
                ids,
            ).fetchall()
        return {row["captain"]: row["seasons"] for row in rows}

    # Week 1 roster operations ------------------------------------------
    def add_week1_slot(self, season_id: int, user_id: str, *, session_number: int, court_number: int) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO week1_rosters (season, user, session_number, court_number) VALUES (?, ?, ?, ?)",
                (season_id, user_id, session_number, court_number),
            )
        return cursor.lastrowid

    def list_week1_slots(self, season_id: int) -> List[Week1Slot]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, session_number, court_number, user FROM week1_rosters
                WHERE season = ? ORDER BY session_number, court_number, id
                """,
                (season_id,),
            ).fetchall()
        return [
            Week1Slot(
                id=row["id"],
                session_number=row["session_number"],
                court_number=row["court_number"],
                user_id=row["user"],
            )
            for row in rows
        ]

    def week1_sheet_rows(
        self, season_id: int, session_numbers: Sequence[int]
    ) -> List[Tuple[Week1Slot, User, Optional[str]]]:
        """Week-1 slots joined with the player and their pair pick."""

        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT u.*, w.id AS slot_id, w.session_number, w.court_number, s.pair_pick
                FROM week1_rosters w
                JOIN users u ON u.id = w.user
                LEFT JOIN signups s ON s.player = w.user AND s.season = ?
                WHERE w.season = ? AND w.session_number IN ({_placeholders(session_numbers)})
                ORDER BY w.session_number, w.court_number, u.last_name, u.first_name
                """,
                (season_id, season_id, *session_numbers),
            ).fetchall()
        return [
            (
                Week1Slot(
                    id=row["slot_id"],
                    session_number=row["session_number"],
                    court_number=row["court_number"],
                    user_id=row["id"],
                ),
                _row_to_user(row),
                row["pair_pick"],
            )
            for row in rows
        ]

    def reassign_week1_slots(self, season_id: int, updates: Sequence[Tuple[int, str]]) -> None:
        """Point each ``(slot_id, user_id)`` at its new player in one transaction."""

        with self._connection() as conn:
            for slot_id, user_id in updates:
                conn.execute(
                    "UPDATE week1_rosters SET user = ? WHERE id = ? AND season = ?",
                    (user_id, slot_id, season_id),
                )

    # Week 2 roster operations ------------------------------------------
    def add_week2_slot(
        self,
        season_id: int,
        user_id: str,
        *,
        division_id: int,
        team_number: int,
        is_captain: bool = False,
    ) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO week2_rosters (season, user, division, team_number, is_captain)
                VALUES (?, ?, ?, ?, ?)
                """,
                (season_id, user_id, division_id, team_number, int(is_captain)),
            )
        return cursor.lastrowid

    def list_week2_slots(self, season_id: int) -> List[Week2Slot]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT w.id, w.division, v.name AS division_name, w.team_number, w.user, w.is_captain
                FROM week2_rosters w
                JOIN divisions v ON v.id = w.division
                WHERE w.season = ?
                ORDER BY v.level, w.team_number, w.id
                """,
                (season_id,),
            ).fetchall()
        return [
            Week2Slot(
                id=row["id"],
                division_id=row["division"],
                division_name=row["division_name"],
                team_number=row["team_number"],
                user_id=row["user"],
                is_captain=_to_bool(row["is_captain"]),
            )
            for row in rows
        ]

    def week2_sheet_rows(self, season_id: int) -> List[Tuple[Week2Slot, User, Optional[str]]]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT u.*, w.id AS slot_id, w.division AS division_id, v.name AS division_name,
                       w.team_number, w.is_captain, s.pair_pick
                FROM week2_rosters w
                JOIN users u ON u.id = w.user
                JOIN divisions v ON v.id = w.division
                LEFT JOIN signups s ON s.player = w.user AND s.season = ?
                WHERE w.season = ?
                ORDER BY v.level, w.team_number, u.last_name
                """,
                (season_id, season_id),
            ).fetchall()
        return [
            (
                Week2Slot(
                    id=row["slot_id"],
                    division_id=row["division_id"],
                    division_name=row["division_name"],
                    team_number=row["team_number"],
                    user_id=row["id"],
                    is_captain=_to_bool(row["is_captain"]),
                ),
                _row_to_user(row),
                row["pair_pick"],
            )
            for row in rows
        ]

    def reassign_week2_slots(self, season_id: int, updates: Sequence[Tuple[int, str]]) -> None:
        with self._connection() as conn:
            for slot_id, user_id in updates:
                conn.execute(
                    "UPDATE week2_rosters SET user = ? WHERE id = ? AND season = ?",
                    (user_id, slot_id, season_id),
                )

    # Waitlist operations -----------------------------------------------
    def add_waitlist_entry(
        self, season_id: int, user_id: str, *, created_at: Optional[datetime] = None
    ) -> Optional[int]:
        """Returns the new entry id, or ``None`` when the user already has one for the season."""

        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO waitlist (season, user, approved, created_at) VALUES (?, ?, 0, ?)",
                (season_id, user_id, _iso_datetime(created_at or datetime.utcnow())),
            )
        return cursor.lastrowid if cursor.rowcount else None

    def get_waitlist_user(self, season_id: int, waitlist_id: int) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT user FROM waitlist WHERE id = ? AND season = ?",
                (waitlist_id, season_id),
            ).fetchone()
        return row["user"] if row else None

    def list_waitlist(self, season_id: int) -> List[WaitlistEntry]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT w.id AS waitlist_id, w.user, w.approved, w.created_at,
                       u.first_name, u.last_name, u.preferred_name, u.email, u.male
                FROM waitlist w
                JOIN users u ON u.id = w.user
                WHERE w.season = ?
                ORDER BY w.created_at, w.id
                """,
                (season_id,),
            ).fetchall()
        return [
            WaitlistEntry(
                waitlist_id=row["waitlist_id"],
                user_id=row["user"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                preferred_name=row["preferred_name"],
                email=row["email"],
                male=_to_optional_bool(row["male"]),
                approved=_to_bool(row["approved"]),
                created_at=_parse_datetime(row["created_at"]),
            )
            for row in rows
        ]

    def set_waitlist_approved(self, waitlist_id: int, *, approved: bool) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE waitlist SET approved = ? WHERE id = ?", (int(approved), waitlist_id)
            )

    # Evaluation operations ---------------------------------------------
    def evaluations_for(self, season_id: int, player_ids: Iterable[str]) -> Dict[str, str]:
        """Map player id to the evaluated division name."""

        ids = sorted(set(player_ids))
        if not ids:
            return {}
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT e.player, v.name FROM evaluations e
                JOIN divisions v ON v.id = e.division
                WHERE e.season = ? AND e.player IN ({_placeholders(ids)})
                ORDER BY e.id
                """,
                (season_id, *ids),
            ).fetchall()
        return {row["player"]: row["name"] for row in rows}

    def replace_evaluations(
        self, season_id: int, evaluator_id: str, entries: Sequence[Tuple[str, int]]
    ) -> None:
        """Swap the season's evaluations of the given players for ``entries``."""

        player_ids = sorted({player_id for player_id, _ in entries})
        with self._connection() as conn:
            if player_ids:
                conn.execute(
                    f"DELETE FROM evaluations WHERE season = ? AND player IN ({_placeholders(player_ids)})",
                    (season_id, *player_ids),
                )
            conn.executemany(
                "INSERT INTO evaluations (season, player, division, evaluator) VALUES (?, ?, ?, ?)",
                [(season_id, player_id, division_id, evaluator_id) for player_id, division_id in entries],
            )

    # Commissioner operations -------------------------------------------
    def list_commissioners(self, season_id: int) -> List[Tuple[int, str]]:
        """``(division_id, commissioner_id)`` pairs in insertion order."""

        with self._connection() as conn:
            rows = conn.execute(
                "SELECT division, commissioner FROM commissioners WHERE season = ? ORDER BY id",
                (season_id,),
            ).fetchall()
        return [(row["division"], row["commissioner"]) for row in rows]

    def replace_commissioners(self, season_id: int, assignments: Sequence[Tuple[int, str]]) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM commissioners WHERE season = ?", (season_id,))
            conn.executemany(
                "INSERT INTO commissioners (season, division, commissioner) VALUES (?, ?, ?)",
                [(season_id, division_id, user_id) for division_id, user_id in assignments],
            )

    def is_commissioner_for_season(self, user_id: str, season_id: int) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id FROM commissioners WHERE season = ? AND commissioner = ? LIMIT 1",
                (season_id, user_id),
            ).fetchone()
        return row is not None

    # Audit log ---------------------------------------------------------
    def add_audit_entry(
        self,
        user_id: str,
        *,
        action: str,
        summary: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO audit_log (user, action, entity_type, entity_id, summary, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, action, entity_type, entity_id, summary, _iso_datetime(datetime.utcnow())),
            )
        return cursor.lastrowid

    def list_audit_entries(self) -> List[AuditEntry]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM audit_log ORDER BY id").fetchall()
        return [
            AuditEntry(
                id=row["id"],
                user_id=row["user"],
                action=row["action"],
                entity_type=row["entity_type"],
                entity_id=row["entity_id"],
                summary=row["summary"],
                created_at=_parse_datetime(row["created_at"]),
            )
            for row in rows
        ]


def player_name(user: User) -> PlayerName:
    return PlayerName(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        preferred_name=user.preferred_name,
    )


__all__ = ["EDITABLE_USER_COLUMNS", "LeagueRepository", "player_name"]

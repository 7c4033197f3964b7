"""User and friendship storage backed by SQLite."""

from __future__ import annotations

import sqlite3
from pathlib import Path

USER_UNKNOWN = -1
USER_OFFLINE = 0
USER_ONLINE = 1
ALREADY_FRIENDS = -2

DELETE_INVALID = 0
DELETE_OK = 1
DELETE_NOT_FRIENDS = -1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS user_info (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    pwd TEXT NOT NULL,
    online INTEGER NOT NULL DEFAULT 0,
    signature TEXT
);
CREATE TABLE IF NOT EXISTS friend (
    user_id INTEGER NOT NULL REFERENCES user_info(id),
    friend_id INTEGER NOT NULL REFERENCES user_info(id)
);
"""

_PAIR_CONDITION = """
    (user_id = (SELECT id FROM user_info WHERE name = :cur)
     AND friend_id = (SELECT id FROM user_info WHERE name = :tar))
    OR
    (friend_id = (SELECT id FROM user_info WHERE name = :cur)
     AND user_id = (SELECT id FROM user_info WHERE name = :tar))
"""

_FRIEND_IDS = """
    SELECT user_id FROM friend
        WHERE friend_id = (SELECT id FROM user_info WHERE name = :name)
    UNION
    SELECT friend_id FROM friend
        WHERE user_id = (SELECT id FROM user_info WHERE name = :name)
"""


class Database:
    """Accounts, online state and friendships."""

    def __init__(self, path=":memory:") -> None:
        target = path if path == ":memory:" else str(Path(path))
        self._conn = sqlite3.connect(target)
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    def _exists(self, name: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM user_info WHERE name = ?", (name,)).fetchone()
        return row is not None

    def _are_friends(self, cur_name: str, tar_name: str) -> bool:
        row = self._conn.execute(
            f"SELECT 1 FROM friend WHERE {_PAIR_CONDITION}",
            {"cur": cur_name, "tar": tar_name},
        ).fetchone()
        return row is not None

    def create_user(self, name: str, pwd: str, signature: str = "") -> bool:
        """Insert an account with a signature; False if the name is taken."""
        if name is None or pwd is None:
            return False
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO user_info(name, pwd, signature) VALUES (?, ?, ?)",
                    (name, pwd, signature),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def register(self, name: str, pwd: str) -> bool:
        """Create an account; False if a name or password is missing or the name is taken."""
        if name is None or pwd is None or self._exists(name):
            return False
        try:
            with self._conn:
                self._conn.execute("INSERT INTO user_info(name, pwd) VALUES (?, ?)", (name, pwd))
        except sqlite3.IntegrityError:
            return False
        return True

    def login(self, name: str, pwd: str) -> bool:
        """Check credentials and mark the user online."""
        if name is None or pwd is None:
            return False
        row = self._conn.execute(
            "SELECT 1 FROM user_info WHERE name = ? AND pwd = ?", (name, pwd)
        ).fetchone()
        if row is None:
            return False
        with self._conn:
            self._conn.execute(
                "UPDATE user_info SET online = 1 WHERE name = ? AND pwd = ?", (name, pwd)
            )
        return True

    def set_offline(self, name: str) -> None:
        """Mark the user offline."""
        if name is None:
            return
        with self._conn:
            self._conn.execute("UPDATE user_info SET online = 0 WHERE name = ?", (name,))

    def search_user(self, name: str) -> int:
        """Return the user's online state, or USER_UNKNOWN."""
        if name is None:
            return USER_UNKNOWN
        row = self._conn.execute("SELECT online FROM user_info WHERE name = ?", (name,)).fetchone()
        return USER_UNKNOWN if row is None else int(row[0])

    def online_users(self) -> list[str]:
        """Names of every user currently online."""
        rows = self._conn.execute("SELECT name FROM user_info WHERE online = 1 ORDER BY id")
        return [name for (name,) in rows]

    def add_friend(self, cur_name: str, tar_name: str) -> int:
        """ALREADY_FRIENDS, the target's online state, or USER_UNKNOWN."""
        if cur_name is None or tar_name is None:
            return USER_UNKNOWN
        if self._are_friends(cur_name, tar_name):
            return ALREADY_FRIENDS
        return self.search_user(tar_name)

    def agree_friend(self, cur_name: str, tar_name: str) -> None:
        """Record a friendship between two existing users."""
        if cur_name is None or tar_name is None:
            return
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO friend(user_id, friend_id)
                SELECT u1.id, u2.id FROM user_info u1, user_info u2
                WHERE u1.name = ? AND u2.name = ?
                """,
                (cur_name, tar_name),
            )

    def friends(self, name: str) -> list[str]:
        """Names of the user's friends."""
        rows = self._conn.execute(
            f"SELECT name FROM user_info WHERE id IN ({_FRIEND_IDS}) ORDER BY id",
            {"name": name},
        )
        return [friend for (friend,) in rows]

    def friend_signatures(self, name: str) -> dict[str, str]:
        """Map each friend's name to their signature, ordered by name."""
        rows = self._conn.execute(
            f"SELECT name, signature FROM user_info WHERE id IN ({_FRIEND_IDS})",
            {"name": name},
        )
        return {friend: signature or "" for friend, signature in sorted(rows)}

    def delete_friend(self, cur_name: str, tar_name: str) -> int:
        """DELETE_OK, DELETE_NOT_FRIENDS, or DELETE_INVALID for missing names."""
        if cur_name is None or tar_name is None:
            return DELETE_INVALID
        if not self._are_friends(cur_name, tar_name):
            return DELETE_NOT_FRIENDS
        with self._conn:
            self._conn.execute(
                f"DELETE FROM friend WHERE {_PAIR_CONDITION}",
                {"cur": cur_name, "tar": tar_name},
            )
        return DELETE_OK
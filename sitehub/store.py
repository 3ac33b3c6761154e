"""Persistence of the sites a user may access, and the roles held on each."""

from __future__ import annotations

import copy
import itertools
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

TABLE_NAME = "USERSITE"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    name varchar(128) NOT NULL,
    "user" varchar(128) NOT NULL,
    url varchar(256) NOT NULL,
    permission_list varchar(256) NOT NULL,
    created TEXT NOT NULL,
    PRIMARY KEY (name, "user")
)
"""

_SAVEPOINTS = itertools.count(1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserSiteEntity:
    """Access of a user to a site, with the roles granted there."""

    name: str
    user: str
    url: str = ""
    perm_list: str = ""
    created_at: datetime = field(default_factory=_now)

    def __str__(self) -> str:
        return f"UserSiteEntity: '{self.name},{self.user}'"


class Repository(ABC):
    """Storage of user/site entries."""

    @abstractmethod
    def get_sites_for_user(self, user: str) -> list[UserSiteEntity]:
        """Return the sites of ``user``, ordered by name."""

    @abstractmethod
    def get_users_for_site(self, site: str) -> list[str]:
        """Return the users who have access to ``site``."""

    @abstractmethod
    def store_site_for_user(self, sites: Sequence[UserSiteEntity]) -> None:
        """Replace the sites of the user of the first entry with ``sites``."""

    @abstractmethod
    def in_unit_of_work(self, handle: Callable[[Repository], object]) -> None:
        """Run ``handle`` atomically; an exception rolls back its changes."""


class SqliteRepository(Repository):
    """Repository backed by an SQLite database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        # transactions are controlled explicitly through savepoints
        connection.isolation_level = None
        self._con = connection

    @classmethod
    def open(cls, path: str) -> SqliteRepository:
        """Open the database at ``path`` (``:memory:`` for a private one)."""
        return cls(sqlite3.connect(path, isolation_level=None))

    def migrate(self) -> None:
        """Create the table if it does not exist yet."""
        self._con.execute(_SCHEMA)

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> SqliteRepository:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _savepoint(self) -> Iterator[None]:
        name = f"sp_{next(_SAVEPOINTS)}"
        self._con.execute(f"SAVEPOINT {name}")
        try:
            yield
        except BaseException:
            self._con.execute(f"ROLLBACK TO {name}")
            self._con.execute(f"RELEASE {name}")
            raise
        self._con.execute(f"RELEASE {name}")

    def get_sites_for_user(self, user: str) -> list[UserSiteEntity]:
        rows = self._con.execute(
            f'SELECT name, "user", url, permission_list, created FROM {TABLE_NAME} '
            f'WHERE lower("user") = ? ORDER BY name',
            (user.lower(),),
        )
        return [
            UserSiteEntity(
                name=name,
                user=owner,
                url=url,
                perm_list=perm_list,
                created_at=datetime.fromisoformat(created),
            )
            for name, owner, url, perm_list, created in rows
        ]

    def get_users_for_site(self, site: str) -> list[str]:
        rows = self._con.execute(
            f'SELECT "user" FROM {TABLE_NAME} WHERE lower(name) = ?', (site.lower(),)
        )
        return [owner for (owner,) in rows]

    def store_site_for_user(self, sites: Sequence[UserSiteEntity]) -> None:
        if not sites:
            raise ValueError("no sites supplied to store")
        try:
            self._con.execute(
                f'DELETE FROM {TABLE_NAME} WHERE "user" = ?', (sites[0].user,)
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"could not delete the sites for user, {exc}") from exc

        with self._savepoint():
            cursor = self._con.executemany(
                f'INSERT INTO {TABLE_NAME} (name, "user", url, permission_list, created) '
                f"VALUES (?, ?, ?, ?, ?)",
                [
                    (s.name, s.user, s.url, s.perm_list, s.created_at.isoformat())
                    for s in sites
                ],
            )
            if cursor.rowcount != len(sites):
                raise RuntimeError(
                    f"invalid number of rows affected, got {cursor.rowcount}"
                )

    def in_unit_of_work(self, handle: Callable[[Repository], object]) -> None:
        with self._savepoint():
            handle(SqliteRepository(self._con))


class MemoryRepository(Repository):
    """Repository keeping the entries in memory, keyed by user."""

    def __init__(self, sites: Mapping[str, Sequence[UserSiteEntity]] | None = None) -> None:
        self._sites: dict[str, list[UserSiteEntity]] = {
            user: [replace(entry) for entry in entries]
            for user, entries in (sites or {}).items()
        }

    def _entries(self) -> Iterator[UserSiteEntity]:
        for entries in self._sites.values():
            yield from entries

    def get_sites_for_user(self, user: str) -> list[UserSiteEntity]:
        wanted = user.lower()
        found = [replace(e) for e in self._entries() if e.user.lower() == wanted]
        return sorted(found, key=lambda e: e.name)

    def get_users_for_site(self, site: str) -> list[str]:
        wanted = site.lower()
        return [e.user for e in self._entries() if e.name.lower() == wanted]

    def store_site_for_user(self, sites: Sequence[UserSiteEntity]) -> None:
        if not sites:
            raise ValueError("no sites supplied to store")
        owner = sites[0].user
        for entries in self._sites.values():
            entries[:] = [e for e in entries if e.user != owner]
        for entry in sites:
            self._sites.setdefault(entry.user, []).append(replace(entry))

    def in_unit_of_work(self, handle: Callable[[Repository], object]) -> None:
        snapshot = copy.deepcopy(self._sites)
        try:
            handle(self)
        except BaseException:
            self._sites = snapshot
            raise
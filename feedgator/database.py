"""SQLite storage for users, feeds, feed follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from feedgator.models import Feed, FeedFollowRow, Post, PostWithFeed, User

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_USER_COLUMNS = "users.id, users.created_at, users.updated_at, users.name"
_FEED_COLUMNS = (
    "feeds.id, feeds.created_at, feeds.updated_at, feeds.name, feeds.url, "
    "feeds.user_id, feeds.last_fetched_at"
)
_POST_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
    "posts.description, posts.published_at, posts.feed_id"
)
_FOLLOW_ROW_QUERY = """
SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,
       feed_follows.user_id, feed_follows.feed_id,
       feeds.name AS feed_name, users.name AS user_name
FROM feed_follows
INNER JOIN feeds ON feed_follows.feed_id = feeds.id
INNER JOIN users ON feed_follows.user_id = users.id
"""

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


class NotFoundError(LookupError):
    """Raised when a query that expects one row finds none."""


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime(_TIME_FORMAT)


def _from_db_time(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _now() -> str:
    return _to_db_time(datetime.now(timezone.utc))


def _user(row: tuple) -> User:
    return User(uuid.UUID(row[0]), _from_db_time(row[1]), _from_db_time(row[2]), row[3])


def _feed(row: tuple) -> Feed:
    return Feed(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        name=row[3],
        url=row[4],
        user_id=uuid.UUID(row[5]),
        last_fetched_at=_from_db_time(row[6]),
    )


def _follow_row(row: tuple) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        user_id=uuid.UUID(row[3]),
        feed_id=uuid.UUID(row[4]),
        feed_name=row[5],
        user_name=row[6],
    )


def _post(row: tuple) -> Post:
    return Post(
        id=uuid.UUID(row[0]),
        created_at=_from_db_time(row[1]),
        updated_at=_from_db_time(row[2]),
        title=row[3],
        url=row[4],
        description=row[5],
        published_at=_from_db_time(row[6]),
        feed_id=uuid.UUID(row[7]),
    )


def _post_with_feed(row: tuple) -> PostWithFeed:
    post = _post(row)
    return PostWithFeed(
        id=post.id,
        created_at=post.created_at,
        updated_at=post.updated_at,
        title=post.title,
        url=post.url,
        description=post.description,
        published_at=post.published_at,
        feed_id=post.feed_id,
        feed_name=row[8],
    )


class Queries:
    """The queries the application runs against its database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def _one(self, sql: str, params: tuple, convert: Callable[[tuple], T], what: str) -> T:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError(what)
        return convert(row)

    def _many(self, sql: str, params: tuple, convert: Callable[[tuple], T]) -> list[T]:
        return [convert(row) for row in self._conn.execute(sql, params)]

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._conn:
            return self._conn.execute(sql, params)

    # users

    def create_user(self, id, created_at, updated_at, name) -> User:
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _to_db_time(created_at), _to_db_time(updated_at), name),
        )
        return self.get_user_by_id(id)

    def delete_users(self) -> None:
        self._execute("DELETE FROM users")

    def get_user(self, name) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?",
            (name,),
            _user,
            f"no user named {name!r}",
        )

    def get_user_by_id(self, id) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
            (str(id),),
            _user,
            f"no user with id {id}",
        )

    def get_users(self) -> list[User]:
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    # feeds

    def create_feed(self, id, created_at, updated_at, name, url, user_id) -> Feed:
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                name,
                url,
                str(user_id),
            ),
        )
        return self._feed_by_id(id)

    def _feed_by_id(self, id) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?",
            (str(id),),
            _feed,
            f"no feed with id {id}",
        )

    def get_feed_by_url(self, url) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?",
            (url,),
            _feed,
            f"no feed with url {url!r}",
        )

    def get_feeds(self) -> list[Feed]:
        return self._many(f"SELECT {_FEED_COLUMNS} FROM feeds", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
            "no feeds to fetch",
        )

    def mark_feed_fetched(self, id) -> Feed:
        now = _now()
        cursor = self._execute(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(id)),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"no feed with id {id}")
        return self._feed_by_id(id)

    # feed follows

    def create_feed_follow(self, id, created_at, updated_at, user_id, feed_id) -> FeedFollowRow:
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                str(id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                str(user_id),
                str(feed_id),
            ),
        )
        return self._one(
            _FOLLOW_ROW_QUERY + "WHERE feed_follows.id = ?",
            (str(id),),
            _follow_row,
            f"no feed follow with id {id}",
        )

    def delete_feed_follow(self, feed_id, user_id) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE feed_id = ? AND user_id = ?",
            (str(feed_id), str(user_id)),
        )

    def get_feed_follows_for_user(self, user_id) -> list[FeedFollowRow]:
        return self._many(
            _FOLLOW_ROW_QUERY + "WHERE feed_follows.user_id = ?",
            (str(user_id),),
            _follow_row,
        )

    # posts

    def create_post(
        self, id, created_at, updated_at, title, url, description, published_at, feed_id
    ) -> Post:
        self._execute(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description, "
            "published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _to_db_time(created_at),
                _to_db_time(updated_at),
                title,
                url,
                description,
                _to_db_time(published_at),
                str(feed_id),
            ),
        )
        return self._one(
            f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?",
            (str(id),),
            _post,
            f"no post with id {id}",
        )

    def get_posts_for_user(self, user_id, limit) -> list[PostWithFeed]:
        if limit < 0:
            raise ValueError("limit must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS}, feeds.name AS feed_name FROM posts "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at IS NULL DESC, posts.published_at DESC "
            "LIMIT ?",
            (str(user_id), int(limit)),
            _post_with_feed,
        )


def connect(url: str) -> Queries:
    """Open the database named by ``url`` and make sure its tables exist.

    ``url`` is a file path, ``:memory:``, or a ``sqlite://`` URL.
    """
    if url.startswith("sqlite://"):
        rest = url[len("sqlite://"):]
        path = rest[1:] if rest.startswith("/") else rest
        if not path:
            path = ":memory:"
    elif "://" in url:
        raise ValueError(f"unsupported database url: {url!r}")
    else:
        path = url
    queries = Queries(sqlite3.connect(path))
    queries.create_schema()
    return queries
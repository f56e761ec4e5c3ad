"""The handlers behind each command."""

from __future__ import annotations

import logging
import re
import sqlite3
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from feedgator.commands import Command, CommandError, State
from feedgator.database import NotFoundError, Queries
from feedgator.models import Feed, User
from feedgator.rss import FeedFetchError, RSSFeed, fetch_feed

log = logging.getLogger(__name__)

SEPARATOR = "====================================="

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

Fetcher = Callable[[str], RSSFeed]


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1m30s`` or ``500ms``."""
    body = text
    sign = 1
    if body[:1] in "+-" and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {text!r}")
    seconds = 0.0
    pos = 0
    while pos < len(body):
        match = _PART.match(body, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return timedelta(seconds=sign * seconds)


def parse_pub_date(text: str) -> datetime | None:
    """Parse an RFC 1123 date with numeric zone, or return None."""
    try:
        return datetime.strptime(text.strip(), "%a, %d %b %Y %H:%M:%S %z")
    except ValueError:
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _print_user(user: User) -> None:
    print(f" * ID:      {user.id}")
    print(f" * Name:    {user.name}")


def _print_feed(feed: Feed, user: User) -> None:
    print(f"* ID:            {feed.id}")
    print(f"* Created:       {feed.created_at}")
    print(f"* Updated:       {feed.updated_at}")
    print(f"* Name:          {feed.name}")
    print(f"* URL:           {feed.url}")
    print(f"* UserID:        {feed.user_id}")
    print(f"* User:          {user.name}")


def _print_feed_follow(user_name: str, feed_name: str) -> None:
    print(f"* User:          {user_name}")
    print(f"* Feed:          {feed_name}")


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    now = _now()
    try:
        user = state.db.create_user(uuid.uuid4(), now, now, cmd.args[0])
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User created successfully:")
    _print_user(user)


def handler_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except NotFoundError as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    try:
        state.config.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handler_users(state: State, cmd: Command) -> None:
    for user in state.db.get_users():
        if user.name == state.config.current_user_name:
            print(f" * {user.name} (current)")
        else:
            print(f" * {user.name}")


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_users()
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't delete users: {exc}") from exc
    print("Database reset successfully!")


def handler_agg(state: State, cmd: Command) -> None:
    """Collect feeds forever, one every interval."""
    if not 1 <= len(cmd.args) <= 2:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("invalid duration: must be positive")
    log.info("Collecting feeds every %s...", interval)
    while True:
        scrape_feeds(state)
        time.sleep(interval.total_seconds())


def scrape_feeds(state: State, fetch: Fetcher = fetch_feed) -> int:
    """Collect the feed fetched longest ago; return the number of posts stored."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except NotFoundError as exc:
        log.info("Couldn't get next feeds to fetch: %s", exc)
        return 0
    log.info("Found a feed to fetch!")
    return scrape_feed(state.db, feed, fetch)


def scrape_feed(db: Queries, feed: Feed, fetch: Fetcher = fetch_feed) -> int:
    """Fetch ``feed`` and store its new items; return the number stored."""
    try:
        db.mark_feed_fetched(feed.id)
    except (NotFoundError, sqlite3.Error) as exc:
        log.warning("Couldn't mark feed %s fetched: %s", feed.name, exc)
        return 0
    try:
        data = fetch(feed.url)
    except FeedFetchError as exc:
        log.warning("Couldn't collect feed %s: %s", feed.name, exc)
        return 0
    stored = 0
    for item in data.items:
        now = _now()
        try:
            db.create_post(
                uuid.uuid4(),
                now,
                now,
                item.title,
                item.link,
                item.description,
                parse_pub_date(item.pub_date),
                feed.id,
            )
        except sqlite3.IntegrityError:
            continue
        except sqlite3.Error as exc:
            log.warning("Couldn't create post: %s", exc)
            continue
        stored += 1
    log.info("Feed %s collected, %d posts found", feed.name, len(data.items))
    return stored


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print("Feed created successfully:")
    _print_feed(feed, user)
    print()
    print("Feed followed successfully:")
    _print_feed_follow(follow.user_name, follow.feed_name)
    print(SEPARATOR)


def handler_list_feeds(state: State, cmd: Command) -> None:
    feeds = state.db.get_feeds()
    if not feeds:
        print("No feeds found.")
        return
    print("Feeds:")
    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except NotFoundError as exc:
            raise CommandError(f"couldn't get user: {exc}") from exc
        _print_feed(feed, user)
        print(SEPARATOR)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except NotFoundError as exc:
        raise CommandError(f"couldn't get feed: {exc}") from exc
    now = _now()
    try:
        row = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print("Feed follow created:")
    _print_feed_follow(row.user_name, row.feed_name)


def handler_list_feed_follows(state: State, cmd: Command, user: User) -> None:
    follows = state.db.get_feed_follows_for_user(user.id)
    if not follows:
        print("No feed follows found for this user.")
        return
    print(f"Feed follows for user {user.name}:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except NotFoundError as exc:
        raise CommandError(f"couldn't get feed: {exc}") from exc
    try:
        state.db.delete_feed_follow(feed.id, user.id)
    except sqlite3.Error as exc:
        raise CommandError(f"couldn't delete feed follow: {exc}") from exc
    print("Feed unfollowed successfully.")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    limit = 2
    if len(cmd.args) == 1:
        try:
            limit = int(cmd.args[0])
        except ValueError as exc:
            raise CommandError(f"invalid limit: {exc}") from exc
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except (ValueError, sqlite3.Error) as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc
    print(f"Found {len(posts)} posts for user {user.name}:")
    for post in posts:
        published = post.published_at or datetime(1, 1, 1)
        print(f"{published:%a %b} {published.day} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(SEPARATOR)
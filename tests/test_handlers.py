from datetime import timedelta
from unittest.mock import patch

import pytest

from feedgator.commands import Command, CommandError, State
from feedgator.config import Config, read_config
from feedgator.database import connect
from feedgator.handlers import (
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_follow,
    handler_list_feed_follows,
    handler_list_feeds,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
    parse_duration,
    parse_pub_date,
    scrape_feed,
    scrape_feeds,
)
from feedgator.rss import FeedFetchError, RSSFeed, RSSItem


@pytest.fixture
def state(tmp_path):
    db = connect(":memory:")
    yield State(db=db, config=Config(db_url=":memory:", path=tmp_path / "cfg.json"))
    db.close()


def _login(state, name="alice"):
    handler_register(state, Command("register", [name]))
    return state.db.get_user(name)


FEED = RSSFeed(
    items=[
        RSSItem("Hello", "https://example.com/a", "desc a", "Tue, 05 Mar 2024 10:00:00 +0000"),
        RSSItem("World", "https://example.com/b", "desc b", "garbage"),
    ]
)


def test_parse_duration():
    assert parse_duration("1m30s") == timedelta(seconds=90)
    assert parse_duration("0") == timedelta(0)
    with pytest.raises(ValueError):
        parse_duration("10")
    with pytest.raises(ValueError):
        parse_duration("5x")


def test_parse_pub_date():
    parsed = parse_pub_date("Mon, 02 Jan 2006 15:04:05 -0700")
    assert (parsed.year, parsed.hour, parsed.utcoffset()) == (2006, 15, timedelta(hours=-7))
    assert parse_pub_date("yesterday") is None


def test_register_saves_config(state, capsys):
    user = _login(state)
    assert user.name == "alice"
    assert read_config(state.config.path).current_user_name == "alice"
    assert "User created successfully:" in capsys.readouterr().out


def test_register_errors(state):
    with pytest.raises(CommandError, match="usage: register <name>"):
        handler_register(state, Command("register", []))
    _login(state)
    with pytest.raises(CommandError, match="couldn't create user"):
        handler_register(state, Command("register", ["alice"]))


def test_login_and_users(state, capsys):
    _login(state, "alice")
    _login(state, "bob")
    handler_login(state, Command("login", ["alice"]))
    assert state.config.current_user_name == "alice"
    with pytest.raises(CommandError, match="couldn't find user"):
        handler_login(state, Command("login", ["carol"]))
    capsys.readouterr()
    handler_users(state, Command("users"))
    out = capsys.readouterr().out
    assert " * alice (current)\n" in out
    assert " * bob\n" in out


def test_reset(state):
    _login(state)
    handler_reset(state, Command("reset"))
    assert state.db.get_users() == []


def test_add_feed_follow_unfollow(state, capsys):
    user = _login(state)
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    assert [f.name for f in state.db.get_feeds()] == ["News"]
    capsys.readouterr()
    handler_list_feed_follows(state, Command("following"), user)
    assert "* News" in capsys.readouterr().out

    bob = _login(state, "bob")
    handler_follow(state, Command("follow", ["https://example.com/rss"]), bob)
    assert len(state.db.get_feed_follows_for_user(bob.id)) == 1
    handler_unfollow(state, Command("unfollow", ["https://example.com/rss"]), bob)
    assert state.db.get_feed_follows_for_user(bob.id) == []
    with pytest.raises(CommandError, match="couldn't get feed"):
        handler_follow(state, Command("follow", ["https://example.com/none"]), bob)
    with pytest.raises(CommandError, match="usage: addfeed <name> <url>"):
        handler_add_feed(state, Command("addfeed", ["x"]), bob)


def test_list_feeds(state, capsys):
    handler_list_feeds(state, Command("feeds"))
    assert "No feeds found." in capsys.readouterr().out
    user = _login(state)
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    capsys.readouterr()
    handler_list_feeds(state, Command("feeds"))
    out = capsys.readouterr().out
    assert "* User:          alice" in out
    assert "* URL:           https://example.com/rss" in out


def test_scrape_and_browse(state, capsys):
    user = _login(state)
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    fetched = []

    def fetch(url):
        fetched.append(url)
        return FEED

    assert scrape_feeds(state, fetch) == 2
    assert fetched == ["https://example.com/rss"]
    feed = state.db.get_feeds()[0]
    assert scrape_feed(state.db, feed, fetch) == 0
    capsys.readouterr()
    handler_browse(state, Command("browse", ["5"]), user)
    out = capsys.readouterr().out
    assert "Found 2 posts for user alice:" in out
    assert "Tue Mar 5 from News" in out
    assert "--- World ---" in out
    with pytest.raises(CommandError, match="invalid limit"):
        handler_browse(state, Command("browse", ["many"]), user)


def test_scrape_fetch_failure_marks_fetched(state):
    user = _login(state)
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)

    def fail(url):
        raise FeedFetchError("down")

    assert scrape_feeds(state, fail) == 0
    assert state.db.get_feeds()[0].last_fetched_at is not None
    assert state.db.get_posts_for_user(user.id, 10) == []


def test_scrape_feeds_without_feeds(state):
    assert scrape_feeds(state, lambda url: FEED) == 0


def test_agg_argument_errors(state):
    with pytest.raises(CommandError, match="usage: agg <time_between_reqs>"):
        handler_agg(state, Command("agg", []))
    with pytest.raises(CommandError, match="invalid duration"):
        handler_agg(state, Command("agg", ["soon"]))


def test_agg_sleeps_between_rounds(state):
    with patch("feedgator.handlers.time.sleep", side_effect=KeyboardInterrupt) as sleep:
        with pytest.raises(KeyboardInterrupt):
            handler_agg(state, Command("agg", ["2s"]))
    sleep.assert_called_once_with(2.0)
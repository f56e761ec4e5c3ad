# feedgator

feedgator is a small command-line RSS aggregator. You register users, add
RSS feeds, follow the feeds you care about, and let the aggregator collect
their posts into a local SQLite database so you can browse the latest ones
from your terminal.

It uses only the Python standard library.

## Installation

```
pip install .
```

This installs the `feedgator` command.

## Configuration

feedgator reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run, or every command stops
with "error reading config":

```json
{"db_url": "/home/me/feedgator.db", "current_user_name": ""}
```

- `db_url` names the SQLite database. It may be a file path, `:memory:`, or
  a `sqlite://` URL (`sqlite:///path/to/file.db`). The tables are created on
  first use.
- `current_user_name` is the user who is logged in. `register` and `login`
  rewrite the file to update it.

## Usage

```
feedgator <command> [args...]
```

Messages and errors are logged to standard error. The command exits with
status 0 on success, 1 on an error (unknown command, wrong arguments, a
missing user or feed, a database error), and 130 when `agg` is stopped with
Ctrl-C.

### Users

| Command | What it does |
| --- | --- |
| `feedgator register <name>` | Create a user and log in as that user |
| `feedgator login <name>` | Switch to an existing user |
| `feedgator users` | List all users, marking the current one |
| `feedgator reset` | Delete all users, and with them their feeds, follows and posts |

### Feeds

These commands act for the logged-in user; they fail if that user does not
exist.

| Command | What it does |
| --- | --- |
| `feedgator addfeed <name> <url>` | Add a feed and follow it |
| `feedgator feeds` | List every feed and the user who added it |
| `feedgator follow <url>` | Follow a feed that already exists |
| `feedgator following` | List the feeds you follow |
| `feedgator unfollow <url>` | Stop following a feed |
| `feedgator browse [limit]` | Show posts from your feeds, 2 by default |

`browse` lists posts without a publication date first, then the rest from
newest to oldest. The limit must be a whole number that is not negative.

### Collecting posts

```
feedgator agg 1m
```

`agg` runs until you stop it with Ctrl-C. It collects one feed straight away
and then one more after each interval. Each time it picks the feed that was
fetched longest ago (feeds never fetched come first), downloads it with a
10-second timeout, and stores its items as posts. An item whose link is
already stored as a post is skipped.

The interval is a positive duration made of numbers with units `ns`, `us`,
`ms`, `s`, `m` or `h`, such as `30s`, `1m`, `1h30m` or `500ms`.

Item publication dates are read in the RFC 1123 form with a numeric zone,
for example `Mon, 02 Jan 2006 15:04:05 -0700`; items whose dates cannot be
read are still stored, without a publication date. HTML entities in titles
and descriptions are unescaped.

## Example session

```
feedgator register alice
feedgator addfeed "Example News" https://example.com/rss.xml
feedgator agg 30s      # leave running for a while, then Ctrl-C
feedgator browse 5
```

## Using it as a library

- `feedgator.rss.parse_feed(data)` parses an RSS document into an `RSSFeed`
  with a list of `RSSItem`s; `fetch_feed(url, timeout)` downloads and parses
  one, raising `FeedFetchError` on failure.
- `feedgator.database.connect(url)` opens a database and returns a `Queries`
  object with methods such as `create_user`, `get_feeds` and
  `get_posts_for_user`; lookups that find nothing raise `NotFoundError`.
- `feedgator.config.read_config()` and `write_config()` load and save the
  configuration file.

## What it does not do

Storage is SQLite only. A `db_url` with any other scheme, such as a
PostgreSQL URL, is rejected with "unsupported database url". Only RSS
channels are read; Atom feeds are not understood.

## Running the tests

```
pip install .[test]
pytest
```
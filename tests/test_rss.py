import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from feedgator.rss import FeedFetchError, RSSFeed, RSSItem, fetch_feed, parse_feed

SAMPLE = b"""<?xml version="1.0"?>
<rss version="2.0"><channel>
<title>Blog &amp;amp; News</title>
<link>https://example.com/</link>
<description>All &amp;lt;things&amp;gt;</description>
<item><title>First &amp;amp; best</title><link>https://example.com/1</link>
<description>One</description><pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>Second</title><link>https://example.com/2</link></item>
</channel></rss>"""


def test_parse_feed_reads_channel_and_unescapes():
    feed = parse_feed(SAMPLE)
    assert feed.title == "Blog & News"
    assert feed.description == "All <things>"
    assert feed.link == "https://example.com/"
    assert feed.items[0] == RSSItem(
        "First & best", "https://example.com/1", "One", "Mon, 02 Jan 2006 15:04:05 -0700"
    )
    assert feed.items[1].description == ""


def test_parse_feed_without_channel_is_empty():
    assert parse_feed("<rss></rss>") == RSSFeed()


def test_parse_feed_rejects_bad_xml():
    with pytest.raises(FeedFetchError, match="failed to parse XML"):
        parse_feed(b"<rss><channel>")


def test_fetch_feed_sends_user_agent():
    seen = {}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen["agent"] = self.headers.get("User-Agent")
            self.send_response(200)
            self.end_headers()
            self.wfile.write(SAMPLE)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.handle_request)
    thread.start()
    try:
        feed = fetch_feed(f"http://127.0.0.1:{server.server_port}/feed", timeout=5)
    finally:
        thread.join()
        server.server_close()
    assert seen["agent"] == "gator"
    assert len(feed.items) == 2
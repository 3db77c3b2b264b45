"""
Tests for feed parsing, description cleanup and feed discovery.
"""

import pytest

from crawler.exceptions import ParseError, RobotsDisallowedError
from crawler.feeds import clean_description, parse_feed
from crawler.profiles import HeaderProfile, SourceProfile, SourceType

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Example News</title>
    <link>https://news.example.com/</link>
    <item>
      <title>First story</title>
      <link>https://news.example.com/first</link>
      <description>&lt;p&gt;Hello &amp;amp; welcome&lt;/p&gt;</description>
      <pubDate>Sat, 01 Mar 2025 10:00:00 GMT</pubDate>
      <author>editor@example.com (Ed)</author>
      <category>science</category>
      <media:thumbnail url="https://cdn.example.com/first.jpg" />
    </item>
    <item>
      <title>No link here</title>
      <description>Dropped</description>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Atom</title>
  <id>urn:example</id>
  <updated>2025-03-01T10:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <link href="https://atom.example.com/entry-1" />
    <id>urn:entry-1</id>
    <updated>2025-03-01T10:00:00Z</updated>
    <content type="html">&lt;p&gt;See &lt;a href="https://elsewhere.example.org/a"&gt;this&lt;/a&gt;&lt;/p&gt;</content>
  </entry>
</feed>
"""


class TestCleanDescription:
    """Tests for description normalization."""

    def test_strips_tags_and_decodes_entities(self):
        assert clean_description("<p>Fish &amp; chips &lt;3</p>") == "Fish & chips <3"

    def test_decodes_quotes_and_nbsp(self):
        assert clean_description("&quot;hi&quot;&nbsp;&#39;there&#39;") == "\"hi\" 'there'"

    def test_entities_decoded_once(self):
        assert clean_description("AT&amp;amp;T &amp;lt;b&amp;gt;") == "AT&amp;T &lt;b&gt;"

    def test_truncates_to_500_characters(self):
        result = clean_description("x" * 800)
        assert len(result) == 500
        assert result.endswith("...")
        assert result[:497] == "x" * 497

    def test_paragraph_example(self):
        assert clean_description("<p>Hello &amp; welcome</p>") == "Hello & welcome"

    def test_short_text_untouched(self):
        assert clean_description("  plain text  ") == "plain text"

    def test_empty_is_none(self):
        assert clean_description("") is None
        assert clean_description(None) is None


class TestParseFeed:
    """Tests for RSS/Atom parsing into normalized items."""

    def test_parses_rss_items(self):
        items = parse_feed(RSS_FEED.encode(), "https://news.example.com/rss")

        assert len(items) == 1
        item = items[0]
        assert item.title == "First story"
        assert item.link == "https://news.example.com/first"
        assert item.description == "Hello & welcome"
        assert item.categories == ["science"]
        assert item.image_url == "https://cdn.example.com/first.jpg"
        assert item.pub_date

    def test_items_without_link_are_discarded(self):
        items = parse_feed(RSS_FEED.encode())
        assert all(item.link for item in items)
        assert "No link here" not in [item.title for item in items]

    def test_parses_atom_content(self):
        items = parse_feed(ATOM_FEED.encode())

        assert len(items) == 1
        assert items[0].link == "https://atom.example.com/entry-1"
        assert 'href="https://elsewhere.example.org/a"' in items[0].content

    def test_rejects_non_feed(self):
        with pytest.raises(ParseError):
            parse_feed(b"<html><body>Not a feed</body></html>", "https://example.com/")


class TestFeedFetcher:
    """Tests for fetching feeds through robots and header profiles."""

    @pytest.mark.asyncio
    async def test_fetch_uses_bot_headers(self, fake_http, feed_fetcher):
        fake_http.add("https://news.example.com/rss", RSS_FEED)

        items = await feed_fetcher.fetch("https://news.example.com/rss")

        assert len(items) == 1
        _, _, headers = fake_http.requests[-1]
        assert headers["User-Agent"] == "TestCrawler/1.0"
        assert "application/rss+xml" in headers["Accept"]

    @pytest.mark.asyncio
    async def test_fetch_uses_browser_headers(self, fake_http, feed_fetcher):
        fake_http.add("https://news.example.com/rss", RSS_FEED)
        profile = SourceProfile(SourceType.RSS, header_profile=HeaderProfile.BROWSER)

        await feed_fetcher.fetch("https://news.example.com/rss", profile)

        _, _, headers = fake_http.requests[-1]
        assert headers["User-Agent"].startswith("Mozilla/5.0")
        assert "Sec-Fetch-Mode" in headers

    @pytest.mark.asyncio
    async def test_fetch_respects_robots(self, fake_http, feed_fetcher):
        fake_http.add(
            "https://news.example.com/robots.txt",
            "User-agent: *\nDisallow: /rss\n",
            content_type="text/plain",
        )
        fake_http.add("https://news.example.com/rss", RSS_FEED)

        with pytest.raises(RobotsDisallowedError):
            await feed_fetcher.fetch("https://news.example.com/rss")
        assert fake_http.requested("https://news.example.com/rss") == 0


class TestFeedDiscovery:
    """Tests for finding feeds on a web page."""

    @pytest.mark.asyncio
    async def test_discovers_link_tags_and_common_paths(self, fake_http, feed_fetcher):
        fake_http.add(
            "https://blog.example.com/",
            """<html><head>
                 <link rel="alternate" type="application/rss+xml" href="/posts.rss">
                 <link rel="alternate" type="application/atom+xml" href="https://blog.example.com/atom.xml">
                 <link rel="stylesheet" href="/style.css">
               </head></html>""",
            content_type="text/html",
        )
        fake_http.add("https://blog.example.com/feed", "", content_type="application/rss+xml")
        fake_http.add("https://blog.example.com/rss", "", content_type="text/html")

        feeds = await feed_fetcher.discover_feeds("https://blog.example.com/")

        assert feeds == [
            "https://blog.example.com/posts.rss",
            "https://blog.example.com/atom.xml",
            "https://blog.example.com/feed",
        ]

    @pytest.mark.asyncio
    async def test_no_feeds_found(self, fake_http, feed_fetcher):
        fake_http.add("https://plain.example.com/", "<html></html>", content_type="text/html")

        assert await feed_fetcher.discover_feeds("https://plain.example.com/") == []

"""Tests for entry rendering."""

from bs4 import BeautifulSoup

from fluxreader.models import Entry
from fluxreader.render import render_entry, summarize


class TestRenderEntry:
    """Tests for render_entry."""

    def test_document_structure(self):
        """Test title, metadata and body placement."""
        entry = Entry(
            id=1,
            title="Hello World",
            url="https://example.com/hello",
            published_at="2024-01-02T10:30:00Z",
            content="<p>First</p><p>Second</p>",
            feed_title="Example Feed",
            category_title="News",
        )

        soup = BeautifulSoup(render_entry(entry), "html.parser")

        assert soup.title.string == "Hello World"
        assert soup.find("h1", class_="entry-title").string == "Hello World"
        meta = soup.find("div", class_="entry-meta").get_text(" ")
        assert "Example Feed (News)" in meta
        assert "Published 2024-01-02 10:30" in meta
        assert soup.find("div", class_="entry-meta").find("a")["href"] == "https://example.com/hello"
        paragraphs = soup.find("div", class_="entry-content").find_all("p")
        assert [p.string for p in paragraphs] == ["First", "Second"]

    def test_untitled_entry(self):
        """Test the fallback title."""
        soup = BeautifulSoup(render_entry(Entry(id=9, title="", content="<p>x</p>")), "html.parser")

        assert soup.title.string == "Entry 9"

    def test_title_is_escaped(self):
        """Test that titles are text, not markup."""
        html = render_entry(Entry(id=1, title="<b>Bold</b>", content="<p>x</p>"))

        assert "&lt;b&gt;Bold&lt;/b&gt;" in html

    def test_unparseable_date_kept(self):
        """Test that odd dates are shown as given."""
        soup = BeautifulSoup(
            render_entry(Entry(id=1, title="T", published_at="last week", content="<p>x</p>")),
            "html.parser",
        )

        assert "Published last week" in soup.find("div", class_="entry-meta").get_text()

    def test_nanosecond_date(self):
        """Test that nine-digit fractions are formatted."""
        soup = BeautifulSoup(
            render_entry(Entry(id=1, title="T", published_at="2024-01-02T10:30:00.123456789Z", content="<p>x</p>")),
            "html.parser",
        )

        assert "Published 2024-01-02 10:30" in soup.find("div", class_="entry-meta").get_text()


class TestSummarize:
    """Tests for summarize."""

    def test_strips_markup(self):
        assert summarize("<p>Hello <b>there</b></p>") == "Hello there"

    def test_empty(self):
        assert summarize(None) == ""

    def test_truncates(self):
        """Test truncation with an ellipsis."""
        text = summarize("<p>" + "word " * 50 + "</p>", length=20)

        assert len(text) <= 20
        assert text.endswith("…")

"""HTML rendering of downloaded entries."""

from typing import Optional

from bs4 import BeautifulSoup

from .direction import parse_datetime
from .models import Entry

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title></title>
  <style>
    body { font-family: serif; max-width: 42em; margin: 1em auto; line-height: 1.5; }
    .entry-meta { color: #555; font-size: 0.9em; }
    img { max-width: 100%; height: auto; }
  </style>
</head>
<body>
  <article>
    <h1 class="entry-title"></h1>
    <div class="entry-meta"></div>
    <div class="entry-content"></div>
  </article>
</body>
</html>
"""


def render_entry(entry: Entry) -> str:
    """Render an entry as a standalone HTML document.

    Args:
        entry: Entry with content from the API

    Returns:
        The HTML document as a string
    """
    soup = BeautifulSoup(DOCUMENT_TEMPLATE, "html.parser")
    title = entry.title or f"Entry {entry.id}"
    soup.title.string = title
    soup.find("h1", class_="entry-title").string = title

    meta = soup.find("div", class_="entry-meta")
    for text, href in _meta_lines(entry):
        line = soup.new_tag("p")
        if href:
            link = soup.new_tag("a", href=href)
            link.string = text
            line.append(link)
        else:
            line.string = text
        meta.append(line)

    content = soup.find("div", class_="entry-content")
    body = BeautifulSoup(entry.content or "", "html.parser")
    for node in list(body.contents):
        content.append(node.extract())

    return str(soup)


def summarize(html: Optional[str], length: int = 120) -> str:
    """Plain-text excerpt of entry content for listings."""
    if not html:
        return ""
    text = " ".join(BeautifulSoup(html, "html.parser").get_text(" ", strip=True).split())
    if len(text) <= length:
        return text
    return text[: length - 1].rstrip() + "…"


def _meta_lines(entry: Entry) -> list[tuple[str, Optional[str]]]:
    lines: list[tuple[str, Optional[str]]] = []
    if entry.feed_title:
        source = entry.feed_title
        if entry.category_title:
            source = f"{source} ({entry.category_title})"
        lines.append((source, None))
    published = _format_date(entry.published_at)
    if published:
        lines.append((f"Published {published}", None))
    if entry.url:
        lines.append(("Original article", entry.url))
    return lines


def _format_date(published_at: Optional[str]) -> Optional[str]:
    if not published_at:
        return None
    try:
        return parse_datetime(published_at).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return published_at

"""Telegram HTML formatting helpers."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from miniflux_bot.domain.models import Article

PARSE_MODE = "HTML"


def escape_html(text: str | None) -> str:
    """Replace ``& < > " '`` with entities so upstream text can never open or close a tag."""
    if not text:
        return ""
    return html.escape(text, quote=True)


def format_entry_message(article: Article) -> str:
    """Render the message body for a forwarded entry.

    Layout::

        <b>Title</b>
        Feed in Category
        https://example.com/post
    """
    return "<b>{title}</b>\n{feed} in {category}\n{url}".format(
        title=escape_html(article.title),
        feed=escape_html(article.feed_title),
        category=escape_html(article.category_title),
        url=escape_html(article.url),
    )

"""Content fetcher interfaces and source id parsing.

Fetchers are the boundary to YouTube/Instagram (or any other origin). The
pipeline only depends on the protocols below; concrete HTTP clients are
registered by the caller. Metadata returned by ``get_metadata`` may carry
``title``, ``url`` and ``published_at`` (ISO 8601), which the pipeline uses
for labels, links and date filtering.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from avatar_rag.db.models import (
    INSTAGRAM_ACCOUNT,
    INSTAGRAM_POST,
    YOUTUBE_CHANNEL,
    YOUTUBE_VIDEO,
)
from avatar_rag.errors import UnsupportedSourceError


@runtime_checkable
class ContentFetcher(Protocol):
    """Fetches the text and metadata of one content item."""

    async def get_transcript_or_text(self, source_id: str) -> str: ...

    async def get_metadata(self, source_id: str) -> dict[str, Any]: ...


@runtime_checkable
class CollectionFetcher(ContentFetcher, Protocol):
    """A fetcher for channels/accounts that can list their item ids."""

    async def list_items(self, source_id: str, limit: int) -> list[str]: ...


@runtime_checkable
class CommentFetcher(Protocol):
    """Optional capability of a post fetcher: comments with nested replies.

    Each comment is a mapping with ``username``, ``text`` and an optional
    ``replies`` list (or ``{"data": [...]}``) of mappings with the same keys.
    """

    async def get_comments(self, source_id: str) -> list[dict[str, Any]]: ...


# ------------------------------------------------------------------
# Id parsing
# ------------------------------------------------------------------

_VIDEO_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_VIDEO_URL_RES = [
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/watch\?(?:[^#]*&)?v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([a-zA-Z0-9_-]{11})"),
]

_CHANNEL_ID_RE = re.compile(r"^UC[a-zA-Z0-9_-]{20,22}$")
_CHANNEL_URL_RES = [
    re.compile(r"youtube\.com/channel/([a-zA-Z0-9_-]{24})"),
    re.compile(r"youtube\.com/c/([a-zA-Z0-9_-]+)"),
    re.compile(r"youtube\.com/user/([a-zA-Z0-9_-]+)"),
    re.compile(r"youtube\.com/@([a-zA-Z0-9_.-]+)"),
]

_POST_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_POST_URL_RES = [
    re.compile(r"instagram\.com/p/([a-zA-Z0-9_-]+)/?"),
    re.compile(r"instagram\.com/reel/([a-zA-Z0-9_-]+)/?"),
    re.compile(r"instagram\.com/tv/([a-zA-Z0-9_-]+)/?"),
]

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9._]+$")
_USERNAME_URL_RE = re.compile(r"instagram\.com/([a-zA-Z0-9._]+)/?$")


def extract_video_id(url_or_id: str) -> str | None:
    """Return the 11-character YouTube video id from a URL or bare id."""
    if not url_or_id:
        return None
    url_or_id = url_or_id.strip()
    if _VIDEO_ID_RE.match(url_or_id):
        return url_or_id
    for regex in _VIDEO_URL_RES:
        m = regex.search(url_or_id)
        if m:
            return m.group(1)
    return None


def extract_channel_id(url_or_name: str) -> str | None:
    """Return a channel id, custom name or handle from a URL, id or name.

    ``/c/``, ``/user/`` and ``@handle`` URLs yield the name; resolving it to a
    ``UC...`` id is left to the channel fetcher. Anything else is returned as is.
    """
    if not url_or_name:
        return None
    url_or_name = url_or_name.strip()
    if _CHANNEL_ID_RE.match(url_or_name):
        return url_or_name
    for regex in _CHANNEL_URL_RES:
        m = regex.search(url_or_name)
        if m:
            return m.group(1)
    return url_or_name.lstrip("@") or None


def extract_post_id(url_or_id: str) -> str | None:
    """Return the shortcode of an Instagram post, reel or IGTV URL (or a bare id)."""
    if not url_or_id:
        return None
    url_or_id = url_or_id.strip()
    if _POST_ID_RE.match(url_or_id):
        return url_or_id
    for regex in _POST_URL_RES:
        m = regex.search(url_or_id)
        if m:
            return m.group(1)
    return None


def extract_username(url_or_name: str) -> str | None:
    """Return an Instagram username from ``name``, ``@name`` or a profile URL."""
    if not url_or_name:
        return None
    url_or_name = url_or_name.strip()
    if _USERNAME_RE.match(url_or_name):
        return url_or_name
    if url_or_name.startswith("@"):
        return url_or_name[1:] or None
    m = _USERNAME_URL_RE.search(url_or_name)
    return m.group(1) if m else None


ID_PARSERS: dict[str, Callable[[str], str | None]] = {
    YOUTUBE_VIDEO: extract_video_id,
    YOUTUBE_CHANNEL: extract_channel_id,
    INSTAGRAM_POST: extract_post_id,
    INSTAGRAM_ACCOUNT: extract_username,
}

_ID_LABELS: dict[str, str] = {
    YOUTUBE_VIDEO: "YouTube video URL or ID",
    YOUTUBE_CHANNEL: "YouTube channel URL or ID",
    INSTAGRAM_POST: "Instagram post URL or ID",
    INSTAGRAM_ACCOUNT: "Instagram username",
}


def parse_source_id(source_type: str, raw: str) -> str:
    """Normalize *raw* into the provider id for *source_type*.

    Raises:
        UnsupportedSourceError: If the type has no parser or *raw* does not parse.
    """
    parser = ID_PARSERS.get(source_type)
    if parser is None:
        raise UnsupportedSourceError(f"No id parser for source type {source_type!r}")
    parsed = parser(raw)
    if not parsed:
        raise UnsupportedSourceError(f"Invalid {_ID_LABELS[source_type]}: {raw!r}")
    return parsed


def canonical_url(source_type: str, source_id: str) -> str:
    """Return the public URL of a parsed source id ("" for unknown types)."""
    if source_type == YOUTUBE_VIDEO:
        return f"https://www.youtube.com/watch?v={source_id}"
    if source_type == YOUTUBE_CHANNEL:
        if _CHANNEL_ID_RE.match(source_id):
            return f"https://www.youtube.com/channel/{source_id}"
        return f"https://www.youtube.com/@{source_id}"
    if source_type == INSTAGRAM_POST:
        return f"https://www.instagram.com/p/{source_id}/"
    if source_type == INSTAGRAM_ACCOUNT:
        return f"https://www.instagram.com/{source_id}/"
    return ""


def compose_post_text(caption: str, comments: list[dict[str, Any]] | None = None) -> str:
    """Combine a post caption with its comments and replies into one text."""
    text = caption or ""
    for comment in comments or []:
        text += f"\n\nComment by {comment.get('username', 'unknown')}: {comment.get('text', '')}"
        replies = comment.get("replies") or []
        if isinstance(replies, dict):  # Graph API shape: {"data": [...]}
            replies = replies.get("data") or []
        for reply in replies:
            text += f"\nReply by {reply.get('username', 'unknown')}: {reply.get('text', '')}"
    return text

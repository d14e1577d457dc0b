"""
Website fetching and HTML to Markdown normalisation.

The converter is a staged sequence of regex rewrites rather than a parser.
Structural conversions run first, then the catch-all tag strip, then entity
decoding and finally whitespace cleanup; unmatched or malformed markup simply
falls through to the tag strip.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

import requests
from pydantic import BaseModel

from .config import AppConfig, load_config

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.DOTALL

# (pattern, replacement) pairs, applied in order.
_STRUCTURAL_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"<script\b.*?</script>", _FLAGS), ""),
    (re.compile(r"<style\b.*?</style>", _FLAGS), ""),
    (re.compile(r"<h1\b[^>]*>(.*?)</h1>", _FLAGS), r"# \1\n\n"),
    (re.compile(r"<h2\b[^>]*>(.*?)</h2>", _FLAGS), r"## \1\n\n"),
    (re.compile(r"<h3\b[^>]*>(.*?)</h3>", _FLAGS), r"### \1\n\n"),
    (re.compile(r"<h4\b[^>]*>(.*?)</h4>", _FLAGS), r"#### \1\n\n"),
    (re.compile(r"<p\b[^>]*>(.*?)</p>", _FLAGS), r"\1\n\n"),
    (
        re.compile(r'<a\b[^>]*href="([^"]*)"[^>]*>(.*?)</a>', _FLAGS),
        r"[\2](\1)",
    ),
    (re.compile(r"<(strong|b)\b[^>]*>(.*?)</(?:strong|b)>", _FLAGS), r"**\2**"),
    (re.compile(r"<(em|i)\b[^>]*>(.*?)</(?:em|i)>", _FLAGS), r"*\2*"),
    (
        re.compile(r"<pre\b[^>]*>\s*<code\b[^>]*>(.*?)</code>\s*</pre>", _FLAGS),
        "```\n\\1\n```\n\n",
    ),
    (re.compile(r"<code\b[^>]*>(.*?)</code>", _FLAGS), r"`\1`"),
    (re.compile(r"<li\b[^>]*>(.*?)</li>", _FLAGS), r"- \1\n"),
    (re.compile(r"</?[uo]l\b[^>]*>", _FLAGS), "\n"),
]

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_RUN_RE = re.compile(r"\n{3,}")

# one ordered pass, so "&amp;lt;" decodes all the way to "<"
_ENTITIES = [
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
]


class NormalizedContent(BaseModel):
    url: str
    text: str
    truncated: bool = False
    ok: bool = True
    status_code: Optional[int] = None


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def collapse_blank_lines(text: str) -> str:
    return _BLANK_RUN_RE.sub("\n\n", text).strip()


def html_to_markdown(html: str) -> str:
    """Convert an HTML document to a best-effort Markdown rendering."""
    text = html
    for pattern, repl in _STRUCTURAL_RULES:
        text = pattern.sub(repl, text)
    text = strip_tags(text)
    text = decode_entities(text)
    return collapse_blank_lines(text)


def fetch_content(
    url: str, max_chars: int, cfg: Optional[AppConfig] = None
) -> NormalizedContent:
    """Fetch ``url`` and return normalised Markdown.

    Transport and HTTP failures never raise; they come back as a
    ``NormalizedContent`` with ``ok=False`` and a readable ``Error...`` text.
    """
    cfg = cfg or load_config()
    headers = {"User-Agent": cfg.http.user_agent}
    try:
        resp = requests.get(
            url,
            headers=headers,
            timeout=cfg.http.timeout_seconds,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        logger.warning("Fetch of %s failed: %s", url, exc)
        return NormalizedContent(
            url=url, text=f"Error fetching {url}: {exc}", ok=False
        )

    if not 200 <= resp.status_code < 300:
        logger.warning("Fetch of %s returned HTTP %s", url, resp.status_code)
        return NormalizedContent(
            url=url,
            text=f"Error: Failed to fetch {url} ({resp.status_code})",
            ok=False,
            status_code=resp.status_code,
        )

    markdown = html_to_markdown(resp.text)
    truncated = len(markdown) > max_chars
    if truncated:
        logger.debug(
            "Truncating %s from %d to %d chars", url, len(markdown), max_chars
        )
    return NormalizedContent(
        url=url,
        text=markdown[:max_chars],
        truncated=truncated,
        status_code=resp.status_code,
    )


def fetch_markdown(
    url: str, max_chars: int, cfg: Optional[AppConfig] = None
) -> str:
    return fetch_content(url, max_chars, cfg).text

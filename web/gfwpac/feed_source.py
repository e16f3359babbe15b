from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from gfwpac.config import GeneratorConfig
from gfwpac.errors import FeedDecodeError, FeedDownloadError, FeedReadError


logger = logging.getLogger(__name__)

_BASE64_BODY_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")


def is_url(source: str) -> bool:
    return urlparse(source or "").scheme in ("http", "https")


def decode_base64_text(text: str) -> str:
    compact = re.sub(r"\s", "", text or "")
    try:
        return base64.b64decode(compact).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise FeedDecodeError(f"Feed is not valid base64 text: {e}") from e


def looks_base64(text: str) -> bool:
    # A plain list always has '||' rules somewhere; an encoded one has only the base64 alphabet.
    t = (text or "").strip()
    return bool(t) and _BASE64_BODY_RE.match(t) is not None and "||" not in t


def download_feed(
    url: str,
    *,
    proxy: Optional[str] = None,
    timeout_seconds: float = 30,
    max_bytes: int = 16 * 1024 * 1024,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Download the list and return its text, decoding base64 when the body is encoded."""
    u = urlparse(url or "")
    if u.scheme not in ("http", "https"):
        raise FeedDownloadError("Only http/https feed URLs are supported.")

    logger.info("Downloading feed from %s", url)
    if proxy:
        logger.info("Using proxy %s", proxy)

    client_kwargs = {
        "timeout": httpx.Timeout(timeout_seconds),
        "follow_redirects": True,
        "headers": {"User-Agent": "gfwpac/feed-download"},
    }
    if transport is not None:
        client_kwargs["transport"] = transport
    elif proxy:
        client_kwargs["proxy"] = proxy

    chunks: List[bytes] = []
    total = 0
    try:
        with httpx.Client(**client_kwargs) as client:
            with client.stream("GET", url) as resp:
                if resp.status_code >= 400:
                    raise FeedDownloadError(f"Download failed: HTTP {resp.status_code} {resp.reason_phrase}")

                cl = resp.headers.get("Content-Length")
                if cl is not None and cl.isdigit() and int(cl) > max_bytes:
                    raise FeedDownloadError(f"Download too large (Content-Length={cl}).")

                for chunk in resp.iter_bytes():
                    total += len(chunk)
                    if total > max_bytes:
                        raise FeedDownloadError(f"Download exceeded limit ({max_bytes} bytes).")
                    chunks.append(chunk)
    except httpx.HTTPError as e:
        logger.exception("Feed download failed (url=%s)", url)
        raise FeedDownloadError(f"Download failed: {e}") from e

    logger.info("Downloaded %d bytes", total)
    body = b"".join(chunks).decode("utf-8", errors="replace")
    if looks_base64(body):
        logger.info("Decoding base64 feed")
        return decode_base64_text(body)
    return body


def read_feed_file(path: str) -> str:
    logger.info("Reading local feed %s", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FeedReadError(f"Cannot read feed file {path}: {e}") from e

    if looks_base64(content):
        logger.info("Feed looks base64-encoded, decoding")
        return decode_base64_text(content)
    return content


def read_rules_file(path: str) -> List[str]:
    logger.info("Reading user rules %s", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return [line for line in f.read().splitlines() if line.strip()]
    except (OSError, UnicodeDecodeError) as e:
        raise FeedReadError(f"Cannot read user rules file {path}: {e}") from e


def load_feed(
    source: Optional[str],
    config: GeneratorConfig,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Fetch the feed text from a URL or a local path.

    No source means the configured feed URL.
    """
    src = (source or "").strip() or config.feed_url
    if is_url(src):
        return download_feed(
            src,
            proxy=config.download_proxy,
            timeout_seconds=config.timeout_seconds,
            max_bytes=config.max_download_bytes,
            transport=transport,
        )
    return read_feed_file(src)

from __future__ import annotations

import os
import re


class GenerationError(Exception):
    """Base class for failures that abort a PAC generation run."""

    exit_code = 1


class FeedDownloadError(GenerationError):
    exit_code = 2


class FeedReadError(GenerationError):
    exit_code = 3


class FeedDecodeError(GenerationError):
    exit_code = 4


class OutputWriteError(GenerationError):
    exit_code = 5


def expose_internal_errors() -> bool:
    return (os.environ.get("EXPOSE_INTERNAL_ERRORS") or "").strip().lower() in (
        "1",
        "true",
        "yes",
        "on",
    )


def clean_text(text: str, *, max_len: int = 200) -> str:
    s = (text or "").replace("\r", " ").replace("\n", " ").strip()
    # Remove other control chars.
    s = "".join(ch if (ch >= " " and ch != "\x7f") else " " for ch in s)
    s = re.sub(r"\s+", " ", s).strip()
    if max_len and len(s) > max_len:
        s = s[: max_len - 1].rstrip() + "…"
    return s


def public_error_message(
    e: Exception,
    *,
    default: str = "Feed unavailable. Check server logs for details.",
    max_len: int = 200,
) -> str:
    """Return a user-safe error message.

    - By default, avoids leaking internal exception details.
    - GenerationError and ValueError messages are written for users, so they are returned.
    - If EXPOSE_INTERNAL_ERRORS is set, returns the exception type + message.
    """
    if expose_internal_errors():
        detail = clean_text(f"{type(e).__name__}: {e}", max_len=max_len)
        return detail or default

    if isinstance(e, (GenerationError, ValueError)):
        msg = clean_text(str(e), max_len=max_len)
        return msg or default

    return default

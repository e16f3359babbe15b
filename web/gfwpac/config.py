from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_FEED_URL = "https://raw.githubusercontent.com/gfwlist/gfwlist/master/gfwlist.txt"

DEFAULT_DOWNLOAD_PROXY = "socks5://127.0.0.1:1080"

# Written into the PAC as-is; users replace it with e.g. "SOCKS5 127.0.0.1:1080; DIRECT".
DEFAULT_PLACEHOLDER = "__PROXY__"

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_DOWNLOAD_BYTES = 16 * 1024 * 1024

# Checked in order; the first non-empty one wins.
_PROXY_ENV_VARS = (
    "HTTPS_PROXY",
    "HTTP_PROXY",
    "ALL_PROXY",
    "https_proxy",
    "http_proxy",
    "all_proxy",
)


@dataclass(frozen=True)
class GeneratorConfig:
    feed_url: str = DEFAULT_FEED_URL
    download_proxy: Optional[str] = DEFAULT_DOWNLOAD_PROXY
    placeholder: str = DEFAULT_PLACEHOLDER
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_download_bytes: int = DEFAULT_MAX_DOWNLOAD_BYTES


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    v = (environ.get(name) or "").strip()
    if not v:
        return int(default)
    try:
        n = int(v)
    except ValueError:
        return int(default)
    return n if n > 0 else int(default)


def proxy_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    env = os.environ if environ is None else environ
    for name in _PROXY_ENV_VARS:
        v = (env.get(name) or "").strip()
        if v:
            return v
    return None


def resolve_download_proxy(explicit: Optional[str], environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Flag, then environment, then the built-in SOCKS default.

    An explicit empty string means "connect directly".
    """
    if explicit is not None:
        return explicit.strip() or None
    return proxy_from_env(environ) or DEFAULT_DOWNLOAD_PROXY


def load_config(environ: Optional[Mapping[str, str]] = None) -> GeneratorConfig:
    env = os.environ if environ is None else environ
    return GeneratorConfig(
        feed_url=(env.get("GFWLIST_URL") or "").strip() or DEFAULT_FEED_URL,
        download_proxy=resolve_download_proxy(None, env),
        placeholder=(env.get("PAC_PLACEHOLDER") or "").strip() or DEFAULT_PLACEHOLDER,
        timeout_seconds=_env_int(env, "GFWLIST_DOWNLOAD_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        max_download_bytes=_env_int(env, "GFWLIST_MAX_DOWNLOAD_BYTES", DEFAULT_MAX_DOWNLOAD_BYTES),
    )

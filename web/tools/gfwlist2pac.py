#!/usr/bin/env python3
from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from typing import List, Optional


# This script lives in web/tools; the gfwpac package sits next to it in web/.
_here = os.path.abspath(os.path.dirname(__file__))
_web_root = os.path.abspath(os.path.join(_here, ".."))
if _web_root not in sys.path:
    sys.path.insert(0, _web_root)

from gfwpac.config import load_config, resolve_download_proxy  # noqa: E402
from gfwpac.errors import GenerationError, OutputWriteError, clean_text  # noqa: E402
from gfwpac.feed_source import load_feed, read_rules_file  # noqa: E402
from gfwpac.match_index import build_index  # noqa: E402
from gfwpac.pac_emitter import render_pac  # noqa: E402
from gfwpac.ruleset import AggregateStats, aggregate  # noqa: E402


logger = logging.getLogger("gfwlist2pac")


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Convert GFWList (plus optional user rules) into a PAC file",
        epilog=(
            "The generated PAC returns the placeholder token (default __PROXY__) for proxied hosts; "
            "replace it with your proxy chain, e.g. 'SOCKS5 127.0.0.1:1080; DIRECT'."
        ),
    )
    ap.add_argument("-i", "--input", help="Local GFWList file (base64 auto-detected). Default: download")
    ap.add_argument("-u", "--url", help="Feed URL to download (default: GFWList on GitHub, env GFWLIST_URL)")
    ap.add_argument("-o", "--output", default="pac.txt", help="Output PAC path (default: pac.txt)")
    ap.add_argument(
        "-p",
        "--proxy",
        default=None,
        help=(
            "Proxy used to download the feed. Default: HTTPS_PROXY/HTTP_PROXY/ALL_PROXY, "
            "then socks5://127.0.0.1:1080. Pass an empty string to connect directly"
        ),
    )
    ap.add_argument("--user-rules", help="User rules file (AdBlock syntax), merged with the feed")
    ap.add_argument("--placeholder", help="Proxy placeholder token written into the PAC (default: __PROXY__)")
    ap.add_argument("--timeout", type=int, help="Download timeout in seconds")
    ap.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return ap


def _write_output(path: str, content: str) -> str:
    out_path = os.path.abspath(path)
    tmp = out_path + ".tmp"
    try:
        parent = os.path.dirname(out_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(tmp, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp, out_path)
    except OSError as e:
        try:
            if os.path.exists(tmp):
                os.unlink(tmp)
        except OSError:
            pass
        raise OutputWriteError(f"Cannot write PAC file {out_path}: {e}") from e
    return out_path


def main(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if ns.quiet else logging.INFO,
        format="[gfwlist2pac] %(levelname)s %(message)s",
    )

    config = load_config()
    overrides = {"download_proxy": resolve_download_proxy(ns.proxy)}
    if ns.url:
        overrides["feed_url"] = ns.url
    if ns.placeholder:
        overrides["placeholder"] = ns.placeholder
    if ns.timeout and ns.timeout > 0:
        overrides["timeout_seconds"] = ns.timeout
    config = dataclasses.replace(config, **overrides)

    try:
        feed_text = load_feed(ns.input, config)
        user_lines = read_rules_file(ns.user_rules) if ns.user_rules else None

        logger.info("Parsing rules")
        stats = AggregateStats()
        ruleset = aggregate(feed_text.splitlines(), user_lines, stats=stats)

        logger.info("Generating PAC")
        index = build_index(ruleset)
        pac = render_pac(index, placeholder=config.placeholder)

        out_path = _write_output(ns.output, pac)
    except GenerationError as e:
        print(f"[gfwlist2pac] error: {clean_text(str(e), max_len=400)}", file=sys.stderr)
        return e.exit_code

    size_kb = os.path.getsize(out_path) / 1024
    print(f"[gfwlist2pac] wrote {out_path} ({size_kb:.2f} KB, {stats.processed} rules processed)", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

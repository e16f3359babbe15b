from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


# GFWList grammar notes (the subset we act on):
# - Comments start with '!', section headers with '[' (e.g. [AutoProxy 0.2.9])
# - '@@' marks a whitelist (exception) rule
# - '/.../' is a regex rule
# - '||host' anchors on the host and all of its subdomains; host ends at '/' or '^'
# - '|http://host/...' anchors on the start of the URL, so it names one exact host
# - Anything else is a bare token (domain or keyword) or a URL fragment we scan for a domain.


KIND_EXACT = "exact"
KIND_SUFFIX = "suffix"
KIND_KEYWORD = "keyword"
KIND_REGEX = "regex"

LINE_BLANK = "blank"
LINE_COMMENT = "comment"
LINE_CANDIDATE = "candidate"

_WHITELIST_MARKER = "@@"

_VALID_DOMAIN_RE = re.compile(r"^[A-Za-z0-9][-A-Za-z0-9.]*\.[A-Za-z]{2,}$")
_EXACT_URL_RE = re.compile(r"^https?://([^/^]+)", re.IGNORECASE)
_BARE_TOKEN_RE = re.compile(r"^[A-Za-z0-9][-A-Za-z0-9.]*[A-Za-z0-9]$")
_EMBEDDED_DOMAIN_RE = re.compile(r"^(?:\*\.)?([A-Za-z0-9][-A-Za-z0-9.]*\.[A-Za-z]{2,})")


@dataclass(frozen=True)
class ParsedRule:
    kind: str
    value: str
    whitelist: bool = False


def is_valid_domain(s: str) -> bool:
    # Syntactic only: a dot somewhere and an alphabetic label of 2+ chars at the end.
    return _VALID_DOMAIN_RE.match(s or "") is not None


def classify_line(raw: str) -> str:
    s = (raw or "").strip()
    if not s:
        return LINE_BLANK
    if s.startswith("!") or s.startswith("["):
        return LINE_COMMENT
    return LINE_CANDIDATE


def _host_anchor_domain(rest: str) -> str:
    # '||host/path' or '||host^...': the host stops at whichever delimiter comes first.
    return rest.split("/", 1)[0].split("^", 1)[0]


def parse_rule(line: str) -> Optional[ParsedRule]:
    """Classify one candidate rule line.

    Returns None for anything we do not recognize, including rules whose
    domain fails validation. Such lines are skipped, never reported.
    """
    rule = (line or "").strip()
    whitelist = False

    if rule.startswith(_WHITELIST_MARKER):
        whitelist = True
        rule = rule[len(_WHITELIST_MARKER):]

    if rule.startswith("/") and rule.endswith("/"):
        # Kept verbatim; never compiled here.
        return ParsedRule(KIND_REGEX, rule[1:-1], whitelist)

    if rule.startswith("||"):
        domain = _host_anchor_domain(rule[2:])
        if domain and is_valid_domain(domain):
            return ParsedRule(KIND_SUFFIX, domain.lower(), whitelist)
        return None

    if rule.startswith("|"):
        m = _EXACT_URL_RE.match(rule[1:])
        if not m:
            return None
        host = m.group(1)
        if not is_valid_domain(host):
            return None
        return ParsedRule(KIND_EXACT, host.lower(), whitelist)

    if _BARE_TOKEN_RE.match(rule):
        if is_valid_domain(rule):
            return ParsedRule(KIND_SUFFIX, rule.lower(), whitelist)
        return ParsedRule(KIND_KEYWORD, rule.lower(), whitelist)

    m = _EMBEDDED_DOMAIN_RE.match(rule)
    if m:
        return ParsedRule(KIND_SUFFIX, m.group(1).lower(), whitelist)

    return None


def format_rule(rule: ParsedRule) -> str:
    """Render a rule as text that parse_rule maps back to the same rule."""
    if rule.kind == KIND_REGEX:
        body = f"/{rule.value}/"
    elif rule.kind == KIND_SUFFIX:
        body = f"||{rule.value}"
    elif rule.kind == KIND_EXACT:
        body = f"|http://{rule.value}"
    elif rule.kind == KIND_KEYWORD:
        body = rule.value
    else:
        raise ValueError(f"Unknown rule kind: {rule.kind!r}")
    return (_WHITELIST_MARKER + body) if rule.whitelist else body

import datetime
import json
import re

from gfwpac.match_index import build_index
from gfwpac.pac_emitter import render_pac, substitute_proxy
from gfwpac.ruleset import aggregate


FEED = [
    "||google.com",
    "|https://foo.example.org/path",
    "adtracker",
    "/blogspot/",
    "@@||baidu.com",
    "@@|http://cn.example.org",
]


def _table(pac: str, name: str):
    m = re.search(rf"^var {name} = (.*);$", pac, re.MULTILINE)
    assert m is not None, name
    return json.loads(m.group(1))


def _render(**kwargs):
    return render_pac(build_index(aggregate(FEED)), **kwargs)


def test_pac_defines_find_proxy_and_constants():
    pac = _render()
    assert "function FindProxyForURL(url, host)" in pac
    assert 'var proxy = "__PROXY__";' in pac
    assert 'var direct = "DIRECT";' in pac


def test_pac_serializes_lookup_tables():
    pac = _render()
    assert _table(pac, "exactDomains") == {"foo.example.org": 1}
    assert _table(pac, "whiteExactDomains") == {"cn.example.org": 1}
    assert _table(pac, "domainSuffixes") == {"google.com": 1}
    assert _table(pac, "whiteDomainSuffixes") == {"baidu.com": 1}
    assert _table(pac, "keywords") == ["adtracker"]


def test_pac_checks_whitelist_before_blacklist():
    pac = _render()
    body = pac[pac.index("function FindProxyForURL"):]
    order = [
        body.index("isLocalHost(host)"),
        body.index("whiteExactDomains"),
        body.index("whiteDomainSuffixes"),
        body.index("hasOwn(exactDomains"),
        body.index("suffixHit(host, domainSuffixes)"),
        body.index("keywords.length"),
    ]
    assert order == sorted(order)


def test_regex_rules_only_reported_in_header():
    pac = _render()
    assert "blogspot" not in pac
    assert "// Regex rules not evaluated: 1 block, 0 whitelist" in pac


def test_custom_placeholder_and_timestamp():
    ts = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
    pac = _render(placeholder="SOCKS5 127.0.0.1:1080; DIRECT", generated_at=ts)
    assert 'var proxy = "SOCKS5 127.0.0.1:1080; DIRECT";' in pac
    assert "// Generated at: 2024-01-02T03:04:05+00:00" in pac


def test_empty_index_still_renders_valid_tables():
    pac = render_pac(build_index(aggregate([])))
    assert _table(pac, "domainSuffixes") == {}
    assert _table(pac, "keywords") == []


def test_substitute_proxy_replaces_only_the_variable():
    pac = _render()
    out = substitute_proxy(pac, "PROXY 10.0.0.2:3128; DIRECT")
    assert 'var proxy = "PROXY 10.0.0.2:3128; DIRECT";' in out
    assert 'var proxy = "__PROXY__";' not in out
    # Header comment keeps the original token.
    assert "// Replace __PROXY__ with" in out

from __future__ import annotations

from enum import Enum
from ipaddress import IPv4Address, ip_network
from typing import AbstractSet, Iterator

from gfwpac.match_index import MatchIndex


class Decision(str, Enum):
    DIRECT = "DIRECT"
    PROXY = "PROXY"


# Loopback + RFC1918. Stands in for the PAC sandbox's isInNet() checks.
_LOCAL_NETS = (
    ip_network("127.0.0.0/8"),
    ip_network("10.0.0.0/8"),
    ip_network("172.16.0.0/12"),
    ip_network("192.168.0.0/16"),
)


def is_local_host(host: str) -> bool:
    h = (host or "").lower()
    if "." not in h:
        return True
    if h.endswith(".local"):
        return True
    try:
        ip = IPv4Address(h)
    except ValueError:
        return False
    return any(ip in net for net in _LOCAL_NETS)


def host_suffixes(host: str) -> Iterator[str]:
    """Yield host, then each suffix left after dropping the leftmost label."""
    yield host
    pos = host.find(".")
    while pos != -1:
        yield host[pos + 1:]
        pos = host.find(".", pos + 1)


def _suffix_hit(host: str, domains: AbstractSet[str]) -> bool:
    if not domains:
        return False
    return any(s in domains for s in host_suffixes(host))


def classify(host: str, index: MatchIndex) -> Decision:
    h = (host or "").lower()

    if is_local_host(h):
        return Decision.DIRECT

    # Whitelist first, whatever the specificity of the block rules.
    if h in index.exact_whitelist:
        return Decision.DIRECT
    if _suffix_hit(h, index.suffix_whitelist):
        return Decision.DIRECT

    if h in index.exact_block:
        return Decision.PROXY
    if _suffix_hit(h, index.suffix_block):
        return Decision.PROXY

    for kw in index.keywords:
        if kw in h:
            return Decision.PROXY

    return Decision.DIRECT

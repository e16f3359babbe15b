from __future__ import annotations

import datetime
import json
from typing import Dict, Iterable, List, Optional

from gfwpac.config import DEFAULT_PLACEHOLDER
from gfwpac.match_index import MatchIndex


PAC_MIMETYPE = "application/x-ns-proxy-autoconfig"


def _lookup_table(domains: Iterable[str]) -> str:
    table: Dict[str, int] = {d: 1 for d in sorted(domains)}
    return json.dumps(table, ensure_ascii=False, separators=(",", ":"))


def _js_string(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


# Walks the same steps, in the same order, as gfwpac.evaluator.classify.
# Local-network checks are plain string/number tests so the script does not
# depend on isPlainHostName()/isInNet()/dnsResolve() from the PAC sandbox.
_FIND_PROXY_JS = """\
function isLocalHost(host) {
  if (host.indexOf(".") === -1) return true;
  if (host.length >= 6 && host.substring(host.length - 6) === ".local") return true;
  var m = /^(\\d{1,3})\\.(\\d{1,3})\\.(\\d{1,3})\\.(\\d{1,3})$/.exec(host);
  if (!m) return false;
  for (var i = 1; i <= 4; i++) {
    if (parseInt(m[i], 10) > 255 || (m[i].length > 1 && m[i].charAt(0) === "0")) return false;
  }
  var a = parseInt(m[1], 10);
  var b = parseInt(m[2], 10);
  if (a === 127 || a === 10) return true;
  if (a === 172 && b >= 16 && b <= 31) return true;
  return a === 192 && b === 168;
}

function hasOwn(table, key) {
  return Object.prototype.hasOwnProperty.call(table, key);
}

function suffixHit(host, table) {
  var suffix = host;
  while (true) {
    if (hasOwn(table, suffix)) return true;
    var pos = suffix.indexOf(".");
    if (pos === -1) return false;
    suffix = suffix.substring(pos + 1);
  }
}

function FindProxyForURL(url, host) {
  host = host.toLowerCase();

  if (isLocalHost(host)) return direct;

  if (hasOwn(whiteExactDomains, host)) return direct;
  if (suffixHit(host, whiteDomainSuffixes)) return direct;

  if (hasOwn(exactDomains, host)) return proxy;
  if (suffixHit(host, domainSuffixes)) return proxy;

  for (var i = 0; i < keywords.length; i++) {
    if (host.indexOf(keywords[i]) !== -1) return proxy;
  }

  return direct;
}
"""


def render_pac(
    index: MatchIndex,
    *,
    placeholder: str = DEFAULT_PLACEHOLDER,
    generated_at: Optional[datetime.datetime] = None,
) -> str:
    """Serialize the match index and the decision policy as a PAC script.

    The placeholder is written verbatim as the proxy return value.
    """
    ts = generated_at or datetime.datetime.now(datetime.timezone.utc)

    lines: List[str] = []
    lines.append("// PAC file generated by gfwpac")
    lines.append(f"// Generated at: {ts.isoformat()}")
    lines.append(f"// Replace {placeholder} with your proxy server, e.g.: SOCKS5 127.0.0.1:1080; DIRECT")
    if index.regex_block or index.regex_whitelist:
        lines.append(
            f"// Regex rules not evaluated: {len(index.regex_block)} block, {len(index.regex_whitelist)} whitelist"
        )
    lines.append("")
    lines.append(f"var proxy = {_js_string(placeholder)};")
    lines.append('var direct = "DIRECT";')
    lines.append("")
    lines.append(f"var exactDomains = {_lookup_table(index.exact_block)};")
    lines.append(f"var whiteExactDomains = {_lookup_table(index.exact_whitelist)};")
    lines.append(f"var domainSuffixes = {_lookup_table(index.suffix_block)};")
    lines.append(f"var whiteDomainSuffixes = {_lookup_table(index.suffix_whitelist)};")
    lines.append(f"var keywords = {json.dumps(list(index.keywords), ensure_ascii=False)};")
    lines.append("")
    return "\n".join(lines) + "\n" + _FIND_PROXY_JS


def substitute_proxy(pac: str, proxy_chain: str, *, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """Swap the placeholder for a real proxy chain, e.g. for serving over HTTP."""
    return pac.replace(f"var proxy = {_js_string(placeholder)};", f"var proxy = {_js_string(proxy_chain)};", 1)

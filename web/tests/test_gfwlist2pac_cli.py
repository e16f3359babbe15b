import base64
import json
import os
import re
import sys

import pytest


def _import_cli():
    tools_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "tools"))
    if tools_dir not in sys.path:
        sys.path.insert(0, tools_dir)
    import gfwlist2pac  # type: ignore
    return gfwlist2pac


FEED = """\
[AutoProxy 0.2.9]
! test
||google.com
|https://foo.example.org/path
adtracker
||example.com
"""


@pytest.fixture(autouse=True)
def _no_proxy_env(monkeypatch):
    for name in ("HTTPS_PROXY", "HTTP_PROXY", "ALL_PROXY", "https_proxy", "http_proxy", "all_proxy",
                 "GFWLIST_URL", "PAC_PLACEHOLDER"):
        monkeypatch.delenv(name, raising=False)


def _table(pac: str, name: str):
    m = re.search(rf"^var {name} = (.*);$", pac, re.MULTILINE)
    assert m is not None
    return json.loads(m.group(1))


def test_generates_pac_from_local_feed_and_user_rules(tmp_path, capsys):
    cli = _import_cli()
    feed = tmp_path / "gfwlist.txt"
    feed.write_text(FEED, encoding="utf-8")
    user = tmp_path / "user-rules.txt"
    user.write_text("@@||example.com\n||bing.com\n", encoding="utf-8")
    out = tmp_path / "out" / "pac.txt"

    rc = cli.main(["-i", str(feed), "--user-rules", str(user), "-o", str(out)])

    assert rc == 0
    pac = out.read_text(encoding="utf-8")
    assert "function FindProxyForURL(url, host)" in pac
    assert 'var proxy = "__PROXY__";' in pac
    assert _table(pac, "domainSuffixes") == {"bing.com": 1, "example.com": 1, "google.com": 1}
    assert _table(pac, "whiteDomainSuffixes") == {"example.com": 1}
    assert _table(pac, "exactDomains") == {"foo.example.org": 1}
    assert _table(pac, "keywords") == ["adtracker"]
    assert "wrote" in capsys.readouterr().out
    assert not (tmp_path / "out" / "pac.txt.tmp").exists()


def test_base64_local_feed_and_custom_placeholder(tmp_path):
    cli = _import_cli()
    feed = tmp_path / "gfwlist.txt"
    feed.write_text(base64.encodebytes(FEED.encode("utf-8")).decode("ascii"), encoding="utf-8")
    out = tmp_path / "pac.txt"

    rc = cli.main(["-q", "-i", str(feed), "-o", str(out), "--placeholder", "__UPSTREAM__"])

    assert rc == 0
    pac = out.read_text(encoding="utf-8")
    assert 'var proxy = "__UPSTREAM__";' in pac
    assert _table(pac, "domainSuffixes") == {"example.com": 1, "google.com": 1}


def test_missing_feed_file_exit_code(tmp_path, capsys):
    cli = _import_cli()
    rc = cli.main(["-i", str(tmp_path / "missing.txt"), "-o", str(tmp_path / "pac.txt")])
    assert rc == 3
    assert "error" in capsys.readouterr().err
    assert not (tmp_path / "pac.txt").exists()


def test_missing_user_rules_exit_code(tmp_path):
    cli = _import_cli()
    feed = tmp_path / "gfwlist.txt"
    feed.write_text(FEED, encoding="utf-8")
    rc = cli.main(["-i", str(feed), "--user-rules", str(tmp_path / "nope.txt"), "-o", str(tmp_path / "pac.txt")])
    assert rc == 3


def test_undecodable_feed_exit_code(tmp_path):
    cli = _import_cli()
    feed = tmp_path / "gfwlist.txt"
    feed.write_text("abc", encoding="utf-8")
    rc = cli.main(["-i", str(feed), "-o", str(tmp_path / "pac.txt")])
    assert rc == 4


def test_unwritable_output_exit_code(tmp_path):
    cli = _import_cli()
    feed = tmp_path / "gfwlist.txt"
    feed.write_text(FEED, encoding="utf-8")
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    rc = cli.main(["-i", str(feed), "-o", str(blocker / "pac.txt")])
    assert rc == 5


def test_download_failure_exit_code(tmp_path, monkeypatch):
    cli = _import_cli()

    from gfwpac.errors import FeedDownloadError

    calls = []

    def fake_load_feed(source, config, **kwargs):
        calls.append((source, config))
        raise FeedDownloadError("Download failed: connection refused")

    monkeypatch.setattr(cli, "load_feed", fake_load_feed)
    rc = cli.main(["-u", "https://mirror.example.com/gfwlist.txt", "-p", "", "-o", str(tmp_path / "pac.txt")])

    assert rc == 2
    source, config = calls[0]
    assert source is None
    assert config.feed_url == "https://mirror.example.com/gfwlist.txt"
    assert config.download_proxy is None

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from flask import Flask, jsonify, request

from gfwpac.config import load_config
from gfwpac.errors import GenerationError, public_error_message
from gfwpac.evaluator import classify
from gfwpac.feed_source import load_feed, read_rules_file
from gfwpac.match_index import MatchIndex, build_index
from gfwpac.pac_emitter import PAC_MIMETYPE, render_pac, substitute_proxy
from gfwpac.ruleset import aggregate


logger = logging.getLogger(__name__)

app = Flask(__name__)

try:
    app.config.setdefault(
        'MAX_CONTENT_LENGTH',
        int((os.environ.get('MAX_CONTENT_LENGTH') or str(1024 * 1024)).strip()),
    )
except ValueError:
    app.config.setdefault('MAX_CONTENT_LENGTH', 1024 * 1024)

_DEFAULT_PROXY_CHAIN = 'SOCKS5 127.0.0.1:1080; DIRECT'

# Built on first use, then read-only.
_lock = threading.Lock()
_INDEX: Optional[MatchIndex] = None
_PAC: Optional[str] = None


def _load() -> tuple[MatchIndex, str]:
    global _INDEX, _PAC
    with _lock:
        if _INDEX is None or _PAC is None:
            config = load_config()
            feed_text = load_feed(os.environ.get('PAC_FEED'), config)
            user_rules = (os.environ.get('PAC_USER_RULES') or '').strip()
            user_lines = read_rules_file(user_rules) if user_rules else None
            index = build_index(aggregate(feed_text.splitlines(), user_lines))
            _PAC = render_pac(index, placeholder=config.placeholder)
            _INDEX = index
        return _INDEX, _PAC


def _unavailable(e: Exception):
    logger.warning('PAC feed unavailable: %s', e)
    return jsonify({'error': public_error_message(e)}), 503


@app.route('/proxy.pac', methods=['GET'])
def proxy_pac():
    try:
        _, pac = _load()
    except GenerationError as e:
        return _unavailable(e)

    chain = (os.environ.get('PAC_PROXY_CHAIN') or '').strip() or _DEFAULT_PROXY_CHAIN
    body = substitute_proxy(pac, chain, placeholder=load_config().placeholder)
    return app.response_class(body, mimetype=PAC_MIMETYPE)


@app.route('/wpad.dat', methods=['GET'])
def wpad_dat():
    # WPAD convention: clients request http://wpad.<domain>/wpad.dat
    resp = proxy_pac()
    if isinstance(resp, tuple):
        return resp
    resp.headers['Content-Disposition'] = 'inline; filename="wpad.dat"'
    return resp


@app.route('/api/classify', methods=['GET'])
def api_classify():
    host = (request.args.get('host') or '').strip()
    if not host:
        return jsonify({'error': 'host is required'}), 400
    try:
        index, _ = _load()
    except GenerationError as e:
        return _unavailable(e)
    return jsonify({'host': host, 'decision': classify(host, index).value})


@app.route('/api/stats', methods=['GET'])
def api_stats():
    try:
        index, _ = _load()
    except GenerationError as e:
        return _unavailable(e)
    return jsonify({
        'exact_block': len(index.exact_block),
        'exact_whitelist': len(index.exact_whitelist),
        'suffix_block': len(index.suffix_block),
        'suffix_whitelist': len(index.suffix_whitelist),
        'keywords': len(index.keywords),
        'regex_block': len(index.regex_block),
        'regex_whitelist': len(index.regex_whitelist),
    })


@app.route('/healthz', methods=['GET'])
def healthz():
    return 'ok', 200, {'Content-Type': 'text/plain; charset=utf-8'}

from __future__ import annotations
import json
import threading
from http.server import HTTPServer
from unittest.mock import patch
from urllib import request, error as urlerror

import pytest

from conftest import ACCOUNT, FakeNode
from near_exporter.daemon import ExporterDaemon, parse_args, run_daemon


@pytest.fixture
def server():
    daemon = ExporterDaemon({"url": "http://node:3030", "account_id": ACCOUNT, "timeout": 2})
    httpd = HTTPServer(("127.0.0.1", 0), daemon._make_handler())
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}"
    finally:
        httpd.shutdown()
        httpd.server_close()


def _get(url):
    with request.urlopen(url, timeout=5) as resp:
        return resp.status, resp.headers.get("Content-Type"), resp.read().decode()


def test_healthz(server):
    status, ctype, body = _get(server + "/healthz")
    assert status == 200
    assert body == "ok\n"


def test_metrics_scrapes_node(server):
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode()):
        status, ctype, body = _get(server + "/metrics")
    assert status == 200
    assert ctype.startswith("text/plain")
    assert "near_account_current_validator_stake" in body


def test_metrics_with_node_down_still_serves(server):
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode(errors={"status": "down"})):
        status, _, body = _get(server + "/metrics")
    assert status == 200
    assert "near_block_number " not in body


def test_unknown_path_lists_endpoints(server):
    with pytest.raises(urlerror.HTTPError) as exc:
        _get(server + "/nope")
    assert exc.value.code == 404
    assert json.loads(exc.value.read()) == {"error": "Not found", "endpoints": ["/metrics", "/healthz"]}


def test_run_daemon_rejects_bad_config():
    assert run_daemon({"url": "http://node:3030", "account_id": "", "timeout": 1}) == 1


def test_parse_args_defaults(monkeypatch):
    monkeypatch.delenv("NEAR_ACCOUNT_ID", raising=False)
    args = parse_args([])
    assert args.port == 9333
    assert args.account_id == "test"

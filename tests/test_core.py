from __future__ import annotations
import json
from unittest.mock import patch

import pytest
from prometheus_client.parser import text_string_to_metric_families

from conftest import ACCOUNT, FakeNode
import near_exporter
from near_exporter.core import build_collector, build_registry, collect_once, default_config, render_exposition, run_collector
from near_exporter.types import ConfigError


def test_default_config_reads_environment(monkeypatch):
    monkeypatch.setenv("NEAR_RPC_URL", "http://rpc.example:3030")
    monkeypatch.setenv("NEAR_ACCOUNT_ID", "pool.poolv1.near")
    monkeypatch.setenv("NEAR_RPC_TIMEOUT", "3")
    cfg = default_config()
    assert cfg == {"url": "http://rpc.example:3030", "account_id": "pool.poolv1.near", "timeout": "3"}


def test_default_config_fallbacks(monkeypatch):
    for name in ("NEAR_RPC_URL", "NEAR_ACCOUNT_ID", "NEAR_RPC_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    cfg = default_config()
    assert cfg["url"] == "http://localhost:3030"
    assert cfg["account_id"] == "test"
    assert cfg["timeout"] == 10.0


@pytest.mark.parametrize("url,account,timeout", [
    ("", ACCOUNT, 10),
    ("http://node:3030", "  ", 10),
    ("http://node:3030", ACCOUNT, 0),
    ("http://node:3030", ACCOUNT, "soon"),
])
def test_build_collector_rejects_bad_config(url, account, timeout):
    with pytest.raises(ConfigError):
        build_collector(url, account, timeout)


def test_build_collector_wires_client():
    collector = build_collector(" http://node:3030 ", ACCOUNT, "2.5")
    assert collector.client.url == "http://node:3030"
    assert collector.client.timeout == 2.5
    assert collector.account_id == ACCOUNT


def test_run_collector_success():
    collector = build_collector("http://node:3030", ACCOUNT)
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode()):
        result = run_collector(collector)
    data = result.to_dict()
    assert data["metadata"]["status"] == "success"
    assert data["metadata"]["collector_name"] == "near-rpc"
    assert data["metadata"]["collector_version"] == near_exporter.__version__
    assert data["metadata"]["account_id"] == ACCOUNT
    assert data["metadata"]["errors"] == []
    assert data["invalid"] == []
    names = {o["name"] for o in data["observations"]}
    assert "near_account_delegator_stake" in names


def test_run_collector_failed_when_status_unavailable():
    collector = build_collector("http://node:3030", ACCOUNT)
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode(errors={"status": "down"})):
        result = run_collector(collector)
    assert result.metadata.status == "failed"
    assert result.metadata.errors == ["down"]
    assert [i.identity.name for i in result.invalid] == ["near_version_build"]


def test_run_collector_partial_deduplicates_errors():
    collector = build_collector("http://node:3030", ACCOUNT)
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode(errors={"validators": "timeout"})):
        result = run_collector(collector)
    assert result.metadata.status == "partial"
    assert result.metadata.errors == ["timeout"]
    assert len(result.invalid) == 13
    assert len(result.observations) == 3


def test_render_exposition_round_trips_through_parser():
    collector = build_collector("http://node:3030", ACCOUNT)
    registry = build_registry(collector)
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode()):
        text = render_exposition(registry).decode()

    samples = {}
    for family in text_string_to_metric_families(text):
        for s in family.samples:
            samples[(s.name, tuple(sorted(s.labels.items())))] = s.value
    assert samples[("near_block_number", ())] == 1234567
    assert samples[("near_seat_price", ())] == pytest.approx(200.0)
    assert samples[("near_account_delegator_stake", (("delegator_account_id", "alice.near"),))] == pytest.approx(1.5)
    assert ("near_version_build", (("build", "crates-0.18.0"), ("version", "1.36.0"))) in samples


def test_build_registry_does_not_scrape():
    collector = build_collector("http://node:3030", ACCOUNT)
    with patch("near_exporter.rpc._jsonrpc") as mock_rpc:
        build_registry(collector)
    assert not mock_rpc.called


def test_collect_once_json(monkeypatch):
    monkeypatch.delenv("NEAR_ACCOUNT_ID", raising=False)
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode(errors={"query": "no contract"})):
        out = collect_once({"url": "http://node:3030", "account_id": ACCOUNT}, fmt="json")
    data = json.loads(out)
    assert data["metadata"]["status"] == "partial"
    assert data["invalid"] == [{"name": "near_account_delegator_stake", "invalid": True, "cause": "no contract"}]


def test_collect_once_prometheus_omits_invalid():
    with patch("near_exporter.rpc._jsonrpc", side_effect=FakeNode(errors={"status": "down"})):
        out = collect_once({"url": "http://node:3030", "account_id": ACCOUNT})
    assert "near_version_build{" not in out
    assert "near_block_number " not in out


def test_collect_once_unknown_format():
    with pytest.raises(ConfigError):
        collect_once({"url": "http://node:3030", "account_id": ACCOUNT}, fmt="xml")

from __future__ import annotations
import json
import os
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, generate_latest

from .collector import NodeRpcCollector
from .rpc import DEFAULT_RPC, DEFAULT_TIMEOUT, RPC_ENV, NearRpcClient
from .types import ConfigError, ScrapeResult

ACCOUNT_ENV = "NEAR_ACCOUNT_ID"
DEFAULT_ACCOUNT = "test"
TIMEOUT_ENV = "NEAR_RPC_TIMEOUT"


def default_config() -> Dict[str, Any]:
    """Configuration defaults, overridable through the environment."""
    return {
        "url": os.environ.get(RPC_ENV, DEFAULT_RPC),
        "account_id": os.environ.get(ACCOUNT_ENV, DEFAULT_ACCOUNT),
        "timeout": os.environ.get(TIMEOUT_ENV, DEFAULT_TIMEOUT),
    }


def build_collector(url: str, account_id: str, timeout: Any = DEFAULT_TIMEOUT) -> NodeRpcCollector:
    """Validate the configuration and wire a client into a collector."""
    if not url or not str(url).strip():
        raise ConfigError("RPC url must not be empty")
    if not account_id or not str(account_id).strip():
        raise ConfigError("account id must not be empty")
    try:
        timeout = float(timeout)
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be a number, got {timeout!r}")
    if timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {timeout}")

    client = NearRpcClient(url=str(url).strip(), timeout=timeout)
    return NodeRpcCollector(client, str(account_id).strip())


def build_registry(collector: NodeRpcCollector) -> CollectorRegistry:
    """Register the collector on a private prometheus_client registry."""
    registry = CollectorRegistry()
    registry.register(collector)
    return registry


def run_collector(collector: NodeRpcCollector) -> ScrapeResult:
    """Run one scrape and wrap everything it emitted in a ScrapeResult."""
    return ScrapeResult.create(
        collector_name=collector.NAME,
        collector_version=collector.VERSION,
        account_id=collector.account_id,
        rpc_url=collector.client.url,
        items=list(collector.scrape()),
    )


def render_json(result: ScrapeResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def render_exposition(registry: CollectorRegistry) -> bytes:
    """Scrape through the registry and return Prometheus text format."""
    return generate_latest(registry)


def collect_once(config: Optional[Dict[str, Any]] = None, fmt: str = "prometheus") -> str:
    """Build a collector from ``config``, scrape once and render the output.

    Args:
        config: Mapping with ``url``, ``account_id`` and ``timeout`` keys;
            missing keys fall back to :func:`default_config`.
        fmt: ``prometheus`` for text exposition, ``json`` for the scrape report.

    Returns:
        The rendered scrape as text.
    """
    merged = default_config()
    merged.update({k: v for k, v in (config or {}).items() if v is not None})
    collector = build_collector(merged["url"], merged["account_id"], merged["timeout"])

    if fmt == "json":
        return render_json(run_collector(collector))
    if fmt == "prometheus":
        return render_exposition(build_registry(collector)).decode("utf-8")
    raise ConfigError(f"Unknown output format: {fmt}")

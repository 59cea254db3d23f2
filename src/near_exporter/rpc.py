from __future__ import annotations
import http.client
import json
import logging
import socket
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple
from urllib import request, error as urlerror

import jsonschema

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

RPC_ENV = "NEAR_RPC_URL"
DEFAULT_RPC = "http://localhost:3030"
DEFAULT_TIMEOUT = 10.0

# (result, None) on success, (None, "error message") on failure
RpcResult = Tuple[Optional[Any], Optional[str]]


def _jsonrpc(url: str, method: str, params=None, timeout: float = DEFAULT_TIMEOUT) -> RpcResult:
    if params is None:
        params = []
    payload = json.dumps({"jsonrpc": "2.0", "id": "dontcare", "method": method, "params": params}).encode()
    req = request.Request(url, data=payload, headers={"Content-Type": "application/json"})
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            data = json.loads(resp.read().decode())
    except socket.timeout:
        return None, f"rpc {method} timeout after {timeout}s (url={url})"
    except urlerror.HTTPError as e:
        return None, f"rpc {method} HTTP {e.code} (url={url}): {e.reason}"
    except urlerror.URLError as e:
        reason = getattr(e, "reason", e)
        return None, f"rpc {method} connection error (url={url}): {reason}"
    except ValueError as e:
        return None, f"rpc {method} invalid JSON response (url={url}): {e}"
    except http.client.HTTPException as e:
        return None, f"rpc {method} protocol error (url={url}): {e!r}"
    except Exception as e:
        return None, f"rpc {method} unexpected error (url={url}): {e}"

    if not isinstance(data, dict):
        return None, f"rpc {method} malformed envelope: {data!r}"
    if data.get("error") is not None:
        return None, f"rpc {method} error: {data['error']}"
    if "result" not in data:
        return None, f"rpc {method} malformed envelope: missing result"
    return data["result"], None


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    """Load a bundled JSON Schema from the package ``data`` directory."""
    import importlib.resources as ir
    text = (ir.files(__package__) / "data" / f"{name}.schema.json").read_text(encoding="utf-8")
    return json.loads(text)


def validate_result(instance: Any, schema_name: str) -> Optional[str]:
    """Return None if ``instance`` matches the named schema, else a message."""
    try:
        jsonschema.validate(instance=instance, schema=load_schema(schema_name))
    except jsonschema.ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        return f"rpc {schema_name} malformed result at {where}: {e.message}"
    return None


class NearRpcClient:
    """Minimal synchronous client for the NEAR JSON-RPC API.

    Every call returns a ``(result, error)`` pair instead of raising, so a
    caller can decide per call which metrics to invalidate.
    """

    def __init__(self, url: str = DEFAULT_RPC, timeout: float = DEFAULT_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def call(self, method: str, params=None, schema: Optional[str] = None) -> RpcResult:
        logger.debug(f"rpc {method} -> {self.url} params={params!r}")
        res, err = _jsonrpc(self.url, method, params, timeout=self.timeout)
        if err:
            return None, err
        if schema:
            err = validate_result(res, schema)
            if err:
                return None, err
        return res, None

    def status(self) -> RpcResult:
        return self.call("status", [], schema="status")

    def validators(self, epoch: Optional[str] = "latest") -> RpcResult:
        # The node takes [null] for the latest epoch, or [epoch_id]
        params = [None] if epoch in (None, "latest") else [epoch]
        return self.call("validators", params, schema="validators")

    def query(self, params: Dict[str, Any]) -> RpcResult:
        res, err = self.call("query", params)
        if err:
            return None, err
        # Contract failures come back as a successful envelope with an error field
        if isinstance(res, dict) and res.get("error"):
            return None, f"rpc query error: {res['error']}"
        err = validate_result(res, "query")
        if err:
            return None, err
        return res, None

from __future__ import annotations
import json
import logging
from typing import Dict, List, Optional

import pytest

ACCOUNT = "pool.near"

STATUS_OK: Dict = {
    "sync_info": {"syncing": False, "latest_block_height": 1234567},
    "version": {"version": "1.36.0", "build": "crates-0.18.0"},
}


def validators_result(account: str = ACCOUNT) -> Dict:
    return {
        "epoch_start_height": 1230000,
        "current_validators": [
            {
                "account_id": "other.near",
                "stake": "3000000000000000000000000000",
                "num_produced_blocks": 10,
                "num_expected_blocks": 10,
                "num_produced_chunks": 40,
                "num_expected_chunks": 40,
            },
            {
                "account_id": account,
                "stake": "200000000000000000000000000",
                "num_produced_blocks": 7,
                "num_expected_blocks": 9,
                "num_produced_chunks": 30,
                "num_expected_chunks": 36,
            },
        ],
        "next_validators": [
            {"account_id": account, "stake": "250000000000000000000000000"},
        ],
        "current_proposals": [
            {"account_id": account, "stake": "260000000000000000000000000"},
        ],
        "prev_epoch_kick_out": [
            {"account_id": "gone.near", "reason": "Unstaked"},
            {"account_id": account, "reason": {"NotEnoughBlocks": {"produced": 1, "expected": 5}}},
        ],
    }


def query_result(payload) -> Dict:
    if not isinstance(payload, (bytes, str)):
        payload = json.dumps(payload)
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return {"result": list(payload), "logs": [], "block_height": 1234567, "block_hash": "abc"}


DELEGATORS = [
    {
        "account_id": "alice.near",
        "unstaked_balance": "0",
        "staked_balance": "1500000000000000000000000",
        "can_withdraw": True,
    },
    {
        "account_id": "bob.near",
        "unstaked_balance": "5",
        "staked_balance": "10",
        "can_withdraw": False,
    },
]


class FakeNode:
    """Stands in for ``near_exporter.rpc._jsonrpc``; records every call."""

    def __init__(self, status=STATUS_OK, validators=None, query=None, errors: Optional[Dict[str, str]] = None):
        self.responses = {
            "status": status,
            "validators": validators if validators is not None else validators_result(),
            "query": query if query is not None else query_result(DELEGATORS),
        }
        self.errors = errors or {}
        self.calls: List[tuple] = []

    @property
    def methods(self) -> List[str]:
        return [c[0] for c in self.calls]

    def __call__(self, url: str, method: str, params=None, timeout: float = 10.0):
        self.calls.append((method, params))
        if method in self.errors:
            return None, self.errors[method]
        if method not in self.responses:
            return None, f"unexpected method {method}"
        return self.responses[method], None


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)

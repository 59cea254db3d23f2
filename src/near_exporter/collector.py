from __future__ import annotations
import base64
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from prometheus_client.core import GaugeMetricFamily

from . import __version__
from .registry import MetricRegistry
from .rpc import NearRpcClient
from .types import DelegatorAccount, InvalidObservation, MetricIdentity, Observation, ScrapeItem
from .utils import get_stake_from_string, hash_string

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

GET_ACCOUNTS_ARGS = {"from_index": 0, "limit": 100}
GET_ACCOUNTS_ARGS_BASE64 = base64.b64encode(json.dumps(GET_ACCOUNTS_ARGS).encode()).decode()


def _render_reason(reason: Any) -> str:
    if isinstance(reason, str):
        return reason
    return json.dumps(reason, sort_keys=True, separators=(",", ":"))


def parse_delegators(raw: List[int]) -> List[DelegatorAccount]:
    """Decode the byte list returned by ``get_accounts``.

    Anything that is not a JSON array of objects yields no delegators.
    """
    try:
        decoded = json.loads(bytes(raw).decode("utf-8"))
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring malformed get_accounts payload: {e}")
        return []
    if not isinstance(decoded, list) or not all(isinstance(d, dict) for d in decoded):
        logger.debug(f"Ignoring get_accounts payload of unexpected shape: {decoded!r}")
        return []
    return [DelegatorAccount.from_dict(d) for d in decoded]


class NodeRpcCollector:
    """Scrapes one NEAR node for one account and exposes gauges.

    ``scrape()`` yields observations in emission order. ``collect()`` and
    ``describe()`` implement the prometheus_client custom collector protocol
    on top of it, so an instance can be registered on a CollectorRegistry.
    """

    NAME = "near-rpc"
    VERSION = __version__

    def __init__(self, client: NearRpcClient, account_id: str, registry: Optional[MetricRegistry] = None):
        self.client = client
        self.account_id = account_id
        self.metrics = registry or MetricRegistry(account_id, client)

    def _gauge(self, identity: MetricIdentity, value: float, *label_values: str) -> Observation:
        return Observation(identity, float(value), tuple(label_values))

    def _invalid(self, identity: MetricIdentity, cause: str) -> InvalidObservation:
        return InvalidObservation(identity, cause)

    def scrape(self) -> Iterator[ScrapeItem]:
        m = self.metrics

        status, err = self.client.status()
        if err:
            logger.warning(f"Status query failed: {err}")
            yield self._invalid(m.version_build, err)
            return

        sync_info = status["sync_info"]
        yield self._gauge(m.syncing, 1 if sync_info["syncing"] else 0)
        yield self._gauge(m.block_number, sync_info["latest_block_height"])

        version = status["version"]
        yield self._gauge(m.version_build, hash_string(version["build"]), version["version"], version["build"])

        validators, err = self.client.validators("latest")
        if err:
            logger.warning(f"Validators query failed: {err}")
            for identity in m.validator_dependent():
                yield self._invalid(identity, err)
            return

        yield from self._validator_observations(validators)

        delegators, err = self.client.query({
            "request_type": "call_function",
            "finality": "final",
            "account_id": self.account_id,
            "method_name": "get_accounts",
            "args_base64": GET_ACCOUNTS_ARGS_BASE64,
        })
        if err:
            logger.warning(f"Delegators query failed: {err}")
            yield self._invalid(m.delegator_stake, err)
            return

        for delegator in parse_delegators(delegators["result"]):
            yield self._gauge(m.delegator_stake, get_stake_from_string(delegator.staked_balance), delegator.account_id)

    def _validator_observations(self, validators: Dict[str, Any]) -> Iterator[Observation]:
        m = self.metrics

        yield self._gauge(m.epoch_start_height, validators["epoch_start_height"])

        seat_price: Optional[float] = None
        for v in validators["current_validators"]:
            stake = get_stake_from_string(v["stake"])
            seat_price = stake if seat_price is None else min(seat_price, stake)
            if v["account_id"] == self.account_id:
                yield self._gauge(m.current_validator_stake, stake)
                yield self._gauge(m.epoch_block_produced, v.get("num_produced_blocks", 0))
                yield self._gauge(m.epoch_block_expected, v.get("num_expected_blocks", 0))
                yield self._gauge(m.epoch_chunks_produced, v.get("num_produced_chunks", 0))
                yield self._gauge(m.epoch_chunks_expected, v.get("num_expected_chunks", 0))
        # No validators, no seat price
        if seat_price is not None:
            yield self._gauge(m.seat_price, seat_price)

        for v in validators.get("next_validators", []):
            if v["account_id"] == self.account_id:
                yield self._gauge(m.next_validator_stake, get_stake_from_string(v["stake"]))

        for v in validators.get("current_proposals", []):
            if v["account_id"] == self.account_id:
                yield self._gauge(m.current_proposals_stake, get_stake_from_string(v["stake"]))

        for v in validators.get("prev_epoch_kick_out", []):
            if v["account_id"] == self.account_id:
                yield self._gauge(m.prev_epoch_kickout, 0, _render_reason(v.get("reason")))

    def describe(self) -> Iterator[GaugeMetricFamily]:
        for identity in self.metrics.describe():
            yield GaugeMetricFamily(identity.name, identity.help, labels=list(identity.label_names))

    def collect(self) -> Iterator[GaugeMetricFamily]:
        families: Dict[str, GaugeMetricFamily] = {}
        seen: Set[Tuple[str, Tuple[str, ...]]] = set()
        for item in self.scrape():
            if isinstance(item, InvalidObservation):
                logger.debug(f"Dropping invalid metric {item.identity.name}: {item.cause}")
                continue
            identity = item.identity
            family = families.get(identity.name)
            if family is None:
                family = GaugeMetricFamily(identity.name, identity.help, labels=list(identity.label_names))
                families[identity.name] = family
            # First sample wins for a repeated label set
            key = (identity.name, item.label_values)
            if key in seen:
                logger.debug(f"Skipping duplicate sample {identity.name}{item.label_values!r}")
                continue
            seen.add(key)
            family.add_metric(list(item.label_values), item.value)

        # Declaration order, so consecutive scrapes diff cleanly
        for identity in self.metrics.describe():
            if identity.name in families:
                yield families[identity.name]

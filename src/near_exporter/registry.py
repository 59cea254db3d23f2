"""Static metric identities exposed by the exporter."""
from typing import Iterator, List, Optional

from .rpc import NearRpcClient
from .types import MetricIdentity


class MetricRegistry:
    """Declares every metric identity once, for one configured account.

    The identities are immutable and shared by all scrapes. ``describe()``
    enumerates them in declaration order, which is also the order the
    collector exposes metric families in.
    """

    def __init__(self, account_id: str, client: Optional[NearRpcClient] = None):
        self.account_id = account_id
        self.client = client

        self.epoch_block_produced = MetricIdentity(
            "near_account_epoch_block_produced_number",
            "The number of block produced in epoch of a given account id",
        )
        self.epoch_block_expected = MetricIdentity(
            "near_account_epoch_block_expected_number",
            "The number of block expected in epoch of a given account id",
        )
        self.epoch_chunks_produced = MetricIdentity(
            "near_account_epoch_chunks_produced_number",
            "The number of chunks produced in epoch of a given account id",
        )
        self.epoch_chunks_expected = MetricIdentity(
            "near_account_epoch_chunks_expected_number",
            "The number of chunks expected in epoch of a given account id",
        )
        self.seat_price = MetricIdentity(
            "near_seat_price",
            "Validator seat price",
        )
        self.delegator_stake = MetricIdentity(
            "near_account_delegator_stake",
            "Delegators stake of a given account id",
            ("delegator_account_id",),
        )
        self.epoch_start_height = MetricIdentity(
            "near_epoch_start_height",
            "Near epoch start height",
        )
        self.block_number = MetricIdentity(
            "near_block_number",
            "The number of most recent block",
        )
        self.syncing = MetricIdentity(
            "near_sync_state",
            "Sync state",
        )
        self.version_build = MetricIdentity(
            "near_version_build",
            "The Near node version build",
            ("version", "build"),
        )
        self.current_validator_stake = MetricIdentity(
            "near_account_current_validator_stake",
            "Current amount of validator stake of a given account id",
        )
        self.next_validator_stake = MetricIdentity(
            "near_account_next_validator_stake",
            "The next validator stake of a given account id",
        )
        self.current_proposals_stake = MetricIdentity(
            "near_account_current_proposals_stake",
            "Current proposals of a given account id",
        )
        self.prev_epoch_kickout = MetricIdentity(
            "near_account_prev_epoch_kickout",
            "Near previous epoch kicked out of a given account id",
            ("reason",),
        )

        self._identities: List[MetricIdentity] = [
            self.epoch_block_produced,
            self.epoch_block_expected,
            self.epoch_chunks_produced,
            self.epoch_chunks_expected,
            self.seat_price,
            self.delegator_stake,
            self.epoch_start_height,
            self.block_number,
            self.syncing,
            self.version_build,
            self.current_validator_stake,
            self.next_validator_stake,
            self.current_proposals_stake,
            self.prev_epoch_kickout,
        ]

    def describe(self) -> Iterator[MetricIdentity]:
        return iter(self._identities)

    def __contains__(self, identity: MetricIdentity) -> bool:
        return identity in self._identities

    def __len__(self) -> int:
        return len(self._identities)

    def validator_dependent(self) -> List[MetricIdentity]:
        """Identities invalidated when the validators query fails."""
        return [
            self.epoch_block_produced,
            self.epoch_block_expected,
            self.epoch_chunks_produced,
            self.epoch_chunks_expected,
            self.seat_price,
            self.epoch_start_height,
            self.block_number,
            self.syncing,
            self.version_build,
            self.current_validator_stake,
            self.next_validator_stake,
            self.current_proposals_stake,
            self.prev_epoch_kickout,
        ]

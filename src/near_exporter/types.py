"""Shared type and exception definitions for the exporter."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union


class CollectorError(Exception):
    """Base exception for exporter errors."""
    pass


class ConfigError(CollectorError):
    """Raised when the exporter is configured with unusable values."""
    pass


@dataclass(frozen=True)
class MetricIdentity:
    """Name, help text and label names of one exposed gauge."""
    name: str
    help: str
    label_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Observation:
    """One gauge value for a declared identity."""
    identity: MetricIdentity
    value: float
    label_values: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.identity.name,
            "value": self.value,
            "labels": dict(zip(self.identity.label_names, self.label_values)),
        }


@dataclass(frozen=True)
class InvalidObservation:
    """Marker for an identity whose backing RPC query failed."""
    identity: MetricIdentity
    cause: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.identity.name,
            "invalid": True,
            "cause": self.cause,
        }


ScrapeItem = Union[Observation, InvalidObservation]


@dataclass
class DelegatorAccount:
    """Entry of the staking pool's ``get_accounts`` view."""
    account_id: str
    unstaked_balance: str = "0"
    staked_balance: str = "0"
    can_withdraw: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DelegatorAccount":
        return cls(
            account_id=str(raw.get("account_id", "")),
            unstaked_balance=str(raw.get("unstaked_balance", "0")),
            staked_balance=str(raw.get("staked_balance", "0")),
            can_withdraw=bool(raw.get("can_withdraw", False)),
        )


@dataclass
class ScrapeMetadata:
    """Metadata about a scrape."""
    collector_name: str
    collector_version: str
    account_id: str
    rpc_url: str
    collection_time: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    status: str = "success"
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to a dictionary."""
        return {
            "collector_name": self.collector_name,
            "collector_version": self.collector_version,
            "account_id": self.account_id,
            "rpc_url": self.rpc_url,
            "collection_time": self.collection_time,
            "status": self.status,
            "errors": self.errors,
        }


@dataclass
class ScrapeResult:
    """Result of one scrape."""
    metadata: ScrapeMetadata
    items: List[ScrapeItem] = field(default_factory=list)

    @property
    def observations(self) -> List[Observation]:
        return [i for i in self.items if isinstance(i, Observation)]

    @property
    def invalid(self) -> List[InvalidObservation]:
        return [i for i in self.items if isinstance(i, InvalidObservation)]

    @classmethod
    def create(
        cls,
        collector_name: str,
        collector_version: str,
        account_id: str,
        rpc_url: str,
        items: Optional[List[ScrapeItem]] = None,
    ) -> "ScrapeResult":
        """Create a new ScrapeResult with its status derived from the items.

        A scrape with no invalid markers is ``success``. One that produced
        only invalid markers (the node status query failed) is ``failed``.
        Anything in between is ``partial``.
        """
        items = list(items or [])
        invalid = [i for i in items if isinstance(i, InvalidObservation)]
        valid = [i for i in items if isinstance(i, Observation)]
        if not invalid:
            status = "success"
        elif not valid:
            status = "failed"
        else:
            status = "partial"

        # One error line per distinct cause, in order of appearance
        errors: List[str] = []
        for marker in invalid:
            if marker.cause not in errors:
                errors.append(marker.cause)

        metadata = ScrapeMetadata(
            collector_name=collector_name,
            collector_version=collector_version,
            account_id=account_id,
            rpc_url=rpc_url,
            status=status,
            errors=errors,
        )
        return cls(metadata=metadata, items=items)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the ScrapeResult to a JSON-serializable dictionary."""
        return {
            "metadata": self.metadata.to_dict(),
            "observations": [o.to_dict() for o in self.observations],
            "invalid": [i.to_dict() for i in self.invalid],
        }

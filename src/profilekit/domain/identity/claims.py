"""Claim primitives used by identity resolution.

A claim is one strategy's assertion that a candidate identity is linked to the
subject of a resolution request. Claims are immutable: strategies build fresh
claim tuples and hand them to the resolver, which aggregates them only after
every strategy has finished.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

from profilekit.domain.time_ranges import TimeRange

if TYPE_CHECKING:
    from collections.abc import Mapping


type IdentityKey = str
type SourceTag = str


class RelationshipKind(StrEnum):
    """Typed relationship kinds carried by claims and identity graph edges."""

    SAME_CONTACT = "same_contact"
    SHARED_DEVICE = "shared_device"
    BEHAVIORAL_MATCH = "behavioral_match"
    TRANSACTION_LINK = "transaction_link"
    CO_RESIDENT = "co_resident"
    USED_BY = "used_by"
    ASSERTED = "asserted"


def require_confidence(value: float, *, label: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{label} must be in [0.0, 1.0], got {value}")


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityClaim:
    """One strategy's claim about one candidate identity."""

    identity: IdentityKey
    source: SourceTag
    relationship: RelationshipKind = RelationshipKind.ASSERTED
    confidence: float
    temporal_validity: TimeRange = field(default_factory=TimeRange.always)
    attributes: Mapping[str, object] = field(default_factory=dict["str", "object"])

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("Identity claims require a non-empty identity key")
        require_confidence(self.confidence, label="Claim confidence")
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))


__all__ = ["IdentityClaim", "IdentityKey", "RelationshipKind", "SourceTag", "require_confidence"]

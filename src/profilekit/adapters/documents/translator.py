"""Translate JSON documents into domain requests and results back into JSON data."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ValidationError

from profilekit.domain.conflicts.contracts import Observation
from profilekit.domain.conflicts.schema import (
    AllowedValuesCheck,
    AttributeSpec,
    PatternCheck,
    ProfileSchema,
    RangeCheck,
    SourceReliability,
)
from profilekit.domain.identity.claims import IdentityClaim
from profilekit.domain.identity.strategies import (
    IdentityRecord,
    PrecomputedClaimsStrategy,
    StrategyInput,
    default_strategies,
)
from profilekit.domain.time_ranges import TimeRange

from .schema import ConflictDocument, IdentityDocument, ProfileDocument

if TYPE_CHECKING:
    from profilekit.config import ConflictResolutionConfig
    from profilekit.domain.conflicts.contracts import (
        AttributeConflict,
        AttributeKey,
        ConflictResolutionResult,
        ProfileObservations,
        ResolutionEntry,
    )
    from profilekit.domain.conflicts.schema import PlausibilityCheck
    from profilekit.domain.identity.claims import IdentityKey
    from profilekit.domain.identity.resolve import ConsensusResult, IdentityStrategy
    from profilekit.domain.profile import UnifiedProfile

    from .schema import AttributeSpecPayload, TimeRangePayload


log = getLogger(__name__)


class DocumentError(ValueError):
    """Raised when an input document cannot be read or does not validate."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        prefix = f"{path}: " if path is not None else ""
        super().__init__(f"{prefix}{message}")


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityRequest:
    initial_identifier: IdentityKey
    raw_data: Mapping[str, object]
    strategies: Mapping[str, IdentityStrategy]
    weights: Mapping[str, float] | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictRequest:
    profile: ProfileObservations
    schema: ProfileSchema = field(default_factory=ProfileSchema)
    reliability: SourceReliability = field(default_factory=SourceReliability)


def load_document[ModelT: BaseModel](path: Path, model: type[ModelT]) -> ModelT:
    """Read ``path`` as JSON and validate it against ``model``."""

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise DocumentError(f"cannot read document: {exc.strerror or exc}", path=path) from exc
    except json.JSONDecodeError as exc:
        raise DocumentError(f"invalid JSON: {exc}", path=path) from exc
    return parse_document(payload, model, path=path)


def parse_document[ModelT: BaseModel](
    payload: object,
    model: type[ModelT],
    *,
    path: Path | None = None,
) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise DocumentError(f"invalid {model.__name__}: {details}", path=path) from exc


def _time_range(payload: TimeRangePayload | None) -> TimeRange:
    if payload is None:
        return TimeRange.always()
    try:
        return TimeRange(start=payload.start, end=payload.end)
    except ValueError as exc:
        raise DocumentError(str(exc)) from exc


def to_identity_request(document: IdentityDocument) -> IdentityRequest:
    """Build strategies and raw data for the sources named in ``document``.

    Sources carrying claims run as precomputed claims; any other source must be
    named after a built-in strategy.
    """

    built_in = default_strategies()
    strategies: dict[str, IdentityStrategy] = {}
    raw_data: dict[str, object] = {}
    for name, source in document.sources.items():
        if source.claims is not None:
            strategies[name] = PrecomputedClaimsStrategy()
            raw_data[name] = tuple(
                IdentityClaim(
                    identity=claim.identity,
                    source=claim.source,
                    relationship=claim.relationship,
                    confidence=claim.confidence,
                    temporal_validity=_time_range(claim.temporal_validity),
                    attributes=claim.attributes,
                )
                for claim in source.claims
            )
            continue

        strategy = built_in.get(name)
        if strategy is None:
            raise DocumentError(
                f"source {name!r} has no claims and is not a built-in strategy "
                f"(expected one of {sorted(built_in)})"
            )
        strategies[name] = strategy
        raw_data[name] = StrategyInput(
            subject=source.subject,
            records=tuple(
                IdentityRecord(
                    identity=record.identity,
                    source=record.source,
                    attributes=record.attributes,
                    validity=_time_range(record.validity),
                )
                for record in source.records or ()
            ),
        )

    log.debug("Identity document names strategies %s", sorted(strategies))
    return IdentityRequest(
        initial_identifier=document.initial_identifier,
        raw_data=raw_data,
        strategies=strategies,
        weights=document.weights,
    )


def _attribute_spec(payload: AttributeSpecPayload, *, abs_tolerance: float) -> AttributeSpec:
    checks: list[PlausibilityCheck] = []
    if payload.minimum is not None or payload.maximum is not None:
        checks.append(RangeCheck(minimum=payload.minimum, maximum=payload.maximum))
    if payload.allowed is not None:
        checks.append(AllowedValuesCheck(allowed=frozenset(payload.allowed)))
    if payload.pattern is not None:
        checks.append(PatternCheck(pattern=payload.pattern))
    return AttributeSpec(
        kind=payload.kind,
        strategy=payload.strategy,
        abs_tolerance=payload.abs_tolerance if payload.abs_tolerance is not None else abs_tolerance,
        rel_tolerance=payload.rel_tolerance,
        numeric_aggregate=payload.aggregate,
        checks=tuple(checks),
    )


def to_conflict_request(
    document: ConflictDocument,
    *,
    config: ConflictResolutionConfig,
) -> ConflictRequest:
    """Build the profile, schema and reliability table; document values win over config."""

    profile = {
        dimension: {
            attribute: tuple(
                Observation(
                    value=observation.value,
                    source=observation.source,
                    observed_at=observation.observed_at,
                )
                for observation in observations
            )
            for attribute, observations in attributes.items()
        }
        for dimension, attributes in document.profile.items()
    }

    specs: dict[AttributeKey, AttributeSpec] = {}
    for key, payload in document.attributes.items():
        dimension, _, attribute = key.partition(".")
        specs[(dimension, attribute)] = _attribute_spec(
            payload, abs_tolerance=config.numeric_abs_tolerance
        )

    default_reliability = document.default_source_reliability
    return ConflictRequest(
        profile=profile,
        schema=ProfileSchema(
            attributes=specs,
            default=AttributeSpec(abs_tolerance=config.numeric_abs_tolerance),
        ),
        reliability=SourceReliability(
            scores={**config.source_reliability, **document.source_reliability},
            default=(
                default_reliability
                if default_reliability is not None
                else config.default_source_reliability
            ),
        ),
    )


def to_profile_requests(
    document: ProfileDocument,
    *,
    config: ConflictResolutionConfig,
) -> tuple[IdentityRequest, ConflictRequest]:
    identity = to_identity_request(document.identity)
    conflicts = to_conflict_request(document.conflicts, config=config)
    return identity, conflicts


def _jsonable(value: object) -> Any:  # noqa: ANN401
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, TimeRange):
        return {"start": _jsonable(value.start), "end": _jsonable(value.end)}
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_jsonable(item) for item in value]
    return value


def consensus_to_dict(result: ConsensusResult) -> dict[str, Any]:
    graph = result.identity_graph
    return {
        "master_identity": result.master_identity,
        "master_customer_id": _jsonable(result.master_customer_id),
        "overall_confidence": result.overall_confidence,
        "attributes": _jsonable(result.attributes),
        "votes": [
            {
                "identity": vote.identity,
                "total_weight": vote.total_weight,
                "source_count": vote.source_count,
                "sources": list(vote.sources),
            }
            for vote in result.ranking
        ],
        "failed_strategies": list(result.failed_strategies),
        "empty_strategies": list(result.empty_strategies),
        "identity_graph": {
            "nodes": [
                {
                    "identity": node.identity,
                    "confidence": node.confidence,
                    "origin_sources": list(node.origin_sources),
                }
                for node in graph.nodes
            ],
            "edges": [
                {
                    "source": edge.source_identity,
                    "target": edge.target_identity,
                    "relationship": edge.relationship.value,
                    "confidence": edge.confidence,
                    "temporal_validity": _jsonable(edge.temporal_validity),
                }
                for edge in graph.edges
            ],
        },
    }


def _entry_to_dict(entry: ResolutionEntry) -> dict[str, Any]:
    return {
        "dimension": entry.dimension,
        "attribute": entry.attribute,
        "conflict_description": entry.conflict_description,
        "strategy_used": entry.strategy_used.value,
        "resolved_value": _jsonable(entry.resolved_value),
        "explanation": entry.explanation,
        "confidence": entry.confidence,
    }


def _conflict_to_dict(conflict: AttributeConflict) -> dict[str, Any]:
    return {
        "dimension": conflict.dimension,
        "attribute": conflict.attribute,
        "kind": conflict.kind.value,
        "description": conflict.description,
        "candidates": [
            {
                "value": _jsonable(candidate.value),
                "source": candidate.source,
                "observed_at": candidate.observed_at.isoformat(),
                "source_reliability": candidate.source_reliability,
            }
            for candidate in conflict.candidates
        ],
    }


def resolution_to_dict(result: ConflictResolutionResult) -> dict[str, Any]:
    return {
        "resolved_profile": _jsonable(result.resolved_profile),
        "resolution_log": [_entry_to_dict(entry) for entry in result.resolution_log],
        "remaining_conflicts": [
            _conflict_to_dict(conflict) for conflict in result.remaining_conflicts
        ],
        "detected_conflicts": len(result.detected_conflicts),
    }


def unified_profile_to_dict(profile: UnifiedProfile) -> dict[str, Any]:
    metadata = profile.metadata
    return {
        "customer_id": profile.customer_id,
        "master_customer_id": _jsonable(profile.master_customer_id),
        "identity_confidence": profile.identity_confidence,
        "linked_identities": list(profile.linked_identities),
        "profile": _jsonable(profile.profile),
        "metadata": {
            "data_freshness": _jsonable(metadata.data_freshness),
            "profile_completeness": metadata.profile_completeness,
            "confidence_scores": _jsonable(metadata.confidence_scores),
            "last_updated": metadata.last_updated.isoformat(),
        },
        "resolution_log": [_entry_to_dict(entry) for entry in profile.resolution_log],
        "remaining_conflicts": [
            _conflict_to_dict(conflict) for conflict in profile.remaining_conflicts
        ],
    }


def dump_json(data: Mapping[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=False, default=str)


__all__ = [
    "ConflictRequest",
    "DocumentError",
    "IdentityRequest",
    "consensus_to_dict",
    "dump_json",
    "load_document",
    "parse_document",
    "resolution_to_dict",
    "to_conflict_request",
    "to_identity_request",
    "to_profile_requests",
    "unified_profile_to_dict",
]

"""Pydantic models describing the JSON input documents."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from profilekit.domain.conflicts.contracts import AttributeKind, ResolutionStrategy
from profilekit.domain.conflicts.schema import NumericAggregate
from profilekit.domain.identity.claims import RelationshipKind

Confidence = Annotated[float, Field(ge=0.0, le=1.0)]
NonNegative = Annotated[float, Field(ge=0.0)]
AllowedValue = str | int | float | bool


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class DocumentBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TimeRangePayload(DocumentBaseModel):
    start: datetime | None = None
    end: datetime | None = None

    _normalize_bounds = field_validator("start", "end", mode="after")(_as_utc)


class IdentityRecordPayload(DocumentBaseModel):
    identity: str = Field(min_length=1)
    source: str = Field(min_length=1)
    attributes: dict[str, Any] = Field(default_factory=dict)
    validity: TimeRangePayload | None = None


class IdentityClaimPayload(DocumentBaseModel):
    identity: str = Field(min_length=1)
    source: str = Field(min_length=1)
    relationship: RelationshipKind = RelationshipKind.ASSERTED
    confidence: Confidence
    temporal_validity: TimeRangePayload | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class SourcePayload(DocumentBaseModel):
    """Raw data for one strategy: either candidate records or precomputed claims."""

    subject: dict[str, Any] = Field(default_factory=dict)
    records: list[IdentityRecordPayload] | None = None
    claims: list[IdentityClaimPayload] | None = None

    @model_validator(mode="after")
    def _records_or_claims(self) -> SourcePayload:
        if self.records is not None and self.claims is not None:
            raise ValueError("a source may carry records or claims, not both")
        return self


class IdentityDocument(DocumentBaseModel):
    initial_identifier: str = Field(min_length=1)
    weights: dict[str, NonNegative] | None = None
    sources: dict[str, SourcePayload] = Field(min_length=1)


class ObservationPayload(DocumentBaseModel):
    value: Any
    source: str = Field(min_length=1)
    observed_at: datetime

    _normalize_observed_at = field_validator("observed_at", mode="after")(_as_utc)


class AttributeSpecPayload(DocumentBaseModel):
    kind: AttributeKind | None = None
    strategy: ResolutionStrategy | None = None
    abs_tolerance: NonNegative | None = None
    rel_tolerance: NonNegative = 0.0
    aggregate: NumericAggregate = NumericAggregate.MEAN
    minimum: float | None = None
    maximum: float | None = None
    allowed: list[AllowedValue] | None = None
    pattern: str | None = None

    @field_validator("pattern")
    @classmethod
    def _compile_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid pattern: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _ordered_range(self) -> AttributeSpecPayload:
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError("minimum must not exceed maximum")
        return self


class ConflictDocument(DocumentBaseModel):
    profile: dict[str, dict[str, list[ObservationPayload]]]
    source_reliability: dict[str, Confidence] = Field(default_factory=dict)
    default_source_reliability: Confidence | None = None
    attributes: dict[str, AttributeSpecPayload] = Field(default_factory=dict)

    @field_validator("attributes")
    @classmethod
    def _dotted_keys(
        cls,
        value: dict[str, AttributeSpecPayload],
    ) -> dict[str, AttributeSpecPayload]:
        for key in value:
            dimension, sep, attribute = key.partition(".")
            if not sep or not dimension or not attribute:
                raise ValueError(
                    f"attribute keys must look like 'dimension.attribute', got {key!r}"
                )
        return value


class ProfileDocument(DocumentBaseModel):
    identity: IdentityDocument
    conflicts: ConflictDocument

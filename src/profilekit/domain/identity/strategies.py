"""Built-in identity resolution strategies.

Each strategy compares the request subject against candidate identity records
supplied by one upstream collaborator and emits claims for the records it
links. Strategies are pure and share nothing, so the resolver can run them
concurrently. Callers may replace any of them with their own callables.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from profilekit.domain.time_ranges import TimeRange

from .claims import IdentityClaim, RelationshipKind

if TYPE_CHECKING:
    from .claims import IdentityKey, SourceTag
    from .resolve import IdentityStrategy


log = getLogger(__name__)

_NON_DIGITS = re.compile(r"\D+")
_NON_WORD = re.compile(r"[^\w\s]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityRecord:
    """One candidate identity as observed by an upstream source."""

    identity: IdentityKey
    source: SourceTag
    attributes: Mapping[str, object] = field(default_factory=dict["str", "object"])
    validity: TimeRange = field(default_factory=TimeRange.always)


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyInput:
    """Raw data handed to one strategy: the subject plus candidate records."""

    subject: Mapping[str, object] = field(default_factory=dict["str", "object"])
    records: Sequence[IdentityRecord] = ()


def normalize_email(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain:
        return None
    local = local.split("+", 1)[0]
    return f"{local}@{domain}"


def normalize_phone(value: object) -> str | None:
    if not isinstance(value, str | int):
        return None
    digits = _NON_DIGITS.sub("", str(value))
    if len(digits) < 7:
        return None
    return digits[-10:]


def normalize_address(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    text = unicodedata.normalize("NFKC", value).casefold()
    text = _NON_WORD.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text or None


def fingerprint(kind: str, value: str) -> str:
    return hashlib.sha256(f"{kind}:{value}".encode()).hexdigest()


def _token_set(value: object) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value.strip().casefold()}) if value.strip() else frozenset()
    if isinstance(value, Iterable):
        return frozenset(str(item).strip().casefold() for item in value if str(item).strip())
    return frozenset({str(value).casefold()})


def jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _combine(*confidences: float) -> float:
    """Noisy-or of independent match confidences."""

    remainder = 1.0
    for confidence in confidences:
        remainder *= 1.0 - confidence
    return 1.0 - remainder


def _claim_for(
    record: IdentityRecord,
    *,
    relationship: RelationshipKind,
    confidence: float,
) -> IdentityClaim:
    return IdentityClaim(
        identity=record.identity,
        source=record.source,
        relationship=relationship,
        confidence=round(min(max(confidence, 0.0), 1.0), 6),
        temporal_validity=record.validity,
        attributes=record.attributes,
    )


@dataclass(slots=True, kw_only=True)
class ContactFingerprintStrategy:
    """Link records sharing a normalised email address or phone number."""

    email_confidence: float = 0.95
    phone_confidence: float = 0.85

    def __call__(self, initial_identifier: IdentityKey, raw: StrategyInput) -> list[IdentityClaim]:
        subject_email = normalize_email(raw.subject.get("email"))
        subject_phone = normalize_phone(raw.subject.get("phone"))
        email_print = fingerprint("email", subject_email) if subject_email else None
        phone_print = fingerprint("phone", subject_phone) if subject_phone else None

        claims: list[IdentityClaim] = []
        for record in raw.records:
            email = normalize_email(record.attributes.get("email"))
            phone = normalize_phone(record.attributes.get("phone"))
            matched: list[float] = []
            if email_print and email and fingerprint("email", email) == email_print:
                matched.append(self.email_confidence)
            if phone_print and phone and fingerprint("phone", phone) == phone_print:
                matched.append(self.phone_confidence)
            if matched:
                claims.append(
                    _claim_for(
                        record,
                        relationship=RelationshipKind.SAME_CONTACT,
                        confidence=_combine(*matched),
                    )
                )
        log.debug("Contact fingerprints for %s produced %d claims", initial_identifier, len(claims))
        return claims


@dataclass(slots=True, kw_only=True)
class DeviceLinkageStrategy:
    """Link records that share device identifiers with the subject."""

    def __call__(self, initial_identifier: IdentityKey, raw: StrategyInput) -> list[IdentityClaim]:
        subject_devices = _token_set(raw.subject.get("device_ids"))
        claims: list[IdentityClaim] = []
        for record in raw.records:
            overlap = jaccard(subject_devices, _token_set(record.attributes.get("device_ids")))
            if overlap > 0.0:
                claims.append(
                    _claim_for(
                        record,
                        relationship=RelationshipKind.SHARED_DEVICE,
                        confidence=overlap,
                    )
                )
        log.debug("Device linkage for %s produced %d claims", initial_identifier, len(claims))
        return claims


@dataclass(slots=True, kw_only=True)
class BehavioralSimilarityStrategy:
    """Link records whose behaviour tokens resemble the subject's."""

    min_similarity: float = 0.5

    def __call__(self, initial_identifier: IdentityKey, raw: StrategyInput) -> list[IdentityClaim]:
        subject_behaviors = _token_set(raw.subject.get("behaviors"))
        claims: list[IdentityClaim] = []
        for record in raw.records:
            similarity = jaccard(subject_behaviors, _token_set(record.attributes.get("behaviors")))
            if similarity > 0.0 and similarity >= self.min_similarity:
                claims.append(
                    _claim_for(
                        record,
                        relationship=RelationshipKind.BEHAVIORAL_MATCH,
                        confidence=similarity,
                    )
                )
        log.debug(
            "Behavioral similarity for %s produced %d claims", initial_identifier, len(claims)
        )
        return claims


@dataclass(slots=True, kw_only=True)
class TransactionLinkageStrategy:
    """Link records sharing payment instruments or a shipping address."""

    payment_confidence: float = 0.9
    address_confidence: float = 0.6

    def __call__(self, initial_identifier: IdentityKey, raw: StrategyInput) -> list[IdentityClaim]:
        subject_tokens = _token_set(raw.subject.get("payment_tokens"))
        subject_address = normalize_address(raw.subject.get("address"))

        claims: list[IdentityClaim] = []
        for record in raw.records:
            shares_payment = bool(
                subject_tokens & _token_set(record.attributes.get("payment_tokens"))
            )
            address = normalize_address(record.attributes.get("address"))
            shares_address = subject_address is not None and address == subject_address
            if shares_payment:
                confidences = [self.payment_confidence]
                if shares_address:
                    confidences.append(self.address_confidence)
                claims.append(
                    _claim_for(
                        record,
                        relationship=RelationshipKind.TRANSACTION_LINK,
                        confidence=_combine(*confidences),
                    )
                )
            elif shares_address:
                claims.append(
                    _claim_for(
                        record,
                        relationship=RelationshipKind.CO_RESIDENT,
                        confidence=self.address_confidence,
                    )
                )
        log.debug("Transaction linkage for %s produced %d claims", initial_identifier, len(claims))
        return claims


@dataclass(slots=True, kw_only=True)
class PrecomputedClaimsStrategy:
    """Pass through claims a collaborator already computed."""

    def __call__(
        self,
        initial_identifier: IdentityKey,
        raw: Sequence[IdentityClaim],
    ) -> list[IdentityClaim]:
        return list(raw)


def default_strategies() -> dict[str, IdentityStrategy]:
    """Return the built-in strategies keyed by their conventional names."""

    return {
        "contact": ContactFingerprintStrategy(),
        "device": DeviceLinkageStrategy(),
        "behavior": BehavioralSimilarityStrategy(),
        "transaction": TransactionLinkageStrategy(),
    }


__all__ = [
    "BehavioralSimilarityStrategy",
    "ContactFingerprintStrategy",
    "DeviceLinkageStrategy",
    "IdentityRecord",
    "PrecomputedClaimsStrategy",
    "StrategyInput",
    "TransactionLinkageStrategy",
    "default_strategies",
    "fingerprint",
    "jaccard",
    "normalize_address",
    "normalize_email",
    "normalize_phone",
]

"""Public interface for the JSON document adapter."""

from __future__ import annotations

from .schema import ConflictDocument, IdentityDocument, ProfileDocument
from .translator import (
    ConflictRequest,
    DocumentError,
    IdentityRequest,
    consensus_to_dict,
    dump_json,
    load_document,
    parse_document,
    resolution_to_dict,
    to_conflict_request,
    to_identity_request,
    to_profile_requests,
    unified_profile_to_dict,
)

__all__ = [
    "ConflictDocument",
    "ConflictRequest",
    "DocumentError",
    "IdentityDocument",
    "IdentityRequest",
    "ProfileDocument",
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

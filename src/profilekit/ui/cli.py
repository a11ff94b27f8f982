# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from profilekit.adapters.documents import (
    ConflictDocument,
    DocumentError,
    IdentityDocument,
    ProfileDocument,
    consensus_to_dict,
    dump_json,
    load_document,
    resolution_to_dict,
    to_conflict_request,
    to_identity_request,
    to_profile_requests,
    unified_profile_to_dict,
)
from profilekit.app import construct_unified_profile, resolve_conflicts, resolve_identity
from profilekit.common import configure_logging
from profilekit.config import (
    ConfigurationError,
    get_conflict_resolution_config,
    get_identity_resolution_config,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from profilekit.adapters.documents import ConflictRequest, IdentityRequest
    from profilekit.config import ConflictResolutionConfig, IdentityResolutionConfig

log = logging.getLogger(__name__)

type Job = Callable[[], dict[str, Any]]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve customer identities and profiles")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output from the resolution stages",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("identity", "Resolve a consensus identity from per-source claims"),
        ("conflicts", "Resolve attribute conflicts in a multi-source profile"),
        ("profile", "Resolve identity and conflicts into a unified profile"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("document", type=Path, help="Path to the JSON input document")
        command.add_argument(
            "--output",
            type=Path,
            help="Write the JSON result to this file instead of stdout",
        )

    return parser.parse_args(list(argv))


def _run_identity(request: IdentityRequest, config: IdentityResolutionConfig) -> dict[str, Any]:
    result = resolve_identity(
        request.initial_identifier,
        request.raw_data,
        strategies=request.strategies,
        weights=request.weights,
        config=config,
    )
    return consensus_to_dict(result)


def _run_conflicts(request: ConflictRequest, config: ConflictResolutionConfig) -> dict[str, Any]:
    result = resolve_conflicts(
        request.profile,
        schema=request.schema,
        reliability=request.reliability,
        config=config,
    )
    return resolution_to_dict(result)


def _run_profile(
    identity: IdentityRequest,
    conflicts: ConflictRequest,
    identity_config: IdentityResolutionConfig,
    conflict_config: ConflictResolutionConfig,
) -> dict[str, Any]:
    unified = construct_unified_profile(
        identity.initial_identifier,
        identity.raw_data,
        conflicts.profile,
        strategies=identity.strategies,
        weights=identity.weights,
        schema=conflicts.schema,
        reliability=conflicts.reliability,
        identity_config=identity_config,
        conflict_config=conflict_config,
    )
    return unified_profile_to_dict(unified)


def _prepare(args: argparse.Namespace) -> Job:
    """Load configuration and the input document; raise on anything invalid."""

    if args.command == "identity":
        identity_request = to_identity_request(load_document(args.document, IdentityDocument))
        return partial(_run_identity, identity_request, get_identity_resolution_config())
    if args.command == "conflicts":
        conflict_config = get_conflict_resolution_config()
        conflict_request = to_conflict_request(
            load_document(args.document, ConflictDocument),
            config=conflict_config,
        )
        return partial(_run_conflicts, conflict_request, conflict_config)
    if args.command == "profile":
        conflict_config = get_conflict_resolution_config()
        identity_request, conflict_request = to_profile_requests(
            load_document(args.document, ProfileDocument),
            config=conflict_config,
        )
        return partial(
            _run_profile,
            identity_request,
            conflict_request,
            get_identity_resolution_config(),
            conflict_config,
        )
    raise ValueError(f"Unsupported command: {args.command}")


def _emit(data: dict[str, Any], output: Path | None) -> None:
    text = dump_json(data)
    if output is None:
        print(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    log.info("Wrote result to %s", output)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    if parsed_args.verbose:
        configure_logging(level=logging.DEBUG, force=True)

    try:
        job = _prepare(parsed_args)
    except (DocumentError, ConfigurationError, ValueError):
        log.exception("Invalid input")
        sys.exit(2)

    try:
        data = job()
        _emit(data, parsed_args.output)
    except Exception:
        log.exception("Fatal error during resolution")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

"""CLI entrypoint for bizsync."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
import json
from pathlib import Path

from .config import ensure_config_dir, load_config
from .integration.relationships import DEFAULT_RELATIONSHIPS, RelationshipRegistry
from .logging_utils import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bizsync",
        description="bizsync - cross-module integration core for business records",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML config file (defaults to ~/.config/bizsync/config.toml)",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the effective, validated configuration as JSON",
    )
    parser.add_argument(
        "--relationships",
        action="store_true",
        help="List the module relationship graph",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Handle CLI flags; returns a process exit code."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("bizsync")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"bizsync {version}")
        return 0

    if args.config is None:
        ensure_config_dir()
    config = load_config(config_path=args.config)
    configure_logging(config["logging"])

    if args.print_config:
        print(json.dumps(config, indent=2, sort_keys=True))
        return 0

    if args.relationships:
        registry = RelationshipRegistry(DEFAULT_RELATIONSHIPS)
        for source, target, relationship_types in registry:
            print(f"{source.value} -> {target.value} [{', '.join(relationship_types)}]")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

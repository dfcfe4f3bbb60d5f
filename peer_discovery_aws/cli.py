"""Argument parsing, configuration loading, and a single discovery run."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .backend import AWSPeerDiscoveryBackend
from .config import load_config
from .exceptions import ConfigError, PeerDiscoveryError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="peer-discovery-aws",
        description="List the broker cluster peers of this node from AWS EC2 / Auto Scaling",
    )
    parser.add_argument(
        "-c", "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format for the discovered nodes (default: text)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    if args.validate:
        logger.info("Configuration is valid")
        return 0

    backend = AWSPeerDiscoveryBackend(config)
    backend.init()

    try:
        result = backend.list_nodes()
    except PeerDiscoveryError as exc:
        logger.error("Peer discovery failed: %s", exc)
        return 1

    if args.format == "json":
        print(json.dumps({"nodes": result.nodes, "node_type": result.node_type}))
    else:
        for node in result.nodes:
            print(node)
    return 0


if __name__ == "__main__":
    sys.exit(main())

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command line interface for typedep-graph.

Subcommands:
    build ROOT UNIT...   Analyze compilation units and persist the graph
    show ROOT FILE       Print upstream/downstream files of one file
    queue ROOT           Print files ordered by upstream dependency count
    serve ROOT UNIT...   Serve the graph over MCP
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from typedep_graph.config import LOG_LEVELS, Config
from typedep_graph.logging_setup import setup_console_logging, setup_logging
from typedep_graph.manifest_resolver import ManifestError, ManifestResolver
from typedep_graph.query_api import QueryAPI
from typedep_graph.service import (
    AnalysisCancelledError,
    DependencyGraphService,
    GraphUnavailableError,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typedep-graph",
        description="Build and query file-level type dependency graphs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    typedep-graph build ./repo ./repo/app.unit.yml
    typedep-graph show ./repo Models/Order.cs
    typedep-graph queue ./repo
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file. Default: ./.typedep_graph.yml",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write structured JSON logs to this directory",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level. Default: log_level from configuration",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Analyze units and persist the graph")
    build.add_argument("root", help="Project root directory")
    build.add_argument("units", nargs="+", help="Compilation unit manifest(s)")
    build.add_argument(
        "--force", action="store_true", help="Rebuild even if a cached graph is valid"
    )

    show = subparsers.add_parser("show", help="Show dependencies of one file")
    show.add_argument("root", help="Project root directory")
    show.add_argument("file", help="File path, absolute or relative to ROOT")
    show.add_argument(
        "--unit",
        dest="units",
        action="append",
        default=[],
        help="Compilation unit to analyze if no cached graph exists (repeatable)",
    )

    queue = subparsers.add_parser("queue", help="Print the analysis queue")
    queue.add_argument("root", help="Project root directory")
    queue.add_argument(
        "--unit",
        dest="units",
        action="append",
        default=[],
        help="Compilation unit to analyze if no cached graph exists (repeatable)",
    )

    serve = subparsers.add_parser("serve", help="Serve the graph over MCP")
    serve.add_argument("root", help="Project root directory")
    serve.add_argument("units", nargs="*", help="Compilation unit manifest(s)")
    serve.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )

    return parser


def _configure_logging(args: argparse.Namespace, config: Config) -> None:
    if args.log_dir is not None:
        setup_logging(log_dir=args.log_dir, log_level=args.log_level, config=config)
    else:
        setup_console_logging(log_level=args.log_level, config=config)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _resolve_file(root: str, file: str) -> str:
    path = Path(file)
    if not path.is_absolute():
        path = Path(root) / path
    return str(path)


def run_command(args: argparse.Namespace, service: DependencyGraphService) -> int:
    """Execute a parsed command.

    Returns:
        Exit code (0 for success).
    """
    if args.command == "build":
        graph = service.load_or_build(args.root, args.units, force_rebuild=args.force)
        _print_json(QueryAPI(graph).get_graph_summary())
        return 0

    if args.command == "show":
        graph = service.load_or_build(args.root, args.units)
        context = QueryAPI(graph).get_file_context(_resolve_file(args.root, args.file))
        _print_json(context.to_dict())
        return 0

    if args.command == "queue":
        graph = service.load_or_build(args.root, args.units)
        queue = QueryAPI(graph).build_analysis_queue()
        _print_json([entry.to_dict() for entry in queue])
        return 0

    if args.command == "serve":
        try:
            from typedep_graph.mcp_server import DependencyGraphMCPServer
        except ImportError as e:
            print(f"MCP support is not available: {e}", file=sys.stderr)
            return 1
        server = DependencyGraphMCPServer(
            args.root, args.units, config=service.config, service=service
        )
        server.run(transport=args.transport)
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line tool.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config(args.config) if args.config is not None else Config()
    _configure_logging(args, config)

    service = DependencyGraphService(config, ManifestResolver())
    try:
        return run_command(args, service)
    except (
        GraphUnavailableError,
        ManifestError,
        AnalysisCancelledError,
        ValueError,
        OSError,
    ) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Entry point for running the discovery pipeline from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pattern-kb",
        description="Discover and curate test interaction patterns for a project",
    )
    parser.add_argument("project_root", type=Path, help="Root directory of the target project")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Where to write discovered-patterns.json and discovered-profile.json",
    )
    parser.add_argument("--threshold", type=float, default=None, help="Minimum pattern confidence")
    parser.add_argument("--max-patterns", type=int, default=None, help="Cap on curated patterns")
    parser.add_argument("--skip-packs", action="store_true", help="Do not load framework packs")
    parser.add_argument(
        "--skip-mining-modules",
        action="store_true",
        help="Do not run the i18n, analytics and feature-flag miners",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def run_pipeline(args: argparse.Namespace) -> int:
    """Run the pipeline and print a JSON summary.

    Args:
        args: Parsed command line arguments.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from pattern_kb.config import get_settings
    from pattern_kb.core.logging import configure_logging
    from pattern_kb.services.pipeline import PipelineOptions, run_full_discovery_pipeline

    settings = get_settings()
    configure_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        json_format=settings.log_json,
    )

    options = PipelineOptions(skip_packs=args.skip_packs, skip_mining_modules=args.skip_mining_modules)
    if args.output_dir is not None:
        options.output_dir = args.output_dir
    if args.threshold is not None:
        options.confidence_threshold = args.threshold
    if args.max_patterns is not None:
        options.max_patterns = args.max_patterns

    result = asyncio.run(run_full_discovery_pipeline(args.project_root, options=options))
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    sys.exit(run_pipeline(args))


if __name__ == "__main__":
    main()

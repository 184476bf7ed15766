"""
Colony CLI Entry Point
======================

Usage:
    colony validate path/to/file.py --min-score 70
    colony compress notes.md --max-units 500
    colony resources
    python -m Colony.cli --debug validate snippet.ts
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from Colony.core.foundation.configs import ColonyConfig
from Colony.core.foundation.exceptions import ColonyError
from Colony.core.optimization.context_compressor import ContextCompressor
from Colony.core.optimization.resources import ResourceRegistry
from Colony.core.validation.quality_validator import QualityValidator
from Colony.core.validation.types import Artifact

from . import __version__
from .tables import print_compression, print_validation, resources_table

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="colony",
        description="Colony - cost optimization, quality validation and collective learning for agent swarms",
    )
    parser.add_argument("-v", "--version", action="store_true", help="Show version and exit")
    parser.add_argument("-c", "--config", type=str, default=None, help="Path to a YAML config file")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    validate_parser = subparsers.add_parser("validate", help="Score a code or text file")
    validate_parser.add_argument("file", help="File to validate")
    validate_parser.add_argument(
        "--min-score", type=float, default=None,
        help="Minimum passing quality score (overrides the configured minimum)",
    )
    validate_parser.add_argument(
        "--confidence", type=float, default=1.0,
        help="Declared confidence used when the file holds no code (0-1)",
    )
    validate_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    compress_parser = subparsers.add_parser("compress", help="Compress a text file to a unit budget")
    compress_parser.add_argument("file", help="File to compress")
    compress_parser.add_argument("--max-units", type=int, required=True, help="Unit budget")

    subparsers.add_parser("resources", help="List the built-in resources")
    return parser


def _load_config(path: Optional[str]) -> ColonyConfig:
    if path is None:
        return ColonyConfig()
    return ColonyConfig.from_yaml(path)


def cmd_validate(args: argparse.Namespace, config: ColonyConfig, console: Console) -> int:
    content = Path(args.file).read_text(encoding="utf-8")
    validator = QualityValidator(thresholds=config.quality_thresholds)
    if args.min_score is not None:
        validator.set_quality_thresholds(
            minimum=args.min_score,
            critical=min(config.quality_thresholds.critical, args.min_score),
            good=max(config.quality_thresholds.good, args.min_score),
            excellent=max(config.quality_thresholds.excellent, args.min_score),
        )
    result = validator.validate(Artifact(content=content, confidence=args.confidence))
    if args.json:
        console.print_json(json.dumps(result.to_dict(), default=str))
    else:
        print_validation(console, result, args.file)
    return 0 if result.is_valid else 1


def cmd_compress(args: argparse.Namespace, config: ColonyConfig, console: Console) -> int:
    text = Path(args.file).read_text(encoding="utf-8")
    report = ContextCompressor().compress_with_report(text, args.max_units)
    sys.stdout.write(report.text)
    if not report.text.endswith("\n"):
        sys.stdout.write("\n")
    print_compression(Console(stderr=True, no_color=console.no_color), report)
    return 0


def cmd_resources(args: argparse.Namespace, config: ColonyConfig, console: Console) -> int:
    registry = ResourceRegistry()
    console.print(resources_table(registry, fallback=config.optimizer.fallback_resource))
    return 0


COMMANDS = {
    "validate": cmd_validate,
    "compress": cmd_compress,
    "resources": cmd_resources,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Colony CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"Colony v{__version__}")
        return 0

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.command is None:
        parser.print_help()
        return 0

    console = Console(no_color=args.no_color)
    try:
        config = _load_config(args.config)
        return COMMANDS[args.command](args, config, console)
    except (ColonyError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        if args.debug:
            logger.exception("Command failed")
        return 2


if __name__ == "__main__":
    sys.exit(main())

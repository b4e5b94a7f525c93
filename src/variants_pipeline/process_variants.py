#!/usr/bin/env python3
"""
Size Variant Processor CLI

Fetches one original → Renders every encoded size → Uploads the variants
Optionally records published keys in the daily manifest.
"""

import sys
import argparse
from typing import List, Optional

from .core import ConfigurationError, PipelineConfig, get_logger
from .core.factories import ProcessingPipelineFactory
from .core.logging_config import set_debug
from .core.models import PROFILES
from .processors.common import log_configuration, log_invocation_summary


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the size variant processor.

    Returns:
        An `argparse.Namespace` object containing the parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Render the size variants encoded in an S3 object key"
    )

    # Required arguments
    parser.add_argument("--bucket", required=True, help="Source S3 bucket")
    parser.add_argument("--key", required=True, help="Key of the uploaded original")

    # Optional arguments
    parser.add_argument(
        "--dest-bucket", default=None, help="Destination S3 bucket (default: source bucket)"
    )
    parser.add_argument(
        "--profile",
        type=str,
        default="letterbox",
        choices=sorted(PROFILES),
        help="Deployment profile (default: letterbox)",
    )
    parser.add_argument(
        "--manifest", action="store_true", help="Record published keys in the daily manifest"
    )
    parser.add_argument(
        "--concurrency", type=int, default=1, help="Worker threads for size tokens (default: 1)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Translate parsed arguments into a pipeline configuration."""
    overrides = {
        "source_bucket": args.bucket,
        "manifest_enabled": args.manifest,
        "concurrency": args.concurrency,
        "debug": args.debug,
    }
    if args.dest_bucket:
        overrides["dest_bucket"] = args.dest_bucket
    return PipelineConfig.for_profile(args.profile, **overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point for the size variant processor.

    Exits with status 1 when the key is rejected or the original cannot be
    fetched. Per-variant failures are reported in the summary.
    """
    logger = get_logger("processor")
    try:
        logger.info("Starting Size Variant Processor")
        args = parse_args(argv)
        config = build_config(args)

        if config.debug:
            set_debug(logger)

        log_configuration(config, "cli")
        pipeline = ProcessingPipelineFactory.create_pipeline(config)
        result = pipeline.run(args.key, bucket=args.bucket)
        log_invocation_summary(result)

    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user.")
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Processing failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

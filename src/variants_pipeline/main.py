"""Main module for the variants pipeline CLI."""

import sys
import argparse
from typing import List, Optional

from .core.models import PROFILES
from .process_variants import main as process_variants_main


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the unified command-line interface (CLI) of the Variants Pipeline.

    The "process" command forwards its arguments to `process_variants.main`,
    which keeps its own parser so it can also run as a standalone script.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="variants-pipeline",
        description="Variants Pipeline - size-encoded image variant fan-out on S3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Render every size encoded in the key
  variants-pipeline process --bucket my-bucket --key originals/a/700x700_1800x1800/img.jpg

  # Edge-to-edge variants into another bucket, recorded in the daily manifest
  variants-pipeline process --bucket my-bucket --key originals/a/700x700/img.jpg \\
                            --dest-bucket my-cdn --profile exact --manifest

  # Show version
  variants-pipeline version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    process_parser: argparse.ArgumentParser = subparsers.add_parser(
        "process", help="Render and publish the size variants of one object"
    )
    process_parser.add_argument("--bucket", required=True, help="Source S3 bucket")
    process_parser.add_argument("--key", required=True, help="Key of the uploaded original")
    process_parser.add_argument(
        "--dest-bucket", default=None, help="Destination S3 bucket"
    )
    process_parser.add_argument(
        "--profile",
        type=str,
        default="letterbox",
        choices=sorted(PROFILES),
        help="Deployment profile (default: letterbox)",
    )
    process_parser.add_argument(
        "--manifest", action="store_true", help="Record published keys in the daily manifest"
    )
    process_parser.add_argument(
        "--concurrency", type=int, default=1, help="Worker threads for size tokens"
    )
    process_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    subparsers.add_parser("version", help="Show version information")

    args: argparse.Namespace = parser.parse_args(argv)

    if args.command == "process":
        forwarded: List[str] = ["--bucket", args.bucket, "--key", args.key]
        if args.dest_bucket:
            forwarded.extend(["--dest-bucket", args.dest_bucket])
        if args.profile != "letterbox":
            forwarded.extend(["--profile", args.profile])
        if args.manifest:
            forwarded.append("--manifest")
        if args.concurrency != 1:
            forwarded.extend(["--concurrency", str(args.concurrency)])
        if args.debug:
            forwarded.append("--debug")

        process_variants_main(forwarded)

    elif args.command == "version":
        print("Variants Pipeline CLI")
        print("Version 0.1.0")
        print("Size-encoded image variant fan-out on S3")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

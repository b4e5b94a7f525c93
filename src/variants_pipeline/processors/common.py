"""Reporting helpers shared by the CLI and the event handler."""

from typing import Tuple

from ..core.logging_config import get_logger
from ..core.models import InvocationResult, PipelineConfig


def log_configuration(config: PipelineConfig, surface: str) -> None:
    """Log the deployment configuration."""
    logger = get_logger("processor")
    logger.info("=" * 80)
    logger.info(f"{surface.upper()} SIZE VARIANT PROCESSOR")
    logger.info("=" * 80)

    logger.info("CONFIGURATION:")
    logger.info(f"  Source:        s3://{config.source_bucket}/{config.source_folder}")
    logger.info(f"  Destination:   s3://{config.resolved_dest_bucket}/{config.dest_folder}")
    logger.info(f"  Cache-Control: {config.cache_control}")
    logger.info("")

    logger.info("PROCESSING OPTIONS:")
    logger.info(f"  Border: {config.border_size}px  Background: {config.background_color}  Gravity: {config.gravity}")
    passes = " -> ".join(config.compression_passes) or "None"
    lower, upper = config.quality_bound
    logger.info(f"  Compression: {passes} (quality {lower} to {upper})")
    logger.info(f"  Token concurrency: {config.concurrency}")
    if config.manifest_enabled:
        logger.info(
            f"  Manifest: s3://{config.resolved_manifest_bucket}/{config.manifest_prefix} "
            f"({config.manifest_timezone})"
        )
    else:
        logger.info("  Manifest: Disabled")
    logger.info("=" * 80)


def count_variant_results(result: InvocationResult) -> Tuple[int, int]:
    """
    Count published and failed variants of an invocation.

    Returns:
        Tuple of (published_count, error_count)
    """
    published_count = len(result.published_keys)
    return published_count, len(result.results) - published_count


def log_invocation_summary(result: InvocationResult) -> None:
    """Log final statistics of one invocation."""
    logger = get_logger("processor")
    published_count, error_count = count_variant_results(result)

    logger.info("=" * 80)
    logger.info("PROCESSING COMPLETED")
    logger.info("=" * 80)
    logger.info(f"Source: s3://{result.source_bucket}/{result.source_key}")
    logger.info(f"Total execution time: {result.processing_time:.2f}s")
    logger.info(f"Variants published: {published_count}")
    for key in result.published_keys:
        logger.info(f"  {key}")
    logger.info(f"Errors encountered: {error_count}")
    for variant in result.results:
        if not variant.success:
            logger.info(f"  {variant.token} ({variant.failed_stage}): {variant.error}")
    if result.manifest_key:
        logger.info(f"Manifest: {result.manifest_key}")
    if result.manifest_error:
        logger.warning(f"Manifest not updated: {result.manifest_error}")
    logger.info("=" * 80)

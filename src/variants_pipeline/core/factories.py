"""Factory classes for creating configured service instances."""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config

from .compression import CompressionPipeline, build_codec_passes
from .logging_config import setup_logger
from .manifest import ManifestConsolidator
from .models import PipelineConfig
from .observability import (
    LogLevel,
    MetricsCollector,
    ObservabilityConfig,
    StructuredLogger,
    create_logger,
    create_metrics_collector,
)
from .protocols import LoggerProtocol, S3ClientProtocol
from .services import (
    ImageTransformer,
    KeyMapper,
    PipelineOrchestrator,
    VariantPublisher,
)
from .size_spec import SizeSpecParser
from ..processors.multithread import make_runner
from ..processors.serial import process_tokens as serial_process_tokens


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "variants-pipeline", debug: bool = False) -> StructuredLogger:
        """Create a structured logger on top of the centralized logging setup."""
        observability = ObservabilityConfig(
            log_level=LogLevel.DEBUG if debug else LogLevel.INFO
        )
        logger: logging.Logger = setup_logger(name)
        if not debug:
            # Level stays as LOG_LEVEL set it
            return StructuredLogger(logger)
        return create_logger(logger, observability)


class S3ClientFactory:
    """Factory for creating S3 client instances."""

    @staticmethod
    def create_s3_client(config: PipelineConfig, **kwargs: Any) -> S3ClientProtocol:
        """Create an S3 client carrying the configured retry and timeout policy."""
        client_config = Config(
            retries={"max_attempts": config.max_retries, "mode": "standard"},
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )
        session = boto3.Session()
        return session.client("s3", config=client_config, **kwargs)  # type: ignore


class ProcessingPipelineFactory:
    """Factory for creating the complete processing pipeline."""

    @staticmethod
    def create_pipeline(
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> PipelineOrchestrator:
        """Create a fully configured pipeline orchestrator."""

        if s3_client is None:
            s3_client = S3ClientFactory.create_s3_client(config)

        if logger is None:
            logger = LoggerFactory.create_logger(debug=config.debug)

        if metrics_collector is None:
            metrics_collector = create_metrics_collector(ObservabilityConfig())

        compressor = CompressionPipeline(
            build_codec_passes(config.compression_passes),
            config.quality_bound,
            logger,
        )
        publisher = VariantPublisher(
            s3_client, config.resolved_dest_bucket, config.cache_control, logger
        )

        consolidator = None
        if config.manifest_enabled:
            consolidator = ManifestConsolidator(
                s3_client,
                config.resolved_manifest_bucket,
                logger,
                prefix=config.manifest_prefix,
                tz=config.tzinfo,
                cache_control=config.manifest_cache_control,
            )

        token_runner = serial_process_tokens
        if config.concurrency > 1:
            token_runner = make_runner(config.concurrency)

        extra = {"clock": clock} if clock is not None else {}
        return PipelineOrchestrator(
            s3_client=s3_client,
            config=config,
            parser=SizeSpecParser(max_dimension=config.max_dimension),
            transformer=ImageTransformer(config),
            compressor=compressor,
            key_mapper=KeyMapper(config.source_folder, config.dest_folder),
            publisher=publisher,
            logger=logger,
            token_runner=token_runner,
            consolidator=consolidator,
            metrics_collector=metrics_collector,
            **extra,
        )

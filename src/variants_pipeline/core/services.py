"""Service implementations for the size-variant pipeline."""

import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from .compression import CompressionPipeline
from .error_handling import BatchOperationContextManager, with_error_handling
from .exceptions import ImageProcessingError
from .image_utils import (
    calculate_variant_key,
    encode_image,
    letterbox,
    normalize_orientation,
    open_image,
    resolve_output_format,
    strip_color_profile,
)
from .manifest import ManifestConsolidator
from .models import (
    InvocationResult,
    PipelineConfig,
    SizeSpecMatch,
    SizeToken,
    SourceImage,
    TransformedImage,
    Variant,
    VariantResult,
)
from .logging_config import invocation_scope
from .observability import LogContext, MetricsCollector, timed_operation
from .protocols import LoggerProtocol, S3ClientProtocol
from .size_spec import SizeSpecParser

TokenRunner = Callable[
    [Sequence[SizeToken], Callable[[SizeToken], VariantResult]], List[VariantResult]
]


class ImageTransformer:
    """Pure image service: renders one letterboxed size from source bytes."""

    def __init__(self, config: PipelineConfig):
        self._config = config

    def transform(self, source: SourceImage, token: SizeToken) -> TransformedImage:
        """
        Render ``source`` onto a ``token.width x token.height`` canvas.

        Raises:
            DecodeError: If the source bytes are not an image
        """
        config = self._config
        image = open_image(source.body)
        image = strip_color_profile(normalize_orientation(image))

        canvas = letterbox(
            image,
            token.width,
            token.height,
            border=config.border_size,
            background=config.background_color,
            gravity=config.gravity,
            allow_upscale=config.allow_upscale,
        )

        fmt, content_type = resolve_output_format(source.content_type, config.output_format)
        return TransformedImage(
            body=encode_image(canvas, fmt, config.encode_quality),
            width=canvas.width,
            height=canvas.height,
            format=fmt,
            content_type=content_type,
        )


class KeyMapper:
    """Rewrites a source key into the destination key of one size token."""

    def __init__(self, source_folder: str, dest_folder: str):
        self._source_folder = source_folder
        self._dest_folder = dest_folder

    def map(self, source_key: str, match: SizeSpecMatch, token: SizeToken) -> str:
        return calculate_variant_key(
            source_key, match, token.literal, self._source_folder, self._dest_folder
        )


class VariantPublisher:
    """Uploads variants; a failed upload is reported, never raised."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        cache_control: str,
        logger: LoggerProtocol,
    ):
        self._s3_client = s3_client
        self._bucket = bucket
        self._cache_control = cache_control
        self._logger = logger

    @with_error_handling
    def _upload(self, variant: Variant) -> None:
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=variant.dest_key,
            Body=variant.body,
            ContentType=variant.content_type,
            CacheControl=self._cache_control,
        )

    def publish(self, variant: Variant, context: Optional[LogContext] = None) -> Variant:
        context = (context or LogContext()).with_operation("publish_variant").with_metadata(
            dest_key=variant.dest_key
        )
        self._logger.debug("Uploading processed image", context)

        try:
            self._upload(variant)
        except Exception as exc:
            self._logger.error(
                "[Handled Error] Resized image failed upload",
                context.with_metadata(error=str(exc)),
            )
            return variant.model_copy(update={"published": False, "error": str(exc)})

        self._logger.info("Uploaded processed image", context)
        return variant.model_copy(update={"published": True, "error": ""})


class PipelineOrchestrator:
    """
    Runs one invocation: parse sizes, fetch the source once, then render and
    publish every size token and optionally record the results in the
    daily manifest.

    Input errors (no size specification, bad token, unmappable key) and a
    failed fetch raise. Everything after the fetch is recorded in the
    returned ``InvocationResult`` instead.
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        config: PipelineConfig,
        parser: SizeSpecParser,
        transformer: ImageTransformer,
        compressor: CompressionPipeline,
        key_mapper: KeyMapper,
        publisher: VariantPublisher,
        logger: LoggerProtocol,
        token_runner: TokenRunner,
        consolidator: Optional[ManifestConsolidator] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._s3_client = s3_client
        self._config = config
        self._parser = parser
        self._transformer = transformer
        self._compressor = compressor
        self._key_mapper = key_mapper
        self._publisher = publisher
        self._logger = logger
        self._consolidator = consolidator
        self._token_runner = token_runner
        self._metrics_collector = metrics_collector
        self._clock = clock

    @with_error_handling
    def fetch_source(self, bucket: str, key: str) -> SourceImage:
        """
        Download the triggering object.

        Raises:
            S3Error: When the store cannot return the object
        """
        response = self._s3_client.get_object(Bucket=bucket, Key=key)
        return SourceImage(
            bucket=bucket,
            key=key,
            body=response["Body"].read(),
            content_type=response.get("ContentType") or "application/octet-stream",
        )

    def run(self, key: str, bucket: Optional[str] = None) -> InvocationResult:
        """
        Process one uploaded object.

        Log records emitted while it runs carry the invocation id, which is
        the caller's (e.g. the Lambda request id) when one is bound.
        """
        with invocation_scope() as invocation_id:
            return self._run(key, bucket or self._config.source_bucket, invocation_id)

    def _run(self, key: str, bucket: str, invocation_id: str) -> InvocationResult:
        start_time = time.time()
        context = LogContext(
            correlation_id=invocation_id,
            operation="process_object",
            component="pipeline_orchestrator",
        ).with_metadata(source=f"s3://{bucket}/{key}")

        # Validate everything derivable from the key before any I/O
        match = self._parser.parse(key)
        for token in match.tokens:
            self._key_mapper.map(key, match, token)
        self._logger.info(
            f"Found {len(match.tokens)} size(s): {', '.join(t.literal for t in match.tokens)}",
            context,
        )

        self._logger.debug("Getting image from S3", context)
        with timed_operation("fetch", self._metrics_collector):
            source = self.fetch_source(bucket, key)
        self._logger.debug("Get image from S3 done", context, bytes=len(source.body))

        with BatchOperationContextManager(f"Variant fan-out for {key}") as batch:
            results = self._token_runner(
                match.tokens,
                lambda token: self._process_token(source, match, token, context),
            )
            for result in results:
                if not result.success:
                    batch.add_error(f"{result.failed_stage}: {result.error}", result.token)

        invocation = InvocationResult(
            invocation_id=invocation_id, source_bucket=bucket, source_key=key, results=results
        )
        self._logger.info(
            f"Successfully processed s3://{bucket}/{key}",
            context,
            published=len(invocation.published_keys),
            failed=len(invocation.failed_tokens),
        )

        if self._config.manifest_enabled and self._consolidator is not None:
            self._consolidate(invocation, context)

        invocation.processing_time = time.time() - start_time
        if self._metrics_collector is not None:
            invocation.metrics = self._metrics_collector.get_operation_summaries()
        return invocation

    def _process_token(
        self,
        source: SourceImage,
        match: SizeSpecMatch,
        token: SizeToken,
        context: LogContext,
    ) -> VariantResult:
        token_context = context.with_metadata(token=token.literal)
        result = VariantResult(token=token.literal)
        start_time = time.time()
        stage = "transform"

        try:
            self._logger.debug(
                f"Resizing image to size: {token.width} x {token.height}", token_context
            )
            with timed_operation("transform", self._metrics_collector, token=token.literal):
                transformed = self._transformer.transform(source, token)

            stage = "compress"
            with timed_operation("compress", self._metrics_collector, token=token.literal):
                payload, compressed = self._compressor.compress(transformed, token_context)

            stage = "map"
            dest_key = self._key_mapper.map(source.key, match, token)
            result.dest_key = dest_key
            result.compressed = compressed

            stage = "publish"
            variant = Variant(
                token=token,
                dest_key=dest_key,
                body=payload,
                content_type=transformed.content_type,
                compressed=compressed,
            )
            with timed_operation("publish", self._metrics_collector, token=token.literal):
                variant = self._publisher.publish(variant, token_context)

            result.success = variant.published
            if not variant.published:
                result.failed_stage = stage
                result.error = variant.error

        except ImageProcessingError as exc:
            result.failed_stage = stage
            result.error = str(exc)
            self._logger.error(
                f"Variant {token.literal} failed during {stage}",
                token_context.with_metadata(error=str(exc)),
            )
        except Exception as exc:
            result.failed_stage = stage
            result.error = f"{type(exc).__name__}: {exc}"
            self._logger.error(
                f"Unexpected error for variant {token.literal} during {stage}",
                token_context.with_metadata(error=str(exc)),
            )

        result.processing_time = time.time() - start_time
        return result

    def _consolidate(self, invocation: InvocationResult, context: LogContext) -> None:
        published = invocation.published_keys
        self._logger.debug(
            f"Processed Images to be logged: {', '.join(published)}", context
        )
        try:
            with timed_operation("consolidate", self._metrics_collector):
                invocation.manifest_key = self._consolidator.consolidate(
                    published, now=self._clock(), context=context
                )
        except Exception as exc:
            invocation.manifest_error = str(exc)
            self._logger.error(
                "[Handled Error] Manifest consolidation failed",
                context.with_metadata(error=str(exc)),
            )

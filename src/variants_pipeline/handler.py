"""Object-created event entry point."""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote_plus

from .core.exceptions import ConfigurationError, VariantsPipelineError
from .core.factories import ProcessingPipelineFactory
from .core.logging_config import get_logger, invocation_scope
from .core.models import InvocationResult, PipelineConfig
from .core.protocols import S3ClientProtocol
from .processors.common import log_invocation_summary


def parse_s3_event(event: Dict[str, Any]) -> Tuple[str, str]:
    """
    Extract the bucket and decoded object key of the first record.

    Keys arrive URL-encoded with spaces as ``+``.

    Raises:
        ConfigurationError: If the event has no S3 record
    """
    try:
        s3 = event["Records"][0]["s3"]
        bucket = s3["bucket"]["name"]
        raw_key = s3["object"]["key"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ConfigurationError(f"Event does not describe an S3 object: {exc}") from exc
    return bucket, unquote_plus(raw_key)


def summarize(result: InvocationResult) -> Dict[str, Any]:
    """JSON-friendly view of an invocation result."""
    return {
        "invocation_id": result.invocation_id,
        "source": f"s3://{result.source_bucket}/{result.source_key}",
        "published": result.published_keys,
        "failed": [
            {"token": r.token, "stage": r.failed_stage, "error": r.error}
            for r in result.results
            if not r.success
        ],
        "manifest": result.manifest_key,
        "manifest_error": result.manifest_error or None,
        "processing_time": round(result.processing_time, 3),
    }


def lambda_handler(
    event: Dict[str, Any],
    context: Any = None,
    config: Optional[PipelineConfig] = None,
    s3_client: Optional[S3ClientProtocol] = None,
) -> Dict[str, Any]:
    """
    Process one uploaded original.

    Log records are tagged with the Lambda request id. Input errors and
    fetch failures are logged and re-raised so the invocation is reported
    as failed.
    """
    logger = get_logger("handler")
    bucket, key = parse_s3_event(event)
    logger.info(f"Received upload s3://{bucket}/{key}")

    if config is None:
        config = PipelineConfig.from_env()
    pipeline = ProcessingPipelineFactory.create_pipeline(config, s3_client=s3_client)

    with invocation_scope(getattr(context, "aws_request_id", None)):
        try:
            result = pipeline.run(key, bucket=bucket)
        except VariantsPipelineError as e:
            logger.error(f"Processing s3://{bucket}/{key} failed: {e}")
            raise

        log_invocation_summary(result)
    return summarize(result)

"""Core utilities and shared components for the variants pipeline."""

from .image_utils import (
    calculate_variant_key,
    letterbox,
    resolve_output_format,
)
from .logging_config import (
    get_logger,
    setup_logger,
)
from .exceptions import (
    VariantsPipelineError,
    ImageProcessingError,
    InvalidSourceKeyError,
    MissingSizeSpecError,
    InvalidSizeTokenError,
    KeyMappingError,
    ManifestError,
    S3Error,
    ConfigurationError,
)
from .models import (
    InvocationResult,
    PipelineConfig,
    SizeSpecMatch,
    SizeToken,
    VariantResult,
)
from .size_spec import SizeSpecParser

__all__ = [
    "PipelineConfig",
    "SizeToken",
    "SizeSpecMatch",
    "VariantResult",
    "InvocationResult",
    "SizeSpecParser",
    "calculate_variant_key",
    "letterbox",
    "resolve_output_format",
    "setup_logger",
    "get_logger",
    "VariantsPipelineError",
    "ImageProcessingError",
    "InvalidSourceKeyError",
    "MissingSizeSpecError",
    "InvalidSizeTokenError",
    "KeyMappingError",
    "ManifestError",
    "S3Error",
    "ConfigurationError",
]

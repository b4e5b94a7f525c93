"""Custom exceptions for the variants pipeline."""

from __future__ import annotations


class VariantsPipelineError(Exception):
    """Base exception for all variants pipeline errors."""


class S3Error(VariantsPipelineError):
    """Error raised for S3 related failures."""


class ConfigurationError(VariantsPipelineError):
    """Error raised for invalid configuration options."""


class ImageProcessingError(VariantsPipelineError):
    """Error raised when producing a single variant fails."""


class DecodeError(ImageProcessingError):
    """Source bytes could not be decoded as a raster image."""


class CodecError(ImageProcessingError):
    """A compression pass could not produce output."""


class InvalidSourceKeyError(VariantsPipelineError):
    """The triggering object key cannot drive any variant.

    Raised before any network I/O; the whole invocation is aborted.
    """

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class MissingSizeSpecError(InvalidSourceKeyError):
    """No ``<w>x<h>`` size specification was found in the key."""

    def __init__(self, key: str):
        super().__init__(f"Size not specified for file: {key}", key)


class InvalidSizeTokenError(InvalidSourceKeyError):
    """A size token is present but not a usable positive dimension pair."""

    def __init__(self, key: str, token: str, reason: str):
        super().__init__(f"Invalid size token '{token}' in {key}: {reason}", key)
        self.token = token
        self.reason = reason


class KeyMappingError(InvalidSourceKeyError):
    """The key cannot be rewritten into a destination key."""


class ManifestError(VariantsPipelineError):
    """Error raised while consolidating the daily manifest."""


class ManifestDecodeError(ManifestError):
    """A stored manifest row could not be decoded."""

    def __init__(self, manifest_key: str, line_number: int, reason: str):
        super().__init__(f"{manifest_key}, line {line_number}: {reason}")
        self.manifest_key = manifest_key
        self.line_number = line_number

"""Shared data models for the variants pipeline."""

import os
from typing import Any, Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

GRAVITIES = (
    "center",
    "north",
    "south",
    "east",
    "west",
    "northwest",
    "northeast",
    "southwest",
    "southeast",
)

CODEC_NAMES = ("jpeg-recompress", "jpegtran", "pngquant")

# Deployment profiles: bordered letterbox with the full lossy chain, or
# edge-to-edge letterbox with a single re-encode that keeps the JPEG
# quantisation tables.
PROFILES: Dict[str, Dict[str, Any]] = {
    "letterbox": {
        "border_size": 30,
        "compression_passes": ["jpeg-recompress", "jpegtran", "pngquant"],
    },
    "exact": {
        "border_size": 0,
        "compression_passes": ["jpegtran"],
    },
}


class PipelineConfig(BaseModel):
    """Configuration for one deployment of the pipeline."""

    source_bucket: str
    dest_bucket: Optional[str] = None
    source_folder: str = "originals/"
    dest_folder: str = "processed/"

    # Transform
    border_size: int = Field(default=30, ge=0)
    background_color: str = "#FFFFFF"
    gravity: str = "center"
    allow_upscale: bool = False
    output_format: Optional[str] = None
    encode_quality: int = Field(default=92, ge=1, le=100)
    max_dimension: int = Field(default=10000, ge=1)

    # Compression
    compression_passes: List[str] = Field(
        default_factory=lambda: list(PROFILES["letterbox"]["compression_passes"])
    )
    quality_bound: Tuple[float, float] = (0.6, 0.8)

    # Publishing
    cache_control: str = "max-age=604800, stale-while-revalidate=120, stale-if-error=86400"

    # Manifest
    manifest_enabled: bool = False
    manifest_bucket: Optional[str] = None
    manifest_prefix: str = "csv_log/"
    manifest_cache_control: str = "public, max-age=86400"
    manifest_timezone: str = "UTC"

    # Store client policy
    max_retries: int = Field(default=3, ge=0)
    connect_timeout: float = Field(default=20.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)

    concurrency: int = Field(default=1, ge=1)
    debug: bool = False

    @field_validator("background_color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        ImageColor.getrgb(value)
        return value

    @field_validator("gravity")
    @classmethod
    def _check_gravity(cls, value: str) -> str:
        value = value.lower()
        if value not in GRAVITIES:
            raise ValueError(f"unknown gravity '{value}', expected one of {GRAVITIES}")
        return value

    @field_validator("output_format")
    @classmethod
    def _check_output_format(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.upper()
        if value == "JPG":
            value = "JPEG"
        if value not in ("JPEG", "PNG"):
            raise ValueError(f"unsupported output format '{value}'")
        return value

    @field_validator("compression_passes")
    @classmethod
    def _check_passes(cls, value: List[str]) -> List[str]:
        unknown = [name for name in value if name not in CODEC_NAMES]
        if unknown:
            raise ValueError(f"unknown compression passes {unknown}")
        return value

    @field_validator("quality_bound")
    @classmethod
    def _check_quality_bound(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        lower, upper = value
        if not 0.0 <= lower <= upper <= 1.0:
            raise ValueError("quality bound must satisfy 0 <= lower <= upper <= 1")
        return value

    @field_validator("manifest_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone '{value}'") from exc
        return value

    @property
    def resolved_dest_bucket(self) -> str:
        return self.dest_bucket or self.source_bucket

    @property
    def resolved_manifest_bucket(self) -> str:
        return self.manifest_bucket or self.source_bucket

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.manifest_timezone)

    @classmethod
    def for_profile(cls, profile: str, **overrides: Any) -> "PipelineConfig":
        """Build a config from a named deployment profile plus overrides."""
        if profile not in PROFILES:
            raise ConfigurationError(
                f"Unknown deployment profile '{profile}', expected one of {sorted(PROFILES)}"
            )
        values: Dict[str, Any] = dict(PROFILES[profile])
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """
        Build a config from environment variables.

        Environment Variables:
            BUCKET / SOURCE_BUCKET: Source bucket (required)
            DEST_BUCKET: Destination bucket (defaults to the source bucket)
            DEPLOYMENT_PROFILE: "letterbox" (default) or "exact"
            SOURCE_FOLDER, DEST_FOLDER: Key prefixes
            BORDER_SIZE, BACKGROUND_COLOR, CACHE_CONTROL: Variant rendering/publishing
            WRITE_LOG_TO_S3: "true" enables the daily manifest
            MANIFEST_TIMEZONE: IANA timezone for manifest file names
            TOKEN_CONCURRENCY: Worker threads for size tokens
        """
        env = os.environ if environ is None else environ

        source_bucket = env.get("SOURCE_BUCKET") or env.get("BUCKET")
        if not source_bucket:
            raise ConfigurationError("BUCKET or SOURCE_BUCKET must be set")

        overrides: Dict[str, Any] = {"source_bucket": source_bucket}
        string_fields = {
            "DEST_BUCKET": "dest_bucket",
            "SOURCE_FOLDER": "source_folder",
            "DEST_FOLDER": "dest_folder",
            "BACKGROUND_COLOR": "background_color",
            "CACHE_CONTROL": "cache_control",
            "MANIFEST_TIMEZONE": "manifest_timezone",
        }
        for env_name, field_name in string_fields.items():
            if env.get(env_name):
                overrides[field_name] = env[env_name]

        int_fields = {"BORDER_SIZE": "border_size", "TOKEN_CONCURRENCY": "concurrency"}
        for env_name, field_name in int_fields.items():
            if env.get(env_name):
                try:
                    overrides[field_name] = int(env[env_name])
                except ValueError as exc:
                    raise ConfigurationError(
                        f"{env_name} must be an integer, got '{env[env_name]}'"
                    ) from exc

        if env.get("WRITE_LOG_TO_S3"):
            overrides["manifest_enabled"] = env["WRITE_LOG_TO_S3"].lower() in ("1", "true", "yes")

        return cls.for_profile(env.get("DEPLOYMENT_PROFILE", "letterbox"), **overrides)


class SourceImage(BaseModel):
    """The uploaded original, fetched once per invocation."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    body: bytes
    content_type: str = "application/octet-stream"


class SizeToken(BaseModel):
    """One ``<width>x<height>`` pair and the literal text it came from."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    literal: str

    def __str__(self) -> str:
        return self.literal


class SizeSpecMatch(BaseModel):
    """The full size specification found in a key."""

    model_config = ConfigDict(frozen=True)

    text: str
    start: int = Field(ge=0)
    tokens: Tuple[SizeToken, ...]
    separators: Tuple[str, ...] = ()

    @property
    def end(self) -> int:
        return self.start + len(self.text)


class TransformedImage(BaseModel):
    """A letterboxed raster of exactly ``width x height`` pixels."""

    model_config = ConfigDict(frozen=True)

    body: bytes
    width: int
    height: int
    format: str
    content_type: str


class Variant(BaseModel):
    """One rendered size, ready to publish, plus its publish outcome."""

    token: SizeToken
    dest_key: str
    body: bytes
    content_type: str
    compressed: bool = False
    published: bool = False
    error: str = ""


class ManifestEntry(BaseModel):
    """One row of the daily manifest."""

    model_config = ConfigDict(frozen=True)

    name: str
    date: str


class VariantResult(BaseModel):
    """Outcome of processing a single size token."""

    token: str
    dest_key: str = ""
    success: bool = False
    compressed: bool = False
    failed_stage: str = ""
    error: str = ""
    processing_time: float = 0.0


class InvocationResult(BaseModel):
    """Outcome of one pipeline invocation."""

    invocation_id: str = ""
    source_bucket: str
    source_key: str
    results: List[VariantResult] = Field(default_factory=list)
    manifest_key: Optional[str] = None
    manifest_error: str = ""
    processing_time: float = 0.0
    metrics: Dict[str, Any] = Field(default_factory=dict)

    @property
    def published_keys(self) -> List[str]:
        return [r.dest_key for r in self.results if r.success]

    @property
    def failed_tokens(self) -> List[str]:
        return [r.token for r in self.results if not r.success]

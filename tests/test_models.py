"""Tests for core data models."""

import pytest
from pydantic import ValidationError

from variants_pipeline.core.exceptions import ConfigurationError
from variants_pipeline.core.models import (
    InvocationResult,
    PipelineConfig,
    SizeSpecMatch,
    SizeToken,
    VariantResult,
)


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    def test_creation_required_only(self):
        """Test creating PipelineConfig with the source bucket only."""
        config = PipelineConfig(source_bucket="uploads")

        assert config.source_bucket == "uploads"
        assert config.resolved_dest_bucket == "uploads"
        assert config.resolved_manifest_bucket == "uploads"
        assert config.source_folder == "originals/"
        assert config.dest_folder == "processed/"
        assert config.border_size == 30
        assert config.background_color == "#FFFFFF"
        assert config.gravity == "center"
        assert config.allow_upscale is False
        assert config.compression_passes == ["jpeg-recompress", "jpegtran", "pngquant"]
        assert config.quality_bound == (0.6, 0.8)
        assert config.cache_control == (
            "max-age=604800, stale-while-revalidate=120, stale-if-error=86400"
        )
        assert config.manifest_enabled is False
        assert config.manifest_prefix == "csv_log/"
        assert config.manifest_cache_control == "public, max-age=86400"
        assert config.max_retries == 3
        assert config.connect_timeout == 20.0
        assert config.read_timeout == 60.0
        assert config.concurrency == 1

    def test_explicit_buckets(self):
        """Test that explicit destination and manifest buckets are used."""
        config = PipelineConfig(
            source_bucket="uploads", dest_bucket="cdn", manifest_bucket="audit"
        )

        assert config.resolved_dest_bucket == "cdn"
        assert config.resolved_manifest_bucket == "audit"

    def test_gravity_normalized(self):
        """Test that gravity names are case-insensitive."""
        assert PipelineConfig(source_bucket="b", gravity="NorthWest").gravity == "northwest"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"gravity": "up"},
            {"background_color": "not-a-colour"},
            {"output_format": "GIF"},
            {"compression_passes": ["gifsicle"]},
            {"quality_bound": (0.9, 0.1)},
            {"manifest_timezone": "Not/AZone"},
            {"border_size": -1},
            {"concurrency": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        """Test that invalid options fail validation."""
        with pytest.raises(ValidationError):
            PipelineConfig(source_bucket="b", **overrides)

    def test_output_format_jpg_alias(self):
        """Test that JPG is accepted as an alias of JPEG."""
        assert PipelineConfig(source_bucket="b", output_format="jpg").output_format == "JPEG"


class TestProfiles:
    """Tests for deployment profiles."""

    def test_letterbox_profile(self):
        """Test the bordered profile with the full codec chain."""
        config = PipelineConfig.for_profile("letterbox", source_bucket="b")

        assert config.border_size == 30
        assert config.compression_passes == ["jpeg-recompress", "jpegtran", "pngquant"]

    def test_exact_profile(self):
        """Test the edge-to-edge profile with the table-preserving JPEG re-encode only."""
        config = PipelineConfig.for_profile("exact", source_bucket="b")

        assert config.border_size == 0
        assert config.compression_passes == ["jpegtran"]

    def test_overrides_win(self):
        """Test that explicit overrides replace profile values."""
        config = PipelineConfig.for_profile("exact", source_bucket="b", border_size=5)

        assert config.border_size == 5

    def test_unknown_profile(self):
        """Test that an unknown profile is a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown deployment profile"):
            PipelineConfig.for_profile("thumbnail", source_bucket="b")

    def test_invalid_override_is_configuration_error(self):
        """Test that validation failures surface as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            PipelineConfig.for_profile("letterbox", source_bucket="b", gravity="up")


class TestFromEnv:
    """Tests for PipelineConfig.from_env."""

    def test_minimal_environment(self):
        """Test that BUCKET alone is enough."""
        config = PipelineConfig.from_env({"BUCKET": "uploads"})

        assert config.source_bucket == "uploads"
        assert config.border_size == 30
        assert config.manifest_enabled is False

    def test_full_environment(self):
        """Test every supported variable."""
        config = PipelineConfig.from_env(
            {
                "SOURCE_BUCKET": "uploads",
                "DEST_BUCKET": "cdn",
                "DEPLOYMENT_PROFILE": "exact",
                "SOURCE_FOLDER": "in/",
                "DEST_FOLDER": "out/",
                "BORDER_SIZE": "12",
                "BACKGROUND_COLOR": "#000000",
                "CACHE_CONTROL": "no-cache",
                "WRITE_LOG_TO_S3": "true",
                "MANIFEST_TIMEZONE": "UTC",
                "TOKEN_CONCURRENCY": "4",
            }
        )

        assert config.source_bucket == "uploads"
        assert config.resolved_dest_bucket == "cdn"
        assert config.compression_passes == ["jpegtran"]
        assert config.source_folder == "in/"
        assert config.dest_folder == "out/"
        assert config.border_size == 12
        assert config.background_color == "#000000"
        assert config.cache_control == "no-cache"
        assert config.manifest_enabled is True
        assert config.concurrency == 4

    def test_write_log_flag_false(self):
        """Test that any other value leaves the manifest disabled."""
        config = PipelineConfig.from_env({"BUCKET": "b", "WRITE_LOG_TO_S3": "false"})

        assert config.manifest_enabled is False

    def test_missing_bucket(self):
        """Test that a source bucket is required."""
        with pytest.raises(ConfigurationError, match="BUCKET"):
            PipelineConfig.from_env({})

    def test_non_integer_border(self):
        """Test that numeric variables are checked."""
        with pytest.raises(ConfigurationError, match="BORDER_SIZE"):
            PipelineConfig.from_env({"BUCKET": "b", "BORDER_SIZE": "wide"})


class TestValueModels:
    """Tests for the small value models."""

    def test_size_token_positive(self):
        """Test that tokens need positive dimensions."""
        with pytest.raises(ValidationError):
            SizeToken(width=0, height=10, literal="0x10")

    def test_size_spec_match_end(self):
        """Test the end offset of a match."""
        token = SizeToken(width=1, height=2, literal="1x2")
        match = SizeSpecMatch(text="1x2", start=4, tokens=(token,))

        assert match.end == 7

    def test_size_token_is_frozen(self):
        """Test that tokens cannot be modified."""
        token = SizeToken(width=1, height=2, literal="1x2")

        with pytest.raises(ValidationError):
            token.width = 5

    def test_invocation_result_properties(self):
        """Test published keys and failed tokens, in token order."""
        result = InvocationResult(
            source_bucket="b",
            source_key="originals/1x1_2x2_3x3/a.jpg",
            results=[
                VariantResult(token="1x1", dest_key="processed/1x1/a.jpg", success=True),
                VariantResult(token="2x2", failed_stage="publish", error="boom"),
                VariantResult(token="3x3", dest_key="processed/3x3/a.jpg", success=True),
            ],
        )

        assert result.published_keys == ["processed/1x1/a.jpg", "processed/3x3/a.jpg"]
        assert result.failed_tokens == ["2x2"]

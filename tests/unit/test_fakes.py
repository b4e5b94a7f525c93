"""Tests for fake implementations to ensure they work correctly."""

import io
import time

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from variants_pipeline.core.error_handling import is_not_found
from variants_pipeline.testing.fakes import (
    FakeS3Client,
    FakeLogger,
    S3Object,
    S3Bucket,
    create_test_image,
    setup_test_s3_environment,
)


def error_code(exc_info):
    return exc_info.value.response["Error"]["Code"]


class TestFakeS3Client:
    """Tests for FakeS3Client to ensure it behaves correctly."""

    def test_create_bucket(self):
        """Test bucket creation."""
        client = FakeS3Client()

        bucket = client.create_bucket("test-bucket")

        assert bucket.name == "test-bucket"
        assert len(bucket.objects) == 0
        assert client.get_bucket("test-bucket") is bucket

    def test_get_object_success(self):
        """Test successful object retrieval."""
        client = FakeS3Client()
        bucket = client.create_bucket("test-bucket")
        test_data = b"test image data"
        bucket.add_object("test.jpg", test_data)

        response = client.get_object(Bucket="test-bucket", Key="test.jpg")

        assert response["Body"].read() == test_data
        assert response["ContentType"] == "image/jpeg"
        assert response["ContentLength"] == len(test_data)

    def test_get_object_not_found(self):
        """Test that a missing key raises NoSuchKey like S3."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        with pytest.raises(ClientError) as exc_info:
            client.get_object(Bucket="test-bucket", Key="nonexistent.jpg")

        assert error_code(exc_info) == "NoSuchKey"
        assert is_not_found(exc_info.value)

    def test_get_object_bucket_not_found(self):
        """Test getting object from nonexistent bucket."""
        client = FakeS3Client()

        with pytest.raises(ClientError) as exc_info:
            client.get_object(Bucket="nonexistent", Key="test.jpg")

        assert error_code(exc_info) == "NoSuchBucket"

    def test_head_object(self):
        """Test metadata lookup and the 404 for missing objects."""
        client = FakeS3Client()
        client.create_bucket("test-bucket").add_object("a.csv", b"abc", "text/csv")

        assert client.head_object(Bucket="test-bucket", Key="a.csv")["ContentLength"] == 3
        with pytest.raises(ClientError) as exc_info:
            client.head_object(Bucket="test-bucket", Key="missing.csv")

        assert error_code(exc_info) == "404"

    def test_put_object_success(self):
        """Test successful object upload with extra headers."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        response = client.put_object(
            Bucket="test-bucket",
            Key="test.jpg",
            Body=b"test image data",
            ContentType="image/jpeg",
            CacheControl="max-age=60",
            ContentDisposition="attachment",
        )

        assert response["ResponseMetadata"]["HTTPStatusCode"] == 200
        obj = client.get_bucket("test-bucket").get_object("test.jpg")
        assert obj.body == b"test image data"
        assert obj.cache_control == "max-age=60"
        assert obj.extra == {"ContentDisposition": "attachment"}

    def test_put_object_overwrites(self):
        """Test that a second put replaces the stored object."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        client.put_object(Bucket="test-bucket", Key="k", Body=b"one", ContentType="text/plain")
        client.put_object(Bucket="test-bucket", Key="k", Body=b"two", ContentType="text/plain")

        assert client.get_bucket("test-bucket").get_object("k").body == b"two"

    def test_failure_mode(self):
        """Test that failure mode fails every operation."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")
        client.set_failure_mode(True, "Custom error message")

        with pytest.raises(ClientError, match="Custom error message"):
            client.get_object(Bucket="test-bucket", Key="test.jpg")

        with pytest.raises(ClientError, match="Custom error message"):
            client.put_object(
                Bucket="test-bucket", Key="test.jpg", Body=b"data", ContentType="image/jpeg"
            )

    def test_fail_on_key(self):
        """Test that per-key failures leave other keys working."""
        client = FakeS3Client()
        client.create_bucket("test-bucket")
        client.fail_on_key("bad.jpg")

        with pytest.raises(ClientError):
            client.put_object(Bucket="test-bucket", Key="bad.jpg", Body=b"x", ContentType="image/jpeg")
        client.put_object(Bucket="test-bucket", Key="good.jpg", Body=b"x", ContentType="image/jpeg")

        assert client.get_bucket("test-bucket").get_object("good.jpg") is not None

    def test_operation_tracking(self):
        """Test that operations are counted and recorded by name."""
        client = FakeS3Client()
        bucket = client.create_bucket("test-bucket")
        bucket.add_object("test.jpg", b"test data")

        client.get_object(Bucket="test-bucket", Key="test.jpg")
        client.put_object(Bucket="test-bucket", Key="test2.jpg", Body=b"data", ContentType="image/jpeg")

        assert client.operation_count == 2
        assert client.count_operations("GetObject") == 1
        assert client.operations[1] == ("PutObject", "test-bucket", "test2.jpg")

    def test_delay_simulation(self):
        """Test delay simulation for timeout testing."""
        client = FakeS3Client()
        client.create_bucket("test-bucket").add_object("test.jpg", b"test data")
        client.set_delay(0.01)

        start_time = time.time()
        client.get_object(Bucket="test-bucket", Key="test.jpg")

        assert time.time() - start_time >= 0.01


class TestFakeLogger:
    """Tests for FakeLogger."""

    def test_logging_methods(self):
        """Test all logging methods."""
        logger = FakeLogger("test")

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")

        assert [log["level"] for log in logger.get_logs()] == ["DEBUG", "INFO", "WARNING", "ERROR"]

    def test_messages_by_level(self):
        """Test message filtering by level."""
        logger = FakeLogger("test")

        logger.info("Info message 1")
        logger.error("Error message")
        logger.info("Info message 2")

        assert logger.messages("INFO") == ["Info message 1", "Info message 2"]

    def test_log_with_context(self):
        """Test that LogContext fields are flattened into the entry."""
        from variants_pipeline.core.observability import LogContext

        logger = FakeLogger("test")
        context = LogContext(correlation_id="123", operation="publish").with_metadata(token="1x1")

        logger.info("Test message", context, extra_field="value")

        log = logger.get_logs()[0]
        assert log["correlation_id"] == "123"
        assert log["operation"] == "publish"
        assert log["token"] == "1x1"
        assert log["extra_field"] == "value"

    def test_log_clearing(self):
        """Test log clearing functionality."""
        logger = FakeLogger("test")

        logger.info("Test message")
        logger.clear_logs()

        assert logger.get_logs() == []

    def test_logger_failure_mode(self):
        """Test logger failure mode."""
        logger = FakeLogger("test")
        logger.should_fail = True

        with pytest.raises(Exception, match="Simulated logging failure"):
            logger.info("This should fail")


class TestS3ObjectAndBucket:
    """Tests for S3Object and S3Bucket."""

    def test_object_size_calculation(self):
        """Test automatic size calculation."""
        obj = S3Object(key="test.jpg", body=b"test data")

        assert obj.size == len(b"test data")
        assert obj.content_type == "image/jpeg"

    def test_list_objects_with_prefix(self):
        """Test listing objects with prefix filter."""
        bucket = S3Bucket(name="test-bucket")
        bucket.add_object("processed/a.jpg", b"data1")
        bucket.add_object("processed/b.jpg", b"data2")
        bucket.add_object("csv_log/today.csv", b"text")

        keys = [obj.key for obj in bucket.list_objects("processed/")]

        assert keys == ["processed/a.jpg", "processed/b.jpg"]


class TestUtilityFunctions:
    """Tests for utility functions."""

    @pytest.mark.parametrize("fmt", ["JPEG", "PNG"])
    def test_create_test_image(self, fmt):
        """Test test image creation in both formats."""
        image_bytes = create_test_image(100, 150, fmt=fmt)

        img = Image.open(io.BytesIO(image_bytes))
        assert img.size == (100, 150)
        assert img.format == fmt

    def test_create_test_image_rgba(self):
        """Test creating a transparent PNG."""
        image_bytes = create_test_image(20, 20, fmt="PNG", color=(0, 0, 0, 0), mode="RGBA")

        assert Image.open(io.BytesIO(image_bytes)).mode == "RGBA"

    def test_setup_test_s3_environment(self):
        """Test the test environment setup."""
        client = setup_test_s3_environment()

        source_bucket = client.get_bucket("test-source")
        keys = [obj.key for obj in source_bucket.list_objects("originals/")]
        assert "originals/a/700x700_1800x1800/img.jpg" in keys
        assert "originals/foo/700x700/img.png" in keys
        assert client.get_bucket("test-dest").objects == {}
        assert client.operation_count == 0

"""Protocol definitions for dependency injection and testability."""

from typing import Any, Dict, Protocol, Tuple

QualityBound = Tuple[float, float]


class S3ClientProtocol(Protocol):
    """Protocol for the S3 operations the pipeline relies on."""

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Get object from S3."""
        ...

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str, **kwargs: Any) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Fetch object metadata; raises a 404 ``ClientError`` when missing."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class CodecPass(Protocol):
    """One step of the compression chain."""

    name: str

    def compress(self, image_bytes: bytes, quality: QualityBound) -> bytes:
        """Return re-encoded bytes; raise ``CodecError`` on failure."""
        ...

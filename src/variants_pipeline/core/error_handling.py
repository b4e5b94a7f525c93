# src/variants_pipeline/core/error_handling.py

import functools
import logging

from botocore.exceptions import BotoCoreError, ClientError as BotocoreClientError
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from .exceptions import DecodeError, S3Error, VariantsPipelineError

NOT_FOUND_ERROR_CODES = ("404", "NotFound", "NoSuchKey")


def is_not_found(error: Exception) -> bool:
    """True when ``error`` is a botocore "object does not exist" response."""
    if not isinstance(error, BotocoreClientError):
        return False
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_ERROR_CODES


def with_error_handling(func):
    """
    A decorator to wrap functions with standardized error handling.

    Botocore failures surface as ``S3Error`` and undecodable images as
    ``DecodeError``; the original exception is kept as ``__cause__``.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except VariantsPipelineError:
            logger.error(f"Pipeline error in '{func.__name__}'", exc_info=True)
            raise
        except Exception as e:
            logger.error(
                f"Error in '{func.__name__}': {e}",
                exc_info=True
            )
            if isinstance(e, (BotocoreClientError, BotoCoreError)):
                raise S3Error(f"S3 operation failed in {func.__name__}: {e}") from e
            if isinstance(e, PILUnidentifiedImageError):
                raise DecodeError(f"Failed to identify image in {func.__name__}: {e}") from e
            raise
    return wrapper


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                item_identifier = error_detail.get('item', 'Unknown item')
                error_message = error_detail.get('error', 'Unknown error')
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{item_identifier}': {error_message}"
                )
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif not self.errors:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Exceptions not reported through add_error propagate
        return False

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Call this method within the 'with' block to report an error for a specific item.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed (e.g., size token).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")

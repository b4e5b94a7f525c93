"""Size-token runners with different concurrency strategies."""

from .serial import process_tokens as serial_process_tokens
from .multithread import process_tokens as multithread_process_tokens

__all__ = [
    "serial_process_tokens",
    "multithread_process_tokens",
]

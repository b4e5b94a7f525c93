"""Multithreaded token runner - renders size variants on a thread pool."""

import contextvars
from typing import Callable, Dict, List, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from ..core.models import SizeToken, VariantResult


def process_tokens(
    tokens: Sequence[SizeToken],
    process_token: Callable[[SizeToken], VariantResult],
    max_workers: int = 4,
) -> List[VariantResult]:
    """
    Process size tokens using a thread pool.

    Tokens share only the immutable source image and write disjoint keys.
    Results are returned in token order regardless of completion order.
    Each token runs in a copy of the caller's context, so log records keep
    the invocation id.

    Args:
        tokens: Size tokens in order of appearance in the key
        process_token: Callable producing the result of one token
        max_workers: Upper bound on worker threads

    Returns:
        List of variant results, in token order
    """
    if not tokens:
        return []

    results: Dict[int, VariantResult] = {}
    workers = max(1, min(max_workers, len(tokens)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {
            executor.submit(contextvars.copy_context().run, process_token, token): index
            for index, token in enumerate(tokens)
        }

        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                results[index] = VariantResult(
                    token=tokens[index].literal,
                    success=False,
                    error=str(e),
                )

    return [results[index] for index in range(len(tokens))]


def make_runner(max_workers: int):
    """Bind ``max_workers`` so the runner matches the serial signature."""

    def runner(
        tokens: Sequence[SizeToken],
        process_token: Callable[[SizeToken], VariantResult],
    ) -> List[VariantResult]:
        return process_tokens(tokens, process_token, max_workers=max_workers)

    return runner

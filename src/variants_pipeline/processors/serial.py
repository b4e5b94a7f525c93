"""Serial token runner - renders size variants one after another."""

from typing import Callable, List, Sequence

from ..core.models import SizeToken, VariantResult


def process_tokens(
    tokens: Sequence[SizeToken],
    process_token: Callable[[SizeToken], VariantResult],
) -> List[VariantResult]:
    """
    Processes size tokens serially, in the current thread.

    Each token is transformed, compressed and published before the next one
    starts, so results come back in key order.

    Args:
        tokens: Size tokens in order of appearance in the key.
        process_token: Callable producing the `VariantResult` of one token.

    Returns:
        A list of `VariantResult` objects, one per token, in token order.
    """
    results = []

    for token in tokens:
        result = process_token(token)
        results.append(result)

    return results

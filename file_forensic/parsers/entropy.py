"""Shannon entropy helpers.

Entropy is measured over byte-frequency probabilities:
``H = -sum(p_i * log2(p_i))``, giving a value between 0.0 (one repeated byte)
and 8.0 (uniformly distributed bytes).
"""

import math
from collections import Counter
from typing import Iterator, Tuple


def shannon_entropy(data: bytes) -> float:
    """Compute the Shannon entropy of a buffer in bits per byte.

    Args:
        data: Buffer to measure

    Returns:
        Entropy between 0.0 and 8.0 (0.0 for an empty buffer)
    """
    length = len(data)
    if length == 0:
        return 0.0

    entropy = 0.0
    for count in Counter(data).values():
        p = count / length
        entropy -= p * math.log2(p)

    # Float accumulation can land a hair outside the closed range
    return min(max(entropy, 0.0), 8.0)


def iter_block_entropy(
    data: bytes,
    block_size: int,
    min_block: int = 1,
) -> Iterator[Tuple[int, bytes, float]]:
    """Yield ``(offset, block, entropy)`` for fixed-size, non-overlapping blocks.

    The final partial block is included when it is at least ``min_block``
    bytes long. Cost is linear in the buffer length.
    """
    if block_size <= 0:
        return
    for offset in range(0, len(data), block_size):
        block = data[offset:offset + block_size]
        if len(block) < min_block:
            continue
        yield offset, block, shannon_entropy(block)

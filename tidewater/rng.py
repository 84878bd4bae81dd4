"""
Deterministic RNG utilities for the water surface model.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(water seed, component name, index). Tables are built from these hashes
alone, so two replicas given the same integer seed build identical tables
regardless of library versions.
"""

import hashlib
import numpy as np
from typing import Any


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (water seed, table name, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        swap_seed = make_seed(water_seed, "permutation", i)
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def permutation_table(seed: int, size: int = 256) -> np.ndarray:
    """
    Build a doubled permutation table for gradient noise.

    Fisher-Yates shuffle of 0..size-1 where swap i draws its index from
    make_seed(seed, "permutation", i). The table depends only on SHA256,
    so every replica builds it identically whatever numpy release it runs.
    The table is repeated once so lookups of (p[x] + y) never need a modulo.

    Args:
        seed: Water seed (any integer, negative allowed)
        size: Table size, power of two

    Returns:
        (2 * size,) int64 array
    """
    perm = list(range(size))
    for i in range(size - 1, 0, -1):
        j = make_seed(seed, "permutation", i) % (i + 1)
        perm[i], perm[j] = perm[j], perm[i]

    perm = np.array(perm, dtype=np.int64)
    return np.concatenate([perm, perm])

"""
Seeded 3D gradient noise.

Improved-Perlin noise over a permutation table derived from an integer seed.
Two processes given the same seed produce bit-identical values, so replicas
only ever exchange the seed, never the field itself.

Inputs may be Python floats or numpy arrays (broadcast together); the batched
surface queries evaluate whole (N, 3) position sets in one call.
"""

from functools import lru_cache
from typing import Union

import numpy as np

from .rng import permutation_table
from .constants import NOISE_FREQUENCY, NOISE_TABLE_SIZE, NOISE_CACHE_SIZE

ArrayLike = Union[float, np.ndarray]

# 12 cube-edge gradients, padded to 16 so (hash & 15) indexes directly
_GRADIENTS = np.array([
    [1, 1, 0], [-1, 1, 0], [1, -1, 0], [-1, -1, 0],
    [1, 0, 1], [-1, 0, 1], [1, 0, -1], [-1, 0, -1],
    [0, 1, 1], [0, -1, 1], [0, 1, -1], [0, -1, -1],
    [1, 1, 0], [0, -1, 1], [-1, 1, 0], [0, -1, -1],
], dtype=np.float64)


def _fade(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(t: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _grad(h: np.ndarray, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    g = _GRADIENTS[h & 15]
    return g[..., 0] * x + g[..., 1] * y + g[..., 2] * z


class NoiseField:
    """
    Deterministic scalar noise over 3D space.

    Attributes:
        seed: Integer seed the permutation table is derived from
        frequency: Coordinate multiplier applied before sampling
    """

    def __init__(self, seed: int, frequency: float = NOISE_FREQUENCY):
        self.seed = int(seed)
        self.frequency = float(frequency)
        self._mask = NOISE_TABLE_SIZE - 1
        self._perm = permutation_table(self.seed, NOISE_TABLE_SIZE)

    def sample(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> ArrayLike:
        """
        Sample noise at (x, y, z).

        Args:
            x, y, z: Coordinates (floats or broadcastable arrays)

        Returns:
            Value(s) in [-1, 1]; a float for scalar input, else an array
        """
        x, y, z = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64) * self.frequency,
            np.asarray(y, dtype=np.float64) * self.frequency,
            np.asarray(z, dtype=np.float64) * self.frequency,
        )
        scalar = x.ndim == 0

        x0 = np.floor(x)
        y0 = np.floor(y)
        z0 = np.floor(z)
        xf = x - x0
        yf = y - y0
        zf = z - z0

        X = x0.astype(np.int64) & self._mask
        Y = y0.astype(np.int64) & self._mask
        Z = z0.astype(np.int64) & self._mask

        u = _fade(xf)
        v = _fade(yf)
        w = _fade(zf)

        p = self._perm
        A = p[X] + Y
        AA = p[A] + Z
        AB = p[A + 1] + Z
        B = p[X + 1] + Y
        BA = p[B] + Z
        BB = p[B + 1] + Z

        near = _lerp(
            v,
            _lerp(u, _grad(p[AA], xf, yf, zf), _grad(p[BA], xf - 1, yf, zf)),
            _lerp(u, _grad(p[AB], xf, yf - 1, zf), _grad(p[BB], xf - 1, yf - 1, zf)),
        )
        far = _lerp(
            v,
            _lerp(u, _grad(p[AA + 1], xf, yf, zf - 1), _grad(p[BA + 1], xf - 1, yf, zf - 1)),
            _lerp(u, _grad(p[AB + 1], xf, yf - 1, zf - 1), _grad(p[BB + 1], xf - 1, yf - 1, zf - 1)),
        )
        value = np.clip(_lerp(w, near, far), -1.0, 1.0)

        if scalar:
            return float(value)
        return value

    def sample_points(self, points: np.ndarray) -> np.ndarray:
        """Sample an (N, 3) array of points, returning (N,) values."""
        points = np.asarray(points, dtype=np.float64)
        return np.atleast_1d(self.sample(points[..., 0], points[..., 1], points[..., 2]))


@lru_cache(maxsize=NOISE_CACHE_SIZE)
def noise_for_seed(seed: int) -> NoiseField:
    """Shared NoiseField for a seed (tables are immutable once built)."""
    return NoiseField(seed)


def sample(seed: int, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> ArrayLike:
    """Sample the noise field for `seed` at (x, y, z). Pure and deterministic."""
    return noise_for_seed(int(seed)).sample(x, y, z)

"""
TribeSim: terrain/noise.py
Hash-based value noise, vectorised over whole coordinate grids.
===============================================================
Stack:       Python 3.11+ | NumPy

All functions accept scalars or arrays of equal shape for x and y and
broadcast the same way NumPy ufuncs do.
"""

from __future__ import annotations

import numpy as np

BASE_FREQUENCY: float = 0.01
PERSISTENCE: float = 0.5      # amplitude multiplier per octave
LACUNARITY: float = 2.0       # frequency multiplier per octave

_HASH_X = 12.9898
_HASH_Y = 78.233
_HASH_SCALE = 43758.5453


def lattice_hash(x, y, seed: float):
    """Deterministic pseudo-random value in [0, 1) for lattice point (x, y)."""
    n = np.sin(np.asarray(x, dtype=np.float64) * _HASH_X + np.asarray(y, dtype=np.float64) * _HASH_Y + seed) * _HASH_SCALE
    return n - np.floor(n)


def smoothed_noise(x, y, seed: float):
    """Hash at (x, y) averaged with its 8 neighbours: corners 1/16, edges 1/8, centre 1/4."""
    corners = (
        lattice_hash(x - 1, y - 1, seed) + lattice_hash(x + 1, y - 1, seed)
        + lattice_hash(x - 1, y + 1, seed) + lattice_hash(x + 1, y + 1, seed)
    ) / 16
    sides = (
        lattice_hash(x - 1, y, seed) + lattice_hash(x + 1, y, seed)
        + lattice_hash(x, y - 1, seed) + lattice_hash(x, y + 1, seed)
    ) / 8
    center = lattice_hash(x, y, seed) / 4
    return corners + sides + center


def cosine_interpolate(a, b, t):
    f = (1 - np.cos(t * np.pi)) * 0.5
    return a * (1 - f) + b * f


def interpolated_noise(x, y, seed: float):
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    int_x = np.floor(x)
    int_y = np.floor(y)
    frac_x = x - int_x
    frac_y = y - int_y

    v1 = smoothed_noise(int_x, int_y, seed)
    v2 = smoothed_noise(int_x + 1, int_y, seed)
    v3 = smoothed_noise(int_x, int_y + 1, seed)
    v4 = smoothed_noise(int_x + 1, int_y + 1, seed)

    i1 = cosine_interpolate(v1, v2, frac_x)
    i2 = cosine_interpolate(v3, v4, frac_x)
    return cosine_interpolate(i1, i2, frac_y)


def fractal_noise(x, y, seed: float, octaves: int = 4):
    """
    Sum of `octaves` layers of interpolated noise, normalised by the
    total amplitude so the result stays in the smoothed-noise range.
    Octave i samples with seed + i.
    """
    total = np.zeros(np.broadcast(np.asarray(x), np.asarray(y)).shape, dtype=np.float64)
    frequency = BASE_FREQUENCY
    amplitude = 1.0
    max_value = 0.0

    for i in range(octaves):
        total = total + interpolated_noise(np.asarray(x) * frequency, np.asarray(y) * frequency, seed + i) * amplitude
        max_value += amplitude
        amplitude *= PERSISTENCE
        frequency *= LACUNARITY

    return total / max_value


def noise_field(width: int, height: int, seed: float, octaves: int) -> np.ndarray:
    """Samples fractal_noise at every integer cell; result shape is (height, width)."""
    ys, xs = np.mgrid[0:height, 0:width]
    return fractal_noise(xs.astype(np.float64), ys.astype(np.float64), seed, octaves)


def box_blur(field: np.ndarray, passes: int = 1) -> np.ndarray:
    """
    3x3 mean filter. Edge cells average only the neighbours that exist
    (partial windows), so the border is not pulled towards zero.

    Each pass reads only the previous pass (Jacobi style); cells never see
    values already smoothed earlier in the same pass, so the result does
    not depend on scan order.
    """
    out = np.asarray(field, dtype=np.float64)
    h, w = out.shape
    counts = np.zeros((h, w), dtype=np.float64)
    padded_ones = np.pad(np.ones((h, w)), 1)
    for dy in range(3):
        for dx in range(3):
            counts += padded_ones[dy:dy + h, dx:dx + w]

    for _ in range(passes):
        padded = np.pad(out, 1)
        sums = np.zeros((h, w), dtype=np.float64)
        for dy in range(3):
            for dx in range(3):
                sums += padded[dy:dy + h, dx:dx + w]
        out = sums / counts
    return out

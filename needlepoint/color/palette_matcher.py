from typing import List, Sequence

import numpy as np
from sklearn.neighbors import KDTree

from ..core.types import MatchMetric
from ..models.pattern import Color

_D65 = np.array([95.047, 100.0, 108.883])
_RGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert an ``(n, 3)`` array of sRGB values (0-255) to CIELAB (D65)."""

    c = np.asarray(rgb, dtype=float) / 255.0
    c = np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92)
    xyz = c @ _RGB_TO_XYZ.T * 100.0 / _D65
    f = np.where(xyz > 0.008856, np.cbrt(xyz), (903.3 * xyz + 16) / 116)
    return np.stack(
        [116 * f[:, 1] - 16, 500 * (f[:, 0] - f[:, 1]), 200 * (f[:, 1] - f[:, 2])],
        axis=1,
    )


def _features(rgb, metric: MatchMetric) -> np.ndarray:
    arr = np.atleast_2d(np.asarray(rgb, dtype=float))
    return rgb_to_lab(arr) if metric == "lab" else arr


def build_kd(palette: Sequence[Color], metric: MatchMetric = "euclidean") -> KDTree:
    return KDTree(_features([c.rgb for c in palette], metric))


def find_closest_colors(
    rgb: Sequence[int],
    palette: Sequence[Color],
    count: int = 5,
    metric: MatchMetric = "euclidean",
) -> List[dict]:
    """Rank palette entries by distance to ``rgb`` (RGB or CIELAB space)."""

    if metric not in ("euclidean", "lab"):
        raise ValueError(f"Unknown match metric: {metric}")
    if not palette or count < 1:
        return []
    kd = build_kd(palette, metric)
    dist, ind = kd.query(_features(rgb, metric), k=min(count, len(palette)))
    return [
        {"color": palette[int(i)], "distance": round(float(d), 4)}
        for d, i in zip(dist[0], ind[0])
    ]


def nearest_color(rgb: Sequence[int], palette: Sequence[Color], metric: MatchMetric = "euclidean") -> Color:
    matches = find_closest_colors(rgb, palette, 1, metric)
    if not matches:
        raise ValueError("Palette is empty")
    return matches[0]["color"]

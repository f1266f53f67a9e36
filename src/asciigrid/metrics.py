"""Similarity metrics between image tiles and glyph masks.

Every metric is a distance: lower scores are better matches and ``0.0``
means the tile and mask are indistinguishable to that metric.
"""

import numpy as np

from asciigrid.errors import UnknownMetricError

# Relative weight of the gradient term in the "grad" metric
GRAD_WEIGHT = 2.0

# Mean squared tile gradient at which "grad" matches on shape alone; a hard
# edge across a 6x8 cell is about 0.17
GRAD_SATURATION = 0.1


def _flatten(arr: np.ndarray) -> np.ndarray:
    """(n, h, w) -> (n, h*w) float64."""
    arr = np.asarray(arr, dtype=np.float64)
    return arr.reshape(arr.shape[0], -1)


def _pairwise_mse(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Mean squared difference of every row of ``a`` against every row of ``b``.

    Computed elementwise rather than with a matrix product so each score is
    independent of how many tiles are scored together.
    """
    diff = a[:, np.newaxis, :] - b[np.newaxis, :, :]
    return (diff * diff).mean(axis=2)


def _gradients(arr: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Forward differences along x and y; the last column/row gets zero."""
    gx = np.diff(arr, axis=-1, append=arr[..., -1:])
    gy = np.diff(arr, axis=-2, append=arr[..., -1:, :])
    return gx, gy


class Metric:
    name = ""

    def score_many(self, tiles: np.ndarray, masks: np.ndarray) -> np.ndarray:
        """Score tiles (n, h, w) against masks (g, h, w), returning (n, g)."""
        raise NotImplementedError

    def score(self, tile, mask) -> float:
        tiles = np.asarray(tile, dtype=np.float64)[np.newaxis]
        masks = np.asarray(mask, dtype=np.float64)[np.newaxis]
        if tiles.shape[1:] != masks.shape[1:]:
            raise ValueError(f"Tile shape {tiles.shape[1:]} does not match mask shape {masks.shape[1:]}")
        return float(self.score_many(tiles, masks)[0, 0])

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CoverageMetric(Metric):
    """Per-pixel mean squared difference between tile ink and glyph ink."""

    name = "coverage"

    def score_many(self, tiles, masks):
        return _pairwise_mse(_flatten(tiles), _flatten(masks))


class DensityMetric(Metric):
    """Difference in overall ink density only; ignores glyph shape."""

    name = "density"

    def score_many(self, tiles, masks):
        tile_means = _flatten(tiles).mean(axis=1)
        mask_means = _flatten(masks).mean(axis=1)
        return np.abs(tile_means[:, np.newaxis] - mask_means[np.newaxis, :])


class GradientMetric(Metric):
    """Tone for flat tiles, stroke shape and edge alignment for detailed ones.

    A tile's own gradient energy decides how much it is matched on shape.
    A flat tile has no edges to follow, so it is matched on overall ink
    density alone and dark areas pick dense glyphs. A tile with strong edges
    is matched on coverage plus agreement of horizontal and vertical
    gradients, so a diagonal edge prefers ``/`` over a glyph of equal ink.
    """

    name = "grad"

    def score_many(self, tiles, masks):
        tiles = np.asarray(tiles, dtype=np.float64)
        masks = np.asarray(masks, dtype=np.float64)
        tile_gx, tile_gy = _gradients(tiles)
        mask_gx, mask_gy = _gradients(masks)

        flat_tiles, flat_masks = _flatten(tiles), _flatten(masks)
        tone = (flat_tiles.mean(axis=1)[:, np.newaxis] - flat_masks.mean(axis=1)[np.newaxis, :]) ** 2
        shape = _pairwise_mse(flat_tiles, flat_masks)
        edges = _pairwise_mse(_flatten(tile_gx), _flatten(mask_gx)) + _pairwise_mse(
            _flatten(tile_gy), _flatten(mask_gy)
        )

        energy = (_flatten(tile_gx) ** 2 + _flatten(tile_gy) ** 2).mean(axis=1)
        weight = np.clip(energy / GRAD_SATURATION, 0.0, 1.0)[:, np.newaxis]
        return (1.0 - weight) * tone + weight * (shape + GRAD_WEIGHT * edges)


METRICS: dict[str, type[Metric]] = {m.name: m for m in (CoverageMetric, DensityMetric, GradientMetric)}
DEFAULT_METRIC = "grad"


def get_converter(name: str) -> Metric:
    """Resolve a metric by name."""
    try:
        return METRICS[name]()
    except KeyError:
        raise UnknownMetricError(f"Unknown metric {name!r}; choose from {', '.join(sorted(METRICS))}") from None

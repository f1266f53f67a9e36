import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from time import perf_counter

import numpy as np
from PIL import Image
from tqdm import tqdm

from asciigrid.errors import InvalidConfigurationError, InvalidThreadCountError
from asciigrid.font import GlyphCatalog
from asciigrid.grid import CharGrid
from asciigrid.metrics import Metric, get_converter
from asciigrid.sampling import fit_frame, luminance, sample_colours, split_tiles

LOG = logging.getLogger(__name__)

# Mean edge magnitude at which a tile is matched on its edges alone
EDGE_SATURATION = 0.25


def edge_magnitude(lum: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of a [0, 1] image, scaled back into [0, 1]."""
    p = np.pad(lum, 1, mode="edge")
    top_left, top, top_right = p[:-2, :-2], p[:-2, 1:-1], p[:-2, 2:]
    left, right = p[1:-1, :-2], p[1:-1, 2:]
    bottom_left, bottom, bottom_right = p[2:, :-2], p[2:, 1:-1], p[2:, 2:]
    gx = (top_right + 2 * right + bottom_right) - (top_left + 2 * left + bottom_left)
    gy = (bottom_left + 2 * bottom + bottom_right) - (top_left + 2 * top + top_right)
    # A hard 0 -> 1 step gives a magnitude of 4
    return np.clip(np.hypot(gx, gy) / 4.0, 0.0, 1.0)


def prepare_tiles(
    frame: Image.Image,
    cell_dimensions: tuple[int, int],
    output_width: int,
    brightness_offset: float = 0.0,
    noise_scale: float = 0.0,
    edge_detection: bool = True,
    seed: int | None = None,
) -> np.ndarray:
    """Scale, adjust and cut a frame into ink targets of shape (rows, cols, cell_h, cell_w).

    Targets are darkness in [0, 1]: black pixels want full glyph ink.

    Noise is drawn for the whole frame at once so the targets never depend on
    how tiles are later split between threads.
    """
    cell_width, cell_height = cell_dimensions
    fitted = fit_frame(frame, output_width, cell_dimensions)

    lum = luminance(fitted) + brightness_offset
    if noise_scale > 0:
        rng = np.random.default_rng(seed)
        lum = lum + rng.uniform(-noise_scale, noise_scale, size=lum.shape)
    lum = np.clip(lum, 0.0, 1.0)

    # glyph masks are ink, so dark pixels are what a glyph should cover
    tiles = split_tiles(1.0 - lum, cell_width, cell_height)
    if edge_detection:
        edges = split_tiles(edge_magnitude(lum), cell_width, cell_height)
        strength = np.clip(edges.mean(axis=(2, 3), keepdims=True) / EDGE_SATURATION, 0.0, 1.0)
        # flat tiles keep their shading, busy tiles are matched on their outlines
        tiles = (1.0 - strength) * tiles + strength * edges
    return tiles


def select_glyphs(tiles: np.ndarray, catalog: GlyphCatalog, metric: Metric, thread_count: int = 1) -> np.ndarray:
    """Index of the best glyph for every tile, shape (rows, cols).

    Each grid row is one unit of work writing its own slice of the result, so
    the output is the same for any thread count. Ties go to the glyph that
    comes first in the catalog.
    """
    if thread_count < 1:
        raise InvalidThreadCountError(f"Thread count must be at least 1, got {thread_count}")

    rows, cols = tiles.shape[:2]
    masks = catalog.masks
    indices = np.empty((rows, cols), dtype=np.intp)

    def match_row(r: int) -> None:
        scores = metric.score_many(tiles[r], masks)
        indices[r] = np.argmin(scores, axis=1)

    if thread_count == 1 or rows == 1:
        for r in range(rows):
            match_row(r)
    else:
        with ThreadPoolExecutor(max_workers=min(thread_count, rows)) as executor:
            # consume the iterator so worker exceptions surface here
            for _ in executor.map(match_row, range(rows)):
                pass
    return indices


def convert(
    frame: Image.Image | str | Path,
    catalog: GlyphCatalog,
    metric: Metric | str,
    output_width: int,
    brightness_offset: float = 0.0,
    noise_scale: float = 0.0,
    thread_count: int = 1,
    edge_detection: bool = True,
    colour: bool = True,
    seed: int | None = None,
) -> CharGrid:
    """Convert one frame into a grid of ``output_width`` columns of catalog characters."""
    if thread_count < 1:
        raise InvalidThreadCountError(f"Thread count must be at least 1, got {thread_count}")
    if noise_scale < 0:
        raise InvalidConfigurationError(f"Noise scale must not be negative, got {noise_scale}")
    if isinstance(metric, str):
        metric = get_converter(metric)
    if not isinstance(frame, Image.Image):
        frame = Image.open(frame)

    start = perf_counter()
    tiles = prepare_tiles(
        frame,
        catalog.cell_dimensions(),
        output_width,
        brightness_offset=brightness_offset,
        noise_scale=noise_scale,
        edge_detection=edge_detection,
        seed=seed,
    )
    indices = select_glyphs(tiles, catalog, metric, thread_count)

    chars = catalog.chars
    rows = ["".join(chars[i] for i in row) for row in indices]
    colours = sample_colours(frame, output_width, len(rows)) if colour else None
    LOG.debug(
        "converted %dx%d frame to %dx%d cells in %.3fs",
        frame.width,
        frame.height,
        output_width,
        len(rows),
        perf_counter() - start,
    )
    return CharGrid(rows=rows, colours=colours)


def convert_frames(
    frames: Iterable[Image.Image],
    catalog: GlyphCatalog,
    metric: Metric | str,
    output_width: int,
    progress: bool = False,
    **options,
) -> list[CharGrid]:
    """Convert frames one after another; only tiles within a frame run in parallel."""
    if isinstance(metric, str):
        metric = get_converter(metric)
    frames = list(frames)
    return [
        convert(frame, catalog, metric, output_width, **options)
        for frame in tqdm(frames, desc="Frames", unit="frame", disable=not progress)
    ]


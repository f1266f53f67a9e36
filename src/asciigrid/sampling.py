import math

import numpy as np
from PIL import Image

from asciigrid.errors import EmptyImageError, InvalidConfigurationError


def scaled_size(frame_size: tuple[int, int], output_width: int, cell_dimensions: tuple[int, int]) -> tuple[int, int]:
    """Pixel size of the frame once scaled to ``output_width`` cells, keeping its aspect ratio."""
    width, height = frame_size
    if width <= 0 or height <= 0:
        raise EmptyImageError(f"Frame has zero area: {width}x{height}")
    if output_width < 1:
        raise InvalidConfigurationError(f"Output width must be at least 1, got {output_width}")
    cell_width, _ = cell_dimensions
    pixel_width = output_width * cell_width
    pixel_height = max(1, round(height * pixel_width / width))
    return pixel_width, pixel_height


def grid_shape(frame_size: tuple[int, int], output_width: int, cell_dimensions: tuple[int, int]) -> tuple[int, int]:
    """(rows, cols) of the character grid for a frame."""
    _, pixel_height = scaled_size(frame_size, output_width, cell_dimensions)
    _, cell_height = cell_dimensions
    return max(1, math.ceil(pixel_height / cell_height)), output_width


def fit_frame(frame: Image.Image, output_width: int, cell_dimensions: tuple[int, int]) -> Image.Image:
    size = scaled_size(frame.size, output_width, cell_dimensions)
    if size == frame.size:
        return frame.copy()
    return frame.resize(size, Image.LANCZOS)


def luminance(frame: Image.Image) -> np.ndarray:
    """Greyscale pixels as float64 in [0, 1]."""
    return np.asarray(frame.convert("L"), dtype=np.float64) / 255.0


def split_tiles(arr: np.ndarray, cell_width: int, cell_height: int) -> np.ndarray:
    """Cut a 2-D array into (rows, cols, cell_h, cell_w) tiles.

    A trailing partial row or column is completed by repeating the last
    pixel row or column of the array.
    """
    height, width = arr.shape
    rows = max(1, math.ceil(height / cell_height))
    cols = max(1, math.ceil(width / cell_width))
    pad_h = rows * cell_height - height
    pad_w = cols * cell_width - width
    if pad_h or pad_w:
        arr = np.pad(arr, ((0, pad_h), (0, pad_w)), mode="edge")
    # (rows, cell_h, cols, cell_w) -> (rows, cols, cell_h, cell_w)
    return arr.reshape(rows, cell_height, cols, cell_width).transpose(0, 2, 1, 3)


def sample(frame: Image.Image, output_width: int, cell_dimensions: tuple[int, int]) -> np.ndarray:
    """Luminance tiles of shape (rows, cols, cell_h, cell_w) for a frame scaled to ``output_width`` cells."""
    cell_width, cell_height = cell_dimensions
    fitted = fit_frame(frame, output_width, cell_dimensions)
    return split_tiles(luminance(fitted), cell_width, cell_height)


def sample_colours(frame: Image.Image, cols: int, rows: int) -> np.ndarray:
    """Average RGB colour of the frame region under each cell.

    Returns array of shape (rows, cols, 3) as uint8.
    """
    if frame.width <= 0 or frame.height <= 0:
        raise EmptyImageError(f"Frame has zero area: {frame.width}x{frame.height}")
    rgb = frame.convert("RGB")
    if rgb.size != (cols, rows):
        rgb = rgb.resize((cols, rows), Image.BOX)
    return np.array(rgb, dtype=np.uint8).reshape(rows, cols, 3)

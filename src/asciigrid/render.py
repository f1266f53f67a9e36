"""Turn a character grid back into text or pixels.

Every function here is pure: the grid, catalog and frame are only read.
Colour renderers use the colours sampled during conversion, or sample the
source frame when the grid was converted without colour.
"""

import html

import numpy as np
from PIL import Image

from asciigrid import terminal
from asciigrid.errors import InvalidConfigurationError
from asciigrid.font import GlyphCatalog
from asciigrid.grid import CharGrid
from asciigrid.sampling import sample_colours


def _colours(grid: CharGrid, frame: Image.Image | None) -> np.ndarray:
    if grid.colours is not None:
        return grid.colours
    if frame is None:
        raise InvalidConfigurationError("Colour output needs a grid with colours or the source frame")
    return sample_colours(frame, grid.width, grid.height)


def to_text(grid: CharGrid) -> str:
    return "\n".join(grid.rows)


def to_terminal(grid: CharGrid, frame: Image.Image | None = None) -> str:
    """Wrap each character in an ANSI truecolor escape sequence."""
    colours = _colours(grid, frame)
    out = []
    for r, line in enumerate(grid.rows):
        parts = []
        for c, char in enumerate(line):
            red, green, blue = (int(v) for v in colours[r, c])
            parts.append(f"{terminal.foreground(red, green, blue)}{char}")
        parts.append(terminal.RESET)
        out.append("".join(parts))
    return "\n".join(out)


def to_html(grid: CharGrid, frame: Image.Image | None = None) -> str:
    """Wrap each character in an inline-coloured ``<span>``."""
    colours = _colours(grid, frame)
    out = []
    for r, line in enumerate(grid.rows):
        parts = []
        for c, char in enumerate(line):
            red, green, blue = (int(v) for v in colours[r, c])
            parts.append(f'<span style="color:#{red:02x}{green:02x}{blue:02x}">{html.escape(char)}</span>')
        out.append("".join(parts))
    return "\n".join(out)


def _ink(grid: CharGrid, catalog: GlyphCatalog) -> np.ndarray:
    """Boolean pixel map of the grid with every glyph stamped in its cell."""
    indices = np.array([[catalog.index_of(char) for char in row] for row in grid.rows], dtype=np.intp)
    indices = indices.reshape(grid.height, grid.width)
    cells = catalog.masks[indices] > 0.5  # (rows, cols, cell_h, cell_w)
    # (rows, cell_h, cols, cell_w) -> full image
    return cells.transpose(0, 2, 1, 3).reshape(grid.height * catalog.cell_height, grid.width * catalog.cell_width)


def to_bitmap(grid: CharGrid, catalog: GlyphCatalog, foreground: int = 0, background: int = 255) -> Image.Image:
    """Greyscale image with glyph ink in ``foreground`` on ``background``, black on white by default."""
    ink = _ink(grid, catalog)
    arr = np.where(ink, foreground, background).astype(np.uint8)
    return Image.fromarray(arr)


def to_colour_bitmap(
    grid: CharGrid,
    catalog: GlyphCatalog,
    frame: Image.Image | None = None,
    background: tuple[int, int, int] = (255, 255, 255),
) -> Image.Image:
    """RGB image with each glyph drawn in the colour sampled for its cell."""
    colours = _colours(grid, frame)
    ink = _ink(grid, catalog)
    fg = np.repeat(np.repeat(colours, catalog.cell_height, axis=0), catalog.cell_width, axis=1)
    bg = np.array(background, dtype=np.uint8)
    arr = np.where(ink[:, :, np.newaxis], fg, bg).astype(np.uint8)
    return Image.fromarray(arr)

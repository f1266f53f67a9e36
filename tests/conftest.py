import io
import logging

import numpy as np
import pytest
from PIL import Image

from asciigrid.font import GlyphCatalog

SMALL_BDF = """\
STARTFONT 2.1
COMMENT 4x4 test font
FONT -test-small-medium-r-normal--4-40-75-75-c-40-iso10646-1
SIZE 4 75 75
FONTBOUNDINGBOX 4 4 0 0
STARTPROPERTIES 1
DEFAULT_CHAR 32
ENDPROPERTIES
CHARS 3
STARTCHAR space
ENCODING 32
SWIDTH 500 0
DWIDTH 4 0
BBX 0 0 0 0
BITMAP
ENDCHAR
STARTCHAR numbersign
ENCODING 35
SWIDTH 500 0
DWIDTH 4 0
BBX 4 4 0 0
BITMAP
F0
F0
F0
F0
ENDCHAR
STARTCHAR period
ENCODING 46
SWIDTH 500 0
DWIDTH 4 0
BBX 1 1 1 0
BITMAP
80
ENDCHAR
ENDFONT
"""


@pytest.fixture
def small_bdf_stream():
    return io.BytesIO(SMALL_BDF.encode("ascii"))


@pytest.fixture
def small_bdf(tmp_path):
    path = tmp_path / "small.bdf"
    path.write_text(SMALL_BDF)
    return path


@pytest.fixture
def block_catalog():
    """Empty and full 2x2 glyphs."""
    return GlyphCatalog.from_masks(
        {
            " ": np.zeros((2, 2)),
            "#": np.ones((2, 2)),
        }
    )


@pytest.fixture
def shape_catalog():
    """4x4 glyphs with pairwise distinct masks."""
    empty = np.zeros((4, 4))
    full = np.ones((4, 4))
    vertical = np.zeros((4, 4))
    vertical[:, 1:3] = 1
    horizontal = np.zeros((4, 4))
    horizontal[1:3, :] = 1
    slash = np.fliplr(np.eye(4))
    backslash = np.eye(4)
    return GlyphCatalog.from_masks(
        {" ": empty, "#": full, "|": vertical, "-": horizontal, "/": slash, "\\": backslash},
        name="shapes",
    )


@pytest.fixture
def checkerboard():
    """64x64 RGB checkerboard of 8px black and white squares."""
    ys, xs = np.indices((64, 64))
    arr = (((ys // 8) + (xs // 8)) % 2 * 255).astype(np.uint8)
    return Image.fromarray(arr).convert("RGB")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logger changes made by RunContext.create."""
    logger = logging.getLogger("asciigrid")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def image_path(tmp_path):
    """12x8 PNG, left half black and right half white."""
    img = Image.new("RGB", (12, 8), (255, 255, 255))
    img.paste((0, 0, 0), (0, 0, 6, 8))
    path = tmp_path / "input.png"
    img.save(path)
    return path


@pytest.fixture
def gif_path(tmp_path):
    """Three-frame GIF: black, white, black."""
    frames = [Image.new("L", (12, 8), v) for v in (0, 255, 0)]
    path = tmp_path / "input.gif"
    frames[0].save(path, save_all=True, append_images=frames[1:], duration=100, loop=0)
    return path

"""End-to-end conversion: fetch, decode, convert, render, write.

Each stage is a plain function; ``run`` chains them and chooses the output
branch once, from an :class:`OutputTarget`.
"""

import enum
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from io import BytesIO
from pathlib import Path
from typing import IO

import requests
from PIL import Image, ImageSequence

from asciigrid.animation import assemble, play, write_gif
from asciigrid.charsets import load_alphabet
from asciigrid.converter import convert_frames
from asciigrid.errors import InvalidConfigurationError, InvalidThreadCountError
from asciigrid.font import DEFAULT_FONT, GlyphCatalog, load_font
from asciigrid.grid import CharGrid
from asciigrid.metrics import DEFAULT_METRIC, get_converter
from asciigrid.render import to_bitmap, to_colour_bitmap, to_html, to_terminal, to_text

LOG = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30


@dataclass
class Options:
    font: str = DEFAULT_FONT
    alphabet: str = "alphabet"
    width: int = 150
    metric: str = DEFAULT_METRIC
    threads: int = 1
    no_color: bool = False
    brightness_offset: float = 0.0
    noise_scale: float = 0.0
    fps: float = 30.0
    edge_detection: bool = True
    seed: int | None = None

    @property
    def colour(self) -> bool:
        return not self.no_color

    def validate(self) -> "Options":
        if self.width < 1:
            raise InvalidConfigurationError(f"Width must be at least 1, got {self.width}")
        if not self.fps > 0:
            raise InvalidConfigurationError(f"Frame rate must be positive, got {self.fps}")
        if self.noise_scale < 0:
            raise InvalidConfigurationError(f"Noise scale must not be negative, got {self.noise_scale}")
        if self.threads < 1:
            raise InvalidThreadCountError(f"Thread count must be at least 1, got {self.threads}")
        return self


@dataclass
class RunContext:
    """Everything a run needs from its caller: where to log and where to print.

    A context made by :meth:`create` configures the ``asciigrid`` logger and
    puts it back as it found it on :meth:`close`, or when used as a context
    manager.
    """

    logger: logging.Logger = field(default_factory=lambda: LOG)
    stream: IO[str] = field(default_factory=lambda: sys.stdout)
    progress: bool = False
    _saved: tuple | None = field(default=None, repr=False)

    @classmethod
    def create(cls, verbosity: int = 0, stream: IO[str] | None = None, log_stream: IO[str] | None = None):
        """Build a context whose ``asciigrid`` logger writes to ``log_stream`` (stderr by default)."""
        level = logging.WARNING
        if verbosity == 1:
            level = logging.INFO
        elif verbosity >= 2:
            level = logging.DEBUG

        logger = logging.getLogger("asciigrid")
        saved = (logger.handlers[:], logger.level, logger.propagate)
        handler = logging.StreamHandler(log_stream if log_stream is not None else sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.handlers[:] = [handler]
        logger.setLevel(level)
        logger.propagate = False
        return cls(
            logger=logger,
            stream=stream if stream is not None else sys.stdout,
            progress=verbosity > 0,
            _saved=saved,
        )

    def close(self) -> None:
        if self._saved is None:
            return
        handlers, level, propagate = self._saved
        self.logger.handlers[:] = handlers
        self.logger.setLevel(level)
        self.logger.propagate = propagate
        self._saved = None

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class OutputTarget(enum.Enum):
    TERMINAL = "terminal"
    JSON = "json"
    GIF = "gif"
    BITMAP = "bitmap"

    @classmethod
    def for_path(cls, path: str | Path | None) -> "OutputTarget":
        if path is None:
            return cls.TERMINAL
        suffix = Path(path).suffix.lower()
        if suffix == ".json":
            return cls.JSON
        if suffix == ".gif":
            return cls.GIF
        # registered_extensions also lists formats Pillow can only read
        if Image.registered_extensions().get(suffix) not in Image.SAVE:
            raise InvalidConfigurationError(f"Don't know how to write {path}")
        return cls.BITMAP


def is_url(source: str | Path) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def fetch_image(url: str, timeout: float = DOWNLOAD_TIMEOUT) -> Image.Image:
    LOG.info("downloading image from %s", url)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    image = Image.open(BytesIO(response.content))
    image.load()
    return image


def open_image(source: str | Path | Image.Image) -> Image.Image:
    if isinstance(source, Image.Image):
        return source
    if is_url(source):
        return fetch_image(source)
    return Image.open(source)


def is_animated(image: Image.Image) -> bool:
    return getattr(image, "n_frames", 1) > 1


def decode_frames(image: Image.Image) -> list[Image.Image]:
    """Every frame of the image as an independent RGB image, in order."""
    return [frame.convert("RGB") for frame in ImageSequence.Iterator(image)]


def read_frames(source: str | Path | Image.Image) -> tuple[list[Image.Image], bool]:
    """Decoded RGB frames of ``source`` and whether it is animated.

    Images opened here are closed before returning; an image passed in is
    left open for its owner.
    """
    if isinstance(source, Image.Image):
        return decode_frames(source), is_animated(source)
    with open_image(source) as image:
        return decode_frames(image), is_animated(image)


def render_json(grids: list[CharGrid], colour: bool) -> str:
    frames = [to_html(grid) if colour else to_text(grid) for grid in grids]
    return json.dumps(frames)


def render_bitmaps(grids: list[CharGrid], catalog: GlyphCatalog, colour: bool) -> list[Image.Image]:
    if colour:
        return [to_colour_bitmap(grid, catalog) for grid in grids]
    return [to_bitmap(grid, catalog) for grid in grids]


def render_terminal(grids: list[CharGrid], colour: bool) -> list[str]:
    return [to_terminal(grid) if colour else to_text(grid) for grid in grids]


def run(
    source: str | Path | Image.Image,
    options: Options | None = None,
    out_path: str | Path | None = None,
    context: RunContext | None = None,
    loops: int | None = None,
) -> None:
    """Convert ``source`` and write the result to ``out_path`` or the terminal.

    Animated sources shown on the terminal are replayed ``loops`` times, or
    forever when ``loops`` is None.
    """
    options = (options or Options()).validate()
    context = context or RunContext()
    log = context.logger
    target = OutputTarget.for_path(out_path)

    for key, value in asdict(options).items():
        log.info("%-16s %s", key, value)
    log.info("%-16s %s", "target", target.value)

    alphabet = load_alphabet(options.alphabet)
    catalog = load_font(options.font, alphabet)
    metric = get_converter(options.metric)

    frames, animated = read_frames(source)
    log.info("converting %d frame(s) to characters...", len(frames))

    grids = convert_frames(
        frames,
        catalog,
        metric,
        options.width,
        progress=context.progress,
        brightness_offset=options.brightness_offset,
        noise_scale=options.noise_scale,
        thread_count=options.threads,
        edge_detection=options.edge_detection,
        colour=options.colour,
        seed=options.seed,
    )

    if target is OutputTarget.JSON:
        Path(out_path).write_text(render_json(grids, options.colour), encoding="utf-8")
    elif target is OutputTarget.GIF:
        log.info("converting character grids to bitmaps...")
        write_gif(assemble(render_bitmaps(grids, catalog, options.colour), options.fps), out_path)
    elif target is OutputTarget.BITMAP:
        render_bitmaps(grids[:1], catalog, options.colour)[0].save(out_path)
    else:
        texts = render_terminal(grids, options.colour)
        if animated:
            play(texts, options.fps, stream=context.stream, loops=loops)
        else:
            print(texts[0], file=context.stream)

    if out_path is not None:
        log.info("wrote %s", out_path)

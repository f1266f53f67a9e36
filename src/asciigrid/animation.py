import itertools
import logging
import sys
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import IO, BinaryIO

from PIL import Image

from asciigrid.errors import InvalidConfigurationError
from asciigrid.terminal import CLEAR_SCREEN

LOG = logging.getLogger(__name__)


def _check_fps(fps: float) -> float:
    if not fps > 0:
        raise InvalidConfigurationError(f"Frame rate must be positive, got {fps}")
    return float(fps)


@dataclass(frozen=True)
class Animation:
    frames: tuple[Image.Image, ...]
    fps: float

    @property
    def delay_ms(self) -> int:
        """Per-frame delay in whole milliseconds, as GIF stores it."""
        return round(1000 / self.fps)


def assemble(bitmaps: Iterable[Image.Image], fps: float) -> Animation:
    """Collect rendered frames into an animation played at a uniform ``fps``.

    Frames are copied into one shared mode: greyscale if every frame is
    monochrome, RGB otherwise.
    """
    fps = _check_fps(fps)
    frames = list(bitmaps)
    if not frames:
        raise InvalidConfigurationError("An animation needs at least one frame")
    sizes = {f.size for f in frames}
    if len(sizes) != 1:
        raise InvalidConfigurationError(f"Animation frames differ in size: {sorted(sizes)}")
    mode = "L" if all(f.mode in ("1", "L") for f in frames) else "RGB"
    return Animation(frames=tuple(f.convert(mode) for f in frames), fps=fps)


def _collapse_repeats(frames: Sequence[Image.Image]) -> list[tuple[Image.Image, int]]:
    """Pair each run of identical consecutive frames with its length."""
    runs: list[tuple[Image.Image, int]] = []
    for frame in frames:
        if runs and frame.tobytes() == runs[-1][0].tobytes():
            runs[-1] = (runs[-1][0], runs[-1][1] + 1)
        else:
            runs.append((frame, 1))
    return runs


def write_gif(animation: Animation, fp: str | BinaryIO) -> None:
    """Write the animation as a looping GIF.

    A run of identical frames is stored once and shown for the whole run, so
    the GIF may hold fewer frames than the animation but always plays for
    ``len(frames) * delay_ms``.
    """
    runs = _collapse_repeats(animation.frames)
    durations = [animation.delay_ms * count for _, count in runs]
    (first, _), *rest = runs
    LOG.info(
        "writing %d frames (%d stored) at %d ms per frame", len(animation.frames), len(runs), animation.delay_ms
    )
    first.save(
        fp,
        format="GIF",
        save_all=True,
        append_images=[frame for frame, _ in rest],
        duration=durations if len(durations) > 1 else durations[0],
        loop=0,
        disposal=2,
    )


def play(
    frames: Sequence[str],
    fps: float,
    stream: IO[str] | None = None,
    loops: int | None = None,
    clock: Callable[[], float] = time.perf_counter,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Replay text frames on a terminal at ``fps``.

    Each frame clears the screen, prints, then sleeps for whatever is left of
    its time slot. A slow frame simply gets no sleep; the lost time is not
    made up later. With ``loops=None`` this runs until interrupted.
    """
    interval = 1.0 / _check_fps(fps)
    if not frames:
        raise InvalidConfigurationError("Nothing to play")
    stream = stream if stream is not None else sys.stdout

    passes = itertools.count() if loops is None else range(loops)
    for _ in passes:
        for frame in frames:
            start = clock()
            stream.write(f"{CLEAR_SCREEN}{frame}\n")
            stream.flush()
            delay = interval - (clock() - start)
            if delay > 0:
                sleep(delay)

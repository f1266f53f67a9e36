import io

import pytest
from PIL import Image, ImageSequence

from asciigrid.animation import Animation, assemble, play, write_gif
from asciigrid.errors import InvalidConfigurationError
from asciigrid.terminal import CLEAR_SCREEN


def _frames(n: int, mode: str = "L") -> list[Image.Image]:
    # a dark column that moves one pixel per frame
    frames = []
    for i in range(n):
        img = Image.new(mode, (8, 8), 255 if mode == "L" else (255, 255, 255))
        img.paste(0 if mode == "L" else (0, 0, 0), (i, 0, i + 1, 8))
        frames.append(img)
    return frames


def test_assemble():
    animation = assemble(_frames(3), fps=10)
    assert len(animation.frames) == 3
    assert animation.delay_ms == 100


def test_delay_is_rounded():
    assert Animation(frames=(), fps=30).delay_ms == 33
    assert Animation(frames=(), fps=24).delay_ms == 42


def test_mixed_modes_become_rgb():
    frames = [*_frames(1), *_frames(1, mode="RGB")]
    animation = assemble(frames, fps=5)
    assert {f.mode for f in animation.frames} == {"RGB"}


def test_greyscale_frames_stay_greyscale():
    assert {f.mode for f in assemble(_frames(2), fps=5).frames} == {"L"}


@pytest.mark.parametrize("fps", [0, -1])
def test_bad_fps(fps):
    with pytest.raises(InvalidConfigurationError):
        assemble(_frames(1), fps=fps)


def test_no_frames():
    with pytest.raises(InvalidConfigurationError):
        assemble([], fps=10)


def test_frames_must_share_size():
    with pytest.raises(InvalidConfigurationError, match="differ in size"):
        assemble([Image.new("L", (4, 4)), Image.new("L", (5, 4))], fps=10)


def test_write_gif():
    buf = io.BytesIO()
    write_gif(assemble(_frames(3), fps=10), buf)
    buf.seek(0)
    with Image.open(buf) as gif:
        assert gif.format == "GIF"
        assert gif.n_frames == 3
        assert gif.info["duration"] == 100
        assert gif.info["loop"] == 0


def _durations(buf) -> list[int]:
    buf.seek(0)
    with Image.open(buf) as gif:
        return [frame.info["duration"] for frame in ImageSequence.Iterator(gif)]


def test_identical_frames_keep_total_duration():
    buf = io.BytesIO()
    write_gif(assemble([Image.new("L", (8, 8), 0)] * 3, fps=10), buf)
    assert _durations(buf) == [300]


def test_repeated_frames_are_stored_once():
    a, b = _frames(2)
    buf = io.BytesIO()
    write_gif(assemble([a, a, b, a.copy()], fps=10), buf)
    assert _durations(buf) == [200, 100, 100]


def test_write_gif_to_path(tmp_path):
    path = tmp_path / "out.gif"
    write_gif(assemble(_frames(2, mode="RGB"), fps=25), str(path))
    with Image.open(path) as gif:
        assert gif.n_frames == 2
        assert gif.info["duration"] == 40


class FakeClock:
    def __init__(self, step: float):
        self.now = 0.0
        self.step = step
        self.sleeps = []

    def clock(self) -> float:
        self.now += self.step
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_play_writes_each_frame():
    out = io.StringIO()
    timer = FakeClock(step=0.01)
    play(["a", "b"], fps=10, stream=out, loops=2, clock=timer.clock, sleep=timer.sleep)
    assert out.getvalue() == f"{CLEAR_SCREEN}a\n{CLEAR_SCREEN}b\n" * 2
    assert len(timer.sleeps) == 4
    assert all(s == pytest.approx(0.09) for s in timer.sleeps)


def test_play_slow_frames_do_not_sleep():
    out = io.StringIO()
    timer = FakeClock(step=0.5)
    play(["a"], fps=10, stream=out, loops=3, clock=timer.clock, sleep=timer.sleep)
    assert timer.sleeps == []
    assert out.getvalue().count(CLEAR_SCREEN) == 3


def test_play_nothing():
    with pytest.raises(InvalidConfigurationError):
        play([], fps=10, loops=1)

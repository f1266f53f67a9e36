import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

import numpy as np

from asciigrid.charsets import normalize_alphabet
from asciigrid.errors import FontLoadError

LOG = logging.getLogger(__name__)

FONT_DIR = Path(__file__).resolve().parent / "data" / "fonts"
BUILTIN_FONTS = {p.stem: p for p in sorted(FONT_DIR.glob("*.bdf"))}
DEFAULT_FONT = "fixed-6x8"


@dataclass(frozen=True, eq=False)
class Glyph:
    char: str
    mask: np.ndarray  # (cell_h, cell_w) bool, read-only
    coverage: float  # fraction of inked pixels

    @classmethod
    def from_mask(cls, char: str, mask) -> "Glyph":
        mask = np.array(mask, dtype=bool)
        if mask.ndim != 2:
            raise FontLoadError(f"Glyph {char!r} mask must be 2-D, got shape {mask.shape}")
        mask.setflags(write=False)
        coverage = float(mask.mean()) if mask.size else 0.0
        return cls(char=char, mask=mask, coverage=coverage)


class GlyphCatalog:
    """Ordered, immutable set of glyphs sharing one cell size.

    Iteration order is the order glyphs were given in, which is also the
    tie-break order when two glyphs score the same.
    """

    def __init__(self, glyphs: Iterable[Glyph], name: str = ""):
        self.name = name
        self._glyphs: dict[str, Glyph] = {}
        for glyph in glyphs:
            self._glyphs.setdefault(glyph.char, glyph)
        if not self._glyphs:
            raise FontLoadError(f"Font {name or '<anonymous>'} provides no glyphs")

        shapes = {g.mask.shape for g in self._glyphs.values()}
        if len(shapes) != 1:
            raise FontLoadError(f"Glyphs have inconsistent cell dimensions: {sorted(shapes)}")
        self.cell_height, self.cell_width = shapes.pop()
        if self.cell_width == 0 or self.cell_height == 0:
            raise FontLoadError(f"Font {name or '<anonymous>'} has an empty glyph cell")

        self.chars = list(self._glyphs)
        self._index = {char: i for i, char in enumerate(self.chars)}
        masks = np.stack([g.mask for g in self._glyphs.values()]).astype(np.float32)
        masks.setflags(write=False)
        self.masks = masks

    @classmethod
    def from_masks(cls, masks: dict[str, object], name: str = "") -> "GlyphCatalog":
        return cls((Glyph.from_mask(char, mask) for char, mask in masks.items()), name=name)

    def cell_dimensions(self) -> tuple[int, int]:
        return self.cell_width, self.cell_height

    def glyph_for(self, char: str) -> Glyph | None:
        return self._glyphs.get(char)

    def index_of(self, char: str) -> int:
        try:
            return self._index[char]
        except KeyError:
            raise FontLoadError(f"Character {char!r} is not in font {self.name or '<anonymous>'}") from None

    def __len__(self) -> int:
        return len(self._glyphs)

    def __iter__(self) -> Iterator[Glyph]:
        return iter(self._glyphs.values())

    def __contains__(self, char: object) -> bool:
        return char in self._glyphs

    def __repr__(self) -> str:
        return f"GlyphCatalog({self.name!r}, {len(self)} glyphs, {self.cell_width}x{self.cell_height})"


@dataclass
class _BdfChar:
    name: str
    encoding: int = -1
    dwidth: int | None = None
    bbx: tuple[int, int, int, int] | None = None
    rows: list[str] = field(default_factory=list)


def _ints(value: str, count: int, keyword: str) -> tuple[int, ...]:
    parts = value.split()
    try:
        numbers = tuple(int(p) for p in parts[:count])
    except ValueError:
        raise FontLoadError(f"Malformed {keyword} line: {value!r}") from None
    if len(numbers) != count:
        raise FontLoadError(f"Malformed {keyword} line: {value!r}")
    return numbers


def _read_char(lines: Iterator[str], name: str) -> _BdfChar:
    record = _BdfChar(name=name)
    in_bitmap = False
    for line in lines:
        line = line.strip()
        if line == "ENDCHAR":
            return record
        if in_bitmap:
            record.rows.append(line)
            continue
        keyword, _, rest = line.partition(" ")
        if keyword == "ENCODING":
            numbers = rest.split()
            # "ENCODING -1 n" carries the real code point as a second value
            if len(numbers) > 1 and numbers[0] == "-1":
                numbers = numbers[1:]
            (record.encoding,) = _ints(" ".join(numbers), 1, keyword)
        elif keyword == "DWIDTH":
            record.dwidth = _ints(rest, 2, keyword)[0]
        elif keyword == "BBX":
            record.bbx = _ints(rest, 4, keyword)
        elif keyword == "BITMAP":
            in_bitmap = True
    raise FontLoadError(f"Unterminated glyph {name!r}: missing ENDCHAR")


def _decode_rows(record: _BdfChar, width: int, height: int) -> np.ndarray:
    if len(record.rows) != height:
        raise FontLoadError(f"Glyph {record.name!r} has {len(record.rows)} bitmap rows, expected {height}")
    bitmap = np.zeros((height, width), dtype=bool)
    for y, row in enumerate(record.rows):
        try:
            data = bytes.fromhex(row)
        except ValueError:
            raise FontLoadError(f"Glyph {record.name!r} has invalid bitmap data: {row!r}") from None
        bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
        if bits.size < width:
            raise FontLoadError(f"Glyph {record.name!r} bitmap row {row!r} is narrower than {width} pixels")
        bitmap[y] = bits[:width].astype(bool)
    return bitmap


def _place(record: _BdfChar, font_bbox: tuple[int, int, int, int]) -> np.ndarray:
    """Position a glyph bitmap inside the font's bounding box cell."""
    cell_w, cell_h, cell_xoff, cell_yoff = font_bbox
    width, height, xoff, yoff = record.bbx if record.bbx is not None else (0, 0, 0, 0)
    mask = np.zeros((cell_h, cell_w), dtype=bool)
    if width == 0 or height == 0:
        return mask

    bitmap = _decode_rows(record, width, height)
    left = xoff - cell_xoff
    top = (cell_h + cell_yoff) - (yoff + height)
    if left < 0 or top < 0 or left + width > cell_w or top + height > cell_h:
        raise FontLoadError(f"Glyph {record.name!r} does not fit the font bounding box {cell_w}x{cell_h}")
    mask[top : top + height, left : left + width] = bitmap
    return mask


def parse_bdf(stream: IO | Iterable, alphabet: str, name: str = "") -> GlyphCatalog:
    """Build a catalog from a BDF font, keeping only glyphs in ``alphabet``.

    Glyphs are placed in the cell given by FONTBOUNDINGBOX and ordered as the
    alphabet is. Every alphabet character must be present and advance by
    exactly one cell width.
    """
    alphabet = normalize_alphabet(alphabet)
    if not alphabet:
        raise FontLoadError("Alphabet is empty")
    wanted = {ord(c) for c in alphabet}

    lines = (line.decode("latin-1") if isinstance(line, bytes) else line for line in stream)
    first = next(lines, "").strip()
    if not first.startswith("STARTFONT"):
        raise FontLoadError(f"Not a BDF font: {name or '<stream>'}")

    font_bbox = None
    records: dict[int, _BdfChar] = {}
    for line in lines:
        keyword, _, rest = line.strip().partition(" ")
        if keyword == "FONTBOUNDINGBOX":
            font_bbox = _ints(rest, 4, keyword)
        elif keyword == "STARTCHAR":
            record = _read_char(lines, rest.strip())
            if record.encoding in wanted:
                records.setdefault(record.encoding, record)
        elif keyword == "ENDFONT":
            break

    if font_bbox is None:
        raise FontLoadError(f"BDF font {name or '<stream>'} has no FONTBOUNDINGBOX")

    missing = [c for c in alphabet if ord(c) not in records]
    if missing:
        raise FontLoadError(f"Font {name or '<stream>'} has no glyphs for {''.join(missing)!r}")

    cell_width = font_bbox[0]
    glyphs = []
    for char in alphabet:
        record = records[ord(char)]
        if record.dwidth is not None and record.dwidth != cell_width:
            raise FontLoadError(
                f"Glyph {char!r} advances {record.dwidth} pixels but the font cell is {cell_width} wide"
            )
        glyphs.append(Glyph.from_mask(char, _place(record, font_bbox)))
    return GlyphCatalog(glyphs, name=name)


def load_font(source: str | Path, alphabet: str) -> GlyphCatalog:
    """Load a bundled font by name, or a BDF file by path."""
    if isinstance(source, str) and source in BUILTIN_FONTS:
        path = BUILTIN_FONTS[source]
        LOG.info("font name      %r", source)
    else:
        path = Path(source)
        LOG.info("font path      %s", path)

    try:
        with path.open("rb") as f:
            catalog = parse_bdf(f, alphabet, name=str(source))
    except OSError as exc:
        raise FontLoadError(f"Cannot read font {source}: {exc.strerror or exc}") from exc

    LOG.debug("loaded %r", catalog)
    return catalog

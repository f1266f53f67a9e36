import argparse
import sys
from pathlib import Path

import requests

from asciigrid.charsets import BUILTIN_ALPHABETS
from asciigrid.errors import AsciiGridError
from asciigrid.font import BUILTIN_FONTS, DEFAULT_FONT
from asciigrid.metrics import DEFAULT_METRIC, METRICS
from asciigrid.pipeline import Options, RunContext, is_url, run
from asciigrid.terminal import get_terminal_size


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render an image or animated GIF as character art")
    parser.add_argument("image", help="Path or http(s) URL of the input image")
    parser.add_argument(
        "-f",
        "--font",
        default=DEFAULT_FONT,
        help=f"Bundled font ({', '.join(sorted(BUILTIN_FONTS))}) or path to a BDF file (default: {DEFAULT_FONT})",
    )
    parser.add_argument(
        "-a",
        "--alphabet",
        default="alphabet",
        help=f"Bundled alphabet ({', '.join(BUILTIN_ALPHABETS)}) or path to a file of characters (default: alphabet)",
    )
    parser.add_argument(
        "-w", "--width", type=int, default=None, help="Output width in columns (default: terminal width)"
    )
    parser.add_argument(
        "-m", "--metric", default=DEFAULT_METRIC, choices=sorted(METRICS), help="Similarity metric (default: grad)"
    )
    parser.add_argument("-t", "--threads", type=int, default=1, help="Worker threads per frame (default: 1)")
    parser.add_argument("--no-color", action="store_true", default=False, help="Disable colour output")
    parser.add_argument(
        "-b", "--brightness-offset", type=float, default=0.0, help="Added to pixel brightness (0-1) before matching"
    )
    parser.add_argument(
        "-n", "--noise-scale", type=float, default=0.0, help="Random brightness jitter to break up banding"
    )
    parser.add_argument("--fps", type=float, default=30.0, help="Frame rate of animated output (default: 30)")
    parser.add_argument(
        "--no-edge-detection",
        action="store_true",
        default=False,
        help="Match on brightness only instead of favouring glyphs that follow edges",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the noise generator")
    parser.add_argument(
        "-o", "--out", default=None, help="Write to a .json, .gif or image file instead of the terminal"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (-vv for debug output)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if not is_url(args.image) and not Path(args.image).exists():
        print(f"File not found: {args.image}", file=sys.stderr)
        return 1

    options = Options(
        font=args.font,
        alphabet=args.alphabet,
        width=args.width if args.width is not None else get_terminal_size()[0],
        metric=args.metric,
        threads=args.threads,
        no_color=args.no_color,
        brightness_offset=args.brightness_offset,
        noise_scale=args.noise_scale,
        fps=args.fps,
        edge_detection=not args.no_edge_detection,
        seed=args.seed,
    )
    with RunContext.create(verbosity=args.verbose) as context:
        try:
            run(args.image, options, out_path=args.out, context=context)
        except (AsciiGridError, OSError, requests.RequestException) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())

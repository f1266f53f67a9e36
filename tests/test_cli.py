import json
import logging

import pytest

from asciigrid.cli import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args(["cat.png"])
    assert args.font == "fixed-6x8"
    assert args.alphabet == "alphabet"
    assert args.width is None
    assert args.metric == "grad"
    assert args.threads == 1
    assert args.fps == 30.0
    assert not args.no_color
    assert not args.no_edge_detection
    assert args.out is None


def test_parser_short_flags():
    args = build_parser().parse_args(
        ["cat.png", "-f", "fixed-12x16", "-a", "minimal", "-w", "40", "-m", "coverage", "-t", "4", "-vv"]
    )
    assert (args.font, args.alphabet, args.width, args.metric, args.threads) == (
        "fixed-12x16",
        "minimal",
        40,
        "coverage",
        4,
    )
    assert args.verbose == 2


def test_unknown_metric_is_rejected(image_path):
    with pytest.raises(SystemExit) as exc:
        main([str(image_path), "-m", "nope"])
    assert exc.value.code == 2


def test_missing_file(capsys):
    assert main(["/nonexistent/cat.png"]) == 1
    assert "File not found" in capsys.readouterr().err


def test_prints_to_terminal(image_path, capsys):
    assert main([str(image_path), "-w", "2", "--no-color", "--no-edge-detection"]) == 0
    out = capsys.readouterr().out
    assert len(out.rstrip("\n")) == 2
    assert "\033" not in out


def test_writes_json(image_path, tmp_path):
    out = tmp_path / "out.json"
    assert main([str(image_path), "-w", "3", "-o", str(out)]) == 0
    assert len(json.loads(out.read_text(encoding="utf-8"))) == 1


def test_writes_gif(gif_path, tmp_path):
    out = tmp_path / "out.gif"
    assert main([str(gif_path), "-w", "2", "--fps", "5", "-o", str(out)]) == 0
    assert out.read_bytes()[:6] == b"GIF89a"


def test_bad_font_is_reported(image_path, capsys):
    assert main([str(image_path), "-w", "2", "-f", "/nonexistent/font.bdf"]) == 1
    assert "error: Cannot read font" in capsys.readouterr().err


def test_bad_threads_is_reported(image_path, capsys):
    assert main([str(image_path), "-w", "2", "-t", "0"]) == 1
    assert "Thread count" in capsys.readouterr().err


def test_unknown_output_suffix(image_path, tmp_path, capsys):
    assert main([str(image_path), "-w", "2", "-o", str(tmp_path / "out.nope")]) == 1
    assert "error:" in capsys.readouterr().err


def test_read_only_output_format_is_reported(image_path, tmp_path, capsys):
    assert main([str(image_path), "-w", "2", "-o", str(tmp_path / "out.psd")]) == 1
    assert "Don't know how to write" in capsys.readouterr().err
    assert not (tmp_path / "out.psd").exists()


def test_logger_is_restored_after_main(image_path):
    logger = logging.getLogger("asciigrid")
    before = (logger.handlers[:], logger.level, logger.propagate)
    assert main([str(image_path), "-w", "2", "-v"]) == 0
    assert (logger.handlers, logger.level, logger.propagate) == before

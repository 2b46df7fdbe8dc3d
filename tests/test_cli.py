"""Tests for the command-line interface."""

import json

import pytest
from PIL import Image

from palettize.cli import _auto_output_path, main

QUADRANTS = [(255, 0, 0), (0, 128, 0), (0, 0, 255), (250, 250, 250)]


def _write_quadrants(path):
    img = Image.new("RGB", (8, 8))
    for i, color in enumerate(QUADRANTS):
        x0, y0 = (i % 2) * 4, (i // 2) * 4
        for y in range(y0, y0 + 4):
            for x in range(x0, x0 + 4):
                img.putpixel((x, y), color)
    img.save(path)
    return path


class TestAutoOutputPath:
    def test_suffix(self, tmp_path):
        assert _auto_output_path(tmp_path / "photo.jpg") == tmp_path / "photo_quant.png"


class TestConvert:
    def test_json_success(self, tmp_path, capsys):
        src = _write_quadrants(tmp_path / "in.png")
        out = tmp_path / "out.png"
        main(["convert", str(src), "-o", str(out), "--colors", "2", "--json"])

        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "success"
        assert summary["metadata"]["width"] == 8
        assert summary["metadata"]["palette_size"] == 2
        assert len(summary["metadata"]["palette"]) == 2

        with Image.open(out) as result:
            colors = result.convert("RGB").getcolors()
        assert len(colors) <= 2

    def test_default_output_path(self, tmp_path):
        src = _write_quadrants(tmp_path / "pic.png")
        main(["convert", str(src), "--colors", "4"])
        assert (tmp_path / "pic_quant.png").exists()

    def test_dithered(self, tmp_path, capsys):
        src = _write_quadrants(tmp_path / "in.png")
        main([
            "convert", str(src), "-o", str(tmp_path / "d.png"),
            "--colors", "2", "--dither", "Atkinson", "--serpentine", "--json",
        ])
        summary = json.loads(capsys.readouterr().out)
        assert summary["settings"]["dither"] == "Atkinson"
        assert summary["settings"]["serpentine"] is True

    def test_palette_strip(self, tmp_path, capsys):
        src = _write_quadrants(tmp_path / "in.png")
        strip = tmp_path / "pal.png"
        main([
            "convert", str(src), "-o", str(tmp_path / "o.png"),
            "--colors", "3", "--palette-out", str(strip), "--json",
        ])
        summary = json.loads(capsys.readouterr().out)
        with Image.open(strip) as img:
            assert img.size == (len(summary["metadata"]["palette"]), 1)


class TestErrors:
    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["convert", str(tmp_path / "nope.png"), "--json"])
        assert exc.value.code == 1
        err = json.loads(capsys.readouterr().err)
        assert err["code"] == "FILE_NOT_FOUND"

    def test_invalid_colors(self, tmp_path, capsys):
        src = _write_quadrants(tmp_path / "in.png")
        with pytest.raises(SystemExit) as exc:
            main(["convert", str(src), "--colors", "0", "--json"])
        assert exc.value.code == 1
        err = json.loads(capsys.readouterr().err)
        assert err["code"] == "INVALID_OPTIONS"

    def test_unreadable_input(self, tmp_path, capsys):
        src = tmp_path / "junk.png"
        src.write_bytes(b"not an image")
        with pytest.raises(SystemExit):
            main(["convert", str(src), "--json"])
        assert json.loads(capsys.readouterr().err)["code"] == "INVALID_INPUT"

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2

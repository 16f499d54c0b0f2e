"""Tests for PdfImage with the external tools stubbed out."""

import os
import subprocess
from pathlib import Path
from typing import List

import pytest

from pdfimage.commands import Crop
from pdfimage.config import ConvertConfig, MarkerConfig
from pdfimage.pdf import CommandError, PdfImage, parse_info_output

PDFINFO_OUTPUT = """Title:          Quarterly form
Producer:       GPL Ghostscript 9.50
Pages:          3
Page size:      612 x 792 pts (letter)
"""


class FakeRunner:
    """Records commands and answers them with canned output."""

    def __init__(self, stdout: str = "", returncode: int = 0, touch_output: bool = True) -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.touch_output = touch_output
        self.calls: List[List[str]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        if cmd[0] == "pdfinfo":
            return subprocess.CompletedProcess(cmd, 0, stdout=PDFINFO_OUTPUT, stderr="")
        if self.touch_output and self.returncode == 0 and cmd[-1] not in ("null:", "txt:-"):
            Path(cmd[-1]).touch()
        stderr = "convert: no images defined" if self.returncode else ""
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=stderr)


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    path = tmp_path / "form.pdf"
    path.write_bytes(b"%PDF-1.4\n")
    return path


def _age(path: Path, seconds: int) -> None:
    stamp = path.stat().st_mtime - seconds
    os.utime(path, (stamp, stamp))


def test_parse_info_output() -> None:
    info = parse_info_output(PDFINFO_OUTPUT + "no colon here\nCreationDate:\tMon Jan  1 10:00:00 2024\n")
    assert info["Title"] == "Quarterly form"
    assert info["Pages"] == "3"
    assert info["Page size"] == "612 x 792 pts (letter)"
    assert info["CreationDate"] == "Mon Jan  1 10:00:00 2024"
    assert "no colon here" not in info


def test_defaults(pdf_file: Path) -> None:
    pdf = PdfImage(pdf_file)
    assert pdf.base_name == "form"
    assert pdf.extension == "png"
    assert pdf.output_dir == pdf_file.parent
    assert pdf.output_path_for_page(4) == pdf_file.parent / "form-4.png"
    assert pdf.output_path_for_file() == pdf_file.parent / "form.png"


def test_extension_leading_dot_is_dropped(pdf_file: Path) -> None:
    pdf = PdfImage(pdf_file, extension=".jpg")
    assert pdf.extension == "jpg"
    assert pdf.output_path_for_page(0) == pdf_file.parent / "form-0.jpg"


def test_from_config(pdf_file: Path, tmp_path: Path) -> None:
    config = ConvertConfig(
        pdf_file=pdf_file,
        output_dir=tmp_path / "out",
        base_name="scan",
        extension="jpg",
        graphics_magick=True,
        convert_options={"-density": 300},
        markers=MarkerConfig(gutter=20),
    )
    pdf = PdfImage.from_config(config)
    assert pdf.output_path_for_page(0) == tmp_path / "out" / "scan-0.jpg"
    assert pdf.graphics_magick is True
    assert pdf.marker_config.gutter == 20


def test_number_of_pages(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRunner())
    assert PdfImage(pdf_file).number_of_pages() == 3


def test_convert_page_runs_when_missing(monkeypatch: pytest.MonkeyPatch, pdf_file: Path, tmp_path: Path) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file, output_dir=tmp_path / "images", convert_options={"-density": 150})
    path = pdf.convert_page(1)
    assert path == tmp_path / "images" / "form-1.png"
    assert runner.calls == [["convert", "-density", "150", f"{pdf_file}[1]", str(path)]]


def test_convert_page_reuses_fresh_image(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file)
    image = pdf.output_path_for_page(0)
    image.touch()
    _age(pdf_file, 60)
    assert pdf.convert_page(0) == image
    assert runner.calls == []


def test_convert_page_refreshes_stale_image(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file)
    image = pdf.output_path_for_page(0)
    image.touch()
    _age(image, 60)
    pdf.convert_page(0)
    assert len(runner.calls) == 1


def test_convert_page_failure(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRunner(returncode=1))
    with pytest.raises(CommandError) as excinfo:
        PdfImage(pdf_file).convert_page(0)
    err = excinfo.value
    assert err.message == "Failed to convert page to image"
    assert err.returncode == 1
    assert "no images defined" in str(err)


def test_missing_binary(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    def missing(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(CommandError) as excinfo:
        PdfImage(pdf_file).get_info()
    assert excinfo.value.message == "Failed to get PDF's information"
    assert excinfo.value.returncode is None


def test_convert_file_in_page_order(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRunner())
    pdf = PdfImage(pdf_file)
    assert pdf.convert_file() == [pdf.output_path_for_page(i) for i in range(3)]


def test_convert_file_combined(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file, combined_image=True, graphics_magick=True)
    result = pdf.convert_file()
    pages = [pdf.output_path_for_page(i) for i in range(3)]
    assert result == pdf.output_path_for_file()
    assert runner.calls[-1] == ["gm", "convert", "-append", *map(str, pages), str(result)]
    assert result.exists()
    assert not any(p.exists() for p in pages)


def test_split_pages(monkeypatch: pytest.MonkeyPatch, pdf_file: Path, tmp_path: Path) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file, extension="pdf", base_name="part", output_dir=tmp_path / "parts")
    assert pdf.split_pages("1,3") == tmp_path / "parts" / "part.pdf"
    assert pdf.split_pages("3-6", 0) == tmp_path / "parts" / "part-0.pdf"
    assert runner.calls[0][-2:] == [f"{pdf_file}[1,3]", str(tmp_path / "parts" / "part.pdf")]
    assert runner.calls[1][-2] == f"{pdf_file}[3-6]"


def test_suggest_markers(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    output = "\n".join(
        [
            "Objects (id: bounding-box centroid area mean-color):",
            "  0: 277x2111+0+0 138.0,1055.0 500000 srgb(255,255,255)",
            "  1: 277x14+0+300 138.0,307.0 3878 srgb(0,0,0)",
            "  2: 277x12+0+330 138.0,336.0 3324 srgb(0,0,0)",
            "  3: 277x3+0+900 138.0,901.0 831 srgb(0,0,0)",
            "  4: 277x15+0+1200 138.0,1207.0 4155 srgb(0,0,0)",
        ]
    )
    runner = FakeRunner(stdout=output)
    monkeypatch.setattr(subprocess, "run", runner)
    pdf = PdfImage(pdf_file)
    assert pdf.suggest_markers(Crop(277, 2111)) == [300, 1200]
    assert runner.calls[0][-1] == "null:"


def test_suggest_margin(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    lines = ["# ImageMagick pixel enumeration: 200,3,0,255,srgb"]
    for y in range(3):
        lines.append(f"10,{y}: (0,0,0)  #000000  black")
        lines.append(f"75,{y}: (0,0,0)  #000000  black")
        lines.append(f"76,{y}: (255,255,255)  #FFFFFF  white")
    monkeypatch.setattr(subprocess, "run", FakeRunner(stdout="\n".join(lines)))
    pdf = PdfImage(pdf_file)
    assert pdf.suggest_margin(Crop(200, 3)) == 95


def test_suggest_margin_fallback(monkeypatch: pytest.MonkeyPatch, pdf_file: Path) -> None:
    monkeypatch.setattr(subprocess, "run", FakeRunner(stdout="75,0: (0,0,0)  #000000  black\n"))
    assert PdfImage(pdf_file).suggest_margin(Crop(200, 3)) == -1
    pdf = PdfImage(pdf_file, marker_config=MarkerConfig(override_margin=0.25))
    assert pdf.suggest_margin(Crop(200, 3)) == 50
